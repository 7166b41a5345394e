from __future__ import annotations

import os
from datetime import timedelta, timezone
from decimal import Decimal
from pathlib import Path

import platformdirs
import yaml
from dotenv import load_dotenv

APP_NAME = "aduana"

# kind -> (env var, directory in a source checkout, platformdirs fallback)
_DIRS = {
    "config": ("ADUANA_CONFIG_DIR", "config", platformdirs.user_config_dir),
    "data": ("ADUANA_DATA_DIR", "data", platformdirs.user_data_dir),
}


def _resolve_dir(kind: str) -> Path:
    """Directory for ``kind``: env var, then the checkout's config/data dir, then user dir."""
    env_var, subdir, user_dir = _DIRS[kind]
    override = os.environ.get(env_var)
    if override:
        return Path(override)
    # src/aduana/config.py lives two levels below the checkout root
    checkout_dir = Path(__file__).resolve().parents[2] / subdir
    if checkout_dir.is_dir():
        return checkout_dir
    return Path(user_dir(APP_NAME))


def get_config_dir() -> Path:
    """Config directory, resolved on every call so env changes are picked up."""
    return _resolve_dir("config")


def get_data_dir() -> Path:
    """Data directory (stores), resolved on every call."""
    return _resolve_dir("data")


def _load_env_files() -> None:
    # The working directory .env wins; python-dotenv never overrides a set variable.
    for env_file in (Path.cwd() / ".env", get_config_dir() / ".env"):
        if env_file.is_file():
            load_dotenv(env_file)


_load_env_files()

BRT = timezone(timedelta(hours=-3))

# Banco Central do Brasil, PTAX OData service
PTAX_URL = (
    "https://olinda.bcb.gov.br/olinda/servico/PTAX/versao/v1/odata/"
    "CotacaoMoedaDia(moeda=@moeda,dataCotacao=@dataCotacao)"
)
PTAX_TIMEOUT = 20
PTAX_LOOKBACK_DAYS = 7
PTAX_MAX_AGE_DAYS = 3

# Despesas calculadas para o modal marítimo
STORAGE_MIN_BRL = Decimal("2500")
STORAGE_RATE = Decimal("0.01")
AFRMM_RATE = Decimal("0.08")

MAX_INSTALLMENTS = 48


def pis_cofins_base_includes_ii() -> bool:
    """Default PIS/COFINS cascade for new simulations (ADUANA_PIS_COFINS_INCLUI_II)."""
    value = os.environ.get("ADUANA_PIS_COFINS_INCLUI_II", "1").strip().lower()
    return value not in ("0", "false", "nao", "não", "no")


def log_level() -> str:
    """Root log level name from ADUANA_LOG_LEVEL (WARNING by default)."""
    return os.environ.get("ADUANA_LOG_LEVEL", "WARNING").strip().upper() or "WARNING"


# --- YAML config ---


def load_yaml(path: Path) -> dict:
    """Load and parse a YAML file, returning the top-level dict."""
    return yaml.safe_load(path.read_text()) or {}


def load_rate_table() -> dict:
    """Load NCM tax rates from config/ncm_rates.yaml."""
    return load_yaml(get_config_dir() / "ncm_rates.yaml")


def load_partners() -> list[dict]:
    """Load the partner directory from config/partners.yaml."""
    path = get_config_dir() / "partners.yaml"
    if not path.exists():
        return []
    return load_yaml(path).get("partners", [])


def load_static_ptax() -> dict:
    """Load fallback PTAX rates from config/ptax.yaml ({} when absent)."""
    path = get_config_dir() / "ptax.yaml"
    if not path.exists():
        return {}
    return load_yaml(path)


def load_simulation_file(path: Path) -> dict:
    """Load a simulation definition (items, freight, rates...) from a YAML file."""
    return load_yaml(path)
