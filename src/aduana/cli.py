from __future__ import annotations

import logging
import sys
from importlib.resources import files
from pathlib import Path

TEMPLATES = [
    "ncm_rates.yaml.example",
    "partners.yaml.example",
    "ptax.yaml.example",
    "simulacao.yaml.example",
]

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

OPTIONAL_CONFIG = {
    "partners.yaml": "saldos em BRL sem ágio de parceiro",
    "ptax.yaml": "cotações apenas via Banco Central (tecla p)",
}


def _copy_template(name: str, config_dir: Path) -> bool:
    dest = config_dir / name
    if dest.exists():
        print(f"  já existe: {dest}")
        return False
    dest.write_bytes((files("aduana") / "templates" / name).read_bytes())
    print(f"  criado: {dest}")
    return True


def _init_config() -> None:
    """Create the config/data directories and drop the example YAML files in place."""
    from aduana.config import get_config_dir, get_data_dir

    config_dir = get_config_dir()
    data_dir = get_data_dir()
    for directory in (config_dir, data_dir):
        directory.mkdir(parents=True, exist_ok=True)

    created = [name for name in TEMPLATES if _copy_template(name, config_dir)]

    print()
    print(f"Configuração: {config_dir}")
    print(f"Dados:        {data_dir}")
    print()
    if not created:
        print("Nenhum arquivo novo criado (todos já existiam).")
        return
    print("Próximos passos:")
    for step, name in enumerate(("ncm_rates.yaml", "partners.yaml", "ptax.yaml"), start=1):
        print(f"  {step}. cp {config_dir / (name + '.example')} {config_dir / name}")
    print("  4. Execute: aduana simular simulacao.yaml.example")


def _print_result(result) -> None:
    from aduana.utils.formatters import format_brl

    print()
    print(f"Valor aduaneiro:     {format_brl(result.customs_value_brl):>20}")
    print(f"  II:                {format_brl(result.total_ii):>20}")
    print(f"  IPI:               {format_brl(result.total_ipi):>20}")
    print(f"  PIS:               {format_brl(result.total_pis):>20}")
    print(f"  COFINS:            {format_brl(result.total_cofins):>20}")
    print(f"  ICMS:              {format_brl(result.total_icms):>20}")
    print(f"Despesas locais:     {format_brl(result.total_local_expenses_brl):>20}")
    if result.storage_brl or result.afrmm_brl:
        print(f"  Armazenagem:       {format_brl(result.storage_brl):>20}")
        print(f"  AFRMM:             {format_brl(result.afrmm_brl):>20}")
    print(f"Custo total:         {format_brl(result.total_cost_brl):>20}")
    print()
    print(f"{'Item':<30} {'NCM':<9} {'Qtd':>8} {'Custo total':>18} {'Custo unit.':>16}")
    print("─" * 85)
    for line in result.items:
        print(
            f"{line.item.description[:30]:<30} {line.item.ncm:<9} {line.item.quantity:>8} "
            f"{format_brl(line.total_cost):>18} {format_brl(line.final_unit_cost):>16}"
        )


def _simulate(args: list[str]) -> int:
    """``aduana simular <arquivo.yaml> [--salvar NOME]``."""
    import yaml

    from aduana.config import load_simulation_file, pis_cofins_base_includes_ii
    from aduana.models.simulation import SimulationInput
    from aduana.services.allocator import allocate
    from aduana.services.exceptions import InvalidInputError
    from aduana.services.rate_table import YamlRateTable, fill_tax_rates

    if not args:
        print("Uso: aduana simular <arquivo.yaml> [--salvar NOME]")
        return 1
    path = Path(args[0])
    if not path.is_file():
        print(f"Erro: arquivo não encontrado: {path}")
        return 1

    save_as = None
    if "--salvar" in args:
        idx = args.index("--salvar")
        if idx + 1 >= len(args):
            print("Erro: informe o nome da simulação após --salvar")
            return 1
        save_as = args[idx + 1]

    try:
        data = load_simulation_file(path)
    except yaml.YAMLError as e:
        print(f"Erro: {path} não é um YAML válido ({e})")
        return 1
    if not isinstance(data, dict):
        print(f"Erro: {path} deve conter um mapeamento (items, freight_cost_usd...)")
        return 1
    data.setdefault("pis_cofins_base_includes_ii", pis_cofins_base_includes_ii())
    try:
        sim = SimulationInput.from_dict(data)
        if sim.missing_rates:
            try:
                table = YamlRateTable.from_config()
            except (ValueError, yaml.YAMLError) as e:
                print(f"Erro: tabela de alíquotas inválida (ncm_rates.yaml): {e}")
                return 1
            sim = sim.with_items(fill_tax_rates(sim.items, table))
        result = allocate(sim)
    except InvalidInputError as e:
        print(f"Erro: {e}")
        return 1
    except FileNotFoundError as e:
        print(f"Erro: tabela de alíquotas não encontrada ({e.filename})")
        print("Execute 'aduana init' e configure ncm_rates.yaml.")
        return 1

    _print_result(result)

    if save_as:
        from aduana.utils.store import JsonSimulationStore

        record = JsonSimulationStore().save(save_as, str(data.get("customer", "")), sim)
        print()
        print(f"Simulação salva: {record['id']}")
    return 0


def _preflight() -> bool:
    """Check the config directory before the TUI starts.

    The data directory is created on demand. A missing config directory is
    fatal; missing partner or PTAX files only produce a notice, since the
    ledger still opens without agio and with PTAX fetched on demand.
    """
    from aduana.config import get_config_dir, get_data_dir

    get_data_dir().mkdir(parents=True, exist_ok=True)

    config_dir = get_config_dir()
    if not config_dir.is_dir():
        print(f"Erro: diretório de configuração não encontrado: {config_dir}")
        print("Execute 'aduana init' para criar os arquivos de exemplo.")
        return False
    for name, effect in OPTIONAL_CONFIG.items():
        if not (config_dir / name).is_file():
            print(f"Aviso: {name} ausente em {config_dir}; {effect}.")
    return True


def _setup_logging(log_file: Path | None = None) -> None:
    """Log to ``log_file`` (the TUI owns the terminal) or to stderr."""
    from aduana.config import log_level

    level = log_level()
    if log_file is None:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    else:
        logging.basicConfig(filename=str(log_file), filemode="a", level=level, format=LOG_FORMAT)


def main() -> None:
    """Entry point for the aduana CLI/TUI."""
    args = sys.argv[1:]
    if args and args[0] == "init":
        _init_config()
        return
    if args and args[0] == "simular":
        _setup_logging()
        sys.exit(_simulate(args[1:]))

    if not _preflight():
        sys.exit(1)

    from aduana.config import get_data_dir
    from aduana.tui.app import AduanaApp

    _setup_logging(get_data_dir() / "aduana.log")
    app = AduanaApp()
    app.run()


if __name__ == "__main__":
    main()
