from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest
import yaml

from aduana.cli import TEMPLATES, _init_config, _preflight, _simulate, main


@pytest.fixture
def dirs(monkeypatch, tmp_path):
    config_dir = tmp_path / "config"
    data_dir = tmp_path / "data"
    monkeypatch.setattr("aduana.config.get_config_dir", lambda: config_dir)
    monkeypatch.setattr("aduana.config.get_data_dir", lambda: data_dir)
    monkeypatch.delenv("ADUANA_PIS_COFINS_INCLUI_II", raising=False)
    return config_dir, data_dir


def _write_sim(tmp_path, data: dict):
    path = tmp_path / "simulacao.yaml"
    path.write_text(yaml.dump(data, allow_unicode=True))
    return path


class TestMain:
    @patch("aduana.tui.app.AduanaApp")
    @patch("aduana.cli._setup_logging")
    @patch("aduana.cli._preflight", return_value=True)
    def test_launches_tui(self, mock_preflight, mock_logging, mock_app_cls, dirs):
        mock_app = MagicMock()
        mock_app_cls.return_value = mock_app
        with patch("sys.argv", ["aduana"]):
            main()
        mock_preflight.assert_called_once()
        mock_logging.assert_called_once_with(dirs[1] / "aduana.log")
        mock_app.run.assert_called_once()

    @patch("aduana.cli._init_config")
    def test_init_dispatches(self, mock_init):
        with patch("sys.argv", ["aduana", "init"]):
            main()
        mock_init.assert_called_once()

    @patch("aduana.cli._setup_logging")
    @patch("aduana.cli._simulate", return_value=0)
    def test_simular_dispatches(self, mock_simulate, mock_logging):
        with patch("sys.argv", ["aduana", "simular", "di.yaml"]), pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 0
        mock_simulate.assert_called_once_with(["di.yaml"])

    @patch("aduana.cli._preflight", return_value=False)
    def test_exit_1_on_failure(self, mock_preflight):
        with patch("sys.argv", ["aduana"]), pytest.raises(SystemExit, match="1"):
            main()


class TestPreflight:
    def test_ok(self, dirs):
        config_dir, data_dir = dirs
        config_dir.mkdir()
        assert _preflight() is True
        assert data_dir.is_dir()

    def test_no_config(self, dirs, capsys):
        assert _preflight() is False
        assert "aduana init" in capsys.readouterr().out

    def test_optional_files_only_warn(self, dirs, capsys):
        config_dir, _ = dirs
        config_dir.mkdir()
        (config_dir / "partners.yaml").write_text("partners: []\n")
        assert _preflight() is True
        out = capsys.readouterr().out
        assert "ptax.yaml ausente" in out
        assert "partners.yaml" not in out


class TestInitConfig:
    def test_copies_templates(self, dirs):
        config_dir, data_dir = dirs
        _init_config()
        for name in TEMPLATES:
            assert (config_dir / name).exists()
        assert data_dir.is_dir()

    def test_skips_existing(self, dirs, capsys):
        config_dir, _ = dirs
        config_dir.mkdir()
        (config_dir / "ptax.yaml.example").write_text("existing")
        _init_config()
        assert (config_dir / "ptax.yaml.example").read_text() == "existing"
        assert "já existe" in capsys.readouterr().out

    def test_templates_are_valid(self, dirs):
        from aduana.models.simulation import SimulationInput
        from aduana.services.rate_table import YamlRateTable

        config_dir, _ = dirs
        _init_config()
        rates = yaml.safe_load((config_dir / "ncm_rates.yaml.example").read_text())
        table = YamlRateTable.from_dict(rates)
        sim = SimulationInput.from_dict(
            yaml.safe_load((config_dir / "simulacao.yaml.example").read_text())
        )
        assert table.lookup(sim.items[0].ncm) is not None


class TestSimulate:
    def test_prints_costs(self, dirs, tmp_path, sim_dict, capsys):
        path = _write_sim(tmp_path, sim_dict)
        assert _simulate([str(path)]) == 0
        out = capsys.readouterr().out
        assert "R$ 16.339,02" in out
        assert "R$ 1.633,90" in out
        assert "Notebook" in out

    def test_fills_rates_from_table(self, dirs, tmp_path, sim_dict, capsys):
        config_dir, _ = dirs
        config_dir.mkdir()
        (config_dir / "ncm_rates.yaml").write_text(
            yaml.dump({"12345678": {"ii": 10, "ipi": 5, "pis": 2, "cofins": 9}})
        )
        del sim_dict["items"][0]["tax_rates"]
        path = _write_sim(tmp_path, sim_dict)
        assert _simulate([str(path)]) == 0
        assert "R$ 16.339,02" in capsys.readouterr().out

    def test_pis_cofins_default_from_env(self, dirs, tmp_path, sim_dict, capsys, monkeypatch):
        monkeypatch.setenv("ADUANA_PIS_COFINS_INCLUI_II", "0")
        path = _write_sim(tmp_path, sim_dict)
        assert _simulate([str(path)]) == 0
        assert "R$ 210,00" in capsys.readouterr().out

    def test_missing_rate_table(self, dirs, tmp_path, sim_dict, capsys):
        del sim_dict["items"][0]["tax_rates"]
        path = _write_sim(tmp_path, sim_dict)
        assert _simulate([str(path)]) == 1
        assert "aduana init" in capsys.readouterr().out

    def test_unknown_ncm(self, dirs, tmp_path, sim_dict, capsys):
        config_dir, _ = dirs
        config_dir.mkdir()
        rates = {"99999999": {"ii": 1, "ipi": 1, "pis": 1, "cofins": 1}}
        (config_dir / "ncm_rates.yaml").write_text(yaml.dump(rates))
        del sim_dict["items"][0]["tax_rates"]
        path = _write_sim(tmp_path, sim_dict)
        assert _simulate([str(path)]) == 1
        assert "12345678" in capsys.readouterr().out

    @pytest.mark.parametrize(
        "content",
        [
            "12345678: {ii: abc, ipi: 0, pis: 1, cofins: 1}\n",
            "12345678: {ii: 10, ipi: 0}\n",
            "12345678: [ii: 10\n",
        ],
    )
    def test_malformed_rate_table(self, dirs, tmp_path, sim_dict, capsys, content):
        config_dir, _ = dirs
        config_dir.mkdir()
        (config_dir / "ncm_rates.yaml").write_text(content)
        del sim_dict["items"][0]["tax_rates"]
        path = _write_sim(tmp_path, sim_dict)
        assert _simulate([str(path)]) == 1
        assert "Erro: tabela de alíquotas inválida" in capsys.readouterr().out

    def test_malformed_simulation_file(self, tmp_path, capsys):
        path = tmp_path / "simulacao.yaml"
        path.write_text("items: [unclosed\n")
        assert _simulate([str(path)]) == 1
        assert "não é um YAML válido" in capsys.readouterr().out

    def test_invalid_input(self, dirs, tmp_path, sim_dict, capsys):
        sim_dict["icms_rate"] = 100
        path = _write_sim(tmp_path, sim_dict)
        assert _simulate([str(path)]) == 1
        assert "ICMS" in capsys.readouterr().out

    def test_file_not_found(self, dirs, tmp_path, capsys):
        assert _simulate([str(tmp_path / "nada.yaml")]) == 1
        assert "não encontrado" in capsys.readouterr().out

    def test_usage(self, capsys):
        assert _simulate([]) == 1
        assert "Uso" in capsys.readouterr().out

    def test_save(self, dirs, tmp_path, sim_dict, capsys):
        _, data_dir = dirs
        sim_dict["customer"] = "Nexus Imports"
        path = _write_sim(tmp_path, sim_dict)
        assert _simulate([str(path), "--salvar", "Notebooks Q4"]) == 0
        assert "Simulação salva" in capsys.readouterr().out

        records = json.loads((data_dir / "simulations.json").read_text())
        assert records[0]["name"] == "Notebooks Q4"
        assert records[0]["customer"] == "Nexus Imports"
        assert records[0]["data"]["pis_cofins_base_includes_ii"] is True

    def test_save_without_name(self, dirs, tmp_path, sim_dict, capsys):
        path = _write_sim(tmp_path, sim_dict)
        assert _simulate([str(path), "--salvar"]) == 1
