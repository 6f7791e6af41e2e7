import sys
from pathlib import Path

import pytest
from typer.testing import CliRunner

sys.path.append(str(Path(__file__).resolve().parents[1]))

from pricescan import main
from pricescan.errors import ErrorKind, ScanError
from pricescan.main import app
from pricescan.tools import ocr_probe

runner = CliRunner()


@pytest.fixture(autouse=True)
def _no_logging_setup(monkeypatch):
    # o logger do structlog guardaria o stderr do CliRunner, que fecha ao fim do invoke
    monkeypatch.setattr(main, "setup_logging", lambda *a, **k: None)


def test_parse_prints_candidates_in_order():
    result = runner.invoke(app, ["parse", "de R$ 1.299,90 por 999.00 ou 12x 83,25"])
    assert result.exit_code == 0
    assert result.output.splitlines() == ["1299,90", "999,00", "83,25"]


def test_probe_reports_candidates(tmp_path, monkeypatch):
    img = tmp_path / "nota.png"
    img.write_bytes(b"")
    seen = {}

    def fake_probe(image, cfg, roi=None, select=False):
        seen.update(image=image, roi=roi, select=select)
        return {"state": "pick", "rect": None, "text": "7,99 8,99\n", "candidates": ["7,99", "8,99"], "price": None, "error": None}

    monkeypatch.setattr(ocr_probe, "probe", fake_probe)
    result = runner.invoke(app, ["probe", str(img), "--roi", "10,20,300,80"])
    assert result.exit_code == 0
    assert "Candidatos: 7,99, 8,99" in result.output
    assert seen["roi"] == (10, 20, 300, 80)


def test_probe_without_price_exits_1(tmp_path, monkeypatch):
    img = tmp_path / "nota.png"
    img.write_bytes(b"")
    err = ScanError(ErrorKind.NO_CANDIDATES, "nada")
    monkeypatch.setattr(
        ocr_probe,
        "probe",
        lambda image, cfg, roi=None, select=False: {"text": "", "candidates": [], "error": err},
    )
    result = runner.invoke(app, ["probe", str(img)])
    assert result.exit_code == 1


def test_probe_rejects_bad_roi(tmp_path):
    img = tmp_path / "nota.png"
    img.write_bytes(b"")
    result = runner.invoke(app, ["probe", str(img), "--roi", "10,20"])
    assert result.exit_code != 0


def test_missing_config_is_a_usage_error(tmp_path):
    result = runner.invoke(app, ["probe", str(tmp_path / "x.png"), "--config", str(tmp_path / "nao.yaml")])
    assert result.exit_code == 2
