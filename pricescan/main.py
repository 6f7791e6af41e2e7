import json
from pathlib import Path
from typing import Optional, Tuple

import structlog
import typer

from pricescan.config import load_config
from pricescan.ocr.extract import extract_candidates, format_brl, parse_number_br
from pricescan.utils.logging import setup_logging

app = typer.Typer(add_completion=False)
log = structlog.get_logger(__name__)


def _setup(config: str):
    try:
        cfg = load_config(config or None)
    except (FileNotFoundError, ValueError) as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc
    setup_logging(cfg["logging"]["level"], cfg["logging"]["json"])
    return cfg


def _parse_roi(raw: str) -> Optional[Tuple[int, int, int, int]]:
    if not raw:
        return None
    parts = [p.strip() for p in raw.split(",")]
    if len(parts) != 4 or not all(p.lstrip("-").isdigit() for p in parts):
        raise typer.BadParameter("use x,y,w,h em pixels inteiros", param_hint="--roi")
    x, y, w, h = (int(p) for p in parts)
    return x, y, w, h


def _price_payload(price: str) -> dict:
    value = parse_number_br(price)
    return {"price": price, "value": value, "formatted": format_brl(value) if value is not None else None}


@app.command()
def scan(
    image: str = typer.Option("", help="usar uma foto no lugar da câmera"),
    config: str = typer.Option("", help="arquivo YAML de configuração"),
    out_json: str = typer.Option("", help="salvar também em JSON (opcional)"),
):
    """Abre a janela da câmera: capturar, ajustar o recorte e ler o preço."""
    from pricescan.scanner import open_scanner
    from pricescan.tools.scan_window import run_window

    cfg = _setup(config)
    if image and not Path(image).exists():
        raise typer.BadParameter(f"Arquivo não encontrado: {image}", param_hint="--image")

    picked = []
    scanner = open_scanner(picked.append, lambda: log.info("scanner.closed_by_user"), config=cfg, image=image or None)
    run_window(scanner, title=cfg["ui"]["title"])

    if not picked:
        if scanner.error:
            typer.echo(scanner.error.message, err=True)
        raise typer.Exit(code=1)

    payload = _price_payload(picked[0])
    typer.echo(payload["price"])
    if out_json:
        Path(out_json).write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")


@app.command()
def probe(
    image: str = typer.Argument(..., help="foto da etiqueta ou nota"),
    roi: str = typer.Option("", help="recorte x,y,w,h em pixels (padrão: faixa inferior central)"),
    select: bool = typer.Option(False, help="selecionar o recorte com o mouse"),
    config: str = typer.Option("", help="arquivo YAML de configuração"),
):
    """Uma leitura sem interação sobre uma foto; imprime texto e candidatos."""
    from pricescan.tools.ocr_probe import probe as run_probe

    cfg = _setup(config)
    if not Path(image).exists():
        raise typer.BadParameter(f"Arquivo não encontrado: {image}", param_hint="IMAGE")
    res = run_probe(image, cfg, roi=_parse_roi(roi), select=select)

    typer.echo(f"OCR: {res['text'].strip()!r}")
    typer.echo(f"Candidatos: {', '.join(res['candidates']) or '(nenhum)'}")
    if res["error"]:
        typer.echo(res["error"].message, err=True)
        raise typer.Exit(code=1)


@app.command()
def parse(text: str = typer.Argument(..., help="texto reconhecido")):
    """Extrai os preços candidatos de um texto."""
    for price in extract_candidates(text):
        typer.echo(price)


if __name__ == "__main__":
    app()
