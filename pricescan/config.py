"""Carrega ``config/scanner.yaml`` sobre os valores padrão."""

from __future__ import annotations

import copy
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

BASE_DIR = Path(__file__).resolve().parents[1]
CFG_SCANNER = BASE_DIR / "config" / "scanner.yaml"

DEFAULTS: Dict[str, Any] = {
    "capture": {
        "device": 0,
        "rear_device": None,
        "facing": "environment",
        "fallback_width": 1280,
        "fallback_height": 720,
    },
    "roi": {
        "min_size": 40,
        "default": {"w": 0.75, "h": 0.28, "y": 0.60},
    },
    "preprocess": {
        "contrast": 1.35,
        "threshold": 160,
    },
    "ocr": {
        "engine": "tesseract",
        "lang": "eng",
        "whitelist": "0123456789.,R$",
        "psm": 6,
        "tesseract": {"path": ""},
    },
    "ui": {
        "title": "Ler preco pela camera",
        "container_width": 960,
        "container_height": 540,
    },
    "logging": {
        "level": "INFO",
        "json": False,
    },
}


def _merge(base: Dict[str, Any], over: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in (over or {}).items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


@lru_cache(maxsize=None)
def _load_yaml_cached(path: str, _mtime_ns: int) -> Dict[str, Any]:
    with Path(path).open("r", encoding="utf-8") as fh:
        try:
            data = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"YAML inválido em {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Configuração inválida em {path}: esperado um mapeamento")
    return data


def resolve_config_path(path: Optional[str] = None) -> Path:
    if path:
        return Path(path)
    env_path = os.environ.get("PRICESCAN_CONFIG", "").strip()
    return Path(env_path) if env_path else CFG_SCANNER


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Return the merged configuration; a missing file means defaults only."""
    cfg_path = resolve_config_path(path)
    if not cfg_path.exists():
        if path:
            raise FileNotFoundError(f"Arquivo de configuração não encontrado: {cfg_path}")
        return copy.deepcopy(DEFAULTS)
    mtime = cfg_path.stat().st_mtime_ns
    return _merge(DEFAULTS, _load_yaml_cached(cfg_path.as_posix(), mtime))
