"""OCR engines and the adapter that runs one recognition per scan."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, Mapping, Optional, Protocol

import numpy as np
import pytesseract
import structlog
from PIL import Image

from ..errors import RecognitionError
from ..utils.timing import timer

log = structlog.get_logger(__name__)

WHITELIST = "0123456789.,R$"


class RecognitionEngine(Protocol):
    def load_language(self, lang: str) -> None: ...
    def initialize(self, lang: str) -> None: ...
    def set_parameters(self, params: Mapping[str, str]) -> None: ...
    def recognize(self, raster: np.ndarray) -> Dict[str, Any]: ...
    def terminate(self) -> None: ...


def _to_pil(raster: np.ndarray) -> Image.Image:
    img = Image.fromarray(np.ascontiguousarray(raster))
    return img.convert("RGB")


class TesseractEngine:
    def __init__(self, psm: int = 6, tesseract_cmd: str = ""):
        self.psm = int(psm)
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        self.lang: Optional[str] = None
        self.params: Dict[str, str] = {}

    def load_language(self, lang: str) -> None:
        available = pytesseract.get_languages(config="")
        if lang not in available:
            raise RuntimeError(f"Idioma '{lang}' não instalado no Tesseract ({', '.join(available)})")

    def initialize(self, lang: str) -> None:
        version = pytesseract.get_tesseract_version()
        self.lang = lang
        log.debug("tesseract.ready", version=str(version), lang=lang)

    def set_parameters(self, params: Mapping[str, str]) -> None:
        self.params.update({k: str(v) for k, v in params.items()})

    def _config(self) -> str:
        opts = [f"--psm {self.psm}"]
        opts += [f"-c {k}={v}" for k, v in self.params.items()]
        return " ".join(opts)

    def recognize(self, raster: np.ndarray) -> Dict[str, Any]:
        if self.lang is None:
            raise RuntimeError("Tesseract não inicializado")
        txt = pytesseract.image_to_string(_to_pil(raster), lang=self.lang, config=self._config())
        return {"text": txt}

    def terminate(self) -> None:
        self.lang = None
        self.params = {}


class PaddleEngine:
    """PaddleOCR (extra ``paddle``); o texto é filtrado pela whitelist."""

    _LANGS = {"eng": "en", "por": "pt"}

    def __init__(self):
        self._ocr = None
        self.lang = "en"
        self.whitelist: Optional[str] = None

    def load_language(self, lang: str) -> None:
        self.lang = self._LANGS.get(lang, lang)

    def initialize(self, lang: str) -> None:
        from paddleocr import PaddleOCR

        self._ocr = PaddleOCR(use_angle_cls=False, lang=self.lang)

    def set_parameters(self, params: Mapping[str, str]) -> None:
        self.whitelist = params.get("tessedit_char_whitelist") or None

    def recognize(self, raster: np.ndarray) -> Dict[str, Any]:
        if self._ocr is None:
            raise RuntimeError("PaddleOCR não inicializado")
        res = self._ocr.ocr(np.array(_to_pil(raster)), cls=False)
        lines = [r[1][0] for r in (res[0] if res and res[0] else [])]
        txt = "\n".join(lines)
        if self.whitelist:
            keep = set(self.whitelist) | {" ", "\n"}
            txt = "".join(ch for ch in txt if ch in keep)
        return {"text": txt}

    def terminate(self) -> None:
        self._ocr = None


EngineFactory = Callable[[], RecognitionEngine]


def engine_factory(cfg: Mapping[str, Any]) -> EngineFactory:
    """Pick the engine named in the ``ocr`` config section."""
    name = str(cfg.get("engine", "tesseract")).lower()
    if name == "tesseract":
        psm = int(cfg.get("psm", 6))
        cmd = str((cfg.get("tesseract") or {}).get("path") or "")
        return lambda: TesseractEngine(psm=psm, tesseract_cmd=cmd)
    if name == "paddle":
        return PaddleEngine
    raise ValueError(f"Motor de OCR desconhecido: {name}")


class RecognitionAdapter:
    def __init__(self, factory: EngineFactory, lang: str = "eng", whitelist: str = WHITELIST):
        self.factory = factory
        self.lang = lang
        self.whitelist = whitelist

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any]) -> "RecognitionAdapter":
        return cls(
            engine_factory(cfg),
            lang=str(cfg.get("lang", "eng")),
            whitelist=str(cfg.get("whitelist", WHITELIST)),
        )

    def _run(self, raster: np.ndarray) -> str:
        try:
            engine = self.factory()
        except Exception as exc:
            raise RecognitionError(f"Falha ao iniciar o OCR: {exc}") from exc
        try:
            engine.load_language(self.lang)
            engine.initialize(self.lang)
            # Mantemos whitelist numérica para reduzir erros.
            engine.set_parameters(
                {
                    "tessedit_char_whitelist": self.whitelist,
                    "preserve_interword_spaces": "1",
                }
            )
            data = engine.recognize(raster) or {}
            return str(data.get("text") or "")
        except Exception as exc:
            raise RecognitionError(str(exc) or exc.__class__.__name__) from exc
        finally:
            try:
                engine.terminate()
            except Exception as exc:
                log.warning("ocr.terminate_failed", error=repr(exc))

    async def recognize(self, raster: np.ndarray) -> str:
        with timer() as t:
            text = await asyncio.to_thread(self._run, raster)
        log.info("ocr.recognized", elapsed_ms=t["elapsed_ms"], chars=len(text))
        return text
