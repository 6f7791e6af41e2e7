import asyncio
import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from pricescan.errors import RecognitionError
from pricescan.ocr import engine
from pricescan.ocr.engine import PaddleEngine, RecognitionAdapter, TesseractEngine, engine_factory

RASTER = np.zeros((40, 80, 4), dtype=np.uint8)


class FakeEngine:
    def __init__(self, text="R$ 7,99", fail_on=None):
        self.text = text
        self.fail_on = fail_on
        self.calls = []
        self.params = {}
        self.terminated = 0

    def _step(self, name):
        self.calls.append(name)
        if self.fail_on == name:
            raise RuntimeError(f"{name} falhou")

    def load_language(self, lang):
        self._step("load_language")

    def initialize(self, lang):
        self._step("initialize")

    def set_parameters(self, params):
        self._step("set_parameters")
        self.params = dict(params)

    def recognize(self, raster):
        self._step("recognize")
        return {"text": self.text}

    def terminate(self):
        self.calls.append("terminate")
        self.terminated += 1


def test_recognize_runs_engine_lifecycle_in_order():
    fake = FakeEngine()
    adapter = RecognitionAdapter(lambda: fake)
    assert asyncio.run(adapter.recognize(RASTER)) == "R$ 7,99"
    assert fake.calls == ["load_language", "initialize", "set_parameters", "recognize", "terminate"]
    assert fake.params["tessedit_char_whitelist"] == "0123456789.,R$"
    assert fake.params["preserve_interword_spaces"] == "1"


@pytest.mark.parametrize("step", ["load_language", "initialize", "set_parameters", "recognize"])
def test_engine_is_released_exactly_once_on_failure(step):
    fake = FakeEngine(fail_on=step)
    adapter = RecognitionAdapter(lambda: fake)
    with pytest.raises(RecognitionError, match="falhou"):
        asyncio.run(adapter.recognize(RASTER))
    assert fake.terminated == 1
    assert fake.calls[-1] == "terminate"


def test_factory_failure_is_a_recognition_error():
    def broken():
        raise OSError("sem worker")

    with pytest.raises(RecognitionError, match="sem worker"):
        asyncio.run(RecognitionAdapter(broken).recognize(RASTER))


def test_missing_text_is_empty_string():
    fake = FakeEngine(text=None)
    assert asyncio.run(RecognitionAdapter(lambda: fake).recognize(RASTER)) == ""


def test_engine_factory_from_config():
    factory = engine_factory({"engine": "tesseract", "psm": 7})
    eng = factory()
    assert isinstance(eng, TesseractEngine)
    assert eng.psm == 7
    assert isinstance(engine_factory({"engine": "paddle"})(), PaddleEngine)
    with pytest.raises(ValueError):
        engine_factory({"engine": "easyocr"})


def test_tesseract_engine_passes_whitelist_config(monkeypatch):
    seen = {}

    def fake_image_to_string(img, lang=None, config=""):
        seen.update(lang=lang, config=config, mode=img.mode, size=img.size)
        return "12,34\n"

    monkeypatch.setattr(engine.pytesseract, "get_languages", lambda config="": ["eng", "osd"])
    monkeypatch.setattr(engine.pytesseract, "get_tesseract_version", lambda: "5.3.0")
    monkeypatch.setattr(engine.pytesseract, "image_to_string", fake_image_to_string)

    adapter = RecognitionAdapter(lambda: TesseractEngine(psm=6))
    assert asyncio.run(adapter.recognize(RASTER)) == "12,34\n"
    assert seen["lang"] == "eng"
    assert seen["mode"] == "RGB"
    assert seen["size"] == (80, 40)
    assert "--psm 6" in seen["config"]
    assert "-c tessedit_char_whitelist=0123456789.,R$" in seen["config"]


def test_tesseract_missing_language_fails(monkeypatch):
    monkeypatch.setattr(engine.pytesseract, "get_languages", lambda config="": ["osd"])
    with pytest.raises(RecognitionError, match="eng"):
        asyncio.run(RecognitionAdapter(lambda: TesseractEngine()).recognize(RASTER))


def test_paddle_engine_filters_to_whitelist():
    class FakePaddle:
        def ocr(self, img, cls=False):
            return [[(None, ("Preço R$ 9,90", 0.97)), (None, ("un.", 0.5))]]

    eng = PaddleEngine()
    eng._ocr = FakePaddle()
    eng.set_parameters({"tessedit_char_whitelist": "0123456789.,R$"})
    assert eng.recognize(RASTER)["text"] == " R$ 9,90\n."
