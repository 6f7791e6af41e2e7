from __future__ import annotations

from enum import Enum
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np
import structlog

from .capture.camera import CaptureController, ImageFileBackend, OpenCVCameraBackend, VideoStream
from .capture.region import Handle, Rect, RegionSelector, crop
from .config import load_config
from .errors import (
    CameraUnavailable,
    CaptureFailure,
    ErrorKind,
    RecognitionError,
    ScanError,
    ScannerStateError,
)
from .ocr.engine import RecognitionAdapter
from .ocr.extract import extract_candidates
from .ocr.preprocess import binarize

log = structlog.get_logger(__name__)

MSG_NO_CANDIDATES = (
    "Não consegui identificar um preço na área selecionada. "
    "Ajuste o recorte e tente novamente."
)


class ScannerState(str, Enum):
    LIVE = "live"
    CROP = "crop"
    PICK = "pick"
    RESOLVED = "resolved"
    CLOSED = "closed"


OPEN_STATES = (ScannerState.LIVE, ScannerState.CROP, ScannerState.PICK)


class PriceScanner:
    """
    Máquina de estados do leitor de preço:
      live --capture--> crop
      crop --read--> pick | resolved | crop (erro)
      crop/pick --recapture--> live
      pick --choose--> resolved
      pick --back--> crop
    ``close`` encerra em qualquer estado. A câmera é liberada ao resolver ou fechar.
    """

    def __init__(
        self,
        camera: CaptureController,
        recognizer: RecognitionAdapter,
        on_price: Callable[[str], None],
        on_close: Callable[[], None],
        selector: Optional[RegionSelector] = None,
        preprocess: Callable[[np.ndarray], np.ndarray] = binarize,
    ):
        self.camera = camera
        self.recognizer = recognizer
        self.on_price = on_price
        self.on_close = on_close
        self.selector = selector or RegionSelector()
        self.preprocess = preprocess

        self.state = ScannerState.LIVE
        self.busy = False
        self.unavailable = False
        self.error: Optional[ScanError] = None
        self.debug_text = ""
        self.candidates: List[str] = []
        self.frame: Optional[np.ndarray] = None
        self.stream: Optional[VideoStream] = None
        self.result: Optional[str] = None
        self._session = 0
        self._opening = False

    async def __aenter__(self) -> "PriceScanner":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()

    # --- helpers ---
    @property
    def rect(self) -> Optional[Rect]:
        return self.selector.rect

    @property
    def is_open(self) -> bool:
        return self.state in OPEN_STATES

    def _require(self, op: str, *states: ScannerState) -> None:
        if self.state not in states:
            raise ScannerStateError(f"'{op}' inválido no estado '{self.state.value}'")

    def _goto(self, state: ScannerState) -> None:
        log.info("scanner.state", frm=self.state.value, to=state.value)
        self.state = state

    def _fail(self, kind: ErrorKind, message: str) -> None:
        self.error = ScanError(kind, message)
        log.warning("scanner.error", kind=kind.value, message=message, state=self.state.value)

    def _clear_outputs(self) -> None:
        self.error = None
        self.debug_text = ""
        self.candidates = []

    def _release(self) -> None:
        stream, self.stream = self.stream, None
        self.camera.stop(stream)

    def _resolve(self, price: str) -> None:
        self.result = price
        self._goto(ScannerState.RESOLVED)
        self._release()
        self.on_price(price)

    # --- camera ---
    async def open(self) -> None:
        self._require("open", ScannerState.LIVE)
        if self.stream is not None or self._opening:
            return
        session = self._session
        self.error = None
        self._opening = True
        try:
            stream = await self.camera.start()
        except CameraUnavailable as exc:
            if session == self._session:
                self.unavailable = True
                self._fail(exc.kind, f"Não foi possível acessar a câmera: {exc}")
            return
        finally:
            self._opening = False
        if session != self._session or not self.is_open:
            # fechado enquanto a câmera abria: descarta o stream
            log.info("scanner.stale_stream_discarded")
            self.camera.stop(stream)
            return
        self.stream = stream

    def preview(self) -> Optional[np.ndarray]:
        """Live frame for display; ``None`` when the camera has nothing to show."""
        if self.state is not ScannerState.LIVE or self.stream is None:
            return None
        try:
            return self.camera.grab_frame(self.stream)
        except CaptureFailure:
            return None

    # --- transitions ---
    def capture(self) -> None:
        self._require("capture", ScannerState.LIVE)
        if self.busy:
            return
        self._clear_outputs()
        try:
            frame = self.camera.grab_frame(self.stream)
        except CaptureFailure as exc:
            self._fail(ErrorKind.CAPTURE_FAILURE, str(exc))
            return
        h, w = frame.shape[:2]
        self.frame = frame
        self.selector.reset(w, h)
        log.info("scanner.captured", width=w, height=h, rect=self.selector.rect)
        self._goto(ScannerState.CROP)

    def begin_drag(self, handle: Handle, pos: Tuple[float, float]) -> None:
        self._require("begin_drag", ScannerState.CROP)
        if self.busy:
            return
        self.selector.begin_drag(handle, pos)

    def update_drag(self, pos: Tuple[float, float]) -> Optional[Rect]:
        if self.state is not ScannerState.CROP or self.busy:
            return self.selector.rect
        return self.selector.update_drag(pos)

    def end_drag(self) -> None:
        self.selector.end_drag()

    async def read(self) -> None:
        self._require("read", ScannerState.CROP)
        if self.busy:
            log.debug("scanner.read_ignored_busy")
            return
        self._clear_outputs()
        if self.frame is None or self.selector.rect is None:
            self._fail(ErrorKind.CAPTURE_FAILURE, "Nenhuma imagem capturada.")
            return

        self.busy = True
        self.selector.end_drag()
        try:
            try:
                bw = self.preprocess(crop(self.frame, self.selector.rect))
            except ValueError as exc:
                self._fail(ErrorKind.CAPTURE_FAILURE, f"Falha ao preparar imagem: {exc}")
                return
            text = await self.recognizer.recognize(bw)
        except RecognitionError as exc:
            self._fail(ErrorKind.RECOGNITION_ERROR, f"Erro ao reconhecer texto: {exc}")
            return
        finally:
            self.busy = False

        if self.state is not ScannerState.CROP:
            log.info("scanner.read_discarded", state=self.state.value)
            return

        self.debug_text = text
        prices = extract_candidates(text)
        log.info("scanner.candidates", count=len(prices))
        if not prices:
            self._fail(ErrorKind.NO_CANDIDATES, MSG_NO_CANDIDATES)
            return
        if len(prices) == 1:
            self._resolve(prices[0])
            return
        # Se houver múltiplos, deixa escolher
        self.candidates = prices
        self._goto(ScannerState.PICK)

    def choose(self, price: str) -> None:
        self._require("choose", ScannerState.PICK)
        if price not in self.candidates:
            raise ValueError(f"Preço fora da lista de candidatos: {price!r}")
        self._resolve(price)

    def back(self) -> None:
        self._require("back", ScannerState.PICK)
        self.candidates = []
        self._goto(ScannerState.CROP)

    def recapture(self) -> None:
        self._require("recapture", *OPEN_STATES)
        if self.busy:
            return
        self._clear_outputs()
        self.frame = None
        self.selector.clear()
        self._goto(ScannerState.LIVE)

    def close(self) -> None:
        self._session += 1
        self._release()
        if not self.is_open:
            return
        self.frame = None
        self.selector.clear()
        self._goto(ScannerState.CLOSED)
        self.on_close()


def open_scanner(
    on_price: Callable[[str], None],
    on_close: Callable[[], None],
    config: Optional[Dict[str, Any]] = None,
    camera: Optional[CaptureController] = None,
    recognizer: Optional[RecognitionAdapter] = None,
    image: Optional[str] = None,
) -> PriceScanner:
    """
    Build a scanner wired from the configuration. The camera starts on
    ``await scanner.open()`` (or ``async with``).
    """
    cfg = config or load_config()
    cap_cfg = cfg["capture"]
    if camera is None:
        backend = (
            ImageFileBackend(image)
            if image
            else OpenCVCameraBackend(device=cap_cfg["device"], rear_device=cap_cfg.get("rear_device"))
        )
        camera = CaptureController(
            backend,
            facing=cap_cfg.get("facing", "environment"),
            fallback_size=(int(cap_cfg["fallback_width"]), int(cap_cfg["fallback_height"])),
        )
    if recognizer is None:
        recognizer = RecognitionAdapter.from_config(cfg["ocr"])
    selector = RegionSelector(
        min_size=cfg["roi"]["min_size"],
        default_fracs=cfg["roi"].get("default"),
        container=(cfg["ui"]["container_width"], cfg["ui"]["container_height"]),
    )
    pre = cfg["preprocess"]
    return PriceScanner(
        camera,
        recognizer,
        on_price,
        on_close,
        selector=selector,
        preprocess=partial(binarize, contrast=float(pre["contrast"]), threshold=float(pre["threshold"])),
    )
