from __future__ import annotations

import asyncio
from typing import Optional, Tuple

import cv2
import numpy as np
import structlog

from ..capture.region import Rect, crop, display_offset, display_scale, to_display
from ..scanner import PriceScanner, ScannerState

log = structlog.get_logger(__name__)

SIDE_W = 320
BG = (17, 17, 17)
WHITE = (255, 255, 255)
GREEN = (40, 200, 40)
RED = (60, 60, 230)
KEYS_CONFIRM = (13, 10, 32)  # Enter/Return/Space
KEY_ESC = 27


def _to_bgr(raster: np.ndarray) -> np.ndarray:
    return cv2.cvtColor(raster, cv2.COLOR_RGBA2BGR)


def _letterbox(img: np.ndarray, container: Tuple[int, int]) -> np.ndarray:
    cw, ch = container
    ih, iw = img.shape[:2]
    s = display_scale(container, (iw, ih))
    dw, dh = max(1, int(iw * s)), max(1, int(ih * s))
    ox, oy = display_offset(container, (iw, ih))
    canvas = np.full((ch, cw, 3), BG, dtype=np.uint8)
    x0, y0 = int(ox), int(oy)
    canvas[y0 : y0 + dh, x0 : x0 + dw] = cv2.resize(img, (dw, dh), interpolation=cv2.INTER_AREA)
    return canvas


def _text(canvas, lines, x: int, y: int, color=WHITE, scale: float = 0.55, step: int = 22) -> int:
    for line in lines:
        cv2.putText(canvas, line, (x, y), cv2.FONT_HERSHEY_SIMPLEX, scale, color, 1, cv2.LINE_AA)
        y += step
    return y


def _wrap(text: str, width: int = 34):
    out = []
    for raw in (text or "").splitlines() or [""]:
        while len(raw) > width:
            out.append(raw[:width])
            raw = raw[width:]
        out.append(raw)
    return out


class ScanWindow:
    """Janela OpenCV que hospeda o ``PriceScanner`` (mouse para o recorte, teclado para as ações)."""

    def __init__(self, scanner: PriceScanner, title: str = "Ler preco pela camera"):
        self.scanner = scanner
        self.title = title
        cw, ch = scanner.selector.container
        self.container = (int(cw), int(ch))
        self.show_debug = False
        self._task: Optional[asyncio.Task] = None
        self._preview_key: Optional[Rect] = None
        self._preview: Optional[np.ndarray] = None

    # ---------- mouse ----------
    def on_mouse(self, event, x, y, flags, _param=None):
        sc = self.scanner
        if sc.state is not ScannerState.CROP or sc.busy:
            return
        if event == cv2.EVENT_LBUTTONDOWN:
            handle = sc.selector.handle_at((x, y))
            if handle is not None:
                sc.begin_drag(handle, (x, y))
        elif event == cv2.EVENT_MOUSEMOVE and sc.selector.dragging:
            sc.update_drag((x, y))
        elif event == cv2.EVENT_LBUTTONUP:
            sc.end_drag()

    # ---------- teclado ----------
    def handle_key(self, k: int) -> None:
        sc = self.scanner
        if k in (KEY_ESC, ord("q"), ord("Q")):
            sc.close()
            return
        if k in (ord("d"), ord("D")):
            self.show_debug = not self.show_debug
            return
        if sc.busy:
            return
        if sc.state is ScannerState.LIVE:
            if k in KEYS_CONFIRM and not sc.unavailable:
                sc.capture()
        elif sc.state is ScannerState.CROP:
            if k in KEYS_CONFIRM:
                self._task = asyncio.ensure_future(sc.read())
            elif k in (ord("r"), ord("R")):
                sc.recapture()
        elif sc.state is ScannerState.PICK:
            if ord("1") <= k <= ord("9"):
                idx = k - ord("1")
                if idx < len(sc.candidates):
                    sc.choose(sc.candidates[idx])
            elif k in (ord("b"), ord("B")):
                sc.back()
            elif k in (ord("r"), ord("R")):
                sc.recapture()

    # ---------- desenho ----------
    def _side_panel(self, lines, color=WHITE) -> np.ndarray:
        panel = np.full((self.container[1], SIDE_W, 3), BG, dtype=np.uint8)
        y = _text(panel, lines, 12, 28, color)
        sc = self.scanner
        if sc.error:
            y = _text(panel, _wrap(sc.error.message), 12, y + 10, RED, scale=0.5, step=20)
        if self.show_debug:
            _text(panel, ["texto reconhecido:"] + _wrap(sc.debug_text or "(vazio)"), 12, y + 10, scale=0.45, step=18)
        return panel

    def _crop_preview(self) -> Optional[np.ndarray]:
        sc = self.scanner
        if sc.frame is None or sc.rect is None:
            return None
        if self._preview_key != sc.rect:
            self._preview = _to_bgr(sc.preprocess(crop(sc.frame, sc.rect)))
            self._preview_key = sc.rect
        return self._preview

    def _render_live(self) -> np.ndarray:
        frame = self.scanner.preview()
        if frame is None:
            view = np.full((self.container[1], self.container[0], 3), BG, dtype=np.uint8)
        else:
            view = _letterbox(_to_bgr(frame), self.container)
        lines = ["ESPACO: capturar", "ESC: fechar", "", "Aproxime do valor, evite", "reflexo e mantenha a", "camera estavel."]
        if self.scanner.unavailable:
            lines = ["Camera indisponivel.", "ESC: fechar"]
        return np.hstack([view, self._side_panel(lines)])

    def _render_crop(self) -> np.ndarray:
        sc = self.scanner
        img = _to_bgr(sc.frame)
        view = _letterbox(img, self.container)
        image_size = (img.shape[1], img.shape[0])
        d = to_display(sc.rect, self.container, image_size)
        x0, y0 = int(d.x), int(d.y)
        x1, y1 = int(d.x + d.w), int(d.y + d.h)
        # escurece fora do recorte
        shade = (view * 0.65).astype(np.uint8)
        shade[y0:y1, x0:x1] = view[y0:y1, x0:x1]
        view = shade
        cv2.rectangle(view, (x0, y0), (x1, y1), WHITE, 2)
        for cx, cy in ((x0, y0), (x1, y0), (x0, y1), (x1, y1)):
            cv2.circle(view, (cx, cy), 7, WHITE, -1)
            cv2.circle(view, (cx, cy), 7, BG, 2)

        status = "Lendo..." if sc.busy else "ENTER: ler area selecionada"
        panel = self._side_panel([status, "R: capturar novamente", "D: texto (debug)", "ESC: fechar"])
        preview = self._crop_preview()
        if preview is not None:
            ph, pw = preview.shape[:2]
            s = min((SIDE_W - 24) / pw, 120 / ph, 1.0)
            small = cv2.resize(preview, (max(1, int(pw * s)), max(1, int(ph * s))), interpolation=cv2.INTER_NEAREST)
            top = self.container[1] - small.shape[0] - 12
            panel[top : top + small.shape[0], 12 : 12 + small.shape[1]] = small
        return np.hstack([view, panel])

    def _render_pick(self) -> np.ndarray:
        sc = self.scanner
        view = np.full((self.container[1], self.container[0], 3), BG, dtype=np.uint8)
        y = _text(view, ["Escolha o preco encontrado:"], 24, 48, GREEN, scale=0.8, step=40)
        _text(view, [f"{i + 1}:  R$ {p}" for i, p in enumerate(sc.candidates[:9])], 40, y + 10, scale=0.9, step=40)
        panel = self._side_panel(["1-9: escolher", "B: voltar ao recorte", "R: capturar novamente", "ESC: fechar"])
        return np.hstack([view, panel])

    def render(self) -> np.ndarray:
        state = self.scanner.state
        if state is ScannerState.CROP:
            return self._render_crop()
        if state is ScannerState.PICK:
            return self._render_pick()
        return self._render_live()

    async def run(self) -> Optional[str]:
        cv2.namedWindow(self.title, cv2.WINDOW_AUTOSIZE)
        cv2.setMouseCallback(self.title, self.on_mouse)
        try:
            await self.scanner.open()
            while self.scanner.is_open:
                cv2.imshow(self.title, self.render())
                k = cv2.waitKey(15) & 0xFF
                if k != 0xFF:
                    self.handle_key(k)
                if cv2.getWindowProperty(self.title, cv2.WND_PROP_VISIBLE) < 1:
                    self.scanner.close()
                # deixa a leitura do OCR avançar entre os quadros
                await asyncio.sleep(0)
            if self._task is not None:
                await self._task
        finally:
            self.scanner.close()
            cv2.destroyWindow(self.title)
        log.info("window.closed", result=self.scanner.result)
        return self.scanner.result


def run_window(scanner: PriceScanner, title: str = "Ler preco pela camera") -> Optional[str]:
    return asyncio.run(ScanWindow(scanner, title).run())
