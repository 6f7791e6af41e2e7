from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import cv2

from ..capture.region import Rect
from ..scanner import PriceScanner, ScannerState, open_scanner


def _select_roi(frame_rgba) -> Optional[Tuple[int, int, int, int]]:
    frame = cv2.cvtColor(frame_rgba, cv2.COLOR_RGBA2BGR)
    r = cv2.selectROI("Selecione o preço (ENTER)", frame, fromCenter=False, showCrosshair=True)
    cv2.destroyAllWindows()
    x, y, w, h = r
    return (int(x), int(y), int(w), int(h)) if w > 0 and h > 0 else None


async def _probe(scanner: PriceScanner, roi, select: bool) -> None:
    await scanner.open()
    scanner.capture()
    if scanner.state is not ScannerState.CROP:
        return
    if select:
        roi = _select_roi(scanner.frame) or roi
    if roi:
        scanner.selector.set_rect(Rect(*roi))
    await scanner.read()


def probe(
    image: str,
    cfg: Dict[str, Any],
    roi: Optional[Tuple[int, int, int, int]] = None,
    select: bool = False,
) -> Dict[str, Any]:
    """Lê o preço de uma foto sem interação: mesmo fluxo do scanner, sem janela."""
    prices: List[str] = []
    scanner = open_scanner(prices.append, lambda: None, config=cfg, image=image)
    try:
        asyncio.run(_probe(scanner, roi, select))
        out = {
            "state": scanner.state.value,
            "rect": scanner.rect,
            "text": scanner.debug_text,
            "candidates": list(scanner.candidates) or prices,
            "price": scanner.result,
            "error": scanner.error,
        }
    finally:
        scanner.close()
    return out
