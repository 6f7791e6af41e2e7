"""Recorte (ROI) em coordenadas da imagem e arraste pelas alças."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

import numpy as np
import structlog

log = structlog.get_logger(__name__)

MIN_SIZE = 40
HANDLE_RADIUS = 10  # px na tela; as alças desenhadas têm 14 px

Size = Tuple[float, float]
Point = Tuple[float, float]


class Handle(str, Enum):
    MOVE = "move"
    NW = "nw"
    NE = "ne"
    SW = "sw"
    SE = "se"


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    w: float
    h: float

    def box(self) -> Tuple[int, int, int, int]:
        """Integer pixel box ``(x, y, w, h)``; never smaller than 1x1."""
        return (
            int(math.floor(self.x)),
            int(math.floor(self.y)),
            max(1, int(math.floor(self.w))),
            max(1, int(math.floor(self.h))),
        )


@dataclass(frozen=True)
class DragSession:
    handle: Handle
    start: Point
    start_rect: Rect


def default_rect(
    img_w: int,
    img_h: int,
    w_frac: float = 0.75,
    h_frac: float = 0.28,
    y_frac: float = 0.60,
) -> Rect:
    """Faixa inferior central, onde normalmente fica o preço na etiqueta/nota."""
    cw = math.floor(img_w * w_frac)
    ch = math.floor(img_h * h_frac)
    cx = math.floor((img_w - cw) / 2)
    cy = math.floor(img_h * y_frac)
    return Rect(cx, cy, cw, ch)


def display_scale(container: Size, image: Size) -> float:
    """Uniform scale of an image letterboxed inside ``container``."""
    cw, ch = container
    iw = image[0] or 1
    ih = image[1] or 1
    return min(cw / iw, ch / ih)


def display_offset(container: Size, image: Size) -> Tuple[float, float]:
    s = display_scale(container, image)
    return (container[0] - image[0] * s) / 2, (container[1] - image[1] * s) / 2


def to_display(rect: Rect, container: Size, image: Size) -> Rect:
    s = display_scale(container, image)
    ox, oy = display_offset(container, image)
    return Rect(ox + rect.x * s, oy + rect.y * s, rect.w * s, rect.h * s)


def resize(handle: Handle, start: Rect, dx: float, dy: float) -> Rect:
    """Candidate rectangle for a drag of ``(dx, dy)`` image pixels."""
    handle = Handle(handle)
    x0, y0, w0, h0 = start.x, start.y, start.w, start.h
    if handle is Handle.MOVE:
        return Rect(x0 + dx, y0 + dy, w0, h0)
    if handle is Handle.NW:
        return Rect(x0 + dx, y0 + dy, w0 - dx, h0 - dy)
    if handle is Handle.NE:
        return Rect(x0, y0 + dy, w0 + dx, h0 - dy)
    if handle is Handle.SW:
        return Rect(x0 + dx, y0, w0 - dx, h0 + dy)
    return Rect(x0, y0, w0 + dx, h0 + dy)  # se


def _clamp(n: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, n))


def clamp_rect(rect: Rect, img_w: float, img_h: float, min_size: float = MIN_SIZE) -> Rect:
    # tamanho mínimo antes da posição: o retângulo nunca sai da imagem
    w = min(max(min_size, rect.w), max(min_size, img_w))
    h = min(max(min_size, rect.h), max(min_size, img_h))
    x = _clamp(rect.x, 0, img_w - w)
    y = _clamp(rect.y, 0, img_h - h)
    return Rect(x, y, w, h)


def hit_test(
    pos: Point,
    rect: Rect,
    container: Size,
    image: Size,
    radius: float = HANDLE_RADIUS,
) -> Optional[Handle]:
    """Return the handle under a display-space point, or ``None``."""
    d = to_display(rect, container, image)
    px, py = pos
    corners = (
        (Handle.NW, d.x, d.y),
        (Handle.NE, d.x + d.w, d.y),
        (Handle.SW, d.x, d.y + d.h),
        (Handle.SE, d.x + d.w, d.y + d.h),
    )
    for handle, cx, cy in corners:
        if math.hypot(px - cx, py - cy) <= radius:
            return handle
    if d.x <= px <= d.x + d.w and d.y <= py <= d.y + d.h:
        return Handle.MOVE
    return None


def crop(raster: np.ndarray, rect: Rect) -> np.ndarray:
    """Copy the ROI out of ``raster``; the source is left untouched."""
    x, y, w, h = rect.box()
    out = raster[y : y + h, x : x + w].copy()
    if out.size == 0:
        raise ValueError(f"Recorte vazio: {rect} fora da imagem {raster.shape[1]}x{raster.shape[0]}")
    return out


class RegionSelector:
    """
    Mantém o recorte em pixels da imagem e converte o arraste do ponteiro
    (coordenadas da tela) em mudanças do retângulo.
    """

    def __init__(
        self,
        min_size: float = MIN_SIZE,
        default_fracs: Optional[dict] = None,
        container: Size = (1.0, 1.0),
    ):
        self.min_size = float(min_size)
        self.default_fracs = dict(default_fracs or {})
        self.container: Size = container
        self.image: Size = (0, 0)
        self.rect: Optional[Rect] = None
        self._drag: Optional[DragSession] = None

    @property
    def dragging(self) -> bool:
        return self._drag is not None

    def reset(self, img_w: int, img_h: int) -> Rect:
        self.image = (img_w, img_h)
        self._drag = None
        rect = default_rect(
            img_w,
            img_h,
            w_frac=float(self.default_fracs.get("w", 0.75)),
            h_frac=float(self.default_fracs.get("h", 0.28)),
            y_frac=float(self.default_fracs.get("y", 0.60)),
        )
        # imagens pequenas: a faixa padrão pode ficar abaixo do tamanho mínimo
        self.rect = clamp_rect(rect, img_w, img_h, self.min_size)
        log.debug("roi.reset", image=self.image, rect=self.rect)
        return self.rect

    def set_rect(self, rect: Rect) -> Rect:
        self.rect = clamp_rect(rect, self.image[0], self.image[1], self.min_size)
        return self.rect

    def clear(self) -> None:
        self.rect = None
        self.image = (0, 0)
        self._drag = None

    def scale(self) -> float:
        return display_scale(self.container, self.image)

    def handle_at(self, pos: Point) -> Optional[Handle]:
        if self.rect is None:
            return None
        return hit_test(pos, self.rect, self.container, self.image)

    def begin_drag(self, handle: Handle, pos: Point) -> None:
        if self.rect is None:
            raise ValueError("Nenhuma imagem capturada para recortar.")
        self._drag = DragSession(Handle(handle), (float(pos[0]), float(pos[1])), replace(self.rect))

    def update_drag(self, pos: Point) -> Rect:
        drag = self._drag
        if drag is None or self.rect is None:
            return self.rect
        s = self.scale()
        dx = (pos[0] - drag.start[0]) / s
        dy = (pos[1] - drag.start[1]) / s
        candidate = resize(drag.handle, drag.start_rect, dx, dy)
        self.rect = clamp_rect(candidate, self.image[0], self.image[1], self.min_size)
        return self.rect

    def end_drag(self) -> None:
        if self._drag is not None:
            log.debug("roi.drag_end", handle=self._drag.handle.value, rect=self.rect)
        self._drag = None
