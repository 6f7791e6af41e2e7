"""Preto e branco de alto contraste para favorecer dígitos e separadores."""

from __future__ import annotations

import numpy as np

CONTRAST = 1.35  # 1.0 = sem ajuste
THRESHOLD = 160  # 0..255


def binarize(raster: np.ndarray, contrast: float = CONTRAST, threshold: float = THRESHOLD) -> np.ndarray:
    """Return a new RGBA raster holding only pure black or pure white pixels."""
    if raster.ndim != 3 or raster.shape[2] < 3:
        raise ValueError(f"Esperado raster RGBA (h, w, 4), recebido {raster.shape}")
    rgb = raster[..., :3].astype(np.float64)
    y = 0.2126 * rgb[..., 0] + 0.7152 * rgb[..., 1] + 0.0722 * rgb[..., 2]
    y = (y - 128) * contrast + 128
    v = np.where(y >= threshold, 255, 0).astype(np.uint8)
    out = np.empty(raster.shape[:2] + (4,), dtype=np.uint8)
    out[..., 0] = v
    out[..., 1] = v
    out[..., 2] = v
    out[..., 3] = 255
    return out
