"""Utility helpers for timing-related operations."""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Dict, Iterator


@contextmanager
def timer() -> Iterator[Dict[str, float]]:
    """Measure the wrapped block; ``elapsed_ms`` is filled in on exit."""
    out = {"elapsed_ms": 0.0}
    t0 = time.perf_counter()
    try:
        yield out
    finally:
        out["elapsed_ms"] = round((time.perf_counter() - t0) * 1000.0, 1)
