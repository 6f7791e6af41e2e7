"""Preprocessing, OCR engines and price extraction."""

from .engine import RecognitionAdapter, RecognitionEngine, engine_factory
from .extract import extract_candidates, format_brl, normalize_price_br, parse_number_br
from .preprocess import binarize

__all__ = [
    "RecognitionAdapter",
    "RecognitionEngine",
    "engine_factory",
    "extract_candidates",
    "format_brl",
    "normalize_price_br",
    "parse_number_br",
    "binarize",
]
