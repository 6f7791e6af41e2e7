"""Camera access and region-of-interest selection."""

from .camera import CaptureController, ImageFileBackend, OpenCVCameraBackend
from .region import MIN_SIZE, Handle, Rect, RegionSelector, crop, default_rect

__all__ = [
    "CaptureController",
    "ImageFileBackend",
    "OpenCVCameraBackend",
    "MIN_SIZE",
    "Handle",
    "Rect",
    "RegionSelector",
    "crop",
    "default_rect",
]
