"""Exception types and error classification for the scanner."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    NO_CAMERA = "no_camera"
    PERMISSION_DENIED = "permission_denied"
    CAPTURE_FAILURE = "capture_failure"
    RECOGNITION_ERROR = "recognition_error"
    NO_CANDIDATES = "no_candidates"


@dataclass(frozen=True)
class ScanError:
    """What the UI shows after a failed step."""

    kind: ErrorKind
    message: str


class ScannerError(Exception):
    kind: ErrorKind = ErrorKind.CAPTURE_FAILURE


class CameraUnavailable(ScannerError):
    kind = ErrorKind.NO_CAMERA


class NoCameraError(CameraUnavailable):
    kind = ErrorKind.NO_CAMERA


class PermissionDeniedError(CameraUnavailable):
    kind = ErrorKind.PERMISSION_DENIED


class CaptureFailure(ScannerError):
    kind = ErrorKind.CAPTURE_FAILURE


class RecognitionError(ScannerError):
    kind = ErrorKind.RECOGNITION_ERROR


class ScannerStateError(RuntimeError):
    """Raised when an operation is not valid in the current scanner state."""
