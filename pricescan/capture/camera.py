"""Acesso à câmera: abre o stream, captura um quadro e libera o hardware."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional, Protocol, Tuple

import cv2
import numpy as np
import structlog
from PIL import Image

from ..errors import CameraUnavailable, CaptureFailure, NoCameraError, PermissionDeniedError

log = structlog.get_logger(__name__)

FALLBACK_SIZE = (1280, 720)


class VideoStream(Protocol):
    def size(self) -> Tuple[int, int]: ...
    def read(self) -> Optional[np.ndarray]: ...  # BGR
    def release(self) -> None: ...


class CameraBackend(Protocol):
    def open(self, facing: str) -> VideoStream: ...


class OpenCVStream:
    def __init__(self, capture: "cv2.VideoCapture", index: int):
        self._cap = capture
        self.index = index

    def size(self) -> Tuple[int, int]:
        if self._cap is None:
            return 0, 0
        w = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH) or 0)
        h = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0)
        return w, h

    def read(self) -> Optional[np.ndarray]:
        if self._cap is None or not self._cap.isOpened():
            return None
        ok, frame = self._cap.read()
        return frame if ok else None

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            log.info("camera.released", index=self.index)
        self._cap = None


class OpenCVCameraBackend:
    """cv2.VideoCapture; a câmera traseira é só uma dica (``rear_device``)."""

    def __init__(self, device: int = 0, rear_device: Optional[int] = None):
        self.device = int(device)
        self.rear_device = rear_device

    def _try_open(self, index: int) -> Optional["cv2.VideoCapture"]:
        cap = cv2.VideoCapture(index)
        if cap.isOpened():
            cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
            return cap
        cap.release()
        return None

    def open(self, facing: str) -> OpenCVStream:
        order = [self.device]
        if facing == "environment" and self.rear_device is not None:
            order.insert(0, int(self.rear_device))
        try:
            for index in order:
                cap = self._try_open(index)
                if cap is not None:
                    log.info("camera.opened", index=index, facing=facing)
                    return OpenCVStream(cap, index)
                log.warning("camera.open_failed", index=index)
        except PermissionError as exc:
            raise PermissionDeniedError(str(exc)) from exc
        raise NoCameraError(f"Nenhuma câmera disponível (índices {order}).")


class StillImageStream:
    def __init__(self, frame: np.ndarray):
        self._frame: Optional[np.ndarray] = frame

    def size(self) -> Tuple[int, int]:
        if self._frame is None:
            return 0, 0
        return self._frame.shape[1], self._frame.shape[0]

    def read(self) -> Optional[np.ndarray]:
        return None if self._frame is None else self._frame.copy()

    def release(self) -> None:
        self._frame = None


class ImageFileBackend:
    """Serve uma foto do disco como se fosse a câmera."""

    def __init__(self, path: str):
        self.path = Path(path)

    def open(self, facing: str) -> StillImageStream:
        if not self.path.exists():
            raise NoCameraError(f"Imagem não encontrada: {self.path}")
        try:
            with Image.open(self.path) as img:
                rgb = np.array(img.convert("RGB"))
        except OSError as exc:
            raise NoCameraError(f"Não foi possível abrir a imagem {self.path}: {exc}") from exc
        return StillImageStream(cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR))


class CaptureController:
    def __init__(
        self,
        backend: CameraBackend,
        facing: str = "environment",
        fallback_size: Tuple[int, int] = FALLBACK_SIZE,
    ):
        self.backend = backend
        self.facing = facing
        self.fallback_size = fallback_size

    async def start(self) -> VideoStream:
        try:
            stream = await asyncio.to_thread(self.backend.open, self.facing)
        except CameraUnavailable:
            raise
        except Exception as exc:
            # driver/cv2/PIL: qualquer outra falha também deixa a câmera indisponível
            raise NoCameraError(f"Falha ao abrir a câmera: {exc}") from exc
        log.info("capture.started", facing=self.facing, size=stream.size())
        return stream

    def grab_frame(self, stream: Optional[VideoStream]) -> np.ndarray:
        """Current frame as an RGBA raster at the stream's native size."""
        if stream is None:
            raise CaptureFailure("Câmera não inicializada.")
        frame = stream.read()
        if frame is None:
            raise CaptureFailure("Falha ao capturar imagem.")
        w, h = stream.size()
        if not w or not h:
            w, h = self.fallback_size
        if (frame.shape[1], frame.shape[0]) != (w, h):
            frame = cv2.resize(frame, (w, h), interpolation=cv2.INTER_LINEAR)
        if frame.ndim == 2:
            return cv2.cvtColor(frame, cv2.COLOR_GRAY2RGBA)
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGBA)

    def stop(self, stream: Optional[VideoStream]) -> None:
        if stream is None:
            return
        stream.release()
