"""Video capture devices feeding the capture loop."""
from __future__ import annotations

import logging
from typing import Optional, Tuple

import cv2
import numpy as np

LOGGER = logging.getLogger(__name__)


class CaptureDevice:
    """Interface for a frame source owned by :class:`PoseCaptureApp`."""

    def open(self) -> Tuple[int, int]:
        """Acquire the device and return its usable ``(width, height)``."""
        raise NotImplementedError

    def read(self) -> Optional[np.ndarray]:
        """Return the current BGR frame, or ``None`` if none is available."""
        raise NotImplementedError

    def release(self) -> None:
        """Stop the device and release it."""


class OpenCVCamera(CaptureDevice):
    """Webcam accessed through ``cv2.VideoCapture``."""

    def __init__(
        self,
        camera_index: int = 0,
        image_size: Optional[Tuple[int, int]] = (1280, 720),
    ) -> None:
        self._camera_index = camera_index
        self._image_size = image_size
        self._capture: Optional["cv2.VideoCapture"] = None
        self._last_frame_fail = False

    def open(self) -> Tuple[int, int]:
        LOGGER.info("Opening camera %d", self._camera_index)
        capture = cv2.VideoCapture(self._camera_index)
        if not capture.isOpened():
            capture.release()
            raise RuntimeError(f"Failed to open camera index {self._camera_index}")
        if self._image_size:
            width, height = self._image_size
            if width:
                capture.set(cv2.CAP_PROP_FRAME_WIDTH, width)
            if height:
                capture.set(cv2.CAP_PROP_FRAME_HEIGHT, height)

        success, frame = capture.read()
        if not success or frame is None:
            capture.release()
            raise RuntimeError(f"Camera index {self._camera_index} did not deliver a frame")
        self._capture = capture
        height, width = frame.shape[:2]
        LOGGER.info("Camera %d streaming at %dx%d", self._camera_index, width, height)
        return int(width), int(height)

    def read(self) -> Optional[np.ndarray]:
        if self._capture is None:
            return None
        success, frame = self._capture.read()
        if not success:
            if not self._last_frame_fail:
                LOGGER.warning("Failed to read frame from camera %d", self._camera_index)
            self._last_frame_fail = True
            return None
        self._last_frame_fail = False
        return frame

    def release(self) -> None:
        if self._capture is not None:
            LOGGER.info("Releasing camera %d", self._camera_index)
            self._capture.release()
        self._capture = None


__all__ = ["CaptureDevice", "OpenCVCamera"]
