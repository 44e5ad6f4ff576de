"""OpenCV window that shows the overlay and maps keys to capture actions."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import cv2
import numpy as np

from .pose_capture_app import CaptureState, PoseCaptureApp

LOGGER = logging.getLogger(__name__)

KEY_HELP = "[c] camera  [d] demo  [s] stop  [t] toggle send  [q/ESC] quit"
_STATUS_COLOR = (255, 255, 0)
_ERROR_COLOR = (0, 0, 255)


class PreviewWindow:
    """Keyboard-driven front end for :class:`PoseCaptureApp`."""

    def __init__(self, app: PoseCaptureApp, window_name: str = "Pose Landmarks", poll_interval: float = 1 / 60) -> None:
        self.app = app
        self.window_name = window_name
        self.poll_interval = poll_interval
        self._blank = np.zeros((480, 640, 3), dtype=np.uint8)

    async def run(self, initial_mode: Optional[str] = None, send: bool = False) -> None:
        cv2.namedWindow(self.window_name, cv2.WINDOW_NORMAL)
        try:
            if initial_mode == "camera":
                await self.app.start_camera()
            elif initial_mode == "demo":
                await self.app.start_demo()
            if send and self.app.state is CaptureState.ACTIVE:
                self.app.toggle_sending()

            while True:
                cv2.imshow(self.window_name, self._annotate(self.app.composite()))
                key = cv2.waitKey(1) & 0xFF
                if key in (27, ord("q")):
                    LOGGER.info("Closing preview at user request")
                    break
                await self.handle_key(key)
                if not self._window_visible():
                    LOGGER.info("Preview window closed")
                    break
                await asyncio.sleep(self.poll_interval)
        finally:
            try:
                cv2.destroyWindow(self.window_name)
            except cv2.error:  # pragma: no cover - window already closed
                pass

    async def handle_key(self, key: int) -> None:
        if key == ord("c"):
            await self.app.start_camera()
        elif key == ord("d"):
            await self.app.start_demo()
        elif key == ord("s"):
            await self.app.stop()
        elif key == ord("t"):
            self.app.toggle_sending()

    def _window_visible(self) -> bool:
        try:
            return cv2.getWindowProperty(self.window_name, cv2.WND_PROP_VISIBLE) >= 1
        except cv2.error:
            return False

    def _annotate(self, image: Optional[np.ndarray]) -> np.ndarray:
        canvas = self._blank.copy() if image is None else image.copy()
        app = self.app
        status_lines = [
            f"Camera: {app.camera_status}",
            f"Pose: {app.pose_status}",
            f"Sending: {app.send_status}  Sent: {app.frames_sent}",
            KEY_HELP,
        ]
        y = 22
        for line in status_lines:
            color = _ERROR_COLOR if line.startswith("Camera: Error") else _STATUS_COLOR
            cv2.putText(canvas, line, (10, y), cv2.FONT_HERSHEY_SIMPLEX, 0.5, color, 1, cv2.LINE_AA)
            y += 20
        return canvas


__all__ = ["PreviewWindow", "KEY_HELP"]
