"""Skeleton overlay drawing and landmark detail text."""
from __future__ import annotations

from datetime import datetime
from typing import Optional, Tuple

import cv2
import numpy as np

from .landmarks import POSE_CONNECTIONS, PoseFrame, PoseLandmark

CONNECTION_COLOR = (0, 255, 0)
JOINT_COLOR = (0, 0, 255)
CONNECTION_THICKNESS = 2
JOINT_RADIUS = 5

_KEY_POINTS = (
    ("Nose", PoseLandmark.NOSE),
    ("Left Shoulder", PoseLandmark.LEFT_SHOULDER),
    ("Right Shoulder", PoseLandmark.RIGHT_SHOULDER),
    ("Left Hip", PoseLandmark.LEFT_HIP),
    ("Right Hip", PoseLandmark.RIGHT_HIP),
)


def create_surface(width: int, height: int) -> np.ndarray:
    return np.zeros((height, width, 3), dtype=np.uint8)


def clear_surface(surface: np.ndarray) -> None:
    surface.fill(0)


def _to_pixel(x: float, y: float, width: int, height: int) -> Tuple[int, int]:
    return int(round(x * width)), int(round(y * height))


def render_pose(surface: np.ndarray, frame: Optional[PoseFrame]) -> None:
    """Clear ``surface`` and draw ``frame`` onto it; ``None`` leaves it blank."""

    clear_surface(surface)
    if frame is None:
        return
    height, width = surface.shape[:2]
    count = len(frame)

    for start, end in POSE_CONNECTIONS:
        if start >= count or end >= count:
            continue
        a, b = frame[start], frame[end]
        cv2.line(
            surface,
            _to_pixel(a.x, a.y, width, height),
            _to_pixel(b.x, b.y, width, height),
            CONNECTION_COLOR,
            CONNECTION_THICKNESS,
            cv2.LINE_AA,
        )

    for landmark in frame.landmarks:
        if landmark.is_visible():
            cv2.circle(surface, _to_pixel(landmark.x, landmark.y, width, height), JOINT_RADIUS, JOINT_COLOR, -1, cv2.LINE_AA)


def composite(background: Optional[np.ndarray], overlay: np.ndarray) -> np.ndarray:
    """Lay the non-black overlay pixels over ``background``."""

    if background is None or background.shape != overlay.shape:
        return overlay.copy()
    mask = overlay.any(axis=2, keepdims=True)
    return np.where(mask, overlay, background)


def summarize_pose(frame: PoseFrame, session_id: str, now: Optional[datetime] = None) -> str:
    """Text block describing counts and the key landmarks of ``frame``."""

    now = now or datetime.now()
    lines = [
        f"Detected: {len(frame)} landmarks",
        f"Visible: {frame.visible_count()} landmarks",
        f"Timestamp: {now.strftime('%H:%M:%S')}",
        f"Session ID: {session_id}",
        "",
        "Key Points:",
    ]
    for label, index in _KEY_POINTS:
        if index < len(frame):
            landmark = frame[index]
            position = f"({landmark.x * 100:.1f}, {landmark.y * 100:.1f})"
        else:
            position = "Not detected"
        lines.append(f"- {label}: {position}")
    return "\n".join(lines)


__all__ = ["clear_surface", "composite", "create_surface", "render_pose", "summarize_pose"]
