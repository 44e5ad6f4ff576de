"""Pose sources for PoseCaptureApp."""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple
import logging
import math
import random
import time

try:
    import cv2  # type: ignore
except ImportError:  # pragma: no cover - optional dependency
    cv2 = None  # type: ignore

try:
    import mediapipe as mp  # type: ignore
except ImportError:  # pragma: no cover - optional dependency
    mp = None  # type: ignore

from .landmarks import LANDMARK_COUNT, Landmark, PoseFrame, utc_now


LOGGER = logging.getLogger(__name__)

# Normalized (x, y) of a standing figure facing the camera, indexed like PoseLandmark.
_BASE_POSE: Tuple[Tuple[float, float], ...] = (
    (0.50, 0.18),
    (0.49, 0.165), (0.485, 0.165), (0.48, 0.165),
    (0.51, 0.165), (0.515, 0.165), (0.52, 0.165),
    (0.47, 0.175), (0.53, 0.175),
    (0.49, 0.2), (0.51, 0.2),
    (0.42, 0.3), (0.58, 0.3),
    (0.39, 0.42), (0.61, 0.42),
    (0.38, 0.53), (0.62, 0.53),
    (0.375, 0.56), (0.625, 0.56),
    (0.38, 0.565), (0.62, 0.565),
    (0.385, 0.55), (0.615, 0.55),
    (0.45, 0.55), (0.55, 0.55),
    (0.45, 0.7), (0.55, 0.7),
    (0.45, 0.85), (0.55, 0.85),
    (0.44, 0.875), (0.56, 0.875),
    (0.46, 0.9), (0.54, 0.9),
)


class PoseSource:
    """Abstract base class for pose sources."""

    name: str = "abstract"

    def detect(self, image, timestamp_ms: float) -> Optional[PoseFrame]:
        """Return the pose found in ``image`` or ``None`` when nobody is visible."""
        raise NotImplementedError

    def close(self) -> None:
        """Release any model resources."""


class SyntheticPoseSource(PoseSource):
    """Time-varying fake skeleton used when no real detector is available."""

    name = "synthetic"

    def __init__(
        self,
        sway: float = 0.05,
        bob: float = 0.025,
        depth: float = 0.1,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._sway = sway
        self._bob = bob
        self._depth = depth
        self._rng = rng or random.Random()

    def generate(self, now_ms: Optional[float] = None) -> PoseFrame:
        if now_ms is None:
            now_ms = time.time() * 1000.0
        seconds = now_ms / 1000.0
        landmarks: List[Landmark] = []
        for idx in range(LANDMARK_COUNT):
            base_x, base_y = _BASE_POSE[idx]
            landmarks.append(
                Landmark(
                    x=base_x + math.sin(seconds + idx * 0.1) * self._sway,
                    y=base_y + math.cos(seconds + idx * 0.2) * self._bob,
                    z=math.sin(seconds + idx * 0.15) * self._depth,
                    visibility=self._rng.uniform(0.8, 1.0),
                )
            )
        return PoseFrame(landmarks=tuple(landmarks), captured_at=utc_now())

    def detect(self, image, timestamp_ms: float) -> Optional[PoseFrame]:
        return self.generate()


class MediaPipePoseSource(PoseSource):
    """Pose source backed by the MediaPipe Tasks pose landmarker."""

    name = "mediapipe"

    def __init__(self, landmarker, fallback: Optional[SyntheticPoseSource] = None) -> None:
        self._landmarker = landmarker
        self._fallback = fallback or SyntheticPoseSource()
        self._last_timestamp_ms = -1
        self._last_detect_fail = False

    @classmethod
    def from_model(
        cls,
        model_path: Path,
        num_poses: int = 1,
        detection_confidence: float = 0.5,
        tracking_confidence: float = 0.5,
        fallback: Optional[SyntheticPoseSource] = None,
    ) -> "MediaPipePoseSource":
        if mp is None:
            raise RuntimeError("mediapipe is not installed")
        if cv2 is None:  # pragma: no cover - optional dependency
            raise RuntimeError("opencv-python is not installed")
        if not Path(model_path).exists():
            raise RuntimeError(f"Pose model {model_path} does not exist")

        from mediapipe.tasks import python as mp_python  # type: ignore
        from mediapipe.tasks.python import vision  # type: ignore

        options = vision.PoseLandmarkerOptions(
            base_options=mp_python.BaseOptions(model_asset_path=str(model_path)),
            running_mode=vision.RunningMode.VIDEO,
            num_poses=num_poses,
            min_pose_detection_confidence=detection_confidence,
            min_tracking_confidence=tracking_confidence,
        )
        landmarker = vision.PoseLandmarker.create_from_options(options)
        LOGGER.info("MediaPipe pose landmarker loaded from %s", model_path)
        return cls(landmarker, fallback=fallback)

    def _next_timestamp(self, timestamp_ms: float) -> int:
        """Video mode rejects timestamps that do not strictly increase."""
        ts = int(timestamp_ms)
        if ts <= self._last_timestamp_ms:
            ts = self._last_timestamp_ms + 1
        self._last_timestamp_ms = ts
        return ts

    def detect(self, image, timestamp_ms: float) -> Optional[PoseFrame]:
        if image is None:
            return self._fallback.generate()

        try:
            results = self._landmarker.detect_for_video(self._to_mp_image(image), self._next_timestamp(timestamp_ms))
            poses = getattr(results, "pose_landmarks", None) or []
            frame = PoseFrame.from_landmarks(poses[0]) if poses else None
        except Exception as exc:
            if not self._last_detect_fail:
                LOGGER.error("Pose detection failed; using synthetic pose for this frame: %s", exc)
            self._last_detect_fail = True
            return self._fallback.generate()
        self._last_detect_fail = False

        if frame is None:
            LOGGER.debug("No pose landmarks detected in current frame")
        return frame

    def close(self) -> None:
        LOGGER.info("Closing MediaPipe pose landmarker")
        close_fn = getattr(self._landmarker, "close", None)
        if callable(close_fn):
            close_fn()

    @staticmethod
    def _to_mp_image(bgr_frame):
        if mp is None:  # pragma: no cover - injected landmarkers accept raw frames
            return bgr_frame
        rgb = cv2.cvtColor(bgr_frame, cv2.COLOR_BGR2RGB)
        return mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)


def create_pose_source(
    model_path: Optional[Path],
    detection_confidence: float = 0.5,
    tracking_confidence: float = 0.5,
    synthetic: Optional[SyntheticPoseSource] = None,
) -> PoseSource:
    """Select the pose source once for the whole process.

    Any problem loading the model leaves the process on synthetic poses.
    """

    synthetic = synthetic or SyntheticPoseSource()
    if model_path is None:
        LOGGER.warning("No pose model configured; using synthetic demo poses")
        return synthetic
    try:
        return MediaPipePoseSource.from_model(
            model_path,
            detection_confidence=detection_confidence,
            tracking_confidence=tracking_confidence,
            fallback=synthetic,
        )
    except Exception as exc:
        LOGGER.warning("Pose model unavailable (%s); falling back to synthetic demo poses", exc)
        return synthetic


__all__ = [
    "PoseSource",
    "SyntheticPoseSource",
    "MediaPipePoseSource",
    "create_pose_source",
]
