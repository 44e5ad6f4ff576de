"""Landmark data shapes shared by the capture client and the collector."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import IntEnum
from typing import Dict, List, Optional, Sequence, Tuple

LANDMARK_COUNT = 33


class PoseLandmark(IntEnum):
    """Index layout of the 33-point BlazePose skeleton."""

    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


LANDMARK_NAMES: List[str] = [landmark.name for landmark in PoseLandmark]

# Arms, torso, left leg, right leg, feet.
POSE_CONNECTIONS: Tuple[Tuple[int, int], ...] = (
    (11, 12), (11, 13), (13, 15), (12, 14), (14, 16),
    (11, 23), (12, 24), (23, 24),
    (23, 25), (25, 27), (27, 29), (29, 31),
    (24, 26), (26, 28), (28, 30), (30, 32),
    (27, 31), (28, 32),
)

VISIBILITY_THRESHOLD = 0.5


@dataclass(frozen=True)
class Landmark:
    """A single normalized keypoint."""

    x: float
    y: float
    z: float = 0.0
    visibility: Optional[float] = None

    @property
    def effective_visibility(self) -> float:
        return 1.0 if self.visibility is None else float(self.visibility)

    def is_visible(self) -> bool:
        return self.visibility is None or self.visibility > VISIBILITY_THRESHOLD

    def to_dict(self) -> Dict[str, float]:
        return {
            "x": float(self.x),
            "y": float(self.y),
            "z": float(self.z),
            "visibility": self.effective_visibility,
        }


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(moment: datetime) -> str:
    """Render ``moment`` as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class PoseFrame:
    """One detected pose in the fixed 33-landmark layout."""

    landmarks: Tuple[Landmark, ...]
    session_id: str = ""
    captured_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        landmarks = tuple(self.landmarks)
        if len(landmarks) != LANDMARK_COUNT:
            raise ValueError(f"PoseFrame requires {LANDMARK_COUNT} landmarks, got {len(landmarks)}")
        object.__setattr__(self, "landmarks", landmarks)

    def __len__(self) -> int:
        return len(self.landmarks)

    def __getitem__(self, index: int) -> Landmark:
        return self.landmarks[index]

    def visible_count(self) -> int:
        return sum(1 for landmark in self.landmarks if landmark.is_visible())

    def with_session(self, session_id: str) -> "PoseFrame":
        return replace(self, session_id=session_id)

    def to_dict(self) -> Dict[str, object]:
        """Serialize to the collector wire format."""

        return {
            "landmarks": [landmark.to_dict() for landmark in self.landmarks],
            "timestamp": isoformat(self.captured_at),
            "sessionId": self.session_id,
        }

    @classmethod
    def from_landmarks(
        cls,
        landmarks: Sequence[object],
        session_id: str = "",
        captured_at: Optional[datetime] = None,
    ) -> "PoseFrame":
        """Build a frame from objects exposing ``x``/``y``/``z``/``visibility`` attributes."""

        converted = [
            Landmark(
                x=float(getattr(item, "x")),
                y=float(getattr(item, "y")),
                z=float(getattr(item, "z", 0.0) or 0.0),
                visibility=_optional_float(getattr(item, "visibility", None)),
            )
            for item in landmarks
        ]
        return cls(
            landmarks=tuple(converted),
            session_id=session_id,
            captured_at=captured_at or utc_now(),
        )


def _optional_float(value: object) -> Optional[float]:
    if value is None:
        return None
    return float(value)  # type: ignore[arg-type]


__all__ = [
    "LANDMARK_COUNT",
    "LANDMARK_NAMES",
    "POSE_CONNECTIONS",
    "VISIBILITY_THRESHOLD",
    "Landmark",
    "PoseFrame",
    "PoseLandmark",
    "isoformat",
    "utc_now",
]
