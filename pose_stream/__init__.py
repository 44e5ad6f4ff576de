"""Pose landmark capture, overlay and collection package."""

from .landmarks import Landmark, PoseFrame, PoseLandmark
from .pose_capture_app import PoseCaptureApp, CaptureConfig, CaptureState
from .providers import PoseSource, SyntheticPoseSource, MediaPipePoseSource, create_pose_source
from .store import PoseStore
from .transports import PoseTransport, HttpPoseTransport

__all__ = [
    "Landmark",
    "PoseFrame",
    "PoseLandmark",
    "PoseCaptureApp",
    "CaptureConfig",
    "CaptureState",
    "PoseSource",
    "SyntheticPoseSource",
    "MediaPipePoseSource",
    "create_pose_source",
    "PoseStore",
    "PoseTransport",
    "HttpPoseTransport",
]
