import random
from pathlib import Path
from types import SimpleNamespace

import numpy as np
import pytest

from pose_stream.landmarks import LANDMARK_COUNT, PoseFrame
from pose_stream.providers import MediaPipePoseSource, SyntheticPoseSource, create_pose_source


def _mp_pose(x=0.5, y=0.5, visibility=0.9):
    return [SimpleNamespace(x=x, y=y, z=0.0, visibility=visibility) for _ in range(LANDMARK_COUNT)]


class FakeLandmarker:
    def __init__(self, poses=None, error=None):
        self.poses = poses if poses is not None else []
        self.error = error
        self.timestamps = []
        self.closed = False

    def detect_for_video(self, image, timestamp_ms):
        self.timestamps.append(timestamp_ms)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(pose_landmarks=self.poses)

    def close(self):
        self.closed = True


def _image():
    return np.zeros((48, 64, 3), dtype=np.uint8)


@pytest.mark.parametrize("now_ms", [0.0, 1234.0, 987654321.0])
def test_synthetic_frame_shape_and_ranges(now_ms):
    frame = SyntheticPoseSource(rng=random.Random(7)).generate(now_ms)

    assert len(frame) == LANDMARK_COUNT
    for landmark in frame.landmarks:
        assert 0.0 <= landmark.x <= 1.0
        assert 0.0 <= landmark.y <= 1.0
        assert 0.8 <= landmark.visibility <= 1.0


def test_synthetic_frames_vary_over_time():
    source = SyntheticPoseSource(rng=random.Random(1))

    first = source.generate(0.0)
    later = source.generate(1500.0)

    assert first[0].x != later[0].x


def test_mediapipe_source_uses_first_pose():
    landmarker = FakeLandmarker(poses=[_mp_pose(x=0.25), _mp_pose(x=0.75)])
    source = MediaPipePoseSource(landmarker)

    frame = source.detect(_image(), 100.0)

    assert isinstance(frame, PoseFrame)
    assert frame[0].x == pytest.approx(0.25)
    assert frame[0].visibility == pytest.approx(0.9)


def test_mediapipe_source_reports_no_pose_as_none():
    source = MediaPipePoseSource(FakeLandmarker(poses=[]))

    assert source.detect(_image(), 100.0) is None


def test_detection_error_falls_back_to_synthetic_for_that_frame():
    landmarker = FakeLandmarker(error=RuntimeError("model crashed"))
    source = MediaPipePoseSource(landmarker)

    frame = source.detect(_image(), 100.0)
    assert frame is not None
    assert len(frame) == LANDMARK_COUNT

    landmarker.error = None
    landmarker.poses = [_mp_pose(x=0.1)]
    recovered = source.detect(_image(), 200.0)
    assert recovered[0].x == pytest.approx(0.1)


def test_missing_image_falls_back_to_synthetic():
    landmarker = FakeLandmarker(poses=[_mp_pose()])
    source = MediaPipePoseSource(landmarker)

    frame = source.detect(None, 100.0)

    assert frame is not None
    assert landmarker.timestamps == []


def test_model_timestamps_strictly_increase():
    landmarker = FakeLandmarker(poses=[_mp_pose()])
    source = MediaPipePoseSource(landmarker)

    source.detect(_image(), 50.0)
    source.detect(_image(), 50.0)
    source.detect(_image(), 10.0)

    assert landmarker.timestamps == [50, 51, 52]


def test_close_releases_landmarker():
    landmarker = FakeLandmarker()
    MediaPipePoseSource(landmarker).close()

    assert landmarker.closed


def test_create_pose_source_without_model_is_synthetic():
    synthetic = SyntheticPoseSource()

    assert create_pose_source(None, synthetic=synthetic) is synthetic


def test_create_pose_source_with_missing_model_falls_back(tmp_path: Path):
    source = create_pose_source(tmp_path / "missing.task")

    assert isinstance(source, SyntheticPoseSource)


def test_partial_landmark_result_falls_back_to_synthetic():
    landmarker = FakeLandmarker(poses=[_mp_pose()[:20]])
    source = MediaPipePoseSource(landmarker)

    frame = source.detect(_image(), 100.0)

    assert frame is not None
    assert len(frame) == LANDMARK_COUNT
    assert 0.8 <= frame[0].visibility <= 1.0
