"""
Shared pytest fixtures and fakes for face_overlay tests.
"""
from datetime import datetime

import numpy as np
import pytest

from face_overlay.camera import CaptureController
from face_overlay.detection_loop import DetectionLoop, LoopSettings
from face_overlay.models import Models
from face_overlay.scheduler import TimerQueue
from face_overlay.session import SessionState
from face_overlay.vision import Detection, Landmark, LandmarkSet


class ManualClock:
    def __init__(self, start=100.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeDetector:
    """Returns scripted outcomes in order, repeating the last one; exceptions are raised."""

    def __init__(self, *outcomes, on_detect=None):
        self.outcomes = list(outcomes) or [[]]
        self.on_detect = on_detect
        self.calls = 0
        self.frames = []

    def detect(self, frame):
        self.frames.append(frame)
        outcome = self.outcomes[min(self.calls, len(self.outcomes) - 1)]
        self.calls += 1
        if self.on_detect:
            self.on_detect()
        if isinstance(outcome, Exception):
            raise outcome
        return list(outcome)


class FakeLandmarker:
    def __init__(self, points=((1.0, 2.0, 0.0),)):
        self.points = list(points)
        self.images = []

    def estimate(self, image):
        self.images.append(image)
        return [LandmarkSet(list(self.points))]


class FakeVideo:
    """Stands in for cv2.VideoCapture."""

    def __init__(self, frames, opened=True):
        self.frames = list(frames)
        self.opened = opened
        self.released = False
        self.reads = 0

    def isOpened(self):
        return self.opened

    def read(self):
        frame = self.frames[min(self.reads, len(self.frames) - 1)] if self.frames else None
        self.reads += 1
        return (frame is not None), frame

    def release(self):
        self.released = True


def make_detection(top_left=(100, 100), bottom_right=(200, 200), probability=0.98, landmarks=()):
    return Detection(
        (float(top_left[0]), float(top_left[1])),
        (float(bottom_right[0]), float(bottom_right[1])),
        probability,
        [Landmark(name, float(x), float(y)) for name, x, y in landmarks],
    )


@pytest.fixture
def frame():
    """Native 640x480 BGR frame."""
    return np.zeros((480, 640, 3), dtype=np.uint8)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def build_session(frame, clock):
    """Factory wiring a streaming session around a fake detector and fake camera."""

    def _build(detector=None, landmarker=None, display_size=(320, 240), frames=None, settings=None):
        state = SessionState(display_size=display_size)
        state.models = Models(detector=detector or FakeDetector(), landmarker=landmarker)
        state.loading = False
        video = FakeVideo(frames if frames is not None else [frame])
        capture = CaptureController(state, backend=lambda device: video)
        timers = TimerQueue(clock=clock)
        loop = DetectionLoop(
            state,
            capture,
            timers,
            settings or LoopSettings(interval_s=0.6, crop_faces=False),
            now=lambda: datetime(2024, 1, 1, 12, 0, 0),
        )
        assert capture.start()
        return state, capture, timers, loop, video

    return _build
