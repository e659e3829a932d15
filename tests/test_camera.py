"""
Unit tests for CaptureController.
"""
from unittest.mock import MagicMock

import numpy as np

from conftest import FakeVideo, make_detection
from face_overlay.camera import CaptureController
from face_overlay.session import CAMERA_ERROR, DETECTION_ERROR, MODEL_ERROR, SessionState


def make_state():
    return SessionState(display_size=(320, 240))


class TestStart:
    def test_start_marks_streaming(self, frame):
        state = make_state()
        state.error = DETECTION_ERROR
        backend = MagicMock(return_value=FakeVideo([frame]))
        capture = CaptureController(state, device=2, backend=backend)

        assert capture.start() is True

        backend.assert_called_once_with(2)
        assert state.streaming
        assert state.error is None

    def test_start_twice_opens_once(self, frame):
        backend = MagicMock(return_value=FakeVideo([frame]))
        capture = CaptureController(make_state(), backend=backend)

        capture.start()
        assert capture.start() is True

        assert backend.call_count == 1

    def test_permission_denied(self):
        state = make_state()
        capture = CaptureController(state, backend=MagicMock(side_effect=PermissionError("denied")))

        assert capture.start() is False

        assert not state.streaming
        assert state.error == CAMERA_ERROR
        assert capture.capture is None

    def test_no_device(self):
        state = make_state()
        video = FakeVideo([], opened=False)
        capture = CaptureController(state, backend=lambda device: video)

        assert capture.start() is False

        assert video.released
        assert not state.streaming
        assert state.error == CAMERA_ERROR

    def test_model_error_survives_camera_start(self, frame):
        state = make_state()
        state.error = MODEL_ERROR
        capture = CaptureController(state, backend=lambda device: FakeVideo([frame]))

        capture.start()

        assert state.error == MODEL_ERROR


class TestReadFrame:
    def test_no_capture(self):
        assert CaptureController(make_state()).read_frame() is None

    def test_keeps_last_good_frame(self, frame):
        capture = CaptureController(make_state(), backend=lambda device: FakeVideo([frame, None]))
        capture.start()

        assert capture.read_frame() is frame
        assert capture.read_frame() is None
        assert capture.frame is frame

    def test_read_error_returns_none(self, frame):
        video = FakeVideo([frame])
        video.read = MagicMock(side_effect=OSError("device unplugged"))
        capture = CaptureController(make_state(), backend=lambda device: video)
        capture.start()

        assert capture.read_frame() is None

    def test_mirror(self):
        image = np.zeros((2, 3, 3), dtype=np.uint8)
        image[:, 0] = 255
        capture = CaptureController(make_state(), mirror=True, backend=lambda device: FakeVideo([image]))
        capture.start()

        mirrored = capture.read_frame()

        assert mirrored[:, 2].all()
        assert not mirrored[:, 0].any()


class TestStop:
    def test_stop_releases_and_clears(self, frame):
        state = make_state()
        video = FakeVideo([frame])
        capture = CaptureController(state, backend=lambda device: video)
        capture.start()
        capture.read_frame()
        state.detections = [make_detection()]
        state.debug_info = "Detected 1 faces"
        epoch = state.epoch

        capture.stop()

        assert video.released
        assert capture.capture is None
        assert capture.frame is None
        assert not state.streaming
        assert state.detections == []
        assert state.debug_info == ""
        assert state.epoch == epoch + 1

    def test_stop_when_not_streaming_is_noop(self):
        state = make_state()
        capture = CaptureController(state)

        capture.stop()

        assert state.epoch == 0
