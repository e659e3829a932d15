"""
Unit tests for ModelLoader and the per-variant model factory.
"""
from unittest.mock import MagicMock, patch

import pytest

from conftest import FakeDetector
from face_overlay.models import ModelLoader, Models, ModelSettings, build_models
from face_overlay.session import MODEL_ERROR, SessionState


def make_state():
    return SessionState(display_size=(320, 240))


class TestModelLoader:
    def test_successful_load(self):
        state = make_state()
        models = Models(detector=FakeDetector())

        result = ModelLoader(state, lambda: models).load()

        assert result is models
        assert state.models is models
        assert state.loading is False
        assert state.ready
        assert state.error is None
        assert state.debug_info == "Models loaded successfully"

    def test_loads_exactly_once(self):
        state = make_state()
        factory = MagicMock(return_value=Models(detector=FakeDetector()))
        loader = ModelLoader(state, factory)

        first = loader.load()
        second = loader.load()

        assert first is second
        factory.assert_called_once_with()

    def test_failure_is_terminal(self):
        state = make_state()
        factory = MagicMock(side_effect=FileNotFoundError("Model asset not found: x.tflite"))
        loader = ModelLoader(state, factory)

        assert loader.load() is None
        assert loader.load() is None

        factory.assert_called_once_with()
        assert state.models is None
        assert state.loading is False
        assert not state.ready
        assert state.error == MODEL_ERROR
        assert state.debug_info == "Error loading models: Model asset not found: x.tflite"

    def test_background_load(self):
        state = make_state()
        loader = ModelLoader(state, lambda: Models(detector=FakeDetector()))

        thread = loader.load_in_background()
        thread.join(timeout=5)

        assert loader.load_in_background() is thread
        assert state.ready


class TestBuildModels:
    def test_unknown_variant(self):
        with pytest.raises(ValueError):
            build_models(ModelSettings(variant="mesh"))

    def test_unknown_detector(self):
        with patch("face_overlay.models.FaceMeshLandmarker"):
            with pytest.raises(ValueError):
                build_models(ModelSettings(detector="retinaface"))

    def test_crops_variant_with_haar(self):
        with patch("face_overlay.models.FaceMeshLandmarker") as landmarker_cls, patch(
            "face_overlay.models.HaarFaceDetector"
        ) as haar_cls:
            models = build_models(ModelSettings(detector="haar", landmarker_model="mesh.task"))

        assert models.detector is haar_cls.return_value
        assert models.landmarker is landmarker_cls.return_value
        landmarker_cls.assert_called_once_with("mesh.task", max_faces=1, cache_dir=None)

    def test_crops_variant_with_blazeface(self, tmp_path):
        with patch("face_overlay.models.FaceMeshLandmarker"), patch(
            "face_overlay.models.BlazeFaceDetector"
        ) as blaze_cls:
            models = build_models(
                ModelSettings(detector_model="face.tflite", min_confidence=0.7, cache_dir=tmp_path)
            )

        assert models.detector is blaze_cls.return_value
        blaze_cls.assert_called_once_with("face.tflite", min_confidence=0.7, cache_dir=tmp_path)

    def test_descriptors_variant(self):
        with patch("face_overlay.models.DescriptorDetector") as descriptor_cls:
            models = build_models(ModelSettings(variant="descriptors"))

        assert models.detector is descriptor_cls.return_value
        assert models.landmarker is None
