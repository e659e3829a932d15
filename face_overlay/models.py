"""One-shot model loading for a session."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from face_overlay.session import MODEL_ERROR, SessionState
from face_overlay.vision import (
    DEFAULT_DETECTOR_MODEL,
    DEFAULT_LANDMARKER_MODEL,
    BlazeFaceDetector,
    DescriptorDetector,
    Detector,
    FaceMeshLandmarker,
    HaarFaceDetector,
    Landmarker,
)

VARIANTS = ("crops", "descriptors")
DETECTORS = ("blazeface", "haar")


@dataclass
class Models:
    detector: Detector
    landmarker: Optional[Landmarker] = None


@dataclass(frozen=True)
class ModelSettings:
    variant: str = "crops"
    detector: str = "blazeface"
    detector_model: Union[str, Path] = DEFAULT_DETECTOR_MODEL
    landmarker_model: Union[str, Path] = DEFAULT_LANDMARKER_MODEL
    min_confidence: float = 0.5
    cache_dir: Optional[Path] = None


def build_models(settings: ModelSettings) -> Models:
    """Construct the detector (and landmarker, for the crop view) for a variant."""
    if settings.variant not in VARIANTS:
        raise ValueError(f"Unknown variant {settings.variant!r}; expected one of {VARIANTS}")

    if settings.variant == "descriptors":
        return Models(detector=DescriptorDetector())

    if settings.detector == "haar":
        detector: Detector = HaarFaceDetector()
    elif settings.detector == "blazeface":
        detector = BlazeFaceDetector(
            settings.detector_model,
            min_confidence=settings.min_confidence,
            cache_dir=settings.cache_dir,
        )
    else:
        raise ValueError(f"Unknown detector {settings.detector!r}; expected one of {DETECTORS}")

    landmarker = FaceMeshLandmarker(settings.landmarker_model, max_faces=1, cache_dir=settings.cache_dir)
    return Models(detector=detector, landmarker=landmarker)


class ModelLoader:
    """Loads models at most once; a failure is final for the session."""

    def __init__(self, state: SessionState, factory: Callable[[], Models]):
        self.state = state
        self.factory = factory
        self._lock = threading.Lock()
        self._attempted = False
        self.thread: Optional[threading.Thread] = None

    def load(self) -> Optional[Models]:
        with self._lock:
            if self._attempted:
                return self.state.models
            self._attempted = True

        self.state.loading = True
        try:
            models = self.factory()
        except Exception as exc:  # noqa: BLE001
            logging.error("Error loading the models: %s", exc)
            self.state.models = None
            self.state.error = MODEL_ERROR
            self.state.debug_info = f"Error loading models: {exc}"
            self.state.loading = False
            return None

        self.state.models = models
        self.state.debug_info = "Models loaded successfully"
        self.state.loading = False
        logging.info("Models loaded successfully.")
        return models

    def load_in_background(self) -> threading.Thread:
        if self.thread is None:
            self.thread = threading.Thread(target=self.load, name="model-loader", daemon=True)
            self.thread.start()
        return self.thread
