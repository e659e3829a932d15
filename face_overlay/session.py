"""Per-session state shared by the capture controller, detection loop and viewer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Tuple

import numpy as np

from face_overlay.vision import Detection, LandmarkSet

if TYPE_CHECKING:
    from face_overlay.models import Models
    from face_overlay.overlay import Overlay, Scale

CAMERA_ERROR = "Failed to access the camera. Please make sure you have given permission."
MODEL_ERROR = "Failed to load the face detection models."
DETECTION_ERROR = "Face detection failed. Please try again."
LOADING_MESSAGE = "Loading face detection models..."


@dataclass
class CroppedFace:
    image: np.ndarray
    landmarks: List[LandmarkSet] = field(default_factory=list)


@dataclass
class SessionState:
    """Everything the UI shows for one session.

    Per-frame fields are replaced each detection cycle and wiped by
    ``clear_detections``; ``epoch`` changes on every wipe so results from a
    cycle that straddled a stop can be recognised and dropped.
    """

    display_size: Tuple[int, int]
    streaming: bool = False
    loading: bool = True
    error: Optional[str] = None
    models: Optional["Models"] = None
    detections: List[Detection] = field(default_factory=list)
    cropped_faces: List[CroppedFace] = field(default_factory=list)
    overlay: Optional["Overlay"] = None
    overlay_size: Optional[Tuple[int, int]] = None
    scale: Optional["Scale"] = None
    debug_info: str = ""
    epoch: int = 0

    @property
    def ready(self) -> bool:
        return self.models is not None and not self.loading

    def clear_detections(self) -> None:
        self.detections = []
        self.cropped_faces = []
        self.overlay = None
        self.overlay_size = None
        self.scale = None
        self.debug_info = ""
        self.epoch += 1
