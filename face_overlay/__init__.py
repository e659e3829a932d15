"""Live webcam face detection overlay."""

from .camera import CaptureController
from .detection_loop import DetectionLoop, LoopSettings
from .models import ModelLoader, Models
from .overlay import CropPolicy, OverlayRenderer, Scale
from .session import SessionState
from .vision import Detection, Detector, Landmark, LandmarkSet

__all__ = [
    "CaptureController",
    "CropPolicy",
    "Detection",
    "DetectionLoop",
    "Detector",
    "Landmark",
    "LandmarkSet",
    "LoopSettings",
    "ModelLoader",
    "Models",
    "OverlayRenderer",
    "Scale",
    "SessionState",
]
