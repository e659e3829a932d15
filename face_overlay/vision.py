"""
Face model adapters behind a small detector interface, plus the per-frame
result types the detection loop and overlay renderer share.
"""

from __future__ import annotations

import logging
import urllib.request
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple, Union

import cv2
import numpy as np

ASSET_DIR = Path(__file__).resolve().parent / "assets"
DEFAULT_CACHE_DIR = Path.home() / ".cache" / "face_overlay"
DEFAULT_DETECTOR_MODEL = (
    "https://storage.googleapis.com/mediapipe-models/face_detector/"
    "blaze_face_short_range/float16/latest/blaze_face_short_range.tflite"
)
DEFAULT_LANDMARKER_MODEL = (
    "https://storage.googleapis.com/mediapipe-models/face_landmarker/"
    "face_landmarker/float16/latest/face_landmarker.task"
)
# Keypoint order emitted by the BlazeFace short-range model.
BLAZE_FACE_KEYPOINTS = (
    "right_eye",
    "left_eye",
    "nose_tip",
    "mouth_center",
    "right_ear_tragion",
    "left_ear_tragion",
)


@dataclass(frozen=True)
class Landmark:
    name: str
    x: float
    y: float


@dataclass(frozen=True)
class Detection:
    """One face in one frame, in native video pixels."""

    top_left: Tuple[float, float]
    bottom_right: Tuple[float, float]
    probability: float
    landmarks: List[Landmark] = field(default_factory=list)
    descriptor: Optional[Tuple[float, ...]] = None

    @property
    def width(self) -> float:
        return self.bottom_right[0] - self.top_left[0]

    @property
    def height(self) -> float:
        return self.bottom_right[1] - self.top_left[1]

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "top_left": [float(self.top_left[0]), float(self.top_left[1])],
            "bottom_right": [float(self.bottom_right[0]), float(self.bottom_right[1])],
            "probability": float(self.probability),
            "landmarks": [
                {"name": mark.name, "x": float(mark.x), "y": float(mark.y)}
                for mark in self.landmarks
            ],
        }
        if self.descriptor is not None:
            payload["descriptor"] = list(self.descriptor)
        return payload


@dataclass(frozen=True)
class LandmarkSet:
    """Refined mesh points for one face, in crop pixel coordinates."""

    points: List[Tuple[float, float, float]]

    def __len__(self) -> int:
        return len(self.points)


class Detector(Protocol):
    def detect(self, frame: np.ndarray) -> List[Detection]:
        ...


class Landmarker(Protocol):
    def estimate(self, image: np.ndarray) -> List[LandmarkSet]:
        ...


def resolve_model_asset(asset: Union[str, Path], cache_dir: Optional[Path] = None) -> Path:
    """Return a local path for a bundled model file or a remote model URI.

    Remote assets are downloaded once into ``cache_dir`` and reused after that.
    Relative paths are looked up in the package assets directory first, then the
    working directory.
    """
    text = str(asset)
    if text.startswith(("http://", "https://")):
        target_dir = cache_dir or DEFAULT_CACHE_DIR
        target = target_dir / text.rsplit("/", 1)[-1]
        if not target.exists():
            target_dir.mkdir(parents=True, exist_ok=True)
            partial = target.with_suffix(target.suffix + ".part")
            logging.info("Downloading model asset %s to %s", text, target)
            try:
                urllib.request.urlretrieve(text, partial)
                partial.replace(target)
            finally:
                partial.unlink(missing_ok=True)
        return target

    path = Path(text).expanduser()
    candidates = [path] if path.is_absolute() else [ASSET_DIR / path, Path.cwd() / path]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    raise FileNotFoundError(f"Model asset not found: {text}")


def to_rgb(frame: np.ndarray) -> np.ndarray:
    return np.ascontiguousarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))


class HaarFaceDetector:
    """Haar-cascade face detector; boxes only, no landmarks."""

    def __init__(
        self,
        cascade_path: Optional[Path] = None,
        scale_factor: float = 1.2,
        min_neighbors: int = 8,
    ):
        default_path = Path(cv2.data.haarcascades) / "haarcascade_frontalface_default.xml"
        self.cascade_path = cascade_path or default_path
        self.scale_factor = scale_factor
        self.min_neighbors = min_neighbors
        self.cascade = cv2.CascadeClassifier(str(self.cascade_path))
        if self.cascade.empty():
            raise FileNotFoundError(f"Could not load cascade from {self.cascade_path}")

    def detect(self, frame: np.ndarray) -> List[Detection]:
        gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
        faces = self.cascade.detectMultiScale(gray, self.scale_factor, self.min_neighbors)
        return [
            Detection((float(x), float(y)), (float(x + w), float(y + h)), 1.0)
            for (x, y, w, h) in faces
        ]


class BlazeFaceDetector:
    """MediaPipe BlazeFace detector with six named keypoints per face."""

    def __init__(
        self,
        model_asset: Union[str, Path] = DEFAULT_DETECTOR_MODEL,
        min_confidence: float = 0.5,
        cache_dir: Optional[Path] = None,
    ):
        try:
            import mediapipe as mp
            from mediapipe.tasks import python as mp_python
            from mediapipe.tasks.python import vision as mp_vision
        except Exception as exc:  # noqa: BLE001
            raise ImportError("mediapipe must be installed to use BlazeFaceDetector") from exc

        self.model_path = resolve_model_asset(model_asset, cache_dir)
        self.min_confidence = min_confidence
        options = mp_vision.FaceDetectorOptions(
            base_options=mp_python.BaseOptions(model_asset_path=str(self.model_path)),
            running_mode=mp_vision.RunningMode.IMAGE,
            min_detection_confidence=min_confidence,
        )
        self._mp = mp
        self.detector = mp_vision.FaceDetector.create_from_options(options)

    def detect(self, frame: np.ndarray) -> List[Detection]:
        height, width = frame.shape[:2]
        image = self._mp.Image(image_format=self._mp.ImageFormat.SRGB, data=to_rgb(frame))
        result = self.detector.detect(image)

        detections: List[Detection] = []
        for item in result.detections:
            box = item.bounding_box
            score = item.categories[0].score if item.categories else 0.0
            landmarks = [
                Landmark(name, point.x * width, point.y * height)
                for name, point in zip(BLAZE_FACE_KEYPOINTS, item.keypoints or [])
            ]
            detections.append(
                Detection(
                    (float(box.origin_x), float(box.origin_y)),
                    (float(box.origin_x + box.width), float(box.origin_y + box.height)),
                    float(score),
                    landmarks,
                )
            )
        return detections


class FaceMeshLandmarker:
    """MediaPipe FaceLandmarker producing the refined 478-point mesh."""

    def __init__(
        self,
        model_asset: Union[str, Path] = DEFAULT_LANDMARKER_MODEL,
        max_faces: int = 1,
        cache_dir: Optional[Path] = None,
    ):
        try:
            import mediapipe as mp
            from mediapipe.tasks import python as mp_python
            from mediapipe.tasks.python import vision as mp_vision
        except Exception as exc:  # noqa: BLE001
            raise ImportError("mediapipe must be installed to use FaceMeshLandmarker") from exc

        self.model_path = resolve_model_asset(model_asset, cache_dir)
        options = mp_vision.FaceLandmarkerOptions(
            base_options=mp_python.BaseOptions(model_asset_path=str(self.model_path)),
            running_mode=mp_vision.RunningMode.IMAGE,
            num_faces=max_faces,
        )
        self._mp = mp
        self.landmarker = mp_vision.FaceLandmarker.create_from_options(options)

    def estimate(self, image: np.ndarray) -> List[LandmarkSet]:
        if image.size == 0:
            return []
        height, width = image.shape[:2]
        mp_image = self._mp.Image(image_format=self._mp.ImageFormat.SRGB, data=to_rgb(image))
        result = self.landmarker.detect(mp_image)
        return [
            LandmarkSet([(p.x * width, p.y * height, p.z * width) for p in face])
            for face in result.face_landmarks
        ]


class DescriptorDetector:
    """dlib-backed detector returning 68 named landmarks and a 128-d descriptor per face."""

    def __init__(self, model: str = "hog", upsample: int = 1):
        try:
            import face_recognition
        except Exception as exc:  # noqa: BLE001
            raise ImportError("face_recognition must be installed to use DescriptorDetector") from exc

        self._fr = face_recognition
        self.model = model
        self.upsample = upsample

    def detect(self, frame: np.ndarray) -> List[Detection]:
        rgb = to_rgb(frame)
        locations = self._fr.face_locations(rgb, number_of_times_to_upsample=self.upsample, model=self.model)
        if not locations:
            return []
        marks = self._fr.face_landmarks(rgb, locations)
        encodings = self._fr.face_encodings(rgb, locations)

        detections: List[Detection] = []
        for (top, right, bottom, left), features, encoding in zip(locations, marks, encodings):
            landmarks = [
                Landmark(name, float(x), float(y))
                for name, points in features.items()
                for (x, y) in points
            ]
            detections.append(
                Detection(
                    (float(left), float(top)),
                    (float(right), float(bottom)),
                    1.0,
                    landmarks,
                    tuple(float(v) for v in encoding),
                )
            )
        return detections
