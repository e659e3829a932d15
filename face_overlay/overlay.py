"""
Overlay drawing and face cropping.

The overlay is drawn in displayed-video coordinates on a transparent RGBA
canvas; crops are cut from the native frame.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence, Tuple, Union

import cv2
import numpy as np

from face_overlay.vision import Detection

BOX_COLOR = (255, 0, 0, 255)
LANDMARK_COLOR = (255, 0, 0, 128)
BOX_THICKNESS = 2
LANDMARK_RADIUS = 3


@dataclass(frozen=True)
class Scale:
    """Displayed size divided by native size, per axis."""

    x: float
    y: float

    @classmethod
    def between(cls, native_size: Tuple[int, int], display_size: Tuple[int, int]) -> "Scale":
        return cls(display_size[0] / native_size[0], display_size[1] / native_size[1])


@dataclass(frozen=True)
class RectShape:
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class CircleShape:
    x: float
    y: float
    radius: float


Shape = Union[RectShape, CircleShape]


@dataclass
class Overlay:
    canvas: np.ndarray
    shapes: List[Shape] = field(default_factory=list)

    @property
    def size(self) -> Tuple[int, int]:
        return self.canvas.shape[1], self.canvas.shape[0]


@dataclass(frozen=True)
class CropPolicy:
    """How a detection box is widened before cropping.

    ``enlargement`` multiplies width and height around the box centre.
    ``y_offset`` multiplies the box's top edge only, before the centring shift,
    so it moves the crop rather than resizing it. ``offset_overlay`` applies the
    same y multiplier to the drawn rectangle. Values are not range checked.
    """

    enlargement: float = 2.0
    y_offset: float = 0.85
    offset_overlay: bool = False


def scaled_box(detection: Detection, scale: Scale, y_offset: float = 1.0) -> RectShape:
    x, y = detection.top_left
    return RectShape(
        x * scale.x,
        y * scale.y * y_offset,
        detection.width * scale.x,
        detection.height * scale.y,
    )


class OverlayRenderer:
    """Draws boxes and landmark dots for one frame onto a fresh canvas."""

    def __init__(self, box_y_offset: float = 1.0):
        self.box_y_offset = box_y_offset

    def render(
        self,
        size: Tuple[int, int],
        detections: Sequence[Detection],
        scale: Scale,
    ) -> Overlay:
        width, height = size
        overlay = Overlay(np.zeros((height, width, 4), dtype=np.uint8))

        for detection in detections:
            rect = scaled_box(detection, scale, self.box_y_offset)
            cv2.rectangle(
                overlay.canvas,
                (int(round(rect.x)), int(round(rect.y))),
                (int(round(rect.x + rect.width)), int(round(rect.y + rect.height))),
                BOX_COLOR,
                BOX_THICKNESS,
            )
            overlay.shapes.append(rect)

            for landmark in detection.landmarks:
                dot = CircleShape(landmark.x * scale.x, landmark.y * scale.y, LANDMARK_RADIUS)
                cv2.circle(
                    overlay.canvas,
                    (int(round(dot.x)), int(round(dot.y))),
                    LANDMARK_RADIUS,
                    LANDMARK_COLOR,
                    -1,
                )
                overlay.shapes.append(dot)

        return overlay


def blend_overlay(image: np.ndarray, overlay: Overlay) -> np.ndarray:
    """Alpha-composite an RGBA overlay onto a 3-channel image of the same size.

    The overlay colours are RGB; pass an RGB image, or swap channels first.
    """
    if overlay.size != (image.shape[1], image.shape[0]):
        raise ValueError(f"Overlay size {overlay.size} does not match image {image.shape[1::-1]}")
    alpha = overlay.canvas[..., 3:4].astype(np.float32) / 255.0
    colour = overlay.canvas[..., :3].astype(np.float32)
    blended = image.astype(np.float32) * (1.0 - alpha) + colour * alpha
    return blended.astype(image.dtype)


def crop_region(detection: Detection, policy: CropPolicy) -> Tuple[float, float, float, float]:
    """Return (x, y, width, height) of the source region to cut out."""
    x, y = detection.top_left
    width, height = detection.width, detection.height
    scaled_width = width * policy.enlargement
    scaled_height = height * policy.enlargement
    scaled_x = x - (scaled_width - width) / 2
    scaled_y = y * policy.y_offset - (scaled_height - height) / 2
    return scaled_x, scaled_y, scaled_width, scaled_height


def crop_face(frame: np.ndarray, detection: Detection, policy: CropPolicy) -> np.ndarray:
    """Copy the crop region into a new raster, leaving out-of-frame pixels black."""
    region_x, region_y, region_w, region_h = crop_region(detection, policy)
    out_w, out_h = max(0, int(region_w)), max(0, int(region_h))
    crop = np.zeros((out_h, out_w) + frame.shape[2:], dtype=frame.dtype)
    if out_w == 0 or out_h == 0:
        return crop

    frame_h, frame_w = frame.shape[:2]
    left, top = int(round(region_x)), int(round(region_y))
    src_x0, src_y0 = max(left, 0), max(top, 0)
    src_x1, src_y1 = min(left + out_w, frame_w), min(top + out_h, frame_h)
    if src_x1 > src_x0 and src_y1 > src_y0:
        crop[src_y0 - top:src_y1 - top, src_x0 - left:src_x1 - left] = frame[src_y0:src_y1, src_x0:src_x1]
    return crop
