"""Timer-driven detection cycle: frame in, detections and overlay out."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

import numpy as np

from face_overlay.camera import CaptureController
from face_overlay.overlay import CropPolicy, OverlayRenderer, Scale, crop_face
from face_overlay.scheduler import ScheduledTask, TimerQueue
from face_overlay.session import DETECTION_ERROR, CroppedFace, SessionState
from face_overlay.vision import Detection

CROP_INTERVAL_S = 0.6


@dataclass(frozen=True)
class LoopSettings:
    interval_s: float = CROP_INTERVAL_S
    crop_faces: bool = True
    crop_policy: CropPolicy = field(default_factory=CropPolicy)


class DetectionLoop:
    """Runs one detection cycle at a time while the session is streaming.

    A cycle is scheduled only after the previous one has finished, so model
    calls never overlap. ``sync`` follows ``state.streaming``: it schedules the
    first cycle when streaming starts and cancels the pending one when it stops.
    """

    def __init__(
        self,
        state: SessionState,
        capture: CaptureController,
        timers: TimerQueue,
        settings: Optional[LoopSettings] = None,
        renderer: Optional[OverlayRenderer] = None,
        now: Callable[[], datetime] = datetime.now,
        frame_source: Optional[Callable[[], Optional[np.ndarray]]] = None,
    ):
        self.state = state
        self.capture = capture
        self.timers = timers
        self.frame_source = frame_source or capture.read_frame
        self.settings = settings or LoopSettings()
        policy = self.settings.crop_policy
        self.renderer = renderer or OverlayRenderer(policy.y_offset if policy.offset_overlay else 1.0)
        self.now = now
        self.task: Optional[ScheduledTask] = None
        self.cycles = 0

    @property
    def running(self) -> bool:
        return self.task is not None and self.task.pending

    def sync(self) -> None:
        if self.state.streaming and self.state.ready:
            if not self.running:
                self._schedule(0.0)
        else:
            self.stop()

    def stop(self) -> None:
        if self.task is not None:
            self.task.cancel()
            self.task = None

    def _schedule(self, delay_s: float) -> None:
        self.task = self.timers.call_later(delay_s, self._cycle)

    def _cycle(self) -> None:
        self.task = None
        if not (self.state.streaming and self.state.ready):
            return

        frame = self.frame_source()
        if frame is None:
            self._schedule(0.0)
            return

        try:
            self.run_once(frame)
        except Exception as exc:  # noqa: BLE001
            logging.error("Error during face detection: %s", exc)
            self.state.error = DETECTION_ERROR
            self.state.debug_info = f"Error: {exc}"

        if self.state.streaming and self.task is None:
            self._schedule(self.settings.interval_s)

    def run_once(self, frame: np.ndarray) -> List[Detection]:
        """Detect, render and crop for one frame, replacing the previous results."""
        models = self.state.models
        if models is None:
            raise RuntimeError("Models are not loaded")

        epoch = self.state.epoch
        native_size = (frame.shape[1], frame.shape[0])
        display_size = self.state.display_size
        self.state.overlay_size = display_size
        scale = Scale.between(native_size, display_size)

        detections = list(models.detector.detect(frame))
        overlay = self.renderer.render(display_size, detections, scale)

        cropped: List[CroppedFace] = []
        if self.settings.crop_faces and models.landmarker is not None:
            for detection in detections:
                crop = crop_face(frame, detection, self.settings.crop_policy)
                cropped.append(CroppedFace(crop, list(models.landmarker.estimate(crop))))

        if epoch != self.state.epoch or not self.state.streaming:
            logging.debug("Discarding detection results from a stopped capture.")
            return detections

        self.state.scale = scale
        self.state.detections = detections
        self.state.overlay = overlay
        self.state.cropped_faces = cropped
        self.state.debug_info = self.describe(detections)
        self.cycles += 1
        return detections

    def describe(self, detections: List[Detection]) -> str:
        policy = self.settings.crop_policy
        payload = json.dumps([d.to_dict() for d in detections], indent=2)
        return (
            f"Detected {len(detections)} faces at {self.now().strftime('%H:%M:%S')}. "
            f"Scaling: yScalerPos={policy.y_offset}, scaleFactor={policy.enlargement}\n"
            f"Predictions:\n{payload}"
        )
