"""Webcam acquisition for the overlay session."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

import cv2
import numpy as np

from face_overlay.session import CAMERA_ERROR, MODEL_ERROR, SessionState


class CameraUnavailableError(RuntimeError):
    """The capture device could not be opened (missing, busy or not permitted)."""


@dataclass
class CaptureController:
    """Opens and releases the camera and keeps ``state.streaming`` in step."""

    state: SessionState
    device: Union[int, str] = 0
    mirror: bool = False
    backend: Callable[[Union[int, str]], Any] = cv2.VideoCapture
    capture: Optional[Any] = None
    frame: Optional[np.ndarray] = None

    @property
    def streaming(self) -> bool:
        return self.state.streaming

    def start(self) -> bool:
        if self.state.streaming:
            return True
        try:
            capture = self.backend(self.device)
            if not capture.isOpened():
                capture.release()
                raise CameraUnavailableError(f"No camera available at {self.device!r}")
        except Exception as exc:  # noqa: BLE001
            logging.error("Error accessing the camera: %s", exc)
            self.capture = None
            self.state.streaming = False
            self.state.error = CAMERA_ERROR
            return False

        self.capture = capture
        if self.state.error != MODEL_ERROR:
            self.state.error = None
        self.state.streaming = True
        logging.info("Camera %r streaming.", self.device)
        return True

    def read_frame(self) -> Optional[np.ndarray]:
        """Grab a new frame, or None while the device has nothing to hand over.

        The last good frame stays available as ``frame``.
        """
        if not self.capture:
            return None
        try:
            ok, frame = self.capture.read()
        except Exception as exc:  # noqa: BLE001
            logging.warning("Frame read failed: %s", exc)
            return None
        if not ok or frame is None:
            return None
        self.frame = cv2.flip(frame, 1) if self.mirror else frame
        return self.frame

    def stop(self) -> None:
        if not self.capture and not self.state.streaming:
            return
        if self.capture:
            try:
                self.capture.release()
            except Exception as exc:  # noqa: BLE001
                logging.error("Error releasing the camera: %s", exc)
        self.capture = None
        self.frame = None
        self.state.streaming = False
        self.state.clear_detections()
        logging.info("Camera %r stopped.", self.device)
