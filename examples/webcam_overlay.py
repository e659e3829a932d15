import time

import cv2

from face_overlay.camera import CaptureController
from face_overlay.detection_loop import DetectionLoop, LoopSettings
from face_overlay.models import ModelLoader, Models
from face_overlay.overlay import blend_overlay
from face_overlay.scheduler import TimerQueue
from face_overlay.session import SessionState
from face_overlay.vision import HaarFaceDetector

DISPLAY_SIZE = (480, 360)


def main(device=0, backend=cv2.VideoCapture, detector_factory=HaarFaceDetector) -> None:
    state = SessionState(display_size=DISPLAY_SIZE)
    if ModelLoader(state, lambda: Models(detector=detector_factory())).load() is None:
        print(state.error)
        return
    capture = CaptureController(state, device=device, mirror=True, backend=backend)
    timers = TimerQueue()
    loop = DetectionLoop(
        state,
        capture,
        timers,
        LoopSettings(interval_s=0.2, crop_faces=False),
        frame_source=lambda: capture.frame,
    )

    if not capture.start():
        print(state.error)
        return

    try:
        while True:
            frame = capture.read_frame()
            loop.sync()
            timers.run_due()
            if frame is not None:
                shown = cv2.cvtColor(cv2.resize(frame, DISPLAY_SIZE), cv2.COLOR_BGR2RGB)
                if state.overlay is not None:
                    shown = blend_overlay(shown, state.overlay)
                cv2.imshow("Face Overlay", cv2.cvtColor(shown, cv2.COLOR_RGB2BGR))

            if cv2.waitKey(1) & 0xFF == 27:
                break
            time.sleep(0.01)
    finally:
        capture.stop()
        loop.sync()
        cv2.destroyAllWindows()


if __name__ == "__main__":
    main()
