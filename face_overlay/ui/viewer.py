"""Pygame viewer: live webcam feed with face boxes, landmarks and cropped faces.

Controls:
- Start Camera / Stop Camera buttons (or Space to toggle)
- Esc or X: exit the app
"""

from __future__ import annotations

import argparse
import logging
import sys
import textwrap
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Callable, Optional, Sequence

import cv2
import numpy as np
import pygame

from face_overlay.camera import CaptureController
from face_overlay.detection_loop import CROP_INTERVAL_S, DetectionLoop, LoopSettings
from face_overlay.models import DETECTORS, VARIANTS, ModelLoader, ModelSettings, build_models
from face_overlay.overlay import CropPolicy, Overlay
from face_overlay.scheduler import TimerQueue
from face_overlay.session import LOADING_MESSAGE, CroppedFace, SessionState
from face_overlay.vision import DEFAULT_DETECTOR_MODEL, DEFAULT_LANDMARKER_MODEL, Detection

# Display layout
WINDOW_WIDTH, WINDOW_HEIGHT = 1120, 720
VIDEO_SIZE = (640, 360)
PADDING = 24
BUTTON_W, BUTTON_H = 150, 44
BUTTON_GAP = 12
TILE_SIZE = 150
TILE_GAP = 12
BG_COLOR = (16, 18, 24)
VIDEO_BG = (26, 29, 36)
PANEL_BG = (32, 36, 46)
TEXT_COLOR = (230, 233, 240)
MUTED_COLOR = (150, 155, 168)
ERROR_COLOR = (239, 68, 68)
BUTTON_COLOR = (48, 54, 68)
DISABLED_COLOR = (34, 37, 46)
HOVER_COLOR = (68, 94, 128)
OUTLINE_COLOR = (90, 95, 110)
LANDMARK_DOT = (88, 148, 255)
FPS = 30
DEBUG_LINE_CHARS = 58
DEBUG_MAX_LINES = 34
STOPPED_MESSAGE = "Camera stopped."


@dataclass(frozen=True)
class Layout:
    """UI sizing and spacing configuration."""

    window_width: int = WINDOW_WIDTH
    window_height: int = WINDOW_HEIGHT
    video_size: tuple[int, int] = VIDEO_SIZE
    padding: int = PADDING
    button_w: int = BUTTON_W
    button_h: int = BUTTON_H
    button_gap: int = BUTTON_GAP
    tile_size: int = TILE_SIZE

    @property
    def video_rect(self) -> pygame.Rect:
        return pygame.Rect(self.padding, self.padding, *self.video_size)

    @property
    def panel_rect(self) -> pygame.Rect:
        left = self.padding * 2 + self.video_size[0]
        return pygame.Rect(
            left,
            self.padding,
            self.window_width - left - self.padding,
            self.window_height - self.padding * 2,
        )

    @property
    def tiles_top(self) -> int:
        return self.padding + self.video_size[1] + self.button_gap * 2 + self.button_h


class Button:
    """Clickable button that is only active while ``enabled`` says so."""

    def __init__(
        self,
        label: str,
        rect: pygame.Rect,
        on_tap: Callable[[], None],
        enabled: Callable[[SessionState], bool],
    ):
        self.label = label
        self.rect = rect
        self.on_tap = on_tap
        self.enabled = enabled

    def handle_click(self, state: SessionState) -> bool:
        if not self.enabled(state):
            return False
        self.on_tap()
        return True


def can_start(state: SessionState) -> bool:
    return not state.streaming and not state.loading


def can_stop(state: SessionState) -> bool:
    return state.streaming and not state.loading


def build_buttons(
    layout: Layout,
    start_callback: Callable[[], None],
    stop_callback: Callable[[], None],
) -> list[Button]:
    """Start/Stop buttons placed under the video frame."""
    top = layout.padding + layout.video_size[1] + layout.button_gap
    start_rect = pygame.Rect(layout.padding, top, layout.button_w, layout.button_h)
    stop_rect = pygame.Rect(start_rect.right + layout.button_gap, top, layout.button_w, layout.button_h)
    return [
        Button("Start Camera", start_rect, start_callback, can_start),
        Button("Stop Camera", stop_rect, stop_callback, can_stop),
    ]


def wrap_lines(text: str, width: int = DEBUG_LINE_CHARS, max_lines: int = DEBUG_MAX_LINES) -> list[str]:
    """Hard-wrap text for the debug panel, keeping only the first ``max_lines``."""
    lines: list[str] = []
    for raw in text.splitlines():
        wrapped = textwrap.wrap(raw, width=width, replace_whitespace=False, drop_whitespace=False)
        lines.extend(wrapped or [""])
    if len(lines) > max_lines:
        return lines[: max_lines - 1] + ["..."]
    return lines


def descriptor_lines(detections: Sequence[Detection], precision: int = 3, shown: int = 6) -> list[str]:
    """One summary line per face descriptor."""
    lines = []
    for index, detection in enumerate(detections, start=1):
        if detection.descriptor is None:
            continue
        values = ", ".join(f"{v:.{precision}f}" for v in detection.descriptor[:shown])
        more = ", ..." if len(detection.descriptor) > shown else ""
        lines.append(f"Face {index}: [{values}{more}] ({len(detection.descriptor)} values)")
    return lines


def fit_size(size: tuple[int, int], box: int) -> tuple[int, int]:
    """Largest size with the same aspect ratio that fits a square of ``box`` pixels."""
    width, height = size
    if width <= 0 or height <= 0:
        return 0, 0
    ratio = min(box / width, box / height)
    return max(1, int(width * ratio)), max(1, int(height * ratio))


def frame_to_surface(frame, video_size: tuple[int, int]) -> Optional[pygame.Surface]:
    """Convert a BGR cv2 frame to a pygame surface sized to the video viewport."""
    if frame is None or frame.size == 0:
        return None
    try:
        rgb = cv2.cvtColor(cv2.resize(frame, video_size), cv2.COLOR_BGR2RGB)
        return pygame.image.frombuffer(rgb.tobytes(), video_size, "RGB")
    except Exception as exc:  # noqa: BLE001
        logging.debug("Frame conversion failed: %s", exc)
        return None


def overlay_to_surface(overlay: Optional[Overlay]) -> Optional[pygame.Surface]:
    if overlay is None:
        return None
    return pygame.image.frombuffer(overlay.canvas.tobytes(), overlay.size, "RGBA")


def draw_buttons(screen: pygame.Surface, font: pygame.font.Font, buttons: list[Button], state: SessionState) -> None:
    """Render buttons with hover and disabled states."""
    mouse_pos = pygame.mouse.get_pos()
    for button in buttons:
        enabled = button.enabled(state)
        base_color = BUTTON_COLOR if enabled else DISABLED_COLOR
        if enabled and button.rect.collidepoint(mouse_pos):
            base_color = HOVER_COLOR
        pygame.draw.rect(screen, base_color, button.rect, border_radius=8)
        pygame.draw.rect(screen, OUTLINE_COLOR, button.rect, width=1, border_radius=8)
        label = font.render(button.label, True, TEXT_COLOR if enabled else MUTED_COLOR)
        screen.blit(label, label.get_rect(center=button.rect.center))


def video_message(state: SessionState) -> tuple[Optional[str], tuple[int, int, int]]:
    """Text shown over the video area; errors win over the loading notice."""
    if state.error:
        return state.error, ERROR_COLOR
    if state.loading:
        return LOADING_MESSAGE, MUTED_COLOR
    if not state.streaming:
        return STOPPED_MESSAGE, MUTED_COLOR
    return None, TEXT_COLOR


def draw_video(
    screen: pygame.Surface,
    font: pygame.font.Font,
    layout: Layout,
    frame: Optional[np.ndarray],
    state: SessionState,
) -> None:
    """Video frame, overlay and any loading/error message on top."""
    video_rect = layout.video_rect
    pygame.draw.rect(screen, VIDEO_BG, video_rect, border_radius=12)

    frame_surface = frame_to_surface(frame, layout.video_size) if state.streaming else None
    if frame_surface:
        screen.blit(frame_surface, video_rect)
        overlay_surface = overlay_to_surface(state.overlay)
        if overlay_surface:
            screen.blit(overlay_surface, video_rect)

    message, color = video_message(state)
    if message:
        surface = font.render(message, True, color)
        screen.blit(surface, surface.get_rect(center=video_rect.center))


def draw_debug_panel(
    screen: pygame.Surface,
    title_font: pygame.font.Font,
    mono_font: pygame.font.Font,
    rect: pygame.Rect,
    state: SessionState,
    extra_lines: Sequence[str] = (),
) -> None:
    """Debug information box echoing the latest detection payload."""
    pygame.draw.rect(screen, PANEL_BG, rect, border_radius=10)
    screen.blit(title_font.render("Debug Information:", True, TEXT_COLOR), (rect.left + 12, rect.top + 10))
    y = rect.top + 40
    line_height = mono_font.get_linesize()
    lines = wrap_lines(state.debug_info)
    if extra_lines:
        lines = lines + ["", "Face Descriptors:"] + [
            chunk for line in extra_lines for chunk in wrap_lines(line, max_lines=4)
        ]
    for line in lines:
        if y + line_height > rect.bottom - 8:
            break
        screen.blit(mono_font.render(line, True, MUTED_COLOR), (rect.left + 12, y))
        y += line_height


def draw_cropped_faces(
    screen: pygame.Surface,
    font: pygame.font.Font,
    layout: Layout,
    faces: Sequence[CroppedFace],
) -> None:
    """Grid of cropped faces with their landmark dots."""
    columns = max(1, (layout.video_size[0] + TILE_GAP) // (layout.tile_size + TILE_GAP))
    for index, face in enumerate(faces[:columns]):
        left = layout.padding + index * (layout.tile_size + TILE_GAP)
        top = layout.tiles_top
        tile = pygame.Rect(left, top + 20, layout.tile_size, layout.tile_size)
        pygame.draw.rect(screen, PANEL_BG, tile, border_radius=8)
        screen.blit(font.render(f"Face {index + 1}", True, TEXT_COLOR), (left, top))

        crop_h, crop_w = face.image.shape[:2]
        thumb_w, thumb_h = fit_size((crop_w, crop_h), layout.tile_size)
        if thumb_w and thumb_h:
            thumb = frame_to_surface(face.image, (thumb_w, thumb_h))
            if thumb:
                origin = (tile.left + (tile.width - thumb_w) // 2, tile.top + (tile.height - thumb_h) // 2)
                screen.blit(thumb, origin)
                ratio = thumb_w / crop_w
                for landmark_set in face.landmarks[:1]:
                    for x, y, _ in landmark_set.points:
                        pygame.draw.circle(
                            screen,
                            LANDMARK_DOT,
                            (int(origin[0] + x * ratio), int(origin[1] + y * ratio)),
                            1,
                        )

        count = len(face.landmarks[0]) if face.landmarks else 0
        caption = f"Landmarks: {count} keypoints" if count else "Landmarks: none"
        screen.blit(font.render(caption, True, MUTED_COLOR), (left, tile.bottom + 4))


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """CLI entry point arguments."""
    parser = argparse.ArgumentParser(description="Live webcam face detection overlay")
    parser.add_argument(
        "--variant",
        choices=VARIANTS,
        default="crops",
        help="crops: boxes, keypoints and cropped-face landmarks; descriptors: 68-point landmarks and face descriptors",
    )
    parser.add_argument(
        "--detector",
        choices=DETECTORS,
        default="blazeface",
        help="Primary face detector for the crops view",
    )
    parser.add_argument("--camera", default="0", help="Camera index or video source for cv2.VideoCapture")
    parser.add_argument("--mirror", action="store_true", help="Flip the camera image horizontally")
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help=f"Seconds between detection cycles (default {CROP_INTERVAL_S} for crops, 0 for descriptors)",
    )
    parser.add_argument("--enlargement", type=float, default=2.0, help="Crop enlargement factor")
    parser.add_argument("--y-offset", type=float, default=0.85, help="Vertical multiplier applied to the crop's y")
    parser.add_argument(
        "--offset-overlay",
        action="store_true",
        help="Also apply --y-offset to the drawn bounding boxes",
    )
    parser.add_argument("--min-confidence", type=float, default=0.5, help="Minimum detection confidence")
    parser.add_argument("--detector-model", default=DEFAULT_DETECTOR_MODEL, help="Face detector model path or URL")
    parser.add_argument(
        "--landmarker-model",
        default=DEFAULT_LANDMARKER_MODEL,
        help="Face landmarker model path or URL",
    )
    parser.add_argument("--model-cache", default=None, help="Directory for downloaded model files")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity for diagnostics",
    )
    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    """Configure root logger output."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


def camera_source(value: str):
    return int(value) if value.isdigit() else value


def build_settings(args: argparse.Namespace) -> tuple[ModelSettings, LoopSettings]:
    """Translate CLI flags into model and loop settings."""
    model_settings = ModelSettings(
        variant=args.variant,
        detector=args.detector,
        detector_model=args.detector_model,
        landmarker_model=args.landmarker_model,
        min_confidence=args.min_confidence,
        cache_dir=Path(args.model_cache) if args.model_cache else None,
    )
    crops = args.variant == "crops"
    interval = args.interval if args.interval is not None else (CROP_INTERVAL_S if crops else 0.0)
    loop_settings = LoopSettings(
        interval_s=interval,
        crop_faces=crops,
        crop_policy=CropPolicy(args.enlargement, args.y_offset, args.offset_overlay),
    )
    return model_settings, loop_settings


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    setup_logging(args.log_level)
    model_settings, loop_settings = build_settings(args)

    pygame.init()
    layout = Layout()
    screen = pygame.display.set_mode((layout.window_width, layout.window_height))
    pygame.display.set_caption("Face Overlay")
    title_font = pygame.font.SysFont("Arial", 18)
    text_font = pygame.font.SysFont("Arial", 15)
    mono_font = pygame.font.SysFont("Courier New", 12)
    clock = pygame.time.Clock()

    state = SessionState(display_size=layout.video_size)
    loader = ModelLoader(state, partial(build_models, model_settings))
    loader.load_in_background()
    capture = CaptureController(state, device=camera_source(args.camera), mirror=args.mirror)
    timers = TimerQueue()
    loop = DetectionLoop(state, capture, timers, loop_settings, frame_source=lambda: capture.frame)
    running = True

    def start_camera() -> None:
        if capture.start():
            loop.sync()

    def stop_camera() -> None:
        capture.stop()
        loop.sync()

    buttons = build_buttons(layout, start_camera, stop_camera)

    while running:
        clock.tick(FPS)
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                running = False
            elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                for btn in buttons:
                    if btn.rect.collidepoint(event.pos):
                        btn.handle_click(state)
            elif event.type == pygame.KEYDOWN:
                if event.key in (pygame.K_ESCAPE, pygame.K_x):
                    running = False
                elif event.key == pygame.K_SPACE:
                    if can_start(state):
                        start_camera()
                    elif can_stop(state):
                        stop_camera()

        frame = capture.read_frame() if state.streaming else None
        loop.sync()
        timers.run_due()

        screen.fill(BG_COLOR)
        draw_video(screen, title_font, layout, frame if frame is not None else capture.frame, state)
        draw_buttons(screen, text_font, buttons, state)
        extra = descriptor_lines(state.detections) if model_settings.variant == "descriptors" else ()
        draw_debug_panel(screen, title_font, mono_font, layout.panel_rect, state, extra)
        draw_cropped_faces(screen, text_font, layout, state.cropped_faces)
        pygame.display.flip()

    stop_camera()
    timers.clear()
    pygame.quit()


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        pygame.quit()
        sys.exit()
    except Exception as exc:  # noqa: BLE001
        logging.exception("Fatal error: %s", exc)
        pygame.quit()
        sys.exit(1)
