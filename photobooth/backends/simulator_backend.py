"""
Simulated camera backend for development machines and hosts without a camera.

Captures are synthesized with Pillow: after a fixed delay the backend renders
an 800x600 test card, saves it as PNG in the photos directory and reports it
exactly like a real capture.
"""

from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Callable, Deque, Optional, Tuple

from PIL import Image, ImageChops, ImageDraw, ImageFont

from ..camera import PhotoAsset
from ..preview import PlaceholderSurface
from ..scheduler import Scheduler, Timer
from ..storage import PhotoStore
from .base import CameraBackend

PHOTO_SIZE: Tuple[int, int] = (800, 600)
PHOTO_PREFIX = "mock_photo"
CAPTURE_DELAY = 1.0  # seconds

HEADING = "📷 MOCK PHOTO\n\nPhoto Booth Test"
GRADIENT_START = (52, 152, 219)  # light blue, top-left
GRADIENT_END = (44, 62, 80)  # dark blue, bottom-right
CIRCLES = [
    (100, 100, 250, 250),
    (550, 350, 750, 550),
    (200, 400, 300, 500),
]
BORDER_WIDTH = 4
TIMESTAMP_MARGIN = 20

IDLE_TEXT = "📷 Mock Camera Preview\n\nClick 'Take Photo' to capture a test image"
LIVE_TEXT = "📷 Mock Camera - Live Preview\n\nReady to take photo!"
STOPPED_TEXT = "📷 Mock Camera Preview\n\nPreview stopped"
CAPTURING_TEXT = "📸 Capturing..."


def _font(size: int):
    return ImageFont.load_default(size=size)


def _diagonal_gradient(size: Tuple[int, int]) -> Image.Image:
    """Linear gradient along the top-left to bottom-right diagonal."""
    width, height = size
    # Projection of (x, y) onto the diagonal, split into independent x and y ramps
    span = float(width * width + height * height)
    x_ramp = bytes(int(255 * (x * width) / span) for x in range(width))
    y_ramp = bytes(int(255 * (y * height) / span) for y in range(height))
    x_mask = Image.frombytes("L", (width, 1), x_ramp).resize(size, Image.Resampling.NEAREST)
    y_mask = Image.frombytes("L", (1, height), y_ramp).resize(size, Image.Resampling.NEAREST)
    mask = ImageChops.add(x_mask, y_mask)
    return Image.composite(Image.new("RGB", size, GRADIENT_END), Image.new("RGB", size, GRADIENT_START), mask)


def timestamp_region(size: Tuple[int, int] = PHOTO_SIZE) -> Tuple[int, int, int, int]:
    """Box of the test card that holds the timestamp; everything else is fixed."""
    width, height = size
    return (TIMESTAMP_MARGIN, height - TIMESTAMP_MARGIN - 24, width // 2, height - TIMESTAMP_MARGIN + 6)


def render_test_photo(timestamp: datetime, size: Tuple[int, int] = PHOTO_SIZE) -> Image.Image:
    """
    Render the simulator's test card.

    The output depends only on ``timestamp`` and ``size``, and the timestamp
    only touches ``timestamp_region(size)``.
    """
    width, height = size
    photo = _diagonal_gradient(size).convert("RGBA")

    overlay = Image.new("RGBA", size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)
    for box in CIRCLES:
        draw.ellipse(box, fill=(255, 255, 255, 50), outline=(255, 255, 255, 100), width=2)
    photo = Image.alpha_composite(photo, overlay).convert("RGB")

    draw = ImageDraw.Draw(photo)
    heading_font = _font(36)
    left, top, right, bottom = draw.multiline_textbbox((0, 0), HEADING, font=heading_font, align="center")
    draw.multiline_text(
        ((width - (right - left)) / 2 - left, (height - (bottom - top)) / 2 - top),
        HEADING,
        fill=(255, 255, 255),
        font=heading_font,
        align="center",
    )

    stamp_font = _font(16)
    stamp = timestamp.strftime("%Y-%m-%d %H:%M:%S")
    stamp_bottom = draw.textbbox((0, 0), stamp, font=stamp_font)[3]
    draw.text((TIMESTAMP_MARGIN, height - TIMESTAMP_MARGIN - stamp_bottom), stamp, fill=(255, 255, 255), font=stamp_font)

    draw.rectangle((0, 0, width - 1, height - 1), outline=(255, 255, 255), width=BORDER_WIDTH)
    return photo


class SimulatorBackend(CameraBackend):
    """
    Camera backend that fakes everything.

    Captures requested while one is pending are queued and completed one
    per capture delay.
    """

    def __init__(
        self,
        logger,
        scheduler: Scheduler,
        photo_store: PhotoStore,
        capture_delay: float = CAPTURE_DELAY,
        clock: Callable[[], datetime] = datetime.now,
    ):
        super().__init__(logger, scheduler, photo_store)
        self.capture_delay = capture_delay
        self._clock = clock
        self._surface: Optional[PlaceholderSurface] = None
        self._capture_timer: Optional[Timer] = None
        self._queue: Deque[int] = deque()

    def initialize(self) -> bool:
        if self._initialized:
            return True
        if self._refuse_reuse():
            return False

        self.logger.info("SimulatorBackend: Initializing mock camera")
        try:
            self.photo_store.ensure_directory()
        except OSError as e:
            self.logger.error(f"SimulatorBackend: No usable photos directory: {e}")
            return False

        self._surface = PlaceholderSurface(IDLE_TEXT, "idle")
        self._capture_timer = Timer(self.scheduler, self.capture_delay, self._simulate_capture, single_shot=True)

        self._initialized = True
        self.logger.info("SimulatorBackend: Initialization complete")
        return True

    def cleanup(self):
        if self._released:
            return

        self.logger.info("SimulatorBackend: Cleaning up")
        self.stop_preview()
        self.cancel_capture()
        if self._surface is not None:
            self._surface.release()
            self._surface = None
        self._initialized = False
        self._released = True

    def is_available(self) -> bool:
        return self._initialized

    def preview_surface(self) -> Optional[PlaceholderSurface]:
        return self._surface

    def start_preview(self):
        if not self._initialized or self._preview_active:
            return

        self.logger.info("SimulatorBackend: Starting preview")
        if not self._queue:
            self._surface.show(LIVE_TEXT, "live")
        self._set_preview_active(True)

    def stop_preview(self):
        if not self._preview_active:
            return

        self.logger.info("SimulatorBackend: Stopping preview")
        if self._surface is not None and not self._queue:
            self._surface.show(STOPPED_TEXT, "idle")
        self._set_preview_active(False)

    def capture_photo(self):
        if not self._initialized:
            self._reject_later("Mock camera not initialized")
            return

        token = self._begin_capture()
        self._queue.append(token)
        self.logger.info(f"SimulatorBackend: Starting photo capture simulation ({len(self._queue)} queued)")
        self._surface.show(CAPTURING_TEXT, "capturing")
        if not self._capture_timer.is_active:
            self._capture_timer.start()

    def cancel_capture(self):
        self.logger.info("SimulatorBackend: Cancelling capture")
        if self._capture_timer is not None:
            self._capture_timer.stop()
        self._queue.clear()
        self._restore_surface()
        super().cancel_capture()

    def _restore_surface(self):
        if self._surface is None:
            return
        if self._preview_active:
            self._surface.show(LIVE_TEXT, "live")
        else:
            self._surface.show(IDLE_TEXT, "idle")

    def _simulate_capture(self):
        if not self._queue:
            return
        token = self._queue.popleft()
        if self._queue:
            self._capture_timer.start()
        else:
            self._restore_surface()

        self.logger.info("SimulatorBackend: Simulating photo capture")
        photo = render_test_photo(self._clock())
        path = self.photo_store.asset_path(PHOTO_PREFIX, "png")
        try:
            photo.save(path, format="PNG")
        except (OSError, ValueError) as e:
            self.logger.warning(f"SimulatorBackend: Failed to save photo to {path}: {e}")
            self._finish_capture(token, error="Failed to save mock photo")
            return

        self.logger.info(f"SimulatorBackend: Photo saved to {path}")
        self._finish_capture(token, asset=PhotoAsset(image=photo, path=str(Path(path).resolve())))

    def get_backend_name(self) -> str:
        return "simulator"
