"""
Subprocess-based camera backend using libcamera-still (or legacy raspistill).
"""

import os
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from ..camera import PhotoAsset, StillCaptureConfig
from ..host import HostProbe, is_raspberry_pi
from ..preview import PlaceholderSurface
from ..scheduler import Scheduler
from ..storage import PhotoStore
from .base import CameraBackend
from .process import CaptureProcess, ExitStatus

PREFERRED_PROGRAM = "libcamera-still"
LEGACY_PROGRAM = "raspistill"
PHOTO_PREFIX = "pi_photo"
CLEANUP_WAIT = 3.0  # seconds

PREVIEW_TITLE = "Raspberry Pi Camera"


def build_still_command(program: str, output_path: str, config: StillCaptureConfig) -> List[str]:
    """
    Arguments for one of the still-capture programs.

    Args:
        program: ``libcamera-still`` or ``raspistill``; they spell the same
            options differently.
        output_path: Where the JPEG is written.
        config: Resolution, quality and preview timeout.

    Returns:
        list: Arguments, without the program name.
    """
    if program == LEGACY_PROGRAM:
        return [
            "-o", output_path,
            "-w", str(config.width),
            "-h", str(config.height),
            "-q", str(config.quality),
            "-t", str(config.timeout_ms),
        ]
    return [
        "-o", output_path,
        "--width", str(config.width),
        "--height", str(config.height),
        "--quality", str(config.quality),
        "--timeout", str(config.timeout_ms),
    ]


class RpicamBackend(CameraBackend):
    """
    Camera backend that shells out to the Raspberry Pi still-capture tools.
    Implements the CameraBackend interface.

    The tools cannot be embedded as a live preview, so the preview surface is
    a placeholder that only reflects whether preview is on.
    """

    def __init__(
        self,
        logger,
        scheduler: Scheduler,
        photo_store: PhotoStore,
        probe: Optional[HostProbe] = None,
        config: Optional[StillCaptureConfig] = None,
        process_factory: Optional[Callable[[Scheduler, object], CaptureProcess]] = None,
    ):
        """
        Initialize the rpicam subprocess backend.

        Args:
            logger: Logger instance for logging operations.
            scheduler: UI scheduler.
            photo_store: Where captured photos are written.
            probe: Host probe used to confirm this is a Raspberry Pi.
            config: Still capture parameters.
            process_factory: Builds the child-process runner; defaults to ``CaptureProcess``.
        """
        super().__init__(logger, scheduler, photo_store)
        self.probe = probe or HostProbe()
        self.config = config or StillCaptureConfig()
        self._process_factory = process_factory or CaptureProcess
        self._process: Optional[CaptureProcess] = None
        self._surface: Optional[PlaceholderSurface] = None
        self._disconnect_finished: Optional[Callable[[], None]] = None
        self._current_file: Optional[str] = None
        self._current_token: Optional[int] = None

    def _check_camera_available(self) -> bool:
        return is_raspberry_pi(self.probe)

    def initialize(self) -> bool:
        if self._initialized:
            return True
        if self._refuse_reuse():
            return False

        self.logger.info("RpicamBackend: Initializing Raspberry Pi camera")
        if not self._check_camera_available():
            self.logger.warning("RpicamBackend: Camera not available (not running on a Raspberry Pi)")
            return False

        try:
            self.photo_store.ensure_directory()
        except OSError as e:
            self.logger.error(f"RpicamBackend: No usable photos directory: {e}")
            return False

        self._surface = PlaceholderSurface(f"{PREVIEW_TITLE}\nPreview")
        self._process = self._process_factory(self.scheduler, self.logger)
        self._disconnect_finished = self._process.finished.connect(self._on_process_finished)

        self._initialized = True
        self.logger.info("RpicamBackend: Initialization complete")
        return True

    def cleanup(self):
        if not self._initialized:
            self.cancel_capture()
            return

        self.logger.info("RpicamBackend: Cleaning up")
        self.stop_preview()
        self.cancel_capture()

        if self._process is not None:
            if self._disconnect_finished is not None:
                self._disconnect_finished()
                self._disconnect_finished = None
            if self._process.is_running:
                self._process.kill()
                self._process.wait(CLEANUP_WAIT)
            self._process = None

        if self._surface is not None:
            self._surface.release()
            self._surface = None

        self._initialized = False
        self._released = True

    def is_available(self) -> bool:
        return self._initialized and self._check_camera_available()

    def preview_surface(self) -> Optional[PlaceholderSurface]:
        return self._surface

    def start_preview(self):
        if not self._initialized or self._preview_active:
            return

        self.logger.info("RpicamBackend: Starting preview")
        self._surface.show(f"{PREVIEW_TITLE}\nPreview Active", "live")
        self._set_preview_active(True)

    def stop_preview(self):
        if not self._preview_active:
            return

        self.logger.info("RpicamBackend: Stopping preview")
        if self._surface is not None:
            self._surface.show(f"{PREVIEW_TITLE}\nPreview Stopped", "idle")
        self._set_preview_active(False)

    def _commands(self, output_path: str) -> List[Tuple[str, List[str]]]:
        return [
            (program, build_still_command(program, output_path, self.config))
            for program in (PREFERRED_PROGRAM, LEGACY_PROGRAM)
        ]

    def capture_photo(self):
        if not self._initialized:
            self._reject_later("Camera not initialized")
            return

        if self._process.is_running:
            self._reject_later("Capture already in progress")
            return

        output_path = self.photo_store.asset_path(PHOTO_PREFIX, "jpg")
        token = self._begin_capture()
        self._current_token = token
        self._current_file = output_path
        self.logger.info(f"RpicamBackend: Capturing photo to {output_path}")

        for attempt, (program, arguments) in enumerate(self._commands(output_path)):
            if attempt:
                self.logger.info(f"RpicamBackend: {PREFERRED_PROGRAM} failed, trying {program}")
            if self._process.start(program, arguments):
                return

        self._current_token = None
        self._fail_later(token, "Failed to start camera capture process")

    def cancel_capture(self):
        if self._process is not None and self._process.is_running:
            self.logger.info("RpicamBackend: Cancelling capture")
            self._process.kill()
        self._current_token = None
        super().cancel_capture()

    def _on_process_finished(self, exit_code: int, status: ExitStatus):
        self.logger.info(f"RpicamBackend: Capture process finished with exit code: {exit_code}")
        token, self._current_token = self._current_token, None
        if token is None:
            return

        if status != ExitStatus.NORMAL or exit_code != 0:
            self._finish_capture(token, error=f"Capture process failed with exit code: {exit_code}")
            return

        path = self._current_file
        if not path or not os.path.isfile(path):
            self._finish_capture(token, error="Captured photo file not found")
            return

        try:
            with Image.open(path) as img:
                img.load()
                photo = img.copy()
        except (OSError, UnidentifiedImageError) as e:
            self.logger.error(f"RpicamBackend: Failed to decode {path}: {e}")
            self._finish_capture(token, error="Failed to load captured photo")
            return

        if photo.width == 0 or photo.height == 0:
            self._finish_capture(token, error="Failed to load captured photo")
            return

        self.logger.info(f"RpicamBackend: Photo captured successfully: {path}")
        self._finish_capture(token, asset=PhotoAsset(image=photo, path=str(Path(path).resolve())))

    def get_backend_name(self) -> str:
        """
        Get a human-readable name for this backend.

        Returns:
            str: "rpicam-subprocess"
        """
        return "rpicam-subprocess"
