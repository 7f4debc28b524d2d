"""
OpenCV-based camera backend.

This backend drives a real camera through ``cv2.VideoCapture``. It supports
live preview (the ``VideoSurface`` reads and encodes a frame each time the UI
asks for one) and still capture to JPEG at the highest quality.

A capture crosses the scheduler twice, mirroring a media framework's
callbacks: first the frame is grabbed (image captured), then it is written
to disk (image saved). ``photo_ready`` is only emitted after the saved file
has been read back, so its path always names a file that exists.
"""

import os
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple

import cv2
from PIL import Image, UnidentifiedImageError

from ..camera import PhotoAsset
from ..preview import VideoSurface
from ..scheduler import Scheduler
from ..storage import PhotoStore
from .base import CameraBackend

PHOTO_PREFIX = "photo"
PREVIEW_JPEG_QUALITY = 80
STILL_JPEG_QUALITY = 100
MAX_PROBED_DEVICES = 4


def list_video_inputs(video_capture: Callable[[int], Any] = cv2.VideoCapture, max_devices: int = MAX_PROBED_DEVICES) -> List[int]:
    """
    Indices of video input devices that can be opened.

    Probing stops at the first index that fails to open.
    """
    devices = []
    for index in range(max_devices):
        device = video_capture(index)
        try:
            if not device.isOpened():
                break
            devices.append(index)
        finally:
            device.release()
    return devices


class OpenCVBackend(CameraBackend):
    """
    Camera backend using OpenCV.

    The device is opened and warmed up by ``initialize``; preview frames only
    flow while preview is active, and captures require an active preview.
    Concurrent captures are rejected.
    """

    def __init__(
        self,
        logger,
        scheduler: Scheduler,
        photo_store: PhotoStore,
        device_index: Optional[int] = None,
        resolution: Optional[tuple] = None,
        video_capture: Callable[[int], Any] = cv2.VideoCapture,
        max_devices: int = MAX_PROBED_DEVICES,
    ):
        """
        Initialize the OpenCV backend.

        Args:
            logger: Logger instance for logging operations.
            scheduler: UI scheduler.
            photo_store: Where captured photos are written.
            device_index: Camera to open; defaults to the first one found.
            resolution: Requested (width, height), if any.
            video_capture: Factory for capture devices (``cv2.VideoCapture``).
            max_devices: How many device indices to probe.
        """
        super().__init__(logger, scheduler, photo_store)
        self.device_index = device_index
        self.resolution = resolution
        self._video_capture = video_capture
        self._max_devices = max_devices
        self._device = None
        self._surface: Optional[VideoSurface] = None

    def initialize(self) -> bool:
        if self._initialized:
            return True
        if self._refuse_reuse():
            return False

        self.logger.info("OpenCVBackend: Initializing camera")
        devices = list_video_inputs(self._video_capture, self._max_devices)
        if not devices:
            self.logger.warning("OpenCVBackend: No cameras available")
            return False

        index = self.device_index if self.device_index is not None else devices[0]
        if index not in devices:
            self.logger.warning(f"OpenCVBackend: Camera {index} not found (found {devices})")
            return False

        device = None
        try:
            self.photo_store.ensure_directory()
            device = self._video_capture(index)
            if not device.isOpened():
                raise RuntimeError(f"Could not open camera {index}")
            if self.resolution:
                device.set(cv2.CAP_PROP_FRAME_WIDTH, self.resolution[0])
                device.set(cv2.CAP_PROP_FRAME_HEIGHT, self.resolution[1])
            # Warm-up: the first frames after opening are often dark or empty
            ok, _ = device.read()
            if not ok:
                raise RuntimeError(f"Camera {index} returned no frame")
        except (OSError, RuntimeError, cv2.error) as e:
            self.logger.error(f"OpenCVBackend: Failed to initialize camera {index}: {e}")
            if device is not None:
                device.release()
            return False

        self.logger.info(f"OpenCVBackend: Using camera {index}")
        self._device = device
        self._surface = VideoSurface(source=self._read_preview_frame)
        self._initialized = True
        self.logger.info("OpenCVBackend: Initialization complete")
        return True

    def cleanup(self):
        if not self._initialized:
            self.cancel_capture()
            return

        self.logger.info("OpenCVBackend: Cleaning up")
        self.stop_preview()
        self.cancel_capture()

        if self._device is not None:
            try:
                self._device.release()
            except cv2.error as e:
                self.logger.warning(f"OpenCVBackend: Error releasing camera: {e}")
            self._device = None

        if self._surface is not None:
            self._surface.release()
            self._surface = None

        self._initialized = False
        self._released = True

    def is_available(self) -> bool:
        return self._initialized and self._device is not None and self._device.isOpened()

    def preview_surface(self) -> Optional[VideoSurface]:
        return self._surface

    def start_preview(self):
        if not self._initialized or self._device is None:
            self.logger.warning("OpenCVBackend: Cannot start preview - camera not initialized")
            return

        if self._preview_active:
            self.logger.debug("OpenCVBackend: Preview already active")
            return

        self.logger.info("OpenCVBackend: Starting preview")
        self._set_preview_active(True)

    def stop_preview(self):
        if not self._initialized or not self._preview_active:
            return

        self.logger.info("OpenCVBackend: Stopping preview")
        self._surface.clear()
        self._set_preview_active(False)

    def _read_preview_frame(self) -> Optional[Tuple[bytes, Tuple[int, int]]]:
        """One JPEG preview frame, or None while preview is off or a still is being taken."""
        if not self._preview_active or self._device is None or self._pending:
            return None
        try:
            ok, frame = self._device.read()
            if not ok:
                return None
            ok, buffer = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, PREVIEW_JPEG_QUALITY])
        except cv2.error as e:
            self.logger.warning(f"OpenCVBackend: Preview frame failed: {e}")
            return None
        if not ok:
            return None
        height, width = frame.shape[:2]
        return buffer.tobytes(), (width, height)

    def capture_photo(self):
        if not self._initialized or self._device is None:
            self._reject_later("Camera not initialized")
            return

        if not self._preview_active:
            self._reject_later("Camera preview not active")
            return

        if self._pending:
            self._reject_later("Capture already in progress")
            return

        if not self._device.isOpened():
            self._reject_later("Camera not ready for capture")
            return

        output_path = self.photo_store.asset_path(PHOTO_PREFIX, "jpg")
        token = self._begin_capture()
        self.logger.info(f"OpenCVBackend: Capturing photo to {output_path}")
        self.scheduler.call_soon(self._grab_still, token, output_path)

    def _grab_still(self, token: int, output_path: str):
        if token not in self._pending or self._device is None:
            return
        try:
            ok, frame = self._device.read()
        except cv2.error as e:
            self.logger.error(f"OpenCVBackend: Frame grab failed: {e}")
            ok, frame = False, None
        if not ok or frame is None:
            self._finish_capture(token, error="Failed to capture image")
            return

        height, width = frame.shape[:2]
        self.logger.info(f"OpenCVBackend: Image captured, size: {width}x{height}")
        self.scheduler.call_soon(self._save_still, token, output_path, frame)

    def _save_still(self, token: int, output_path: str, frame):
        if token not in self._pending:
            return
        # imwrite reports an unwritable target as a plain False
        if not os.access(os.path.dirname(output_path) or ".", os.W_OK):
            self._finish_capture(token, error=f"Permission denied: {output_path}")
            return
        try:
            saved = cv2.imwrite(output_path, frame, [cv2.IMWRITE_JPEG_QUALITY, STILL_JPEG_QUALITY])
        except cv2.error as e:
            self.logger.error(f"OpenCVBackend: Failed to encode {output_path}: {e}")
            saved = False
        if not saved:
            self._finish_capture(token, error="Failed to save captured image")
            return

        self._on_image_saved(token, output_path)

    def _on_image_saved(self, token: int, output_path: str):
        self.logger.info(f"OpenCVBackend: Image saved to {output_path}")
        try:
            with Image.open(output_path) as img:
                photo = img.convert("RGB")
        except PermissionError:
            self._finish_capture(token, error=f"Permission denied: {output_path}")
            return
        except (OSError, UnidentifiedImageError) as e:
            self.logger.error(f"OpenCVBackend: Failed to load {output_path}: {e}")
            self._finish_capture(token, error="Failed to load captured image")
            return

        self._finish_capture(token, asset=PhotoAsset(image=photo, path=str(Path(output_path).resolve())))

    def get_backend_name(self) -> str:
        return "opencv"
