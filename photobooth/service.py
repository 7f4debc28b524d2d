"""
Wires the booth together: photo store, choice catalog, camera selector and
capture coordinator, built from the application settings.
"""

import logging
from pathlib import Path
from typing import Optional

from .camera import BackendKind, StillCaptureConfig
from .coordinator import CaptureCoordinator
from .host import HostProbe
from .scheduler import Scheduler
from .selector import CameraSelector
from .session import ChoiceCatalog
from .storage import PhotoStore
from .utils import parse_log_level, setup_rotating_logger

logger = logging.getLogger(__name__)

LOG_FILE_NAME = "photobooth.log"


class PhotoBoothService:
    """
    Owns everything the kiosk needs for one application run.

    Construction does no I/O; ``start`` loads the catalog and brings up the
    camera, ``shutdown`` releases it.
    """

    def __init__(
        self,
        settings,
        scheduler: Scheduler,
        probe: Optional[HostProbe] = None,
        photo_store: Optional[PhotoStore] = None,
        catalog: Optional[ChoiceCatalog] = None,
        selector: Optional[CameraSelector] = None,
    ):
        self.settings = settings
        self.scheduler = scheduler
        self.photo_store = photo_store or PhotoStore(settings.PHOTOS_DIR)
        self._catalog = catalog
        self.selector = selector or CameraSelector(
            scheduler,
            self.photo_store,
            probe=probe,
            logger=logging.getLogger("photobooth.camera"),
            still_config=StillCaptureConfig(
                width=settings.CAPTURE_WIDTH,
                height=settings.CAPTURE_HEIGHT,
                quality=settings.CAPTURE_QUALITY,
            ),
            device_index=settings.CAMERA_DEVICE_INDEX,
        )
        self.coordinator: Optional[CaptureCoordinator] = None

    @property
    def catalog(self) -> ChoiceCatalog:
        if self._catalog is None:
            self._catalog = ChoiceCatalog.load(Path(self.settings.CHOICES_DIR))
        return self._catalog

    @property
    def started(self) -> bool:
        return self.coordinator is not None and not self.coordinator.is_shut_down

    def start(self) -> CaptureCoordinator:
        if self.started:
            return self.coordinator

        log_file = Path(self.settings.LOG_DIR) / LOG_FILE_NAME
        setup_rotating_logger(str(log_file), "photobooth", level=parse_log_level(self.settings.LOG_LEVEL))
        logger.info(f"Starting {self.settings.APP_NAME}")

        self.coordinator = CaptureCoordinator(
            self.scheduler,
            self.selector,
            self.catalog,
            countdown_seconds=self.settings.COUNTDOWN_SECONDS,
        )
        requested = BackendKind(self.settings.CAMERA_BACKEND)
        if not self.coordinator.setup_camera(requested):
            logger.error("Photo booth running without a camera")
        return self.coordinator

    def describe_camera(self) -> str:
        if self.coordinator is None or self.coordinator.camera_kind is None:
            return "No Camera"
        return self.selector.describe(self.coordinator.camera_kind)

    def shutdown(self) -> None:
        if self.coordinator is not None:
            self.coordinator.shutdown()
        logger.info(f"{self.settings.APP_NAME} stopped")
