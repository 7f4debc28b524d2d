"""
Camera selection.

Decides which backend to build, from an explicit request or by looking at
the host, and constructs it. Initialization and the fallback to the
simulator are left to the caller (the capture coordinator).
"""

import logging
from typing import Any, Callable, Dict, Optional

from .backends import CameraBackend, OpenCVBackend, RpicamBackend, SimulatorBackend
from .camera import BackendKind, StillCaptureConfig
from .host import HostProbe, is_raspberry_pi
from .scheduler import Scheduler
from .storage import PhotoStore

DESCRIPTIONS: Dict[BackendKind, str] = {
    BackendKind.NATIVE: "Native Camera (OpenCV)",
    BackendKind.SUBPROCESS: "Raspberry Pi Camera",
    BackendKind.SIMULATOR: "Simulator Camera",
    BackendKind.AUTO_DETECT: "Auto Detect",
}


class CameraSelector:
    """
    Builds camera backends for this host.

    Everything a backend needs (scheduler, photo store, host probe, capture
    parameters, device factories) is given to the selector once and passed
    on to whichever backend it creates.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        photo_store: PhotoStore,
        probe: Optional[HostProbe] = None,
        logger: Optional[logging.Logger] = None,
        still_config: Optional[StillCaptureConfig] = None,
        process_factory: Optional[Callable[..., Any]] = None,
        video_capture: Optional[Callable[[int], Any]] = None,
        device_index: Optional[int] = None,
        simulator_delay: Optional[float] = None,
    ):
        self.scheduler = scheduler
        self.photo_store = photo_store
        self.probe = probe or HostProbe()
        self.logger = logger or logging.getLogger("photobooth.camera")
        self.still_config = still_config or StillCaptureConfig()
        self.process_factory = process_factory
        self.video_capture = video_capture
        self.device_index = device_index
        self.simulator_delay = simulator_delay

    def detect_best_backend(self) -> BackendKind:
        """
        Pick the backend for this host.

        Development hosts always get the simulator; a Raspberry Pi gets the
        subprocess backend; otherwise OpenCV if it is installed, else the
        simulator.
        """
        if self.probe.is_development_host():
            self.logger.info("Development host detected, using simulator camera")
            return BackendKind.SIMULATOR

        if is_raspberry_pi(self.probe):
            self.logger.info("Raspberry Pi detected, using subprocess camera")
            return BackendKind.SUBPROCESS

        if self.probe.has_native_multimedia():
            self.logger.info("OpenCV available, using native camera")
            return BackendKind.NATIVE

        self.logger.info("No camera framework found, using simulator camera")
        return BackendKind.SIMULATOR

    def resolve(self, kind: BackendKind = BackendKind.AUTO_DETECT) -> BackendKind:
        """The kind ``create(kind)`` will actually build."""
        kind = BackendKind(kind)
        if self.probe.is_development_host():
            if kind not in (BackendKind.SIMULATOR, BackendKind.AUTO_DETECT):
                self.logger.info(f"Ignoring requested {kind.value} camera on development host")
            return BackendKind.SIMULATOR
        if kind == BackendKind.AUTO_DETECT:
            return self.detect_best_backend()
        return kind

    def create(self, kind: BackendKind = BackendKind.AUTO_DETECT) -> CameraBackend:
        """
        Construct (but do not initialize) a camera backend.

        Args:
            kind: Requested backend; AUTO_DETECT runs ``detect_best_backend``.

        Returns:
            CameraBackend: A fresh, uninitialized backend instance.
        """
        kind = self.resolve(kind)
        self.logger.info(f"Creating camera: {self.describe(kind)}")

        if kind == BackendKind.SUBPROCESS:
            return RpicamBackend(
                self.logger,
                self.scheduler,
                self.photo_store,
                probe=self.probe,
                config=self.still_config,
                process_factory=self.process_factory,
            )

        if kind == BackendKind.NATIVE:
            kwargs = {}
            if self.video_capture is not None:
                kwargs["video_capture"] = self.video_capture
            return OpenCVBackend(
                self.logger,
                self.scheduler,
                self.photo_store,
                device_index=self.device_index,
                resolution=self.still_config.img_size,
                **kwargs,
            )

        kwargs = {}
        if self.simulator_delay is not None:
            kwargs["capture_delay"] = self.simulator_delay
        return SimulatorBackend(self.logger, self.scheduler, self.photo_store, **kwargs)

    @staticmethod
    def describe(kind: BackendKind) -> str:
        return DESCRIPTIONS.get(BackendKind(kind), "Unknown Camera")
