"""
Abstract base class for camera backends.

Defines the interface that all camera backend implementations must follow.
"""

import itertools
from abc import ABC, abstractmethod
from typing import Optional, Set

from ..camera import PhotoAsset
from ..preview import PreviewSurface
from ..scheduler import Scheduler
from ..signals import Signal
from ..storage import PhotoStore


class CameraBackend(ABC):
    """
    Abstract base class for camera backends.

    All backend implementations (OpenCV, subprocess, simulator) must implement
    these methods to provide a consistent interface for the capture coordinator.

    Contract methods never raise. Capture results and failures are reported
    through the ``photo_ready`` and ``capture_error`` signals, which are always
    delivered on the scheduler after ``capture_photo`` has returned. Each
    ``capture_photo`` call produces at most one of them, and none at all once
    ``cancel_capture`` or ``cleanup`` has been called.
    """

    def __init__(self, logger, scheduler: Scheduler, photo_store: PhotoStore):
        """
        Initialize the camera backend.

        Args:
            logger: Logger instance for logging operations.
            scheduler: The UI scheduler all callbacks and events run on.
            photo_store: Where captured photos are written.
        """
        self.logger = logger
        self.scheduler = scheduler
        self.photo_store = photo_store

        self.photo_ready = Signal("photo_ready")
        self.capture_error = Signal("capture_error")
        self.preview_started = Signal("preview_started")
        self.preview_stopped = Signal("preview_stopped")

        self._initialized = False
        self._released = False
        self._preview_active = False
        self._pending: Set[int] = set()
        self._rejections: Set[int] = set()
        self._tokens = itertools.count(1)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    def initialize(self) -> bool:
        """
        Prepare the camera for use.

        Idempotent: returns True without side effects if already initialized.
        Returns False if the backend's prerequisites are missing. Must not raise.
        """
        pass

    @abstractmethod
    def cleanup(self):
        """
        Stop preview and capture, release device handles.

        Idempotent, and safe to call during shutdown. The instance cannot be
        initialized again afterwards.
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """
        Check if the camera is initialized and its device or tool is reachable.

        Returns:
            bool: True if the camera can be used, False otherwise.
        """
        pass

    # ------------------------------------------------------------------
    # Preview
    # ------------------------------------------------------------------

    @abstractmethod
    def preview_surface(self) -> Optional[PreviewSurface]:
        """The surface the UI renders preview into. Stable once initialized."""
        pass

    @abstractmethod
    def start_preview(self):
        pass

    @abstractmethod
    def stop_preview(self):
        pass

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    @abstractmethod
    def capture_photo(self):
        """
        Begin an asynchronous capture and return promptly.

        Exactly one of ``photo_ready(PhotoAsset)`` or ``capture_error(str)``
        follows, unless the capture is cancelled first.
        """
        pass

    def cancel_capture(self):
        """Best-effort cancellation of in-flight captures. No events follow for them."""
        if self._pending:
            self.logger.info(f"{self.get_backend_name()}: Cancelling {len(self._pending)} pending capture(s)")
        self._pending.clear()
        self._rejections.clear()

    # ------------------------------------------------------------------
    # Helpers for implementations
    # ------------------------------------------------------------------

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def preview_active(self) -> bool:
        return self._preview_active

    @property
    def capture_in_progress(self) -> bool:
        return bool(self._pending)

    def get_backend_name(self) -> str:
        """
        Get a human-readable name for this backend.

        Returns:
            str: Backend name (e.g., "opencv", "rpicam-subprocess").
        """
        return self.__class__.__name__

    def _refuse_reuse(self) -> bool:
        """Log and return True if ``cleanup`` already ran on this instance."""
        if self._released:
            self.logger.warning(f"{self.get_backend_name()}: Instance was cleaned up and cannot be reused")
            return True
        return False

    def _set_preview_active(self, active: bool) -> None:
        """Record the preview state and emit the matching event on a change."""
        if active == self._preview_active:
            return
        self._preview_active = active
        if active:
            self.preview_started.emit()
        else:
            self.preview_stopped.emit()

    def _begin_capture(self) -> int:
        """Register a new capture request and return its token."""
        token = next(self._tokens)
        self._pending.add(token)
        return token

    def _finish_capture(self, token: int, asset: Optional[PhotoAsset] = None, error: Optional[str] = None) -> None:
        """
        Deliver the terminal event for ``token``.

        Nothing is emitted if the request was cancelled or already finished.
        """
        if token not in self._pending:
            self.logger.debug(f"{self.get_backend_name()}: Dropping result of cancelled capture {token}")
            return
        self._pending.discard(token)
        if error is not None or asset is None:
            message = error or "Capture failed"
            self.logger.warning(f"{self.get_backend_name()}: Capture error: {message}")
            self.capture_error.emit(message)
        else:
            self.photo_ready.emit(asset)

    def _fail_later(self, token: int, error: str) -> None:
        """Report a failure found inside ``capture_photo`` once the call has returned."""
        self.scheduler.call_soon(self._finish_capture, token, None, error)

    def _reject_later(self, error: str) -> None:
        """
        Refuse a capture request without touching requests already in flight.

        Rejections get their own token so that ``cancel_capture`` can drop them
        too, but they do not count as a capture in progress.
        """
        self.logger.warning(f"{self.get_backend_name()}: Capture rejected: {error}")
        token = next(self._tokens)
        self._rejections.add(token)
        self.scheduler.call_soon(self._emit_rejection, token, error)

    def _emit_rejection(self, token: int, error: str) -> None:
        if token not in self._rejections:
            return
        self._rejections.discard(token)
        if not self._released:
            self.capture_error.emit(error)

    def __repr__(self):
        state = "initialized" if self._initialized else ("released" if self._released else "constructed")
        return f"<{self.__class__.__name__} {state} preview={self._preview_active}>"
