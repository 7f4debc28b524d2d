"""
Capture coordinator: the state machine between the kiosk UI and the camera.

The coordinator owns the camera, the current ``SessionRecord`` and three
timers (the 1 s countdown tick, the 500 ms delay between the capture
indicator and the shutter, and the 3 s error banner). It never blocks;
everything after an intent happens in timer or camera callbacks on the
scheduler.

    Idle --begin--> Previewing --request_capture--> CountingDown(N)
    CountingDown(k>1) --tick--> CountingDown(k-1)
    CountingDown(1) --tick--> Capturing --photo_ready--> Reviewing
    Capturing --capture_error--> Errored --3 s--> Previewing
    Reviewing --retake--> Previewing
    Reviewing --finish--> Idle
    any --cancel--> Idle
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from .backends import CameraBackend
from .camera import BackendKind, PhotoAsset
from .preview import PreviewSurface
from .scheduler import Scheduler, Timer
from .selector import CameraSelector
from .session import ChoiceCatalog, SessionRecord
from .signals import Signal

COUNTDOWN_SECONDS = 3
TICK_INTERVAL = 1.0  # seconds
CAPTURE_DELAY = 0.5  # seconds between the capture indicator and the shutter
ERROR_DWELL = 3.0  # seconds the error banner stays up

CAPTURE_INDICATOR = "📸"
ERROR_BANNER = "Error!"


class CaptureStateError(RuntimeError):
    """An intent that is not allowed in the coordinator's current state."""


class CapturePhase(str, Enum):
    IDLE = "idle"
    PREVIEWING = "previewing"
    COUNTING_DOWN = "counting_down"
    CAPTURING = "capturing"
    REVIEWING = "reviewing"
    ERRORED = "errored"


@dataclass(frozen=True)
class CaptureState:
    """
    Current coordinator state.

    ``remaining`` is only set while counting down, ``photo`` only while
    reviewing and ``message`` only in the error state.
    """
    phase: CapturePhase
    remaining: Optional[int] = None
    photo: Optional[PhotoAsset] = None
    message: Optional[str] = None

    @classmethod
    def idle(cls) -> "CaptureState":
        return cls(CapturePhase.IDLE)

    @classmethod
    def previewing(cls) -> "CaptureState":
        return cls(CapturePhase.PREVIEWING)

    @classmethod
    def counting_down(cls, remaining: int) -> "CaptureState":
        return cls(CapturePhase.COUNTING_DOWN, remaining=remaining)

    @classmethod
    def capturing(cls) -> "CaptureState":
        return cls(CapturePhase.CAPTURING)

    @classmethod
    def reviewing(cls, photo: PhotoAsset) -> "CaptureState":
        return cls(CapturePhase.REVIEWING, photo=photo)

    @classmethod
    def errored(cls, message: str) -> "CaptureState":
        return cls(CapturePhase.ERRORED, message=message)

    @property
    def path(self) -> Optional[str]:
        return self.photo.path if self.photo is not None else None

    def __repr__(self):
        if self.phase == CapturePhase.COUNTING_DOWN:
            return f"CaptureState(counting_down, remaining={self.remaining})"
        if self.phase == CapturePhase.REVIEWING:
            return f"CaptureState(reviewing, path={self.path})"
        if self.phase == CapturePhase.ERRORED:
            return f"CaptureState(errored, message={self.message!r})"
        return f"CaptureState({self.phase.value})"


class CaptureCoordinator:
    """
    Drives a capture session.

    Intents (``begin``, ``request_capture``, ``retake``, ``finish``) raise
    ``CaptureStateError`` when the current state does not allow them, and
    change nothing in that case. Timer ticks and camera events that arrive
    in a state that does not expect them are ignored.

    Signals:
        state_changed(CaptureState)
        overlay_changed(Optional[str]): countdown digit, capture indicator,
            error banner, or None when the overlay is hidden.
        session_ended(SessionRecord)
    """

    def __init__(
        self,
        scheduler: Scheduler,
        selector: CameraSelector,
        catalog: ChoiceCatalog,
        countdown_seconds: int = COUNTDOWN_SECONDS,
        logger: Optional[logging.Logger] = None,
    ):
        if countdown_seconds < 1:
            raise ValueError("countdown_seconds must be at least 1")
        self.scheduler = scheduler
        self.selector = selector
        self.catalog = catalog
        self.countdown_seconds = countdown_seconds
        self.logger = logger or logging.getLogger(__name__)

        self.state_changed = Signal("state_changed")
        self.overlay_changed = Signal("overlay_changed")
        self.session_ended = Signal("session_ended")

        self._state = CaptureState.idle()
        self._overlay: Optional[str] = None
        self._session: Optional[SessionRecord] = None
        self._camera: Optional[CameraBackend] = None
        self._camera_kind: Optional[BackendKind] = None
        self._camera_connections: List[Callable[[], None]] = []
        self._shut_down = False

        self._countdown_timer = Timer(scheduler, TICK_INTERVAL, self._on_countdown_tick)
        self._capture_timer = Timer(scheduler, CAPTURE_DELAY, self._on_capture_delay_elapsed, single_shot=True)
        self._error_timer = Timer(scheduler, ERROR_DWELL, self._on_error_dwell_elapsed, single_shot=True)

    # ------------------------------------------------------------------
    # Read-only views for the UI
    # ------------------------------------------------------------------

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def overlay(self) -> Optional[str]:
        return self._overlay

    @property
    def session(self) -> Optional[SessionRecord]:
        return self._session

    @property
    def camera(self) -> Optional[CameraBackend]:
        return self._camera

    @property
    def camera_kind(self) -> Optional[BackendKind]:
        return self._camera_kind

    @property
    def capture_enabled(self) -> bool:
        return self._camera is not None and self._camera.is_available()

    @property
    def is_shut_down(self) -> bool:
        return self._shut_down

    def preview_surface(self) -> Optional[PreviewSurface]:
        return self._camera.preview_surface() if self._camera is not None else None

    # ------------------------------------------------------------------
    # Camera setup
    # ------------------------------------------------------------------

    def setup_camera(self, kind: BackendKind = BackendKind.AUTO_DETECT) -> bool:
        """
        Create and initialize the camera, falling back to the simulator.

        If neither the requested camera nor the simulator initializes, the
        booth keeps running with capture disabled.

        Returns:
            bool: True if a camera is ready.
        """
        self._ensure_running()
        if self._state.phase != CapturePhase.IDLE:
            raise CaptureStateError(f"Cannot change camera while {self._state.phase.value}")
        self._release_camera()

        resolved = self.selector.resolve(kind)
        if self._try_camera(resolved):
            return True

        if resolved != BackendKind.SIMULATOR:
            self.logger.warning(
                f"{self.selector.describe(resolved)} failed to initialize, falling back to "
                f"{self.selector.describe(BackendKind.SIMULATOR)}"
            )
            if self._try_camera(BackendKind.SIMULATOR):
                return True

        self.logger.error("No camera could be initialized, capture is disabled")
        return False

    def _try_camera(self, kind: BackendKind) -> bool:
        camera = self.selector.create(kind)
        if not camera.initialize():
            camera.cleanup()
            return False

        self._camera = camera
        self._camera_kind = kind
        self._camera_connections = [
            camera.photo_ready.connect(self._on_photo_ready),
            camera.capture_error.connect(self._on_capture_error),
        ]
        self.logger.info(f"Camera ready: {self.selector.describe(kind)} ({camera.get_backend_name()})")
        return True

    def _release_camera(self):
        for disconnect in self._camera_connections:
            disconnect()
        self._camera_connections = []
        if self._camera is not None:
            self._camera.cleanup()
            self._camera = None
            self._camera_kind = None

    # ------------------------------------------------------------------
    # Session intents (start, choice and name screens)
    # ------------------------------------------------------------------

    def start_session(self) -> SessionRecord:
        """Start a new run, replacing any previous session record."""
        self._ensure_running()
        if self._state.phase != CapturePhase.IDLE:
            raise CaptureStateError(f"Cannot start a session while {self._state.phase.value}")
        self._end_session("replaced")
        self._session = SessionRecord(self.catalog)
        self.logger.info("Session started")
        return self._session

    def choose(self, category: str, choice_id: str) -> None:
        self._require_session().choose(category, choice_id)
        self.logger.info(f"Session choice: {category} = {choice_id}")

    def set_user_name(self, name: str) -> None:
        self._require_session().user_name = name.strip()

    def _require_session(self) -> SessionRecord:
        self._ensure_running()
        if self._session is None:
            raise CaptureStateError("No active session")
        return self._session

    def _end_session(self, reason: str) -> Optional[SessionRecord]:
        record, self._session = self._session, None
        if record is not None:
            self.logger.info(f"Session ended ({reason}): {record.summary()}")
            self.session_ended.emit(record)
        return record

    # ------------------------------------------------------------------
    # Capture intents (camera screen)
    # ------------------------------------------------------------------

    def begin(self) -> None:
        self._require_phase("begin", CapturePhase.IDLE)
        if not self.capture_enabled:
            raise CaptureStateError("Camera not available")
        if self._session is None:
            self._session = SessionRecord(self.catalog)
            self.logger.info("Session started")

        self._camera.start_preview()
        self._set_state(CaptureState.previewing())

    def request_capture(self) -> None:
        self._require_phase("request_capture", CapturePhase.PREVIEWING)
        self._set_state(CaptureState.counting_down(self.countdown_seconds))
        self._set_overlay(str(self.countdown_seconds))
        self._countdown_timer.start()

    def retake(self) -> None:
        self._require_phase("retake", CapturePhase.REVIEWING)
        if self._session is not None:
            self._session.captured_photo_path = None
        self._camera.start_preview()
        self._set_state(CaptureState.previewing())

    def finish(self) -> Optional[SessionRecord]:
        """Accept the photo under review and end the session."""
        self._require_phase("finish", CapturePhase.REVIEWING)
        self._camera.stop_preview()
        record = self._end_session("finished")
        self._set_state(CaptureState.idle())
        return record

    def cancel(self) -> None:
        """Abandon the run from any state."""
        self._ensure_running()
        self._stop_timers()
        if self._camera is not None:
            self._camera.cancel_capture()
            self._camera.stop_preview()
        self._end_session("cancelled")
        self._set_overlay(None)
        if self._state.phase != CapturePhase.IDLE:
            self._set_state(CaptureState.idle())

    def shutdown(self) -> None:
        """Cancel everything and release the camera. The coordinator is unusable afterwards."""
        if self._shut_down:
            return
        self.logger.info("Shutting down capture coordinator")
        self.cancel()
        self._release_camera()
        self._shut_down = True

    # ------------------------------------------------------------------
    # Timer and camera callbacks
    # ------------------------------------------------------------------

    def _on_countdown_tick(self):
        if self._state.phase != CapturePhase.COUNTING_DOWN:
            self.logger.debug(f"Ignoring countdown tick while {self._state.phase.value}")
            self._countdown_timer.stop()
            return

        remaining = self._state.remaining
        if remaining > 1:
            self._set_state(CaptureState.counting_down(remaining - 1))
            self._set_overlay(str(remaining - 1))
            return

        self._countdown_timer.stop()
        self._set_state(CaptureState.capturing())
        self._set_overlay(CAPTURE_INDICATOR)
        self._capture_timer.start()

    def _on_capture_delay_elapsed(self):
        if self._state.phase != CapturePhase.CAPTURING:
            self.logger.debug(f"Ignoring capture trigger while {self._state.phase.value}")
            return
        self.logger.info("Triggering camera capture")
        self._camera.capture_photo()

    def _on_photo_ready(self, asset: PhotoAsset):
        if self._state.phase != CapturePhase.CAPTURING:
            self.logger.debug(f"Ignoring photo {asset.path} while {self._state.phase.value}")
            return

        self.logger.info(f"Photo captured: {asset.path}")
        if self._session is not None:
            self._session.captured_photo_path = asset.path
        self._camera.stop_preview()
        self._set_overlay(None)
        self._set_state(CaptureState.reviewing(asset))

    def _on_capture_error(self, message: str):
        if self._state.phase != CapturePhase.CAPTURING:
            self.logger.debug(f"Ignoring capture error while {self._state.phase.value}: {message}")
            return

        self.logger.warning(f"Capture failed: {message}")
        self._set_overlay(ERROR_BANNER)
        self._set_state(CaptureState.errored(message))
        self._error_timer.start()

    def _on_error_dwell_elapsed(self):
        if self._state.phase != CapturePhase.ERRORED:
            return
        self._set_overlay(None)
        self._camera.start_preview()
        self._set_state(CaptureState.previewing())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_running(self):
        if self._shut_down:
            raise CaptureStateError("Capture coordinator has been shut down")

    def _require_phase(self, intent: str, phase: CapturePhase):
        self._ensure_running()
        if self._state.phase != phase:
            raise CaptureStateError(f"Cannot {intent} while {self._state.phase.value}")

    def _stop_timers(self):
        self._countdown_timer.stop()
        self._capture_timer.stop()
        self._error_timer.stop()

    def _set_state(self, state: CaptureState):
        self.logger.debug(f"State: {self._state!r} -> {state!r}")
        self._state = state
        self.state_changed.emit(state)

    def _set_overlay(self, text: Optional[str]):
        if text == self._overlay:
            return
        self._overlay = text
        self.overlay_changed.emit(text)
