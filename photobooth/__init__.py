"""
Photo Booth capture module

Camera abstraction (OpenCV, Raspberry Pi subprocess, simulator), platform
detection and the countdown-driven capture state machine.
"""

from .camera import BackendKind, PhotoAsset, StillCaptureConfig
from .backends import CameraBackend, OpenCVBackend, RpicamBackend, SimulatorBackend
from .coordinator import CaptureCoordinator, CapturePhase, CaptureState, CaptureStateError
from .host import HostProbe
from .scheduler import AsyncioScheduler, ManualScheduler, Scheduler, Timer
from .selector import CameraSelector
from .session import ChoiceCatalog, SessionRecord
from .storage import PhotoStore

__all__ = [
    'BackendKind',
    'PhotoAsset',
    'StillCaptureConfig',
    'CameraBackend',
    'OpenCVBackend',
    'RpicamBackend',
    'SimulatorBackend',
    'CaptureCoordinator',
    'CapturePhase',
    'CaptureState',
    'CaptureStateError',
    'HostProbe',
    'AsyncioScheduler',
    'ManualScheduler',
    'Scheduler',
    'Timer',
    'CameraSelector',
    'ChoiceCatalog',
    'SessionRecord',
    'PhotoStore',
]
