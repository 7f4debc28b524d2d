"""
Camera backend abstraction layer.

This module provides a unified interface for the camera backends
(OpenCV, subprocess/libcamera-still and the simulator), so the capture
coordinator never needs to know which one it is driving.
"""

from .base import CameraBackend
from .opencv_backend import OpenCVBackend
from .process import CaptureProcess, ExitStatus
from .simulator_backend import SimulatorBackend
from .subprocess_backend import RpicamBackend

__all__ = ['CameraBackend', 'OpenCVBackend', 'RpicamBackend', 'SimulatorBackend', 'CaptureProcess', 'ExitStatus']
