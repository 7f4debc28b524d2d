"""
Host inspection used for camera selection.

Everything the selector needs to know about the machine goes through a
``HostProbe`` so that detection can be tested without touching the real
filesystem.
"""

import importlib.util
import logging
import platform
import socket
import sys
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEVICE_TREE_MODEL = Path("/proc/device-tree/model")


class HostProbe:
    """Reads files and host information. Override methods to fake a host."""

    def read_text(self, path: Path) -> Optional[str]:
        """UTF-8 content of ``path``, or None if it cannot be read."""
        try:
            return Path(path).read_bytes().decode("utf-8", errors="replace")
        except OSError:
            return None

    def hostname(self) -> str:
        return socket.gethostname()

    def product_type(self) -> str:
        """Distribution id (e.g. "raspbian", "debian"), else the OS name."""
        try:
            return platform.freedesktop_os_release().get("ID", "")
        except OSError:
            return platform.system()

    def is_development_host(self) -> bool:
        """Development builds run on macOS, where the simulator is always used."""
        return sys.platform == "darwin"

    def has_native_multimedia(self) -> bool:
        return importlib.util.find_spec("cv2") is not None


def device_tree_model(probe: HostProbe) -> Optional[str]:
    model = probe.read_text(DEVICE_TREE_MODEL)
    if model is None:
        return None
    # The device tree stores a NUL-terminated string
    return model.replace("\x00", "").strip()


def is_raspberry_pi(probe: HostProbe) -> bool:
    """
    True if the host is a Raspberry Pi.

    Evidence, in priority order: the device-tree model names a Raspberry Pi;
    or the hostname / product type contains "raspberry".
    """
    model = device_tree_model(probe)
    if model and "raspberry pi" in model.lower():
        logger.debug(f"Detected Raspberry Pi via device tree: {model}")
        return True

    if "raspberry" in probe.hostname().lower() or "raspberry" in probe.product_type().lower():
        logger.debug("Detected Raspberry Pi via hostname/product type")
        return True

    return False
