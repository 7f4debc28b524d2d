"""
On-disk location for captured photos.

Photos go to ``<user pictures>/PhotoBooth``. If that directory cannot be
created, the store falls back to the user's temp directory so a capture can
still be saved somewhere.
"""

import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)

SUBDIRECTORY = "PhotoBooth"
TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


def user_dirs_file() -> Path:
    config_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(config_home) / "user-dirs.dirs"


def read_user_dir(name: str, path: Optional[Path] = None) -> Optional[Path]:
    """
    Look up ``name`` (e.g. ``XDG_PICTURES_DIR``) in the xdg-user-dirs file.

    Lines look like ``XDG_PICTURES_DIR="$HOME/Bilder"``; values are either
    absolute or relative to ``$HOME``. Returns None when the file or the
    entry is missing.
    """
    path = path or user_dirs_file()
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return None

    home = str(Path.home())
    for line in lines:
        key, sep, value = line.strip().partition("=")
        if not sep or key != name:
            continue
        value = value.strip().strip('"')
        if value.startswith("$HOME"):
            value = home + value[len("$HOME"):]
        if not value:
            return None
        return Path(value) if os.path.isabs(value) else Path(home) / value
    return None


def user_pictures_dir() -> Path:
    """
    Per-user pictures location.

    Honors ``XDG_PICTURES_DIR`` from the environment, then the entry in
    ``user-dirs.dirs``, otherwise ``~/Pictures`` (the location desktop Linux
    and macOS both use).
    """
    xdg = os.environ.get("XDG_PICTURES_DIR")
    if xdg:
        return Path(os.path.expandvars(xdg)).expanduser()
    configured = read_user_dir("XDG_PICTURES_DIR")
    if configured is not None:
        return configured
    return Path.home() / "Pictures"


def user_temp_dir() -> Path:
    return Path(tempfile.gettempdir())


class PhotoStore:
    """
    Resolves and creates the photos directory and names new assets.

    The directory is resolved lazily, on the first call that needs it, and
    cached afterwards.
    """

    def __init__(
        self,
        base_dir: Optional[Path] = None,
        clock: Callable[[], datetime] = datetime.now,
        fallback_dir: Optional[Path] = None,
    ):
        """
        Args:
            base_dir: Directory photos are written to. Defaults to
                ``<user pictures>/PhotoBooth``.
            clock: Source of local wall-clock time for file names.
            fallback_dir: Used when ``base_dir`` cannot be created. Defaults
                to the user's temp directory.
        """
        self._requested = Path(base_dir) if base_dir is not None else None
        self._fallback = Path(fallback_dir) if fallback_dir is not None else None
        self._clock = clock
        self._directory: Optional[Path] = None

    @property
    def directory(self) -> Path:
        return self.ensure_directory()

    def ensure_directory(self) -> Path:
        """Create the photos directory if needed and return it."""
        if self._directory is not None and self._directory.is_dir():
            return self._directory

        target = self._requested or (user_pictures_dir() / SUBDIRECTORY)
        try:
            target.mkdir(parents=True, exist_ok=True)
            logger.info(f"Photos directory: {target}")
            self._directory = target.resolve()
        except OSError as e:
            fallback = self._fallback or user_temp_dir()
            logger.warning(f"Failed to create photos directory {target}: {e}. Using {fallback}")
            fallback.mkdir(parents=True, exist_ok=True)
            self._directory = fallback.resolve()
        return self._directory

    def timestamp(self) -> str:
        return self._clock().strftime(TIMESTAMP_FORMAT)

    def asset_path(self, prefix: str, extension: str) -> str:
        """
        Absolute path for a new asset: ``<dir>/<prefix>_<yyyy-MM-dd_hh-mm-ss>.<ext>``.

        Args:
            prefix: Origin of the asset, e.g. "photo", "pi_photo", "mock_photo".
            extension: File extension with or without the leading dot.
        """
        extension = extension.lstrip(".")
        return str(self.ensure_directory() / f"{prefix}_{self.timestamp()}.{extension}")

    def __repr__(self):
        return f"PhotoStore({self._directory or self._requested or 'unresolved'})"
