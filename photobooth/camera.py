from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from PIL import Image


class BackendKind(str, Enum):
    """Which camera backend to build. AUTO_DETECT defers to platform detection."""
    AUTO_DETECT = "auto"
    NATIVE = "native"
    SUBPROCESS = "subprocess"
    SIMULATOR = "simulator"


@dataclass(frozen=True)
class PhotoAsset:
    """
    A captured photo: the decoded bitmap and the file it was read from.

    The path always names a file that exists when the asset is delivered
    through ``photo_ready``; the image is that file's content.
    """
    image: Image.Image
    path: str

    @property
    def size(self) -> Tuple[int, int]:
        return self.image.size


@dataclass
class StillCaptureConfig:
    """
    Parameters for the external still-capture program on the single-board target.

    Defaults match what the booth ships with: a 1920x1080 JPEG at quality 95,
    taken immediately (1 ms preview timeout).
    """
    width: int = 1920
    height: int = 1080
    quality: int = 95  # JPEG quality (1-100)
    timeout_ms: int = 1  # Preview timeout before the shot, in ms

    @property
    def img_size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    def __repr__(self):
        return f"StillCaptureConfig({self.width}x{self.height}, q={self.quality}, t={self.timeout_ms}ms)"
