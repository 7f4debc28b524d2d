"""
Preview surfaces handed out by cameras.

The UI embeds whatever ``preview_surface()`` returns. Backends without live
video hand out a ``PlaceholderSurface`` whose text changes to show what the
camera is doing; the OpenCV backend hands out a ``VideoSurface`` that pulls
a fresh encoded frame each time the UI asks for one.
"""

from typing import Callable, Optional, Tuple

Frame = Tuple[bytes, Tuple[int, int]]


class PreviewSurface:
    """Base class for what the UI renders in the preview region."""

    kind = "none"

    def __init__(self):
        self.released = False

    def release(self) -> None:
        self.released = True

    def snapshot(self) -> dict:
        """Description of the surface for the kiosk front end."""
        return {"kind": self.kind, "released": self.released}


class PlaceholderSurface(PreviewSurface):
    """Static preview: a line of text plus a mode hint the UI uses for styling."""

    kind = "placeholder"

    def __init__(self, text: str, mode: str = "idle"):
        super().__init__()
        self.text = text
        self.mode = mode

    def show(self, text: str, mode: str) -> None:
        self.text = text
        self.mode = mode

    def snapshot(self) -> dict:
        data = super().snapshot()
        data.update(text=self.text, mode=self.mode)
        return data


class VideoSurface(PreviewSurface):
    """
    Live preview of JPEG-encoded frames.

    Frames are pulled from ``source`` on ``refresh`` rather than pushed on a
    timer, so the camera is only read when someone is looking. ``source``
    returns ``None`` when there is nothing new to show.
    """

    kind = "video"

    def __init__(self, source: Optional[Callable[[], Optional[Frame]]] = None):
        super().__init__()
        self._source = source
        self.frame: Optional[bytes] = None
        self.frame_size: Optional[Tuple[int, int]] = None
        self.frame_count = 0

    def refresh(self) -> Optional[bytes]:
        """Pull one frame from the source; returns the latest frame, if any."""
        if self.released or self._source is None:
            return self.frame
        result = self._source()
        if result is not None:
            self.update_frame(*result)
        return self.frame

    def update_frame(self, jpeg: bytes, size: Tuple[int, int]) -> None:
        self.frame = jpeg
        self.frame_size = size
        self.frame_count += 1

    def clear(self) -> None:
        self.frame = None
        self.frame_size = None

    def release(self) -> None:
        self.clear()
        self._source = None
        super().release()

    def snapshot(self) -> dict:
        data = super().snapshot()
        data.update(frame_count=self.frame_count, frame_size=self.frame_size)
        return data
