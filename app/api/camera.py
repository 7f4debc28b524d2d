from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.responses import FileResponse
from typing import Callable
import logging

from app.api.deps import get_booth
from app.schemas.camera import CameraStateRead, PreviewRead
from photobooth.coordinator import CaptureCoordinator, CapturePhase, CaptureStateError
from photobooth.preview import VideoSurface
from photobooth.service import PhotoBoothService

router = APIRouter()
logger = logging.getLogger(__name__)


def _state(booth: PhotoBoothService) -> CameraStateRead:
    return CameraStateRead.from_coordinator(booth.coordinator, booth.describe_camera())


def _run_intent(booth: PhotoBoothService, intent: Callable[[CaptureCoordinator], object]) -> CameraStateRead:
    try:
        intent(booth.coordinator)
    except CaptureStateError as e:
        logger.info(f"Rejected camera intent: {e}")
        raise HTTPException(status_code=409, detail=str(e))
    return _state(booth)


@router.get("/state", response_model=CameraStateRead)
async def get_state(booth: PhotoBoothService = Depends(get_booth)):
    return _state(booth)


@router.post("/begin", response_model=CameraStateRead)
async def begin(booth: PhotoBoothService = Depends(get_booth)):
    return _run_intent(booth, lambda c: c.begin())


@router.post("/capture", response_model=CameraStateRead)
async def request_capture(booth: PhotoBoothService = Depends(get_booth)):
    """Take Photo button: starts the countdown."""
    return _run_intent(booth, lambda c: c.request_capture())


@router.post("/retake", response_model=CameraStateRead)
async def retake(booth: PhotoBoothService = Depends(get_booth)):
    return _run_intent(booth, lambda c: c.retake())


@router.post("/finish", response_model=CameraStateRead)
async def finish(booth: PhotoBoothService = Depends(get_booth)):
    """Continue button: keep the photo and end the run."""
    return _run_intent(booth, lambda c: c.finish())


@router.post("/cancel", response_model=CameraStateRead)
async def cancel(booth: PhotoBoothService = Depends(get_booth)):
    return _run_intent(booth, lambda c: c.cancel())


@router.get("/preview", response_model=PreviewRead)
async def get_preview(booth: PhotoBoothService = Depends(get_booth)):
    """A fresh live frame as JPEG, or a description of the surface when there is none."""
    surface = booth.coordinator.preview_surface()
    if surface is None:
        raise HTTPException(status_code=404, detail="No camera preview")
    if isinstance(surface, VideoSurface):
        frame = surface.refresh()
        if frame is not None:
            return Response(content=frame, media_type="image/jpeg")
    return PreviewRead(**surface.snapshot())


@router.get("/photo")
async def get_photo(booth: PhotoBoothService = Depends(get_booth)):
    """The photo currently under review."""
    state = booth.coordinator.state
    if state.phase != CapturePhase.REVIEWING:
        raise HTTPException(status_code=404, detail="No photo under review")
    return FileResponse(state.path)
