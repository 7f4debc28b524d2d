from fastapi import APIRouter, Depends, HTTPException, Response
import logging

from app.api.deps import get_coordinator
from app.schemas.session import ChoiceUpdate, NameUpdate, SessionRead
from photobooth.coordinator import CaptureCoordinator, CaptureStateError

router = APIRouter()
logger = logging.getLogger(__name__)


def _read(coordinator: CaptureCoordinator) -> SessionRead:
    if coordinator.session is None:
        raise HTTPException(status_code=404, detail="No active session")
    return SessionRead(**coordinator.session.to_dict())


@router.post("", response_model=SessionRead, status_code=201)
async def start_session(coordinator: CaptureCoordinator = Depends(get_coordinator)):
    """Start screen: begin a new run."""
    try:
        coordinator.start_session()
    except CaptureStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _read(coordinator)


@router.get("", response_model=SessionRead)
async def get_session(coordinator: CaptureCoordinator = Depends(get_coordinator)):
    return _read(coordinator)


@router.delete("", status_code=204)
async def abandon_session(coordinator: CaptureCoordinator = Depends(get_coordinator)):
    try:
        coordinator.cancel()
    except CaptureStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return Response(status_code=204)


@router.put("/choices/{category}", response_model=SessionRead)
async def choose(category: str, payload: ChoiceUpdate, coordinator: CaptureCoordinator = Depends(get_coordinator)):
    try:
        coordinator.choose(category, payload.choice_id)
    except CaptureStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _read(coordinator)


@router.put("/name", response_model=SessionRead)
async def set_name(payload: NameUpdate, coordinator: CaptureCoordinator = Depends(get_coordinator)):
    try:
        coordinator.set_user_name(payload.user_name)
    except CaptureStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _read(coordinator)
