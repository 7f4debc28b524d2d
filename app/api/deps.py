from fastapi import Depends, HTTPException, Request

from photobooth.coordinator import CaptureCoordinator
from photobooth.service import PhotoBoothService


# async so the booth is only ever touched from the event loop thread
async def get_booth(request: Request) -> PhotoBoothService:
	"""The PhotoBoothService built by the application lifespan."""
	booth = getattr(request.app.state, "booth", None)
	if booth is None or not booth.started:
		raise HTTPException(status_code=503, detail="Photo booth not running")
	return booth


async def get_coordinator(booth: PhotoBoothService = Depends(get_booth)) -> CaptureCoordinator:
	return booth.coordinator
