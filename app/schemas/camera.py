from typing import Optional, Tuple
from pydantic import BaseModel

from photobooth.coordinator import CaptureCoordinator, CapturePhase


class CameraStateRead(BaseModel):
	phase: CapturePhase
	remaining: Optional[int] = None
	overlay: Optional[str] = None
	message: Optional[str] = None
	photo_path: Optional[str] = None
	camera: str
	capture_enabled: bool
	show_take_photo: bool
	show_retake: bool
	show_continue: bool

	@classmethod
	def from_coordinator(cls, coordinator: CaptureCoordinator, camera: str) -> "CameraStateRead":
		state = coordinator.state
		reviewing = state.phase == CapturePhase.REVIEWING
		return cls(
			phase=state.phase,
			remaining=state.remaining,
			overlay=coordinator.overlay,
			message=state.message,
			photo_path=state.path,
			camera=camera,
			capture_enabled=coordinator.capture_enabled,
			show_take_photo=state.phase == CapturePhase.PREVIEWING,
			show_retake=reviewing,
			show_continue=reviewing,
		)


class PreviewRead(BaseModel):
	"""Preview surface description, returned when there is no live frame to show."""
	kind: str
	released: bool = False
	text: Optional[str] = None
	mode: Optional[str] = None
	frame_count: Optional[int] = None
	frame_size: Optional[Tuple[int, int]] = None
