from typing import List, Optional
from pydantic import BaseModel, Field
from datetime import datetime


class SessionRead(BaseModel):
	start_time: datetime
	user_name: str = ""
	chosen_weapon_id: Optional[str] = None
	chosen_land_id: Optional[str] = None
	chosen_companion_id: Optional[str] = None
	captured_photo_path: Optional[str] = None


class ChoiceUpdate(BaseModel):
	choice_id: str = Field(min_length=1)


class NameUpdate(BaseModel):
	user_name: str = Field(default="", max_length=64)


class ChoiceCategoryRead(BaseModel):
	category: str
	choice_ids: List[str]


class KioskRead(BaseModel):
	"""Static layout information for the kiosk front end."""
	app_name: str
	screens: List[str]
	input_method: str
	countdown_seconds: int
