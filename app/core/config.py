from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import Field

from photobooth.camera import BackendKind


class Settings(BaseSettings):
    APP_NAME: str = "Photo Booth"
    UVICORN_HOST: str = "0.0.0.0"
    UVICORN_PORT: int = 8000
    LOG_LEVEL: str = "info"
    LOG_DIR: Path = Path("logs")

    # camera
    CAMERA_BACKEND: BackendKind = BackendKind.AUTO_DETECT
    CAMERA_DEVICE_INDEX: Optional[int] = Field(default=None, ge=0)
    CAPTURE_WIDTH: int = Field(default=1920, gt=0)
    CAPTURE_HEIGHT: int = Field(default=1080, gt=0)
    CAPTURE_QUALITY: int = Field(default=95, ge=1, le=100)
    COUNTDOWN_SECONDS: int = Field(default=3, ge=1)

    # storage; PHOTOS_DIR defaults to <user pictures>/PhotoBooth
    PHOTOS_DIR: Optional[Path] = None
    CHOICES_DIR: Path = Path("assets/choices")

    # on-screen keyboard the kiosk front end should load
    INPUT_METHOD: str = "qtvirtualkeyboard"

    model_config = {
        "env_file": ".env"
    }


settings = Settings()
