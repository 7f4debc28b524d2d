import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import Settings, settings as default_settings

# routers
from app.api.camera import router as camera_router
from app.api.choices import router as choices_router
from app.api.deps import get_booth
from app.api.session import router as session_router
from app.schemas.session import KioskRead

from photobooth.host import HostProbe
from photobooth.scheduler import AsyncioScheduler, Scheduler
from photobooth.service import PhotoBoothService

# Screens of the kiosk, in the order the front end navigates them
SCREENS = ["start", "weapon", "land", "companion", "name", "camera"]


def create_app(
    settings: Optional[Settings] = None,
    scheduler: Optional[Scheduler] = None,
    probe: Optional[HostProbe] = None,
) -> FastAPI:
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        booth = PhotoBoothService(
            settings,
            scheduler or AsyncioScheduler(asyncio.get_running_loop()),
            probe=probe,
        )
        booth.start()
        app.state.booth = booth
        try:
            yield
        finally:
            booth.shutdown()
            app.state.booth = None

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

    # Allow the kiosk front end dev server to call the API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(session_router, prefix="/session", tags=["session"])
    app.include_router(camera_router, prefix="/camera", tags=["camera"])
    app.include_router(choices_router, prefix="/choices", tags=["choices"])

    @app.get("/health")
    async def health(booth: PhotoBoothService = Depends(get_booth)):
        return {
            "status": "ok",
            "camera": booth.describe_camera(),
            "capture_enabled": booth.coordinator.capture_enabled,
        }

    @app.get("/kiosk", response_model=KioskRead)
    async def kiosk():
        return KioskRead(
            app_name=settings.APP_NAME,
            screens=SCREENS,
            input_method=settings.INPUT_METHOD,
            countdown_seconds=settings.COUNTDOWN_SECONDS,
        )

    return app


app = create_app()
