from fastapi import APIRouter, Depends, HTTPException, Response
from io import BytesIO
from typing import List

from app.api.deps import get_booth
from app.schemas.session import ChoiceCategoryRead
from photobooth.service import PhotoBoothService
from photobooth.session import CHOICE_CATEGORIES

router = APIRouter()


@router.get("", response_model=List[ChoiceCategoryRead])
async def list_choices(booth: PhotoBoothService = Depends(get_booth)):
    return [
        ChoiceCategoryRead(category=name, choice_ids=booth.catalog.category(name))
        for name in CHOICE_CATEGORIES
    ]


@router.get("/{choice_id}/image")
async def get_choice_image(choice_id: str, booth: PhotoBoothService = Depends(get_booth)):
    if choice_id not in booth.catalog:
        raise HTTPException(status_code=404, detail="Choice not found")
    buffer = BytesIO()
    booth.catalog[choice_id].save(buffer, format="PNG")
    return Response(content=buffer.getvalue(), media_type="image/png")
