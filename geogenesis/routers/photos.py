"""Serve stored tree photos."""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from geogenesis.dependencies import get_photo_store
from geogenesis.services.photo_service import PhotoStore

router = APIRouter(prefix="/api/photos", tags=["photos"])


@router.get("/{name}")
async def serve_photo(name: str, photos: PhotoStore = Depends(get_photo_store)):
    path = photos.path_for(name)
    if path is None:
        raise HTTPException(404, "Photo not found")
    return FileResponse(str(path))
