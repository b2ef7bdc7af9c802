"""
Serves stored pitstop images under UPLOAD_URL_PREFIX.
"""
from __future__ import annotations

import os

from fastapi import APIRouter
from fastapi.responses import FileResponse

from pitlane.core.config import settings
from pitlane.core.dependencies import ImageStore
from pitlane.core.exceptions import NotFoundException

router = APIRouter(prefix=settings.UPLOAD_URL_PREFIX, tags=["Uploads"])


@router.get("/{filename}", summary="Download a stored image", include_in_schema=False)
async def get_uploaded_image(filename: str, image_store: ImageStore) -> FileResponse:
    file_path = image_store.path_for(filename)
    if file_path is None or not os.path.isfile(file_path):
        raise NotFoundException("Image", filename)
    return FileResponse(file_path)
