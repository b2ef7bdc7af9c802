"""
Image draft routes.
An image draft holds the images of one pitstop while it is being edited.
/api/v1/pitstops/{pitstop_id}/image-drafts, /api/v1/image-drafts/{draft_id}/...
Supports multipart/form-data file upload.

Annotations stay evaluated in this module: the slowapi decorator wraps the
upload endpoint and FastAPI must resolve its signature through the wrapper.
"""
import uuid

from fastapi import APIRouter, Query, Request, Response, UploadFile, status
from slowapi import Limiter
from slowapi.util import get_remote_address

from pitlane.core.config import settings
from pitlane.core.dependencies import CurrentUser, DBSession, DraftRegistry, ImageStore
from pitlane.core.exceptions import FileTooLargeException, NotFoundException
from pitlane.schemas.drive_log import PitstopRead
from pitlane.schemas.image_draft import AddImagesResponse, ImageDraftRead
from pitlane.services.attachment_manager import CandidateFile
from pitlane.services.pitstop_image_service import pitstop_image_service

router = APIRouter(tags=["Image Drafts"])

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)


@router.post(
    "/pitstops/{pitstop_id}/image-drafts",
    response_model=ImageDraftRead,
    status_code=status.HTTP_201_CREATED,
    summary="Open an image draft for a pitstop",
)
async def open_image_draft(
    pitstop_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
    registry: DraftRegistry,
    capacity: int | None = Query(default=None, ge=1, le=20),
) -> ImageDraftRead:
    draft = await pitstop_image_service.open_draft(
        db,
        pitstop_id=pitstop_id,
        current_user=current_user,
        registry=registry,
        capacity=capacity,
    )
    return ImageDraftRead.from_draft(draft)


@router.get(
    "/image-drafts/{draft_id}",
    response_model=ImageDraftRead,
    summary="Get the current state of an image draft",
)
async def get_image_draft(
    draft_id: uuid.UUID,
    current_user: CurrentUser,
    registry: DraftRegistry,
) -> ImageDraftRead:
    return ImageDraftRead.from_draft(registry.get(draft_id, current_user.id))


@router.post(
    "/image-drafts/{draft_id}/files",
    response_model=AddImagesResponse,
    summary="Add a batch of selected files to an image draft",
)
@limiter.limit(settings.RATE_LIMIT_UPLOAD)
async def add_image_files(
    request: Request,
    draft_id: uuid.UUID,
    files: list[UploadFile],
    current_user: CurrentUser,
    registry: DraftRegistry,
) -> AddImagesResponse:
    draft = registry.get(draft_id, current_user.id)

    # Read every file and validate image sizes before touching the draft.
    # Non-images are left for the manager to report as skipped.
    candidates: list[CandidateFile] = []
    for upload in files:
        candidate = CandidateFile(
            filename=upload.filename or "unknown",
            content_type=upload.content_type or "application/octet-stream",
            data=await upload.read(),
        )
        if candidate.is_image and candidate.size > settings.max_file_size_bytes:
            raise FileTooLargeException(settings.MAX_FILE_SIZE_MB)
        candidates.append(candidate)

    result = draft.manager.add_files(candidates)
    return AddImagesResponse(
        draft=ImageDraftRead.from_draft(draft),
        accepted=len(result.accepted),
        skipped=result.skipped,
    )


@router.delete(
    "/image-drafts/{draft_id}/pending/{index}",
    response_model=ImageDraftRead,
    summary="Remove a pending image by position",
)
async def remove_pending_image(
    draft_id: uuid.UUID,
    index: int,
    current_user: CurrentUser,
    registry: DraftRegistry,
) -> ImageDraftRead:
    draft = registry.get(draft_id, current_user.id)
    draft.manager.remove_pending_at(index)
    return ImageDraftRead.from_draft(draft)


@router.delete(
    "/image-drafts/{draft_id}/existing/{index}",
    response_model=ImageDraftRead,
    summary="Mark a stored image for deletion on submit",
)
async def remove_existing_image(
    draft_id: uuid.UUID,
    index: int,
    current_user: CurrentUser,
    registry: DraftRegistry,
) -> ImageDraftRead:
    draft = registry.get(draft_id, current_user.id)
    draft.manager.remove_existing_at(index)
    return ImageDraftRead.from_draft(draft)


@router.get(
    "/image-drafts/{draft_id}/previews/{preview_id}",
    summary="Render a pending image while its preview is live",
    response_class=Response,
)
async def get_preview(
    draft_id: uuid.UUID,
    preview_id: str,
    current_user: CurrentUser,
    registry: DraftRegistry,
) -> Response:
    draft = registry.get(draft_id, current_user.id)
    file = draft.manager.resolve_preview(preview_id)
    if file is None:
        raise NotFoundException("Preview", preview_id)
    return Response(
        content=file.data,
        media_type=file.content_type,
        headers={"Cache-Control": "no-store"},
    )


@router.post(
    "/image-drafts/{draft_id}/submit",
    response_model=PitstopRead,
    summary="Upload pending images and save the pitstop's image list",
)
async def submit_image_draft(
    draft_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
    registry: DraftRegistry,
    image_store: ImageStore,
) -> PitstopRead:
    pitstop = await pitstop_image_service.submit_draft(
        db,
        draft_id=draft_id,
        current_user=current_user,
        registry=registry,
        image_store=image_store,
    )
    return PitstopRead.model_validate(pitstop)


@router.delete(
    "/image-drafts/{draft_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Discard an image draft without saving",
)
async def discard_image_draft(
    draft_id: uuid.UUID,
    current_user: CurrentUser,
    registry: DraftRegistry,
) -> None:
    pitstop_image_service.discard_draft(
        draft_id=draft_id, current_user=current_user, registry=registry
    )
