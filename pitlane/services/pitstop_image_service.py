"""
Pitstop image service.
Opens image drafts for a pitstop. On submit it uploads the pending files,
commits the resulting URL list and then deletes the images marked for removal.
"""
from __future__ import annotations

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from pitlane.core.config import settings
from pitlane.core.exceptions import BadRequestException, ForbiddenException, NotFoundException
from pitlane.crud.pitstop import crud_pitstop
from pitlane.models.pitstop import Pitstop
from pitlane.models.user import User
from pitlane.services.draft_registry import ImageDraft, ImageDraftRegistry
from pitlane.services.image_store import LocalImageStore

logger = logging.getLogger(__name__)


class PitstopImageService:

    async def _get_owned_pitstop(
        self,
        db: AsyncSession,
        *,
        pitstop_id: uuid.UUID,
        current_user: User,
    ) -> Pitstop:
        pitstop = await crud_pitstop.get_with_drive_log(db, pitstop_id)
        if pitstop is None:
            raise NotFoundException("Pitstop", str(pitstop_id))
        if pitstop.drive_log.user_id != current_user.id:
            raise ForbiddenException("Only the drive log owner can edit pitstop images")
        return pitstop

    async def open_draft(
        self,
        db: AsyncSession,
        *,
        pitstop_id: uuid.UUID,
        current_user: User,
        registry: ImageDraftRegistry,
        capacity: int | None = None,
    ) -> ImageDraft:
        """Open an image draft seeded with the pitstop's stored images."""
        pitstop = await self._get_owned_pitstop(
            db, pitstop_id=pitstop_id, current_user=current_user
        )
        capacity = capacity or settings.MAX_PITSTOP_IMAGES
        existing = list(pitstop.image_urls or [])
        if len(existing) > capacity:
            raise BadRequestException(
                f"Pitstop already has {len(existing)} images, more than capacity {capacity}"
            )
        return registry.open(
            owner_id=current_user.id,
            pitstop_id=pitstop.id,
            existing_urls=existing,
            capacity=capacity,
        )

    async def submit_draft(
        self,
        db: AsyncSession,
        *,
        draft_id: uuid.UUID,
        current_user: User,
        registry: ImageDraftRegistry,
        image_store: LocalImageStore,
    ) -> Pitstop:
        """
        Upload pending files in order and commit the final URL list to the pitstop.

        The draft is detached from the registry for the whole submission.
        If an upload or the commit fails, files stored by this submission are
        removed and the draft is restored so the user can retry. Images marked
        for removal are deleted only once the new URL list is committed.
        """
        draft = registry.detach(draft_id, current_user.id)
        manager = draft.manager

        uploaded: list[str] = []
        try:
            pitstop = await self._get_owned_pitstop(
                db, pitstop_id=draft.pitstop_id, current_user=current_user
            )
            for file in manager.pending_files:
                uploaded.append(
                    image_store.upload_image(file.data, file.filename, file.content_type)
                )
            pitstop = await crud_pitstop.set_image_urls(
                db, pitstop=pitstop, image_urls=manager.existing_remote + uploaded
            )
            await db.commit()
        except Exception:
            logger.exception("Submitting image draft %s failed, draft kept open", draft_id)
            for url in uploaded:
                image_store.delete_image(url)
            registry.restore(draft)
            raise

        removed = manager.removed_remote
        for url in removed:
            image_store.delete_image(url)
        manager.close()

        logger.info(
            "Submitted image draft %s: pitstop %s now has %d image(s) (%d new, %d removed)",
            draft_id,
            pitstop.id,
            len(pitstop.image_urls),
            len(uploaded),
            len(removed),
        )
        return pitstop

    def discard_draft(
        self,
        *,
        draft_id: uuid.UUID,
        current_user: User,
        registry: ImageDraftRegistry,
    ) -> None:
        registry.get(draft_id, current_user.id)
        registry.close(draft_id)
        logger.info("Discarded image draft %s", draft_id)


pitstop_image_service = PitstopImageService()
