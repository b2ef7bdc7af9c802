"""
Drive log business logic service.
Enforces ownership and cleans up stored pitstop images on deletion.
"""
from __future__ import annotations

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from pitlane.core.exceptions import ForbiddenException, NotFoundException
from pitlane.crud.drive_log import crud_drive_log
from pitlane.crud.pitstop import crud_pitstop
from pitlane.models.drive_log import DriveLog
from pitlane.models.pitstop import Pitstop
from pitlane.models.user import User
from pitlane.schemas.drive_log import DriveLogCreate, PitstopCreate
from pitlane.services.image_store import LocalImageStore

logger = logging.getLogger(__name__)


class DriveLogService:

    async def create_drive_log(
        self,
        db: AsyncSession,
        *,
        drive_log_in: DriveLogCreate,
        current_user: User,
    ) -> DriveLog:
        drive_log = await crud_drive_log.create_drive_log(
            db, obj_in=drive_log_in, user_id=current_user.id
        )
        logger.info("User %s created drive log %s", current_user.id, drive_log.id)
        return drive_log

    async def get_drive_log(
        self,
        db: AsyncSession,
        *,
        drive_log_id: uuid.UUID,
        current_user: User,
    ) -> DriveLog:
        """Fetch a drive log with its pitstops. Private logs are visible to their owner only."""
        drive_log = await crud_drive_log.get_with_pitstops(db, drive_log_id)
        if drive_log is None or (
            not drive_log.is_public and drive_log.user_id != current_user.id
        ):
            raise NotFoundException("Drive log", str(drive_log_id))
        return drive_log

    async def get_public_drive_log(
        self,
        db: AsyncSession,
        *,
        drive_log_id: uuid.UUID,
    ) -> DriveLog:
        """Fetch a drive log for the public share view. Private logs read as missing."""
        drive_log = await crud_drive_log.get_public(db, drive_log_id)
        if drive_log is None:
            raise NotFoundException("Drive log", str(drive_log_id))
        return drive_log

    async def get_owned_drive_log(
        self,
        db: AsyncSession,
        *,
        drive_log_id: uuid.UUID,
        current_user: User,
    ) -> DriveLog:
        drive_log = await self.get_drive_log(
            db, drive_log_id=drive_log_id, current_user=current_user
        )
        if drive_log.user_id != current_user.id:
            raise ForbiddenException("Only the owner can modify this drive log")
        return drive_log

    async def delete_drive_log(
        self,
        db: AsyncSession,
        *,
        drive_log_id: uuid.UUID,
        current_user: User,
        image_store: LocalImageStore,
    ) -> None:
        """Delete a drive log, its pitstops, and every image they reference."""
        drive_log = await self.get_owned_drive_log(
            db, drive_log_id=drive_log_id, current_user=current_user
        )
        image_urls = [url for p in drive_log.pitstops for url in (p.image_urls or [])]
        await crud_drive_log.remove_drive_log(db, drive_log=drive_log)
        for url in image_urls:
            image_store.delete_image(url)
        logger.info(
            "User %s deleted drive log %s (%d image(s))",
            current_user.id,
            drive_log_id,
            len(image_urls),
        )

    async def add_pitstop(
        self,
        db: AsyncSession,
        *,
        drive_log_id: uuid.UUID,
        pitstop_in: PitstopCreate,
        current_user: User,
    ) -> Pitstop:
        await self.get_owned_drive_log(
            db, drive_log_id=drive_log_id, current_user=current_user
        )
        return await crud_pitstop.create_pitstop(
            db, obj_in=pitstop_in, drive_log_id=drive_log_id
        )


drive_log_service = DriveLogService()
