"""
Drive log CRUD operations.
Extends CRUDBase with ownership queries and eager pitstop loading.
"""
from __future__ import annotations

import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from pitlane.crud.base import CRUDBase
from pitlane.models.drive_log import DriveLog
from pitlane.schemas.drive_log import DriveLogCreate


class CRUDDriveLog(CRUDBase[DriveLog]):

    async def get_with_pitstops(
        self, db: AsyncSession, drive_log_id: uuid.UUID
    ) -> DriveLog | None:
        result = await db.execute(
            select(DriveLog)
            .options(selectinload(DriveLog.pitstops))
            .where(DriveLog.id == drive_log_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_public(
        self, db: AsyncSession, drive_log_id: uuid.UUID
    ) -> DriveLog | None:
        """Load a public drive log with its pitstops and author for the share view."""
        result = await db.execute(
            select(DriveLog)
            .options(selectinload(DriveLog.pitstops), selectinload(DriveLog.user))
            .where(DriveLog.id == drive_log_id, DriveLog.is_public.is_(True))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create_drive_log(
        self,
        db: AsyncSession,
        *,
        obj_in: DriveLogCreate,
        user_id: uuid.UUID,
    ) -> DriveLog:
        return await self.create(
            db, values={**obj_in.model_dump(), "user_id": user_id}
        )

    async def list_by_user(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 100,
    ) -> tuple[list[DriveLog], int]:
        count_result = await db.execute(
            select(func.count())
            .select_from(DriveLog)
            .where(DriveLog.user_id == user_id)
        )
        total = count_result.scalar_one()

        result = await db.execute(
            select(DriveLog)
            .where(DriveLog.user_id == user_id)
            .order_by(DriveLog.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def remove_drive_log(self, db: AsyncSession, *, drive_log: DriveLog) -> None:
        """Delete a drive log loaded with its pitstops so the ORM cascade applies."""
        await db.delete(drive_log)
        await db.flush()


crud_drive_log = CRUDDriveLog(DriveLog)
