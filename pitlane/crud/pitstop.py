"""
Pitstop CRUD operations.
"""
from __future__ import annotations

import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from pitlane.crud.base import CRUDBase
from pitlane.models.pitstop import Pitstop
from pitlane.schemas.drive_log import PitstopCreate


class CRUDPitstop(CRUDBase[Pitstop]):

    async def get_with_drive_log(
        self, db: AsyncSession, pitstop_id: uuid.UUID
    ) -> Pitstop | None:
        result = await db.execute(
            select(Pitstop)
            .options(selectinload(Pitstop.drive_log))
            .where(Pitstop.id == pitstop_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create_pitstop(
        self,
        db: AsyncSession,
        *,
        obj_in: PitstopCreate,
        drive_log_id: uuid.UUID,
    ) -> Pitstop:
        """Append a pitstop after the last one of the drive log."""
        result = await db.execute(
            select(func.max(Pitstop.order_index)).where(
                Pitstop.drive_log_id == drive_log_id
            )
        )
        last_index = result.scalar_one_or_none()
        return await self.create(
            db,
            values={
                **obj_in.model_dump(),
                "drive_log_id": drive_log_id,
                "order_index": 0 if last_index is None else last_index + 1,
                "image_urls": [],
            },
        )

    async def list_by_drive_log(
        self, db: AsyncSession, *, drive_log_id: uuid.UUID
    ) -> list[Pitstop]:
        result = await db.execute(
            select(Pitstop)
            .where(Pitstop.drive_log_id == drive_log_id)
            .order_by(Pitstop.order_index)
        )
        return list(result.scalars().all())

    async def set_image_urls(
        self, db: AsyncSession, *, pitstop: Pitstop, image_urls: list[str]
    ) -> Pitstop:
        # JSON columns only detect reassignment, never in-place mutation.
        return await self.update(
            db, db_obj=pitstop, values={"image_urls": list(image_urls)}
        )


crud_pitstop = CRUDPitstop(Pitstop)
