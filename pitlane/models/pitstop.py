"""
Pitstop ORM model.
A waypoint on a drive log. Stores the URLs of its persisted images in order.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pitlane.db.base import Base, CreatedAt, UUIDPrimaryKey


class Pitstop(UUIDPrimaryKey, CreatedAt, Base):
    __tablename__ = "pitstops"

    drive_log_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("drive_logs.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    image_urls: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    drive_log: Mapped["DriveLog"] = relationship(  # type: ignore[name-defined]  # noqa: F821
        "DriveLog",
        back_populates="pitstops",
    )

    __table_args__ = (
        Index("ix_pitstops_drive_log_id_order", "drive_log_id", "order_index"),
    )

    def __repr__(self) -> str:
        return f"<Pitstop id={self.id} name={self.name!r} images={len(self.image_urls or [])}>"
