"""
DriveLog ORM model.
A recorded drive from one location to another, with ordered pitstops.
Public drive logs can be read without signing in through the share view.
"""
from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pitlane.db.base import Base, CreatedAt, UUIDPrimaryKey


class DriveLog(UUIDPrimaryKey, CreatedAt, Base):
    __tablename__ = "drive_logs"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    start_location: Mapped[str] = mapped_column(String(255), nullable=False)
    end_location: Mapped[str] = mapped_column(String(255), nullable=False)
    distance: Mapped[float] = mapped_column(Float, nullable=False)  # km
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # minutes
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_public: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default="true"
    )

    user: Mapped["User"] = relationship(  # type: ignore[name-defined]  # noqa: F821
        "User",
        back_populates="drive_logs",
    )
    pitstops: Mapped[list["Pitstop"]] = relationship(  # type: ignore[name-defined]  # noqa: F821
        "Pitstop",
        back_populates="drive_log",
        cascade="all, delete-orphan",
        order_by="Pitstop.order_index",
    )

    __table_args__ = (
        Index("ix_drive_logs_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<DriveLog id={self.id} title={self.title!r}>"
