"""
User ORM model.
Identities are provisioned by the external identity provider; this service
only stores the profile fields it needs to attribute drive logs.
"""
from __future__ import annotations

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pitlane.db.base import Base, CreatedAt, UUIDPrimaryKey


class User(UUIDPrimaryKey, CreatedAt, Base):
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    username: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
    )
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default="true"
    )

    drive_logs: Mapped[list["DriveLog"]] = relationship(  # type: ignore[name-defined]  # noqa: F821
        "DriveLog",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    @property
    def display_name(self) -> str:
        """Name shown on shared drive logs."""
        return self.full_name or self.email.split("@")[0]

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email}>"
