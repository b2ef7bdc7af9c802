"""
Drive log and pitstop Pydantic schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from pitlane.models.drive_log import DriveLog


# ── Create ────────────────────────────────────────────────────────────────────

class DriveLogCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    start_location: str = Field(min_length=1, max_length=255)
    end_location: str = Field(min_length=1, max_length=255)
    distance: float = Field(ge=0)
    duration: int | None = Field(default=None, ge=0)
    notes: str | None = Field(default=None, max_length=10000)
    is_public: bool = True


class PitstopCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    address: str | None = Field(default=None, max_length=500)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    description: str | None = Field(default=None, max_length=5000)


# ── Read ──────────────────────────────────────────────────────────────────────

class PitstopRead(BaseModel):
    id: uuid.UUID
    drive_log_id: uuid.UUID
    name: str
    address: str | None
    latitude: float | None
    longitude: float | None
    description: str | None
    order_index: int
    image_urls: list[str]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DriveLogRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    title: str
    start_location: str
    end_location: str
    distance: float
    duration: int | None
    notes: str | None
    is_public: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class DriveLogDetail(DriveLogRead):
    pitstops: list[PitstopRead] = Field(default_factory=list)


# ── Public share view ─────────────────────────────────────────────────────────

class PublicPitstopRead(BaseModel):
    name: str
    address: str | None
    latitude: float | None
    longitude: float | None
    description: str | None
    order_index: int
    image_urls: list[str]

    model_config = {"from_attributes": True}


class PublicDriveLogRead(BaseModel):
    """Read-only drive log for visitors without an account. Owner ids stay hidden."""

    id: uuid.UUID
    title: str
    start_location: str
    end_location: str
    distance: float
    duration: int | None
    notes: str | None
    created_at: datetime
    author_name: str
    pitstops: list[PublicPitstopRead]

    @classmethod
    def from_drive_log(cls, drive_log: DriveLog) -> "PublicDriveLogRead":
        return cls(
            id=drive_log.id,
            title=drive_log.title,
            start_location=drive_log.start_location,
            end_location=drive_log.end_location,
            distance=drive_log.distance,
            duration=drive_log.duration,
            notes=drive_log.notes,
            created_at=drive_log.created_at,
            author_name=drive_log.user.display_name,
            pitstops=[PublicPitstopRead.model_validate(p) for p in drive_log.pitstops],
        )
