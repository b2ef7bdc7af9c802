"""
Image draft Pydantic schemas.
Read models for the attachment set exposed to the preview renderer.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel

from pitlane.services.attachment_manager import PendingAttachment
from pitlane.services.draft_registry import ImageDraft


class PendingImageRead(BaseModel):
    index: int
    filename: str
    content_type: str
    size: int
    preview_url: str

    @classmethod
    def from_pending(cls, index: int, entry: PendingAttachment) -> "PendingImageRead":
        return cls(
            index=index,
            filename=entry.file.filename,
            content_type=entry.file.content_type,
            size=entry.file.size,
            preview_url=entry.preview.url,
        )


class ImageDraftRead(BaseModel):
    id: uuid.UUID
    pitstop_id: uuid.UUID
    capacity: int
    existing_remote: list[str]
    removed_remote: list[str]
    pending: list[PendingImageRead]
    total_count: int
    can_add_more: bool
    expires_at: datetime

    @classmethod
    def from_draft(cls, draft: ImageDraft) -> "ImageDraftRead":
        manager = draft.manager
        return cls(
            id=draft.id,
            pitstop_id=draft.pitstop_id,
            capacity=manager.capacity,
            existing_remote=manager.existing_remote,
            removed_remote=manager.removed_remote,
            pending=[
                PendingImageRead.from_pending(i, entry)
                for i, entry in enumerate(manager.pending)
            ],
            total_count=manager.total_count,
            can_add_more=manager.can_add_more,
            expires_at=draft.expires_at,
        )


class AddImagesResponse(BaseModel):
    """Result of adding a batch: the new draft state plus any skipped files."""

    draft: ImageDraftRead
    accepted: int
    skipped: list[str]
