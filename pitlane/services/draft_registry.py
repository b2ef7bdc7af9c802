"""
Image draft registry.
Holds the open image drafts of this process. Each draft owns its own
ImageAttachmentManager and belongs to exactly one user.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from pitlane.core.config import settings
from pitlane.core.exceptions import ForbiddenException, NotFoundException
from pitlane.services.attachment_manager import ImageAttachmentManager

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ImageDraft:
    id: uuid.UUID
    owner_id: uuid.UUID
    pitstop_id: uuid.UUID
    manager: ImageAttachmentManager
    expires_at: datetime


class ImageDraftRegistry:

    def __init__(
        self,
        ttl: timedelta,
        preview_url_base: str = "/image-drafts",
        clock: Clock = _utcnow,
    ) -> None:
        self.ttl = ttl
        self.preview_url_base = preview_url_base.rstrip("/")
        self._clock = clock
        self._drafts: dict[uuid.UUID, ImageDraft] = {}

    def open(
        self,
        *,
        owner_id: uuid.UUID,
        pitstop_id: uuid.UUID,
        existing_urls: Iterable[str],
        capacity: int,
    ) -> ImageDraft:
        """Create a draft seeded with the pitstop's stored image URLs."""
        self.sweep()
        draft_id = uuid.uuid4()
        manager = ImageAttachmentManager(
            existing_remote=existing_urls,
            capacity=capacity,
            preview_url_prefix=f"{self.preview_url_base}/{draft_id}/previews",
        )
        draft = ImageDraft(
            id=draft_id,
            owner_id=owner_id,
            pitstop_id=pitstop_id,
            manager=manager,
            expires_at=self._clock() + self.ttl,
        )
        self._drafts[draft_id] = draft
        logger.info(
            "Opened image draft %s for pitstop %s (owner=%s capacity=%d)",
            draft_id,
            pitstop_id,
            owner_id,
            capacity,
        )
        return draft

    def get(self, draft_id: uuid.UUID, owner_id: uuid.UUID) -> ImageDraft:
        """Return a live draft owned by ``owner_id`` and push back its expiry."""
        self.sweep()
        draft = self._drafts.get(draft_id)
        if draft is None:
            raise NotFoundException("Image draft", str(draft_id))
        if draft.owner_id != owner_id:
            raise ForbiddenException("This image draft belongs to another user")
        draft.expires_at = self._clock() + self.ttl
        return draft

    def detach(self, draft_id: uuid.UUID, owner_id: uuid.UUID) -> ImageDraft:
        """
        Take a draft out of the registry without closing it.
        While detached the draft is unreachable, so no request can change it
        or submit it a second time. Hand it back with ``restore`` or close it.
        """
        draft = self.get(draft_id, owner_id)
        del self._drafts[draft_id]
        return draft

    def restore(self, draft: ImageDraft) -> None:
        """Put a detached draft back so its owner can continue editing."""
        draft.expires_at = self._clock() + self.ttl
        self._drafts[draft.id] = draft

    def close(self, draft_id: uuid.UUID) -> None:
        draft = self._drafts.pop(draft_id, None)
        if draft is not None:
            draft.manager.close()

    def sweep(self) -> int:
        """Close drafts whose TTL has elapsed. Returns how many were closed."""
        now = self._clock()
        expired = [d.id for d in self._drafts.values() if d.expires_at <= now]
        for draft_id in expired:
            logger.info("Image draft %s expired", draft_id)
            self.close(draft_id)
        return len(expired)

    def close_all(self) -> None:
        count = len(self._drafts)
        for draft_id in list(self._drafts):
            self.close(draft_id)
        if count:
            logger.info("Closed %d open image draft(s)", count)

    def __len__(self) -> int:
        return len(self._drafts)

    def __contains__(self, draft_id: object) -> bool:
        return draft_id in self._drafts


_registry: ImageDraftRegistry | None = None


def get_draft_registry() -> ImageDraftRegistry:
    """FastAPI dependency returning the registry of this process."""
    global _registry
    if _registry is None:
        _registry = ImageDraftRegistry(
            ttl=timedelta(seconds=settings.image_draft_ttl_seconds),
            preview_url_base=f"{settings.API_V1_STR}/image-drafts",
        )
    return _registry


async def sweep_periodically(registry: ImageDraftRegistry, interval: float) -> None:
    """Close expired drafts every ``interval`` seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        registry.sweep()
