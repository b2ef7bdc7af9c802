"""
Image attachment manager.

Tracks the images attached to one pitstop while it is being edited:
already-persisted images (identified by URL) and newly selected local files
that have not been uploaded yet. Pending files get a transient preview
reference that is revoked exactly once, either on removal or on teardown.

The manager performs no network or disk I/O. Uploading pending files and
deleting removed remote images is the job of the submission service.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from types import TracebackType

from pitlane.core.exceptions import CapacityExceededException, DraftClosedException

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 3
IMAGE_CONTENT_TYPE_PREFIX = "image/"


@dataclass(frozen=True)
class CandidateFile:
    """A raw file handed over by the selection source."""

    filename: str
    content_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def is_image(self) -> bool:
        return (self.content_type or "").lower().startswith(IMAGE_CONTENT_TYPE_PREFIX)


@dataclass(frozen=True)
class PreviewReference:
    """Revocable handle used only to render a thumbnail for a pending file."""

    id: str
    url: str


@dataclass(frozen=True)
class PendingAttachment:
    file: CandidateFile
    preview: PreviewReference


@dataclass(frozen=True)
class AddFilesResult:
    accepted: list[PendingAttachment]
    skipped: list[str]


class PreviewRegistry:
    """
    Issues and revokes preview references for pending files.

    Each registry belongs to a single manager. A reference resolves to its
    file until it is revoked; revoking an unknown or already revoked id is
    a programming error and raises KeyError.
    """

    def __init__(self, url_prefix: str = "preview") -> None:
        self._url_prefix = url_prefix.rstrip("/")
        self._live: dict[str, CandidateFile] = {}
        self.allocated = 0
        self.released = 0

    def allocate(self, file: CandidateFile) -> PreviewReference:
        preview_id = uuid.uuid4().hex
        self._live[preview_id] = file
        self.allocated += 1
        return PreviewReference(id=preview_id, url=f"{self._url_prefix}/{preview_id}")

    def resolve(self, preview_id: str) -> CandidateFile | None:
        return self._live.get(preview_id)

    def revoke(self, reference: PreviewReference) -> None:
        del self._live[reference.id]
        self.released += 1

    def revoke_all(self) -> int:
        count = len(self._live)
        self._live.clear()
        self.released += count
        return count

    @property
    def live_count(self) -> int:
        return len(self._live)

    def __contains__(self, preview_id: object) -> bool:
        return preview_id in self._live


ChangeListener = Callable[["ImageAttachmentManager"], None]


class ImageAttachmentManager:
    """
    Attachment set for one parent record.

    Fields of the set:
        existing_remote: URLs of images already stored, minus those marked
            for removal.
        pending: (file, preview) pairs in insertion order.
        capacity: upper bound on len(existing_remote) + len(pending).
    """

    def __init__(
        self,
        existing_remote: Iterable[str] = (),
        capacity: int = DEFAULT_CAPACITY,
        preview_url_prefix: str = "preview",
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be a positive integer")
        existing_remote = tuple(existing_remote)
        if len(existing_remote) > capacity:
            raise ValueError(
                f"{len(existing_remote)} existing images exceed capacity {capacity}"
            )
        self.capacity = capacity
        self._seeded_remote: tuple[str, ...] = existing_remote
        self._removed_indices: list[int] = []
        self._pending: list[PendingAttachment] = []
        self._previews = PreviewRegistry(preview_url_prefix)
        self._listeners: list[ChangeListener] = []
        self._closed = False

    # ── Derived values ────────────────────────────────────────────────────────

    @property
    def existing_remote(self) -> list[str]:
        removed = set(self._removed_indices)
        return [url for i, url in enumerate(self._seeded_remote) if i not in removed]

    @property
    def removed_remote(self) -> list[str]:
        return [self._seeded_remote[i] for i in self._removed_indices]

    @property
    def pending(self) -> list[PendingAttachment]:
        return list(self._pending)

    @property
    def pending_files(self) -> list[CandidateFile]:
        return [entry.file for entry in self._pending]

    @property
    def previews(self) -> list[PreviewReference]:
        return [entry.preview for entry in self._pending]

    @property
    def total_count(self) -> int:
        return len(self._seeded_remote) - len(self._removed_indices) + len(self._pending)

    @property
    def can_add_more(self) -> bool:
        return self.total_count < self.capacity

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def preview_registry(self) -> PreviewRegistry:
        return self._previews

    def resolve_preview(self, preview_id: str) -> CandidateFile | None:
        """Return the pending file behind a live preview id, or None."""
        return self._previews.resolve(preview_id)

    # ── Mutations ─────────────────────────────────────────────────────────────

    def add_files(self, candidate_files: Sequence[CandidateFile]) -> AddFilesResult:
        """
        Add a batch of selected files.

        Non-image files are dropped before the capacity check and reported
        back in ``skipped``. If the remaining images do not fit, nothing is
        added and CapacityExceededException is raised.
        """
        self._ensure_open()

        candidate_files = list(candidate_files)
        images = [f for f in candidate_files if f.is_image]
        skipped = [f.filename for f in candidate_files if not f.is_image]
        if skipped:
            logger.info("Skipped %d non-image file(s): %s", len(skipped), skipped)

        would_be_total = self.total_count + len(images)
        if would_be_total > self.capacity:
            logger.info(
                "Rejected batch of %d image(s): %d would exceed capacity %d",
                len(images),
                would_be_total,
                self.capacity,
            )
            raise CapacityExceededException(self.capacity, would_be_total)

        accepted = [
            PendingAttachment(file=f, preview=self._previews.allocate(f)) for f in images
        ]
        self._pending.extend(accepted)

        if accepted:
            self._notify()
        return AddFilesResult(accepted=accepted, skipped=skipped)

    def remove_pending_at(self, index: int) -> bool:
        """Revoke the preview at ``index`` and drop the entry. Out of range is a no-op."""
        self._ensure_open()
        if not 0 <= index < len(self._pending):
            logger.debug(
                "Ignoring pending removal at index %d (have %d)", index, len(self._pending)
            )
            return False

        entry = self._pending[index]
        self._previews.revoke(entry.preview)
        del self._pending[index]
        self._notify()
        return True

    def remove_existing_at(self, index: int) -> str | None:
        """
        Mark the ``index``-th visible remote image for deletion.

        The URL leaves ``existing_remote`` and shows up in ``removed_remote``;
        the stored image is only deleted when the draft is submitted.
        """
        self._ensure_open()
        removed = set(self._removed_indices)
        visible = [i for i in range(len(self._seeded_remote)) if i not in removed]
        if not 0 <= index < len(visible):
            logger.debug(
                "Ignoring remote removal at index %d (have %d)", index, len(visible)
            )
            return None

        seeded_index = visible[index]
        self._removed_indices.append(seeded_index)
        self._notify()
        return self._seeded_remote[seeded_index]

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a change listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ── Teardown ──────────────────────────────────────────────────────────────

    def close(self) -> None:
        """Release every remaining preview. Safe to call more than once."""
        if self._closed:
            return
        released = self._previews.revoke_all()
        self._pending.clear()
        self._listeners.clear()
        self._closed = True
        logger.debug("Attachment set closed, released %d preview(s)", released)

    def __enter__(self) -> "ImageAttachmentManager":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # ── Internals ─────────────────────────────────────────────────────────────

    def _ensure_open(self) -> None:
        if self._closed:
            raise DraftClosedException()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def __repr__(self) -> str:
        return (
            f"<ImageAttachmentManager remote={len(self._seeded_remote) - len(self._removed_indices)} "
            f"pending={len(self._pending)} capacity={self.capacity}>"
        )
