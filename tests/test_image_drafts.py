"""
Image draft endpoint tests.
Covers: open, add (capacity, filtering, size), previews, pending/existing
removal, submit and its failure paths, discard, ownership.
"""
from __future__ import annotations

import uuid
from typing import Any

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from pitlane.core.config import settings
from pitlane.crud.pitstop import crud_pitstop
from pitlane.models.user import User
from pitlane.services.draft_registry import ImageDraftRegistry
from pitlane.services.image_store import LocalImageStore
from pitlane.services.pitstop_image_service import pitstop_image_service

pytestmark = pytest.mark.asyncio(loop_scope="session")


def _jpeg(name: str) -> tuple[str, tuple[str, bytes, str]]:
    return ("files", (name, f"jpeg:{name}".encode(), "image/jpeg"))


def _text(name: str) -> tuple[str, tuple[str, bytes, str]]:
    return ("files", (name, b"just some notes", "text/plain"))


async def _seed_images(
    db: AsyncSession, image_store: LocalImageStore, pitstop_id: str, count: int
) -> list[str]:
    urls = [
        image_store.upload_image(f"stored-{i}".encode(), f"stored-{i}.jpg", "image/jpeg")
        for i in range(count)
    ]
    pitstop = await crud_pitstop.get(db, uuid.UUID(pitstop_id))
    await crud_pitstop.set_image_urls(db, pitstop=pitstop, image_urls=urls)
    return urls


async def _open_draft(
    client: AsyncClient, headers: dict, pitstop_id: str, **params: Any
) -> dict:
    response = await client.post(
        f"/api/v1/pitstops/{pitstop_id}/image-drafts", params=params, headers=headers
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestOpenDraft:
    async def test_open_draft_success(
        self, client: AsyncClient, auth_headers: dict, pitstop: dict
    ) -> None:
        draft = await _open_draft(client, auth_headers, pitstop["id"])
        assert draft["pitstop_id"] == pitstop["id"]
        assert draft["capacity"] == settings.MAX_PITSTOP_IMAGES
        assert draft["existing_remote"] == []
        assert draft["pending"] == []
        assert draft["total_count"] == 0
        assert draft["can_add_more"] is True

    async def test_open_draft_seeded_with_stored_images(
        self,
        client: AsyncClient,
        auth_headers: dict,
        pitstop: dict,
        db: AsyncSession,
        image_store: LocalImageStore,
    ) -> None:
        urls = await _seed_images(db, image_store, pitstop["id"], 2)
        draft = await _open_draft(client, auth_headers, pitstop["id"])
        assert draft["existing_remote"] == urls
        assert draft["total_count"] == 2

    async def test_open_draft_custom_capacity(
        self, client: AsyncClient, auth_headers: dict, pitstop: dict
    ) -> None:
        draft = await _open_draft(client, auth_headers, pitstop["id"], capacity=5)
        assert draft["capacity"] == 5

    async def test_open_draft_not_owner(
        self, client: AsyncClient, other_headers: dict, pitstop: dict
    ) -> None:
        response = await client.post(
            f"/api/v1/pitstops/{pitstop['id']}/image-drafts", headers=other_headers
        )
        assert response.status_code == 403

    async def test_open_draft_unknown_pitstop(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        fake_id = "00000000-0000-0000-0000-000000000000"
        response = await client.post(
            f"/api/v1/pitstops/{fake_id}/image-drafts", headers=auth_headers
        )
        assert response.status_code == 404

    async def test_open_draft_unauthenticated(
        self, client: AsyncClient, pitstop: dict
    ) -> None:
        response = await client.post(f"/api/v1/pitstops/{pitstop['id']}/image-drafts")
        assert response.status_code == 401


class TestAddFiles:
    async def test_add_images_and_skip_non_images(
        self, client: AsyncClient, auth_headers: dict, pitstop: dict
    ) -> None:
        draft = await _open_draft(client, auth_headers, pitstop["id"])
        response = await client.post(
            f"/api/v1/image-drafts/{draft['id']}/files",
            files=[_jpeg("image1.jpg"), _text("notes.txt"), _jpeg("image2.jpg")],
            headers=auth_headers,
        )
        assert response.status_code == 200, response.text
        data = response.json()
        assert data["accepted"] == 2
        assert data["skipped"] == ["notes.txt"]
        pending = data["draft"]["pending"]
        assert [p["filename"] for p in pending] == ["image1.jpg", "image2.jpg"]
        assert [p["index"] for p in pending] == [0, 1]
        assert data["draft"]["total_count"] == 2

    async def test_add_over_capacity_rejected(
        self,
        client: AsyncClient,
        auth_headers: dict,
        pitstop: dict,
        db: AsyncSession,
        image_store: LocalImageStore,
    ) -> None:
        await _seed_images(db, image_store, pitstop["id"], 2)
        draft = await _open_draft(client, auth_headers, pitstop["id"])

        response = await client.post(
            f"/api/v1/image-drafts/{draft['id']}/files",
            files=[_jpeg("a.jpg"), _jpeg("b.jpg")],
            headers=auth_headers,
        )
        assert response.status_code == 422
        assert response.json()["error"] == "CAPACITY_EXCEEDED"

        state = await client.get(f"/api/v1/image-drafts/{draft['id']}", headers=auth_headers)
        assert state.json()["pending"] == []
        assert state.json()["total_count"] == 2

    async def test_fill_to_capacity(
        self, client: AsyncClient, auth_headers: dict, pitstop: dict
    ) -> None:
        draft = await _open_draft(client, auth_headers, pitstop["id"])
        response = await client.post(
            f"/api/v1/image-drafts/{draft['id']}/files",
            files=[_jpeg("a.jpg"), _jpeg("b.jpg"), _jpeg("c.jpg")],
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["draft"]["can_add_more"] is False

    async def test_file_too_large(
        self,
        client: AsyncClient,
        auth_headers: dict,
        pitstop: dict,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        draft = await _open_draft(client, auth_headers, pitstop["id"])
        monkeypatch.setattr(settings, "MAX_FILE_SIZE_MB", 0)

        response = await client.post(
            f"/api/v1/image-drafts/{draft['id']}/files",
            files=[_jpeg("huge.jpg")],
            headers=auth_headers,
        )
        assert response.status_code == 413

        monkeypatch.undo()
        state = await client.get(f"/api/v1/image-drafts/{draft['id']}", headers=auth_headers)
        assert state.json()["pending"] == []

    async def test_oversized_non_image_is_skipped(
        self,
        client: AsyncClient,
        auth_headers: dict,
        pitstop: dict,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        draft = await _open_draft(client, auth_headers, pitstop["id"])
        monkeypatch.setattr(settings, "MAX_FILE_SIZE_MB", 1)

        response = await client.post(
            f"/api/v1/image-drafts/{draft['id']}/files",
            files=[
                ("files", ("route.gpx", b"x" * (2 * 1024 * 1024), "application/gpx+xml")),
                _jpeg("small.jpg"),
            ],
            headers=auth_headers,
        )
        assert response.status_code == 200, response.text
        data = response.json()
        assert data["accepted"] == 1
        assert data["skipped"] == ["route.gpx"]

    async def test_add_to_other_users_draft_forbidden(
        self,
        client: AsyncClient,
        auth_headers: dict,
        other_headers: dict,
        pitstop: dict,
    ) -> None:
        draft = await _open_draft(client, auth_headers, pitstop["id"])
        response = await client.post(
            f"/api/v1/image-drafts/{draft['id']}/files",
            files=[_jpeg("a.jpg")],
            headers=other_headers,
        )
        assert response.status_code == 403


class TestPreviewsAndRemoval:
    async def test_preview_served_until_removed(
        self, client: AsyncClient, auth_headers: dict, pitstop: dict
    ) -> None:
        draft = await _open_draft(client, auth_headers, pitstop["id"])
        response = await client.post(
            f"/api/v1/image-drafts/{draft['id']}/files",
            files=[_jpeg("p0.jpg"), _jpeg("p1.jpg"), _jpeg("p2.jpg")],
            headers=auth_headers,
        )
        pending = response.json()["draft"]["pending"]
        middle_preview = pending[1]["preview_url"]

        preview = await client.get(middle_preview, headers=auth_headers)
        assert preview.status_code == 200
        assert preview.content == b"jpeg:p1.jpg"
        assert preview.headers["content-type"] == "image/jpeg"

        response = await client.delete(
            f"/api/v1/image-drafts/{draft['id']}/pending/1", headers=auth_headers
        )
        assert response.status_code == 200
        assert [p["filename"] for p in response.json()["pending"]] == ["p0.jpg", "p2.jpg"]

        preview = await client.get(middle_preview, headers=auth_headers)
        assert preview.status_code == 404

    async def test_remove_pending_out_of_range_is_noop(
        self, client: AsyncClient, auth_headers: dict, pitstop: dict
    ) -> None:
        draft = await _open_draft(client, auth_headers, pitstop["id"])
        await client.post(
            f"/api/v1/image-drafts/{draft['id']}/files",
            files=[_jpeg("a.jpg")],
            headers=auth_headers,
        )
        response = await client.delete(
            f"/api/v1/image-drafts/{draft['id']}/pending/1", headers=auth_headers
        )
        assert response.status_code == 200
        assert len(response.json()["pending"]) == 1

    async def test_remove_existing_frees_slot(
        self,
        client: AsyncClient,
        auth_headers: dict,
        pitstop: dict,
        db: AsyncSession,
        image_store: LocalImageStore,
    ) -> None:
        urls = await _seed_images(db, image_store, pitstop["id"], 3)
        draft = await _open_draft(client, auth_headers, pitstop["id"])
        assert draft["can_add_more"] is False

        response = await client.delete(
            f"/api/v1/image-drafts/{draft['id']}/existing/0", headers=auth_headers
        )
        assert response.status_code == 200
        data = response.json()
        assert data["existing_remote"] == urls[1:]
        assert data["removed_remote"] == urls[:1]
        assert data["can_add_more"] is True
        # Nothing is deleted until the draft is submitted
        assert image_store.image_exists(urls[0])


class TestSubmitAndDiscard:
    async def test_submit_persists_images(
        self,
        client: AsyncClient,
        auth_headers: dict,
        pitstop: dict,
        db: AsyncSession,
        image_store: LocalImageStore,
    ) -> None:
        urls = await _seed_images(db, image_store, pitstop["id"], 2)
        draft = await _open_draft(client, auth_headers, pitstop["id"])

        await client.delete(
            f"/api/v1/image-drafts/{draft['id']}/existing/0", headers=auth_headers
        )
        await client.post(
            f"/api/v1/image-drafts/{draft['id']}/files",
            files=[_jpeg("new1.jpg"), _jpeg("new2.jpg")],
            headers=auth_headers,
        )

        response = await client.post(
            f"/api/v1/image-drafts/{draft['id']}/submit", headers=auth_headers
        )
        assert response.status_code == 200, response.text
        image_urls = response.json()["image_urls"]
        assert len(image_urls) == 3
        assert image_urls[0] == urls[1]
        assert all(image_store.image_exists(url) for url in image_urls)
        assert not image_store.image_exists(urls[0])

        uploaded = await client.get(image_urls[1])
        assert uploaded.status_code == 200
        assert uploaded.content == b"jpeg:new1.jpg"

        state = await client.get(f"/api/v1/image-drafts/{draft['id']}", headers=auth_headers)
        assert state.status_code == 404

    async def test_draft_unreachable_while_submitting(
        self,
        client: AsyncClient,
        auth_headers: dict,
        pitstop: dict,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        draft = await _open_draft(client, auth_headers, pitstop["id"])
        await client.post(
            f"/api/v1/image-drafts/{draft['id']}/files",
            files=[_jpeg("a.jpg")],
            headers=auth_headers,
        )

        concurrent_statuses: list[int] = []
        original_set_image_urls = crud_pitstop.set_image_urls

        async def set_image_urls_during_other_requests(db, **kwargs):
            added = await client.post(
                f"/api/v1/image-drafts/{draft['id']}/files",
                files=[_jpeg("b.jpg")],
                headers=auth_headers,
            )
            resubmitted = await client.post(
                f"/api/v1/image-drafts/{draft['id']}/submit", headers=auth_headers
            )
            concurrent_statuses.extend([added.status_code, resubmitted.status_code])
            return await original_set_image_urls(db, **kwargs)

        monkeypatch.setattr(
            crud_pitstop, "set_image_urls", set_image_urls_during_other_requests
        )
        response = await client.post(
            f"/api/v1/image-drafts/{draft['id']}/submit", headers=auth_headers
        )

        assert response.status_code == 200, response.text
        assert concurrent_statuses == [404, 404]
        assert len(response.json()["image_urls"]) == 1

    async def test_discard_draft(
        self, client: AsyncClient, auth_headers: dict, pitstop: dict
    ) -> None:
        draft = await _open_draft(client, auth_headers, pitstop["id"])
        added = await client.post(
            f"/api/v1/image-drafts/{draft['id']}/files",
            files=[_jpeg("a.jpg")],
            headers=auth_headers,
        )
        preview_url = added.json()["draft"]["pending"][0]["preview_url"]

        response = await client.delete(
            f"/api/v1/image-drafts/{draft['id']}", headers=auth_headers
        )
        assert response.status_code == 204

        state = await client.get(f"/api/v1/image-drafts/{draft['id']}", headers=auth_headers)
        assert state.status_code == 404
        preview = await client.get(preview_url, headers=auth_headers)
        assert preview.status_code == 404

        listed = await client.get(
            f"/api/v1/drive-logs/{pitstop['drive_log_id']}/pitstops", headers=auth_headers
        )
        assert listed.json()[0]["image_urls"] == []

    async def test_discard_other_users_draft_forbidden(
        self,
        client: AsyncClient,
        auth_headers: dict,
        other_headers: dict,
        pitstop: dict,
    ) -> None:
        draft = await _open_draft(client, auth_headers, pitstop["id"])
        response = await client.delete(
            f"/api/v1/image-drafts/{draft['id']}", headers=other_headers
        )
        assert response.status_code == 403


class TestSubmitFailures:
    """Submissions that fail part way leave the pitstop and the draft as they were."""

    async def _prepare(
        self,
        client: AsyncClient,
        auth_headers: dict,
        pitstop: dict,
        db: AsyncSession,
        image_store: LocalImageStore,
    ) -> tuple[dict, list[str]]:
        stored = await _seed_images(db, image_store, pitstop["id"], 1)
        draft = await _open_draft(client, auth_headers, pitstop["id"])
        await client.delete(
            f"/api/v1/image-drafts/{draft['id']}/existing/0", headers=auth_headers
        )
        await client.post(
            f"/api/v1/image-drafts/{draft['id']}/files",
            files=[_jpeg("first.jpg"), _jpeg("second.jpg")],
            headers=auth_headers,
        )
        return draft, stored

    async def _submit(
        self,
        db: AsyncSession,
        draft: dict,
        driver: User,
        registry: ImageDraftRegistry,
        image_store: LocalImageStore,
    ) -> None:
        await pitstop_image_service.submit_draft(
            db,
            draft_id=uuid.UUID(draft["id"]),
            current_user=driver,
            registry=registry,
            image_store=image_store,
        )

    async def test_upload_failure_keeps_draft_open(
        self,
        client: AsyncClient,
        auth_headers: dict,
        pitstop: dict,
        db: AsyncSession,
        driver: User,
        registry: ImageDraftRegistry,
        image_store: LocalImageStore,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        draft, stored = await self._prepare(client, auth_headers, pitstop, db, image_store)
        written: list[str] = []
        original_upload = image_store.upload_image

        def upload_until_disk_full(data: bytes, name: str, content_type: str) -> str:
            if written:
                raise OSError(28, "No space left on device")
            written.append(original_upload(data, name, content_type))
            return written[-1]

        monkeypatch.setattr(image_store, "upload_image", upload_until_disk_full)
        with pytest.raises(OSError):
            await self._submit(db, draft, driver, registry, image_store)

        assert len(written) == 1
        assert not image_store.image_exists(written[0])
        assert image_store.image_exists(stored[0])

        state = await client.get(f"/api/v1/image-drafts/{draft['id']}", headers=auth_headers)
        assert state.status_code == 200
        assert [p["filename"] for p in state.json()["pending"]] == ["first.jpg", "second.jpg"]
        assert state.json()["removed_remote"] == stored

        listed = await client.get(
            f"/api/v1/drive-logs/{pitstop['drive_log_id']}/pitstops", headers=auth_headers
        )
        assert listed.json()[0]["image_urls"] == stored

    async def test_persist_failure_removes_uploaded_files(
        self,
        client: AsyncClient,
        auth_headers: dict,
        pitstop: dict,
        db: AsyncSession,
        driver: User,
        registry: ImageDraftRegistry,
        image_store: LocalImageStore,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        draft, stored = await self._prepare(client, auth_headers, pitstop, db, image_store)
        uploaded: list[str] = []
        original_upload = image_store.upload_image

        def recording_upload(data: bytes, name: str, content_type: str) -> str:
            uploaded.append(original_upload(data, name, content_type))
            return uploaded[-1]

        async def failing_set_image_urls(db, **kwargs):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(image_store, "upload_image", recording_upload)
        monkeypatch.setattr(crud_pitstop, "set_image_urls", failing_set_image_urls)
        with pytest.raises(RuntimeError):
            await self._submit(db, draft, driver, registry, image_store)

        assert len(uploaded) == 2
        assert not any(image_store.image_exists(url) for url in uploaded)
        assert image_store.image_exists(stored[0])
        assert uuid.UUID(draft["id"]) in registry

    async def test_commit_failure_keeps_marked_images(
        self,
        client: AsyncClient,
        auth_headers: dict,
        pitstop: dict,
        db: AsyncSession,
        driver: User,
        registry: ImageDraftRegistry,
        image_store: LocalImageStore,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        draft, stored = await self._prepare(client, auth_headers, pitstop, db, image_store)
        await db.commit()
        owner_id = driver.id

        async def failing_commit() -> None:
            raise RuntimeError("connection lost during commit")

        monkeypatch.setattr(db, "commit", failing_commit)
        with pytest.raises(RuntimeError):
            await self._submit(db, draft, driver, registry, image_store)
        monkeypatch.undo()
        await db.rollback()

        assert image_store.image_exists(stored[0])
        restored = registry.get(uuid.UUID(draft["id"]), owner_id)
        assert len(restored.manager.pending) == 2
        assert restored.manager.removed_remote == stored

        reloaded = await crud_pitstop.get_with_drive_log(db, uuid.UUID(pitstop["id"]))
        assert reloaded.image_urls == stored
