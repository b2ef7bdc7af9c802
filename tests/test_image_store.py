"""
Local image store tests.
"""
from __future__ import annotations

import os

from pitlane.services.image_store import LocalImageStore


class TestLocalImageStore:
    def test_upload_keeps_extension_and_returns_url(self, tmp_path) -> None:
        store = LocalImageStore(str(tmp_path), "/uploads")
        url = store.upload_image(b"png-bytes", "Rock Store.PNG", "image/png")

        assert url.startswith("/uploads/")
        assert url.endswith(".png")
        assert store.image_exists(url)
        with open(store.path_for(os.path.basename(url)), "rb") as f:
            assert f.read() == b"png-bytes"

    def test_delete_removes_file(self, tmp_path) -> None:
        store = LocalImageStore(str(tmp_path), "/uploads")
        url = store.upload_image(b"jpeg", "a.jpg", "image/jpeg")

        assert store.delete_image(url) is True
        assert not store.image_exists(url)

    def test_delete_missing_file_is_not_an_error(self, tmp_path) -> None:
        store = LocalImageStore(str(tmp_path), "/uploads")
        assert store.delete_image("/uploads/missing.jpg") is False

    def test_path_for_rejects_traversal(self, tmp_path) -> None:
        store = LocalImageStore(str(tmp_path), "/uploads")
        assert store.path_for("../secret.txt") is None
        assert store.path_for("..") is None
        assert store.path_for("") is None
