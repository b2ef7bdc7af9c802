"""
Local image storage.
Writes uploaded images under UPLOAD_DIR with a random name and serves them
back under UPLOAD_URL_PREFIX.
"""
from __future__ import annotations

import logging
import os
import uuid
from functools import lru_cache

from pitlane.core.config import settings

logger = logging.getLogger(__name__)


class LocalImageStore:

    def __init__(self, upload_dir: str, url_prefix: str = "/uploads") -> None:
        self.upload_dir = upload_dir
        self.url_prefix = url_prefix.rstrip("/")
        os.makedirs(self.upload_dir, exist_ok=True)

    def upload_image(self, data: bytes, original_name: str, content_type: str) -> str:
        """Persist image bytes and return the public URL of the stored file."""
        extension = os.path.splitext(original_name or "")[1].lower()
        filename = f"{uuid.uuid4().hex}{extension}"
        with open(os.path.join(self.upload_dir, filename), "wb") as f:
            f.write(data)
        logger.info(
            "Stored image %s (%s, %d bytes) as %s",
            original_name,
            content_type,
            len(data),
            filename,
        )
        return f"{self.url_prefix}/{filename}"

    def delete_image(self, url: str) -> bool:
        """Remove the file behind ``url``. A missing file is logged, not raised."""
        file_path = self.path_for(os.path.basename(url))
        if file_path is None or not os.path.exists(file_path):
            logger.warning("Image %s not found in %s, nothing to delete", url, self.upload_dir)
            return False
        os.remove(file_path)
        logger.info("Deleted image %s", url)
        return True

    def image_exists(self, url: str) -> bool:
        file_path = self.path_for(os.path.basename(url))
        return file_path is not None and os.path.exists(file_path)

    def path_for(self, filename: str) -> str | None:
        """Map a stored filename to its path. Rejects anything outside upload_dir."""
        if not filename or filename != os.path.basename(filename) or filename in (".", ".."):
            return None
        return os.path.join(self.upload_dir, filename)


@lru_cache
def get_image_store() -> LocalImageStore:
    """FastAPI dependency returning the process-wide image store."""
    return LocalImageStore(settings.UPLOAD_DIR, settings.UPLOAD_URL_PREFIX)
