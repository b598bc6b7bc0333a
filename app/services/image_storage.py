"""
Disk-backed storage for images attached to HAVE posts.
"""

import os
import re
import uuid
from typing import Optional

from loguru import logger
from starlette.concurrency import run_in_threadpool

from app.utils.errors import InputValidationError, UpstreamError

SAFE_EXTENSION = re.compile(r"^\.[a-z0-9]{1,8}$")


class LocalImageStorage:

    def __init__(self, upload_dir: str, url_prefix: str = "/uploads", max_bytes: int = 5242880):
        self.upload_dir = upload_dir
        self.url_prefix = url_prefix.rstrip("/")
        self.max_bytes = max_bytes

    def validate(self, content_type: Optional[str], size: int) -> None:
        if not content_type or not content_type.startswith("image/"):
            raise InputValidationError("Only image files are allowed")

        if size > self.max_bytes:
            max_mb = self.max_bytes / 1024 / 1024
            raise InputValidationError(f"File too large. Maximum size is {max_mb:g}MB.")

    def _stored_name(self, filename: Optional[str]) -> str:
        ext = os.path.splitext(filename or "")[1].lower()
        if not SAFE_EXTENSION.match(ext):
            ext = ""
        return f"{uuid.uuid4().hex}{ext}"

    def _write(self, path: str, data: bytes) -> None:
        os.makedirs(self.upload_dir, exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)

    async def save(self, data: bytes, filename: Optional[str], content_type: Optional[str]) -> str:
        """
        Validate and persist an uploaded image.

        Returns:
            The public URL the image is served from

        Raises:
            InputValidationError: not an image, or too large
            UpstreamError: the file could not be written
        """
        self.validate(content_type, len(data))

        stored_name = self._stored_name(filename)
        path = os.path.join(self.upload_dir, stored_name)

        try:
            await run_in_threadpool(self._write, path, data)
        except OSError as e:
            logger.error(f"Image upload failed: {e}")
            raise UpstreamError("Error uploading image") from e

        logger.info(f"Image saved: {path}")
        return f"{self.url_prefix}/{stored_name}"

    async def delete(self, url: str) -> None:
        """Remove a previously saved image. Missing files are ignored."""
        if not url.startswith(f"{self.url_prefix}/"):
            return

        stored_name = os.path.basename(url)
        path = os.path.join(self.upload_dir, stored_name)

        try:
            await run_in_threadpool(os.remove, path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Failed to remove image {path}: {e}")
