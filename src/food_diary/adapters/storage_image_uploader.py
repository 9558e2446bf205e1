"""Supabase storage adapter for food photos."""

import logging
from dataclasses import dataclass
from typing import Protocol
from uuid import uuid4

from food_diary.adapters.http_client import RestClient

_logger = logging.getLogger(__name__)


class ImageUploader(Protocol):
    """Interface for storing processed photos."""

    async def upload_image(self, data: bytes, scope: str | None = None) -> str:
        """Store JPEG bytes and return their public URL."""


@dataclass
class StorageImageUploader(ImageUploader):
    """Uploads photos into a storage bucket through the REST client.

    public_base is the bucket's public object prefix, as produced by
    Settings.storage_public_url.
    """

    client: RestClient
    bucket: str
    public_base: str

    async def upload_image(self, data: bytes, scope: str | None = None) -> str:
        """Upload under a fresh file name and return the bucket's public URL."""
        filename = f"{uuid4()}.jpg"
        path = f"storage/v1/object/{self.bucket}/{filename}"
        key = await self.client.upload(data, path, content_type="image/jpeg", scope=scope)
        public_url = f"{self.public_base.rstrip('/')}/{filename}"
        _logger.info("Uploaded photo key=%s url=%s", key, public_url)
        return public_url
