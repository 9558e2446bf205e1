"""Application configuration."""

import os
from uuid import UUID

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_anon_key: str
    device_id: UUID | None = None
    network_timeout: float = 30.0
    retry_attempts: int = 3
    retry_delay: float = 2.0
    food_images_bucket: str = "food-images"
    food_entries_table: str = "food_entries"
    profiles_table: str = "device_profiles"
    max_upload_size: int = 5 * 1024 * 1024
    random_feed_limit: int = 20
    search_debounce: float = 0.5
    progress_step_delay: float = 0.1
    connectivity_poll_interval: float = 5.0
    personal_feed_strategy: str = "rpc"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @property
    def base_url(self) -> str:
        """Project URL without a trailing slash."""
        return self.supabase_url.rstrip("/")

    @property
    def storage_url(self) -> str:
        """Root of the storage object API."""
        return f"{self.base_url}/storage/v1/object"

    def storage_public_url(self, bucket: str) -> str:
        """Public object prefix for a bucket."""
        return f"{self.storage_url}/public/{bucket}"
