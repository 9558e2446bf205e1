"""Device profile lifecycle."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID, uuid4

from food_diary.domain.profiles import DeviceProfile, default_username
from food_diary.errors import ProfileStoreError

_logger = logging.getLogger(__name__)


class DeviceProfileRepository(Protocol):
    """Persistence interface for device profiles."""

    def get_profile(self, device_id: UUID) -> DeviceProfile | None:
        """Return the profile for a device id, if present."""

    def create_profile(self, profile: DeviceProfile) -> DeviceProfile:
        """Create and return a profile row."""

    def touch_last_active(self, device_id: UUID) -> None:
        """Update the last active timestamp for the device."""


@dataclass
class DeviceProfileService:
    """Ensures every device has exactly one profile."""

    repository: DeviceProfileRepository
    current_profile: DeviceProfile | None = None

    def ensure_profile(self, device_id: UUID | None) -> DeviceProfile | None:
        """Return the device's profile, creating it on first launch."""
        if device_id is None:
            _logger.warning("No device id available; skipping profile setup")
            return None

        try:
            existing = self.repository.get_profile(device_id)
            if existing:
                self.current_profile = existing
                self._touch(device_id)
                return existing
            created = self.repository.create_profile(
                DeviceProfile(
                    id=device_id,
                    username=default_username(device_id),
                    created_at=datetime.now(tz=UTC),
                )
            )
        except ProfileStoreError as exc:
            _logger.warning("Profile setup failed, retrying with new username: %s", exc)
            created = self._create_fallback(device_id)

        self.current_profile = created
        return created

    def _create_fallback(self, device_id: UUID) -> DeviceProfile | None:
        try:
            return self.repository.create_profile(
                DeviceProfile(
                    id=device_id,
                    username=f"user_{uuid4().hex[:8]}",
                    created_at=datetime.now(tz=UTC),
                )
            )
        except ProfileStoreError:
            _logger.exception("Fallback profile creation failed")
            return None

    def _touch(self, device_id: UUID) -> None:
        try:
            self.repository.touch_last_active(device_id)
        except ProfileStoreError as exc:
            _logger.warning("Failed to update last_active: %s", exc)
