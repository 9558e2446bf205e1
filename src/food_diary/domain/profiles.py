"""Domain models for device profiles."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True)
class DeviceProfile:
    """Represents the profile row owned by one device."""

    id: UUID
    username: str
    created_at: datetime


def default_username(device_id: UUID) -> str:
    """Build the username derived from the device id."""
    return f"user_{str(device_id)[:8]}"
