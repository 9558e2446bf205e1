"""Supabase-backed device profile repository."""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from supabase import Client, PostgrestAPIError

from food_diary.domain.profiles import DeviceProfile
from food_diary.errors import ProfileStoreError
from food_diary.services.profiles import DeviceProfileRepository


@dataclass
class SupabaseDeviceProfileRepository(DeviceProfileRepository):
    """Supabase implementation for device profile persistence."""

    client: Client
    table: str = "device_profiles"

    def get_profile(self, device_id: UUID) -> DeviceProfile | None:
        """Return the profile for a device id, if present."""
        try:
            response = (
                self.client.table(self.table)
                .select("id, username, created_at")
                .eq("id", str(device_id))
                .limit(1)
                .execute()
            )
        except PostgrestAPIError as exc:
            raise ProfileStoreError(str(exc)) from exc
        if response.data:
            return _parse_profile(response.data[0])
        return None

    def create_profile(self, profile: DeviceProfile) -> DeviceProfile:
        """Insert a profile row and return the stored representation."""
        try:
            response = (
                self.client.table(self.table)
                .insert(
                    {
                        "id": str(profile.id),
                        "username": profile.username,
                        "created_at": profile.created_at.isoformat(),
                    }
                )
                .execute()
            )
        except PostgrestAPIError as exc:
            raise ProfileStoreError(str(exc)) from exc
        if not response.data:
            raise ProfileStoreError("Failed to create device profile")
        return _parse_profile(response.data[0])

    def touch_last_active(self, device_id: UUID) -> None:
        """Update the last_active timestamp for a device."""
        try:
            self.client.table(self.table).update(
                {"last_active": datetime.now(tz=UTC).isoformat()}
            ).eq("id", str(device_id)).execute()
        except PostgrestAPIError as exc:
            raise ProfileStoreError(str(exc)) from exc


def _parse_profile(row: dict[str, object]) -> DeviceProfile:
    return DeviceProfile(
        id=UUID(str(row["id"])),
        username=str(row["username"]),
        created_at=datetime.fromisoformat(str(row["created_at"])),
    )
