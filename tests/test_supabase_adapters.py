"""Tests for Supabase adapter implementations."""

from dataclasses import dataclass, field
from datetime import UTC, datetime

import pytest

from food_diary.adapters.supabase_profile_repository import (
    SupabaseDeviceProfileRepository,
)
from food_diary.domain.profiles import DeviceProfile
from food_diary.errors import ProfileStoreError
from tests.conftest import DEVICE_ID


@dataclass
class FakeResponse:
    data: list[dict[str, object]] | None


@dataclass
class FakeTable:
    name: str
    response_queue: dict[str, list[list[dict[str, object]]]] = field(
        default_factory=lambda: {"select": [], "insert": [], "update": []}
    )
    last_payload: object | None = None
    last_filters: list[tuple[str, object]] = field(default_factory=list)

    def queue(self, action: str, data: list[dict[str, object]]) -> None:
        self.response_queue[action].append(data)

    def select(self, *_args) -> "FakeTable":
        self._action = "select"
        return self

    def insert(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "insert"
        self.last_payload = payload
        return self

    def update(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "update"
        self.last_payload = payload
        return self

    def eq(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((column, value))
        return self

    def limit(self, _count: int) -> "FakeTable":
        return self

    def execute(self) -> FakeResponse:
        action = getattr(self, "_action", "select")
        queue = self.response_queue.get(action, [])
        data = queue.pop(0) if queue else []
        return FakeResponse(data=data)


@dataclass
class FakeSupabaseClient:
    tables: dict[str, FakeTable] = field(default_factory=dict)

    def table(self, name: str) -> FakeTable:
        if name not in self.tables:
            self.tables[name] = FakeTable(name=name)
        return self.tables[name]


def test_profile_repository_roundtrip() -> None:
    client = FakeSupabaseClient()
    profiles_table = client.table("device_profiles")
    row = {
        "id": str(DEVICE_ID),
        "username": "user_6f1c2a9e",
        "created_at": "2025-01-01T00:00:00+00:00",
    }
    profiles_table.queue("insert", [row])
    profiles_table.queue("select", [row])

    repository = SupabaseDeviceProfileRepository(client)  # type: ignore[arg-type]
    created = repository.create_profile(
        DeviceProfile(
            id=DEVICE_ID,
            username="user_6f1c2a9e",
            created_at=datetime(2025, 1, 1, tzinfo=UTC),
        )
    )
    fetched = repository.get_profile(DEVICE_ID)

    assert created.id == DEVICE_ID
    assert fetched == created
    assert profiles_table.last_filters == [("id", str(DEVICE_ID))]


def test_profile_repository_missing_profile() -> None:
    repository = SupabaseDeviceProfileRepository(FakeSupabaseClient())  # type: ignore[arg-type]

    assert repository.get_profile(DEVICE_ID) is None


def test_profile_repository_empty_insert_raises() -> None:
    repository = SupabaseDeviceProfileRepository(FakeSupabaseClient())  # type: ignore[arg-type]

    with pytest.raises(ProfileStoreError):
        repository.create_profile(
            DeviceProfile(
                id=DEVICE_ID, username="user_x", created_at=datetime.now(tz=UTC)
            )
        )


def test_profile_repository_touch_updates_last_active() -> None:
    client = FakeSupabaseClient()
    repository = SupabaseDeviceProfileRepository(client)  # type: ignore[arg-type]

    repository.touch_last_active(DEVICE_ID)

    payload = client.table("device_profiles").last_payload
    assert isinstance(payload, dict)
    assert "last_active" in payload
