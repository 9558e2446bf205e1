"""Domain models for food diary entries."""

from collections.abc import Iterable
from datetime import UTC, datetime
from enum import StrEnum
from urllib.parse import quote
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MealType(StrEnum):
    """Meal slot a diary entry belongs to."""

    BREAKFAST = "breakfast"
    BRUNCH = "brunch"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"


class FeedMode(StrEnum):
    """Which entries a service instance shows."""

    PERSONAL = "personal"
    ALL = "all"
    RANDOM = "random"


class FoodEntry(BaseModel):
    """A single food diary post as stored in the food_entries table."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: UUID
    device_id: UUID
    title: str
    description: str | None = None
    photo_url: str | None = None
    meal_type: MealType
    ingredients: list[str] = Field(default_factory=list)
    date_created: datetime = Field(alias="created_at")
    meal_date: datetime

    @field_validator("date_created", "meal_date")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        # Naive timestamps are read as UTC so entries stay comparable.
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def to_row(self) -> dict[str, object]:
        """Serialize to the snake_case JSON row the REST API expects."""
        return self.model_dump(mode="json", by_alias=True)

    def image_url(self, public_base: str) -> str | None:
        """Resolve photo_url against the bucket's public URL prefix."""
        if not self.photo_url:
            return None
        if self.photo_url.startswith("http"):
            return self.photo_url
        return f"{public_base.rstrip('/')}/{quote(self.photo_url, safe='/')}"


class DeviceFeedParams(BaseModel):
    """Arguments of the get_device_feed RPC."""

    target_device_id: UUID
    search_query: str | None = None

    def to_payload(self) -> dict[str, object]:
        # The RPC is overloaded on arity, so an inactive search is omitted.
        return self.model_dump(mode="json", exclude_none=True)


class UploadResponse(BaseModel):
    """Storage API answer to an object upload."""

    model_config = ConfigDict(populate_by_name=True)

    key: str = Field(alias="Key")


def normalize_ingredients(ingredients: Iterable[str]) -> list[str]:
    """Trim ingredients and drop empty ones.

    A list that filters down to nothing is stored as a single empty string,
    since the column does not accept an empty array.
    """
    cleaned = [item.strip() for item in ingredients]
    cleaned = [item for item in cleaned if item]
    return cleaned or [""]


def sort_by_meal_date(entries: Iterable[FoodEntry]) -> list[FoodEntry]:
    """Return entries ordered by meal date, newest first."""
    return sorted(entries, key=lambda entry: entry.meal_date, reverse=True)
