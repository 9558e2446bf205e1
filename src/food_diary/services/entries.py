"""Feed state and entry mutations backed by the REST API."""

import asyncio
import logging
import random
from collections.abc import Callable, Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Protocol
from uuid import UUID, uuid4

from food_diary.adapters.http_client import (
    PREFER_MINIMAL,
    PREFER_REPRESENTATION,
    EmptyResponse,
    RestClient,
    RestRequest,
)
from food_diary.adapters.storage_image_uploader import ImageUploader
from food_diary.domain.entries import (
    DeviceFeedParams,
    FeedMode,
    FoodEntry,
    MealType,
    normalize_ingredients,
    sort_by_meal_date,
)
from food_diary.errors import (
    DeviceIdNotAvailableError,
    InvalidImageDataError,
    InvalidResponseError,
    RequestCancelledError,
)
from food_diary.services.images import ImageProcessor, process_for_upload

_logger = logging.getLogger(__name__)

_SEARCH_RESERVED = str.maketrans("", "", ',()"*')

Listener = Callable[["FoodEntryService"], None]


class PhotoSource(Protocol):
    """A user-picked photo whose bytes are loaded lazily."""

    async def load_bytes(self) -> bytes | None:
        """Return the raw photo bytes, or None if unavailable."""


class PersonalFeedStrategy(StrEnum):
    """How the personal feed is queried."""

    RPC = "rpc"
    TABLE = "table"


@dataclass
class FoodEntryService:
    """Owns the in-memory entry list for one feed mode.

    Every operation takes a ticket when issued. A fetch only replaces the list
    if no newer operation has already been applied, so a slow fetch cannot
    undo a later create, update or delete.
    """

    client: RestClient
    uploader: ImageUploader
    feed_mode: FeedMode = FeedMode.PERSONAL
    device_id: UUID | None = None
    image_processor: ImageProcessor = process_for_upload
    table: str = "food_entries"
    personal_strategy: PersonalFeedStrategy = PersonalFeedStrategy.RPC
    random_limit: int = 20
    max_upload_size: int = 5 * 1024 * 1024
    progress_step_delay: float = 0.1
    scope: str = field(default_factory=lambda: f"entries-{uuid4()}")
    _entries: list[FoodEntry] = field(default_factory=list, init=False)
    _pending: int = field(default=0, init=False)
    _upload_progress: float | None = field(default=None, init=False)
    _issued: int = field(default=0, init=False)
    _last_applied: int = field(default=0, init=False)
    _listeners: list[Listener] = field(default_factory=list, init=False)

    @property
    def entries(self) -> tuple[FoodEntry, ...]:
        return tuple(self._entries)

    @property
    def is_loading(self) -> bool:
        return self._pending > 0

    @property
    def upload_progress(self) -> float | None:
        return self._upload_progress

    @property
    def _table_path(self) -> str:
        return f"rest/v1/{self.table}"

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback run after every state change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def fetch_entries(self, search_query: str | None = None) -> bool:
        """Replace the list with the current feed.

        Returns False when the result was discarded as stale.
        """
        query = (search_query or "").strip() or None
        with self._operation() as ticket:
            entries = await self._query(query)
            if ticket <= self._last_applied:
                _logger.info(
                    "Discarding stale fetch ticket=%s applied=%s mode=%s",
                    ticket,
                    self._last_applied,
                    self.feed_mode,
                )
                return False
            if self.feed_mode is FeedMode.RANDOM:
                random.shuffle(entries)
            else:
                entries = sort_by_meal_date(entries)
            self._entries = entries
            self._mark_applied(ticket)
            return True

    async def add_entry(  # noqa: PLR0913
        self,
        title: str,
        description: str | None,
        meal_type: MealType | str,
        ingredients: Sequence[str],
        meal_date: datetime,
        photo: PhotoSource | None = None,
    ) -> FoodEntry:
        """Create an entry, uploading its photo first when one is given."""
        with self._operation() as ticket:
            try:
                device_id = self._require_device_id()
                photo_url = None
                if photo is not None:
                    photo_url = await self._upload_photo(photo)
                entry = FoodEntry(
                    id=uuid4(),
                    device_id=device_id,
                    title=title,
                    description=description,
                    photo_url=photo_url,
                    meal_type=MealType(meal_type),
                    ingredients=normalize_ingredients(ingredients),
                    date_created=datetime.now(tz=UTC),
                    meal_date=meal_date,
                )
                rows = await self.client.execute(
                    RestRequest(
                        method="POST",
                        path=self._table_path,
                        json=entry.to_row(),
                        prefer=PREFER_REPRESENTATION,
                    ),
                    list[FoodEntry],
                    scope=self.scope,
                )
                if not rows:
                    raise InvalidResponseError("Entry was not returned after insert")
                created = rows[0]
                _logger.info("Created entry id=%s mode=%s", created.id, self.feed_mode)
                if self.feed_mode is FeedMode.PERSONAL:
                    self._entries = sort_by_meal_date([created, *self._entries])
                    self._mark_applied(ticket)
                return created
            finally:
                self._set_progress(None)

    async def update_entry(self, entry: FoodEntry) -> FoodEntry:
        """Replace an entry with the submitted record."""
        submitted = entry.model_copy(
            update={"ingredients": normalize_ingredients(entry.ingredients)}
        )
        with self._operation() as ticket:
            rows = await self.client.execute(
                RestRequest(
                    method="PATCH",
                    path=self._table_path,
                    params={"id": f"eq.{entry.id}"},
                    json=submitted.to_row(),
                    prefer=PREFER_REPRESENTATION,
                ),
                list[FoodEntry],
                scope=self.scope,
            )
            updated = rows[0] if rows else submitted
            _logger.info("Updated entry id=%s", updated.id)
            if self.feed_mode is FeedMode.PERSONAL:
                self._entries = sort_by_meal_date(
                    _replace_by_id(self._entries, updated)
                )
                self._mark_applied(ticket)
            return updated

    async def delete_entry(self, entry: FoodEntry) -> None:
        """Delete an entry by id."""
        with self._operation() as ticket:
            await self.client.execute(
                RestRequest(
                    method="DELETE",
                    path=self._table_path,
                    params={"id": f"eq.{entry.id}"},
                    prefer=PREFER_MINIMAL,
                ),
                EmptyResponse,
                scope=self.scope,
            )
            _logger.info("Deleted entry id=%s", entry.id)
            if self.feed_mode is FeedMode.PERSONAL:
                self._entries = [item for item in self._entries if item.id != entry.id]
                self._mark_applied(ticket)

    def close(self) -> int:
        """Cancel this service's outstanding requests."""
        return self.client.cancel_all(scope=self.scope)

    async def _query(self, search_query: str | None) -> list[FoodEntry]:
        if self.feed_mode is FeedMode.PERSONAL:
            device_id = self._require_device_id()
            if self.personal_strategy is PersonalFeedStrategy.RPC:
                params = DeviceFeedParams(
                    target_device_id=device_id, search_query=search_query
                )
                return await self.client.execute(
                    RestRequest(
                        method="POST",
                        path="rest/v1/rpc/get_device_feed",
                        json=params.to_payload(),
                    ),
                    list[FoodEntry],
                    scope=self.scope,
                )
            filters = {"device_id": f"eq.{device_id}", "order": "meal_date.desc"}
        elif self.feed_mode is FeedMode.ALL:
            filters = {"order": "meal_date.desc"}
        else:
            filters = {"order": "created_at.desc", "limit": str(self.random_limit)}

        if search_query and self.feed_mode is not FeedMode.RANDOM:
            term_filter = search_filter(search_query)
            if term_filter is not None:
                filters["or"] = term_filter
        return await self.client.get(
            self._table_path, list[FoodEntry], params=filters, scope=self.scope
        )

    async def _upload_photo(self, photo: PhotoSource) -> str:
        self._set_progress(0.0)
        try:
            raw = await photo.load_bytes()
            processed = (
                await asyncio.to_thread(self.image_processor, raw) if raw else None
            )
            if not processed:
                raise InvalidImageDataError()
            if len(processed) > self.max_upload_size:
                raise InvalidImageDataError(
                    f"Photo is {len(processed)} bytes, limit is {self.max_upload_size}"
                )
            for step in range(9):
                self._set_progress(step / 10)
                await asyncio.sleep(self.progress_step_delay)
            photo_url = await self.uploader.upload_image(processed, scope=self.scope)
        except asyncio.CancelledError as exc:
            _logger.info("Add entry cancelled during photo step")
            raise RequestCancelledError() from exc
        self._set_progress(1.0)
        return photo_url

    def _require_device_id(self) -> UUID:
        if self.device_id is None:
            raise DeviceIdNotAvailableError()
        return self.device_id

    @contextmanager
    def _operation(self) -> Iterator[int]:
        self._issued += 1
        ticket = self._issued
        self._pending += 1
        self._notify()
        try:
            yield ticket
        finally:
            self._pending -= 1
            self._notify()

    def _mark_applied(self, ticket: int) -> None:
        self._last_applied = max(self._last_applied, ticket)
        self._notify()

    def _set_progress(self, value: float | None) -> None:
        if value == self._upload_progress:
            return
        self._upload_progress = value
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)


def search_filter(search_query: str) -> str | None:
    """Build a PostgREST or-filter matching title or description.

    Returns None when nothing searchable is left after stripping reserved
    characters.
    """
    term = search_query.translate(_SEARCH_RESERVED).strip()
    if not term:
        return None
    return f"(title.ilike.*{term}*,description.ilike.*{term}*)"


def _replace_by_id(
    entries: Iterable[FoodEntry], updated: FoodEntry
) -> Iterator[FoodEntry]:
    for entry in entries:
        yield updated if entry.id == updated.id else entry
