"""Caller-side helpers for debounced search and pull-to-refresh."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from food_diary.errors import FoodDiaryError, RequestCancelledError
from food_diary.services.entries import FoodEntryService

_logger = logging.getLogger(__name__)


@dataclass
class DebouncedSearch:
    """Runs a feed search once typing has paused.

    Each submit cancels the pending run. A run only fetches if its text is
    still the current text once the delay has elapsed.
    """

    service: FoodEntryService
    delay: float = 0.5
    on_error: Callable[[FoodDiaryError], None] | None = None
    current_text: str = ""
    _task: asyncio.Task[None] | None = field(default=None, init=False)

    def submit(self, text: str) -> asyncio.Task[None]:
        """Schedule a search for text, superseding any pending one."""
        self.current_text = text
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run(text))
        return self._task

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def _run(self, text: str) -> None:
        await asyncio.sleep(self.delay)
        if text != self.current_text:
            return
        try:
            await self.service.fetch_entries(text.strip() or None)
        except RequestCancelledError:
            _logger.debug("Search cancelled: %r", text)
        except FoodDiaryError as exc:
            if text != self.current_text:
                return
            if self.on_error is None:
                _logger.warning("Search failed for %r: %s", text, exc)
            else:
                self.on_error(exc)


@dataclass
class FeedRefresher:
    """Pull-to-refresh wrapper whose cancellation is not an error."""

    service: FoodEntryService
    _task: asyncio.Task[bool] | None = field(default=None, init=False)

    async def refresh(self, search_query: str | None = None) -> bool:
        """Fetch the feed; returns False if cancelled or discarded as stale."""
        self.cancel()
        task = asyncio.ensure_future(self.service.fetch_entries(search_query))
        self._task = task
        try:
            return await task
        except RequestCancelledError:
            return False
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if task.cancelled() and current is not None and not current.cancelling():
                return False
            raise
        finally:
            if self._task is task:
                self._task = None

    def cancel(self) -> bool:
        """Cancel the running refresh, if any."""
        if self._task is not None and not self._task.done():
            return self._task.cancel()
        return False
