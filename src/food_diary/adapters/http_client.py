"""HTTP client for the Supabase REST and storage APIs."""

import asyncio
import logging
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Protocol, TypeVar
from uuid import UUID

import httpx
from pydantic import TypeAdapter, ValidationError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from food_diary.adapters.connectivity import ConnectivityMonitor
from food_diary.config import Settings
from food_diary.domain.entries import UploadResponse
from food_diary.errors import (
    HttpStatusError,
    InvalidResponseError,
    NoConnectionError,
    RequestCancelledError,
    UnauthorizedError,
    UnknownNetworkError,
    UploadError,
)

T = TypeVar("T")

PREFER_MINIMAL = "return=minimal"
PREFER_REPRESENTATION = "return=representation"

_logger = logging.getLogger(__name__)


class EmptyResponse:
    """Marker type for calls whose body is ignored."""

    def __repr__(self) -> str:
        return "EMPTY"


EMPTY = EmptyResponse()


@dataclass(frozen=True)
class RestRequest:
    """A prepared request against the REST API."""

    method: str
    path: str
    params: Mapping[str, str] | None = None
    json: object | None = None
    prefer: str = PREFER_MINIMAL


class RestClient(Protocol):
    """Interface for executing Supabase REST and storage calls."""

    async def get(
        self,
        path: str,
        response_type: type[T],
        params: Mapping[str, str] | None = None,
        scope: str | None = None,
    ) -> T:
        """Send a GET request and decode the body."""

    async def execute(
        self, request: RestRequest, response_type: type[T], scope: str | None = None
    ) -> T:
        """Send a prepared request and decode the body."""

    async def upload(
        self,
        data: bytes,
        path: str,
        content_type: str = "image/jpeg",
        scope: str | None = None,
    ) -> str:
        """Upload raw bytes and return the stored object key."""

    def cancel_all(self, scope: str | None = None) -> int:
        """Cancel in-flight requests and return how many were cancelled."""


@lru_cache(maxsize=64)
def _adapter(response_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(response_type)


def _is_retryable(exc: BaseException) -> bool:
    """Transport failures, 5xx and 429 are retried; other client errors are not."""
    if isinstance(exc, UnknownNetworkError):
        return True
    if isinstance(exc, HttpStatusError):
        return exc.status_code >= 500 or exc.status_code == 429
    return False


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    _logger.warning(
        "Request failed on attempt %s, retrying: %s",
        retry_state.attempt_number,
        exc,
    )


@dataclass
class HttpxRestClient(RestClient):
    """RestClient implemented with httpx and a tenacity retry loop."""

    api_key: str
    http_client: httpx.AsyncClient
    connectivity: ConnectivityMonitor
    device_id: UUID | None = None
    retry_attempts: int = 3
    retry_delay: float = 2.0
    _in_flight: dict[asyncio.Task[Any], str | None] = field(
        default_factory=dict, init=False
    )

    @classmethod
    def create(
        cls, settings: Settings, connectivity: ConnectivityMonitor
    ) -> "HttpxRestClient":
        """Create a client with a managed httpx session."""
        return cls(
            api_key=settings.supabase_anon_key,
            http_client=httpx.AsyncClient(
                base_url=settings.base_url, timeout=settings.network_timeout
            ),
            connectivity=connectivity,
            device_id=settings.device_id,
            retry_attempts=settings.retry_attempts,
            retry_delay=settings.retry_delay,
        )

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    def headers(
        self, prefer: str | None = None, content_type: str = "application/json"
    ) -> dict[str, str]:
        """Build the credential and identity headers sent with every call."""
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": content_type,
        }
        if prefer is not None:
            headers["Prefer"] = prefer
        if self.device_id is not None:
            headers["x-device-id"] = str(self.device_id)
        return headers

    async def get(
        self,
        path: str,
        response_type: type[T],
        params: Mapping[str, str] | None = None,
        scope: str | None = None,
    ) -> T:
        """Send a GET request and decode the body."""
        return await self.execute(
            RestRequest(method="GET", path=path, params=params),
            response_type,
            scope=scope,
        )

    async def execute(
        self, request: RestRequest, response_type: type[T], scope: str | None = None
    ) -> T:
        """Send a prepared request, retrying transient failures."""
        self._ensure_connected()
        return await self._track(self._send_with_retry(request, response_type), scope)

    async def upload(
        self,
        data: bytes,
        path: str,
        content_type: str = "image/jpeg",
        scope: str | None = None,
    ) -> str:
        """Upload raw bytes in a single attempt and return the object key."""
        self._ensure_connected()
        return await self._track(self._upload_once(data, path, content_type), scope)

    def cancel_all(self, scope: str | None = None) -> int:
        """Cancel in-flight requests, optionally only those of one scope."""
        cancelled = 0
        for task, task_scope in list(self._in_flight.items()):
            if scope is not None and task_scope != scope:
                continue
            if task.cancel():
                cancelled += 1
        if cancelled:
            _logger.info("Cancelled %s in-flight request(s) scope=%s", cancelled, scope)
        return cancelled

    async def close(self) -> None:
        """Cancel outstanding work and close the HTTP session."""
        self.cancel_all()
        await self.http_client.aclose()

    def _ensure_connected(self) -> None:
        if not self.connectivity.is_connected:
            raise NoConnectionError()

    async def _track(self, work: Awaitable[T], scope: str | None) -> T:
        task = asyncio.ensure_future(work)
        self._in_flight[task] = scope
        try:
            return await task
        except asyncio.CancelledError as exc:
            current = asyncio.current_task()
            # Only requests cancelled through cancel_all become a typed error;
            # cancellation of the awaiting caller keeps propagating.
            if task.cancelled() and current is not None and not current.cancelling():
                raise RequestCancelledError() from exc
            raise
        finally:
            self._in_flight.pop(task, None)

    async def _send_with_retry(self, request: RestRequest, response_type: type[T]) -> T:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_fixed(self.retry_delay),
            retry=retry_if_exception(_is_retryable),
            before_sleep=_log_retry,
            reraise=True,
        )
        result: T | None = None
        async for attempt in retrying:
            with attempt:
                result = await self._send_once(request, response_type)
        return result  # type: ignore[return-value]

    async def _send_once(self, request: RestRequest, response_type: type[T]) -> T:
        _logger.debug("%s %s params=%s", request.method, request.path, request.params)
        try:
            response = await self.http_client.request(
                request.method,
                request.path,
                params=dict(request.params) if request.params else None,
                json=request.json,
                headers=self.headers(prefer=request.prefer),
            )
        except httpx.TransportError as exc:
            raise UnknownNetworkError(f"Transport failure: {exc!r}") from exc

        if response.status_code == 401:
            _logger.warning("Unauthorized response for %s", response.request.url)
            raise UnauthorizedError()
        if not response.is_success:
            _logger.warning(
                "HTTP error %s for %s: %s",
                response.status_code,
                response.request.url,
                response.text,
            )
            raise HttpStatusError(response.status_code)

        if response_type is EmptyResponse:
            return EMPTY  # type: ignore[return-value]
        try:
            return _adapter(response_type).validate_json(response.content)
        except ValidationError as exc:
            raise InvalidResponseError() from exc

    async def _upload_once(self, data: bytes, path: str, content_type: str) -> str:
        try:
            response = await self.http_client.post(
                path,
                content=data,
                headers=self.headers(content_type=content_type),
            )
        except httpx.TransportError as exc:
            raise UnknownNetworkError(f"Transport failure: {exc!r}") from exc

        if not response.is_success:
            if response.text:
                raise UploadError(response.text)
            raise HttpStatusError(response.status_code)

        try:
            payload = UploadResponse.model_validate_json(response.content)
        except ValidationError as exc:
            raise InvalidResponseError() from exc
        _logger.info("Upload stored key=%s bytes=%s", payload.key, len(data))
        return payload.key
