"""Error taxonomy shared by the network layer and services."""


class FoodDiaryError(Exception):
    """Base class for every failure surfaced to callers."""

    message = "Unknown error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class NoConnectionError(FoodDiaryError):
    """The device reports no network path."""

    message = "No internet connection"


class InvalidResponseError(FoodDiaryError):
    """The server answered with a body that could not be decoded."""

    message = "Invalid server response"


class HttpStatusError(FoodDiaryError):
    """The server answered with a non-2xx status."""

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"HTTP error: {status_code}")


class UnauthorizedError(FoodDiaryError):
    """The server rejected the credentials (HTTP 401)."""

    message = "Unauthorized request"
    status_code = 401


class UploadError(FoodDiaryError):
    """Storage rejected an upload."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Upload failed: {detail}")


class UnknownNetworkError(FoodDiaryError):
    """Transport-level failure without a more specific kind."""

    message = "Unknown network error"


class RequestCancelledError(FoodDiaryError):
    """The operation was cancelled before it completed."""

    message = "Operation was cancelled"


class DeviceIdNotAvailableError(FoodDiaryError):
    """No device identifier is available for the current install."""

    message = "Device ID not available"


class InvalidImageDataError(FoodDiaryError):
    """Photo bytes were empty, unreadable or too large."""

    message = "Invalid image data"


class ProfileStoreError(FoodDiaryError):
    """The device profile table rejected a read or write."""

    message = "Device profile request failed"
