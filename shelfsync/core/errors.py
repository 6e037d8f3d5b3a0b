"""
Error taxonomy shared by the HTTP layer and the stores.
"""

from typing import Any

GENERIC_NETWORK_MESSAGE = "Unable to reach the server. Please check your connection and try again."
RATE_LIMIT_MESSAGE = "Please wait before checking again"


class ShelfSyncError(Exception):
    """Base class for every error raised by this package."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NetworkError(ShelfSyncError):
    """The request never produced an HTTP response."""

    def __init__(self, message: str = GENERIC_NETWORK_MESSAGE):
        super().__init__(message)


class ApiError(ShelfSyncError):
    """The backend answered with a non-2xx status."""

    def __init__(
        self,
        status_code: int,
        message: str,
        errors: list[str] | None = None,
        payload: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.errors = errors or []
        self.payload = payload


class UnauthorizedError(ApiError):
    """401: the token is missing, expired or revoked."""


class NotFoundError(ApiError):
    """404."""


class RateLimitedError(ApiError):
    """429: the backend asked us to slow down."""


class ValidationError(ApiError):
    """409/422: the backend rejected the payload. Surfaced verbatim."""


class ExternalEntityError(ShelfSyncError):
    """A persisted-id operation was attempted on an unimported catalog entity."""

    def __init__(self, entity_id: int, message: str | None = None):
        super().__init__(
            message or "Cannot follow external entity. Entity needs to be imported first."
        )
        self.entity_id = entity_id


class PromotionError(ShelfSyncError):
    """Creating the persisted row for an external entity failed.

    No follow-up mutation was attempted.
    """

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class PartialPromotionError(ShelfSyncError):
    """The entity was created but the follow-up mutation failed.

    The created entity is not rolled back; ``entity`` holds it so the caller
    can retry the mutation against the persisted id.
    """

    def __init__(self, message: str, entity: Any, cause: Exception | None = None):
        super().__init__(message)
        self.entity = entity
        self.cause = cause


class CatalogError(ShelfSyncError):
    """The external book catalog failed."""


class ImportFileError(ShelfSyncError):
    """The import file was rejected before upload."""


def error_message(exc: BaseException, default: str) -> str:
    """Human-readable text for an exception, falling back to ``default``."""
    if isinstance(exc, ShelfSyncError) and exc.message:
        return exc.message
    text = str(exc)
    return text or default


def is_rate_limited(exc: BaseException) -> bool:
    """True for a 429 or any error whose text mentions rate limiting."""
    if isinstance(exc, RateLimitedError):
        return True
    if isinstance(exc, ApiError) and exc.status_code == 429:
        return True
    text = str(exc)
    return "429" in text or "rate limit" in text.lower()
