"""Error taxonomy for entity list engines.

FetchError is stored on the cache entry, MutationError/StaleSelectionError are
collected by bulk operations. Validation errors belong to the dialog
collaborator and have no class here.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(Enum):
    RATE_LIMIT = "rate_limit"
    NETWORK = "network"
    FATAL = "fatal"

    @property
    def transient(self) -> bool:
        return self is not ErrorKind.FATAL


class EntityEngineError(Exception):
    """Base class for engine errors."""


class InvalidEntitySDKError(EntityEngineError):
    """Raised when an EntityConfig's SDK cannot list records."""


class FetchError(EntityEngineError):
    """A failed list() call, classified as transient or fatal."""

    def __init__(self, entity_key: str, kind: ErrorKind, user_message: str,
                 cause: Optional[BaseException] = None):
        super().__init__(user_message)
        self.entity_key = entity_key
        self.kind = kind
        self.user_message = user_message
        self.cause = cause

    @property
    def transient(self) -> bool:
        return self.kind.transient


class MutationError(EntityEngineError):
    """A single failed create/update/delete inside a bulk operation."""

    def __init__(self, item_id: Any, operation: str, cause: BaseException):
        super().__init__(f"{operation} failed for {item_id!r}: {cause}")
        self.item_id = item_id
        self.operation = operation
        self.cause = cause


class StaleSelectionError(MutationError):
    """Mutation failure for an id that was absent from the last fetched set."""


_STATUS_MESSAGES = {
    401: "Unauthorized: Please log in again",
    403: "You do not have permission to perform this action",
    404: "The requested resource was not found",
    500: "A server error occurred. Please try again later",
}

RATE_LIMIT_MESSAGE = "Too many requests. Please wait a moment and try again."
NETWORK_MESSAGE = "Network error. Please check your connection and try again."


def _status_of(exc: BaseException) -> Optional[int]:
    response = getattr(exc, "response", None)
    for source in (response, exc):
        if source is None:
            continue
        for attr in ("status", "status_code"):
            value = getattr(source, attr, None)
            if isinstance(value, int):
                return value
    return None


def classify_error(exc: BaseException) -> ErrorKind:
    """Classify a fetch failure as rate limit, network failure, or fatal."""
    message = str(exc).lower()
    if _status_of(exc) == 429 or "429" in message or "rate limit" in message:
        return ErrorKind.RATE_LIMIT
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return ErrorKind.NETWORK
    if getattr(exc, "code", None) == "NETWORK_ERROR":
        return ErrorKind.NETWORK
    if "network error" in message or "failed to fetch" in message:
        return ErrorKind.NETWORK
    return ErrorKind.FATAL


def format_error_message(exc: Optional[BaseException]) -> str:
    """Best user-facing description of ``exc``."""
    if exc is None:
        return "An unknown error occurred"
    if str(exc):
        return str(exc)

    response = getattr(exc, "response", None)
    if response is not None:
        data = getattr(response, "data", None)
        if isinstance(data, dict):
            if data.get("message"):
                return str(data["message"])
            if data.get("error"):
                return data["error"] if isinstance(data["error"], str) else "API Error"
            if isinstance(data.get("errors"), list):
                return ", ".join(
                    e.get("message", str(e)) if isinstance(e, dict) else str(e)
                    for e in data["errors"]
                )
        status = _status_of(exc)
        if status in _STATUS_MESSAGES:
            return _STATUS_MESSAGES[status]
        return f"Error {status}: {data or 'Unknown error'}"

    if getattr(exc, "request", None) is not None:
        return "Network error: Please check your connection"
    return "An error occurred"


def fetch_error_from(entity_key: str, exc: BaseException, entity_name_plural: str) -> FetchError:
    """Wrap a raw list() failure into a classified FetchError."""
    kind = classify_error(exc)
    if kind is ErrorKind.RATE_LIMIT:
        user_message = RATE_LIMIT_MESSAGE
    elif kind is ErrorKind.NETWORK:
        user_message = NETWORK_MESSAGE
    else:
        detail = format_error_message(exc)
        user_message = detail if detail != "An error occurred" else f"Failed to fetch {entity_name_plural}."
    return FetchError(entity_key, kind, user_message, cause=exc)
