"""Custom exception hierarchy for pymosque."""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    """Failure taxonomy shared by tracking and search."""

    PERMISSION_DENIED = "permission_denied"
    NO_PROVIDER_AVAILABLE = "no_provider_available"
    NETWORK_UNAVAILABLE = "network_unavailable"
    BACKEND_ERROR = "backend_error"
    EMPTY_RESPONSE = "empty_response"
    MALFORMED_RESPONSE = "malformed_response"


class MosqueError(Exception):
    """Base exception for all pymosque errors."""

    kind: ErrorKind | None = None


class MosqueConfigError(MosqueError):
    """Invalid or missing configuration."""


class PermissionDeniedError(MosqueError):
    """A position provider refused a subscription for lack of authorization."""

    kind = ErrorKind.PERMISSION_DENIED

    def __init__(self, message: str, *, provider: str = "") -> None:
        self.provider = provider
        super().__init__(message)


class NoProviderAvailableError(MosqueError):
    """No position provider is enabled."""

    kind = ErrorKind.NO_PROVIDER_AVAILABLE


class SearchError(MosqueError):
    """Base for failures of a single POI search."""


class NetworkUnavailableError(SearchError):
    """Transport failure: DNS, connection reset, connect or read timeout."""

    kind = ErrorKind.NETWORK_UNAVAILABLE


class BackendError(SearchError):
    """The search backend answered with a non-2xx status."""

    kind = ErrorKind.BACKEND_ERROR

    def __init__(self, message: str, *, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class EmptyResponseError(SearchError):
    """The search backend answered 2xx with an empty body."""

    kind = ErrorKind.EMPTY_RESPONSE


class MalformedResponseError(SearchError):
    """The response body is not JSON or lacks the ``elements`` array."""

    kind = ErrorKind.MALFORMED_RESPONSE


_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.PERMISSION_DENIED: "Location permission is required to find nearby mosques.",
    ErrorKind.NO_PROVIDER_AVAILABLE: "Location is turned off. Enable GPS or network location.",
    ErrorKind.NETWORK_UNAVAILABLE: "Network unavailable. Check your connection and try again.",
    ErrorKind.BACKEND_ERROR: "The mosque search service returned an error",
    ErrorKind.EMPTY_RESPONSE: "The mosque search service returned no data.",
    ErrorKind.MALFORMED_RESPONSE: "The mosque search service returned an unreadable response.",
}


def describe_error(kind: ErrorKind, status_code: int | None = None) -> str:
    """Return the user-facing status text for *kind*."""
    message = _MESSAGES[kind]
    if kind == ErrorKind.BACKEND_ERROR:
        return f"{message} (HTTP {status_code})." if status_code is not None else f"{message}."
    return message
