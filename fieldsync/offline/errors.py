"""Client-side error taxonomy."""
from typing import Any, List, Optional, Sequence


class GatewayError(Exception):
    """A remote call failed. Carries what is needed to diagnose it."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        details: Any = None,
        url: Optional[str] = None,
        method: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.details = details
        self.url = url
        self.method = method

    def __str__(self) -> str:
        where = f" ({self.method} {self.url})" if self.url else ""
        status = f" [{self.status}]" if self.status is not None else ""
        return f"{self.message}{status}{where}"


class AuthenticationError(GatewayError):
    """401/403: credentials missing, expired or refused."""


class NotFoundError(GatewayError):
    """404."""


class RequestValidationError(GatewayError):
    """400/422: the server rejected the request body or parameters."""


class ConflictError(GatewayError):
    """409: the resource is in a state that forbids the operation."""


class ServerError(GatewayError):
    """5xx."""


class NetworkError(GatewayError):
    """The request never produced an HTTP response."""


def error_for_status(status: int) -> type:
    """Exception class for an HTTP error status."""
    if status in (401, 403):
        return AuthenticationError
    if status == 404:
        return NotFoundError
    if status in (400, 422):
        return RequestValidationError
    if status == 409:
        return ConflictError
    if status >= 500:
        return ServerError
    return GatewayError


class StorageError(Exception):
    """The local key/value store failed."""


class LocationIncompleteError(ValueError):
    """Required location fields are blank."""

    def __init__(self, missing: Sequence[str]):
        self.missing: List[str] = list(missing)
        super().__init__(f"Location is incomplete: missing {', '.join(self.missing)}")


class SyncError(Exception):
    """The server answered but did not acknowledge a sync step."""

    def __init__(self, message: str, draft_id: Optional[str] = None):
        super().__init__(message)
        self.draft_id = draft_id


class FormNotAvailableError(LookupError):
    """A form could be loaded neither from the offline cache nor online."""
