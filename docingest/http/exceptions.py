from typing import Any


class ServiceError(Exception):
    """Base exception for remote service calls."""


class ServiceConnectionError(ServiceError):
    """Raised when a request cannot reach the remote service."""


class ServiceHTTPError(ServiceError):
    """Raised when the remote service answers with an error status."""

    def __init__(
        self,
        detail: str,
        *,
        status_code: int,
        url: str,
        error_code: str | None = None,
        payload: Any = None,
    ) -> None:
        self.detail = detail
        self.status_code = status_code
        self.url = url
        self.error_code = error_code
        self.payload = payload
        code_hint = f" {error_code}" if error_code else ""
        super().__init__(f"HTTP {status_code}{code_hint}: {detail} [{url}]")


def is_transient(exc: Exception) -> bool:
    """True for failures worth retrying: no response, throttling, or a server error."""
    if isinstance(exc, ServiceConnectionError):
        return True
    if isinstance(exc, ServiceHTTPError):
        return exc.status_code == 429 or exc.status_code >= 500
    return False
