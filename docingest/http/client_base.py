from collections.abc import Generator, Iterable, Mapping
from typing import Any, ClassVar

import httpx

from docingest.auth.token_provider import BaseTokenProvider
from docingest.http.exceptions import ServiceConnectionError, ServiceHTTPError


class BearerTokenAuth(httpx.Auth):
    """Attaches a fresh bearer token for one audience to every request."""

    def __init__(self, token_provider: BaseTokenProvider, audience: str) -> None:
        self._token_provider = token_provider
        self._audience = audience

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Authorization"] = f"Bearer {self._token_provider.get_token(self._audience)}"
        yield request


class BaseServiceClient:
    """Shared request plumbing for the HTTP service clients."""

    error_class: ClassVar[type[ServiceHTTPError]] = ServiceHTTPError

    def __init__(
        self,
        *,
        auth: httpx.Auth | None,
        timeout_seconds: float,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._auth = auth
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=timeout_seconds)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "BaseServiceClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _send(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        content: bytes | None = None,
        json_body: Any = None,
        headers: Mapping[str, str] | None = None,
        allowed_statuses: Iterable[int] = (),
    ) -> httpx.Response:
        """Send one request; error statuses outside ``allowed_statuses`` raise."""
        try:
            response = self._client.request(
                method,
                url,
                params=params,
                content=content,
                json=json_body,
                headers=headers,
                auth=self._auth if self._auth is not None else httpx.USE_CLIENT_DEFAULT,
            )
        except httpx.HTTPError as exc:
            raise ServiceConnectionError(f"{method} {url} failed: {exc}") from exc

        if response.status_code >= 400 and response.status_code not in set(allowed_statuses):
            raise self._error_for(response)
        return response

    def _error_for(self, response: httpx.Response) -> ServiceHTTPError:
        payload = _json_or_text(response)
        error_code, message = _error_detail(payload)
        return self.error_class(
            message or response.reason_phrase or "request failed",
            status_code=response.status_code,
            url=str(response.request.url),
            error_code=error_code,
            payload=payload,
        )


def _json_or_text(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _error_detail(payload: Any) -> tuple[str | None, str | None]:
    """Extract ``(code, message)`` from Azure and Fabric error envelopes."""
    if isinstance(payload, str):
        return None, payload.strip() or None
    if not isinstance(payload, dict):
        return None, None
    error = payload.get("error")
    if isinstance(error, dict):
        return error.get("code"), error.get("message")
    return payload.get("errorCode"), payload.get("message")
