import json
from typing import Any, ClassVar
from urllib.parse import quote

import httpx

from docingest.auth.token_provider import STORAGE_AUDIENCE, BaseTokenProvider
from docingest.config.settings import Settings
from docingest.http.client_base import BaseServiceClient, BearerTokenAuth
from docingest.logging.logger import Log
from docingest.storage.exceptions import ObjectStoreError

_CONFLICT = 409
_NOT_FOUND = 404


def escape_path(path: str) -> str:
    """Percent-escape each segment of a store path, keeping ``/`` separators."""
    return "/".join(quote(segment, safe="") for segment in path.strip("/").split("/"))


class OneLakeClient(BaseServiceClient):
    """Hierarchical filesystem operations against a OneLake (ADLS Gen2) endpoint.

    Paths are relative to the filesystem (the workspace), e.g.
    ``<lakehouse_id>/Files/documents/invoices/a.pdf``.
    """

    error_class: ClassVar[type[ObjectStoreError]] = ObjectStoreError
    API_VERSION = "2023-11-03"

    def __init__(
        self,
        *,
        filesystem_url: str,
        token_provider: BaseTokenProvider | None = None,
        timeout_seconds: float = 60,
        http_client: httpx.Client | None = None,
    ) -> None:
        auth = BearerTokenAuth(token_provider, STORAGE_AUDIENCE) if token_provider else None
        super().__init__(auth=auth, timeout_seconds=timeout_seconds, http_client=http_client)
        self._filesystem_url = filesystem_url.rstrip("/")
        self._headers = {"x-ms-version": self.API_VERSION}

    @classmethod
    def from_settings(
        cls, settings: Settings, token_provider: BaseTokenProvider
    ) -> "OneLakeClient":
        return cls(
            filesystem_url=settings.onelake_filesystem_url,
            token_provider=token_provider,
            timeout_seconds=settings.http_timeout_seconds,
        )

    def ensure_directory(self, path: str) -> None:
        """Create ``path`` as a directory; an existing directory is success."""
        self._send(
            "PUT",
            self._url(path),
            params={"resource": "directory"},
            headers=self._headers,
            allowed_statuses=(_CONFLICT,),
        )

    def exists(self, path: str) -> bool:
        response = self._send(
            "HEAD", self._url(path), headers=self._headers, allowed_statuses=(_NOT_FOUND,)
        )
        return response.status_code != _NOT_FOUND

    def list_files(self, directory: str) -> list[str]:
        """Recursively list file paths under ``directory`` in listing order.

        Directory entries are dropped. A missing directory lists as empty.
        """
        files: list[str] = []
        continuation: str | None = None
        while True:
            params = {
                "resource": "filesystem",
                "directory": directory.strip("/"),
                "recursive": "true",
            }
            if continuation:
                params["continuation"] = continuation
            response = self._send(
                "GET",
                self._filesystem_url,
                params=params,
                headers=self._headers,
                allowed_statuses=(_NOT_FOUND,),
            )
            if response.status_code == _NOT_FOUND:
                Log.debug(f"Directory {directory} not found, nothing to list")
                return files
            for entry in response.json().get("paths", []):
                if not _is_directory(entry):
                    files.append(entry["name"])
            continuation = response.headers.get("x-ms-continuation")
            if not continuation:
                return files

    def download(self, path: str) -> bytes:
        response = self._send("GET", self._url(path), headers=self._headers)
        return response.content

    def read_json(self, path: str) -> Any:
        return json.loads(self.download(path).decode("utf-8"))

    def upload_json(self, path: str, value: Any) -> None:
        payload = json.dumps(value, indent=2, ensure_ascii=False, default=str).encode("utf-8")
        self.upload_bytes(path, payload, content_type="application/json")

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        """Write ``data`` to ``path``: create, append at 0, then flush at its length.

        The store buffers appended bytes until the flush commits them, so a
        failure before the flush leaves no readable partial content.
        """
        url = self._url(path)
        self._send(
            "PUT",
            url,
            params={"resource": "file"},
            headers=self._headers,
            allowed_statuses=(_CONFLICT,),
        )
        self._send(
            "PATCH",
            url,
            params={"action": "append", "position": "0"},
            content=data,
            headers={**self._headers, "Content-Type": "application/octet-stream"},
        )
        self._send(
            "PATCH",
            url,
            params={"action": "flush", "position": str(len(data))},
            headers={**self._headers, "x-ms-content-type": content_type},
        )
        Log.debug(f"Uploaded {len(data)} bytes to {path}")

    def _url(self, path: str) -> str:
        return f"{self._filesystem_url}/{escape_path(path)}"


def _is_directory(entry: dict[str, Any]) -> bool:
    value = entry.get("isDirectory", False)
    if isinstance(value, str):
        return value.lower() == "true"
    return bool(value)
