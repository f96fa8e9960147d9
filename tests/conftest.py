import io
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from docingest.config.settings import Settings

WORKSPACE = "ws-1"
FILESYSTEM_URL = f"https://onelake.test/{WORKSPACE}"


@pytest.fixture()
def invoice_pdf_bytes() -> bytes:
    """Generate a single-page invoice PDF with known text content."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    c.drawString(72, 720, "INVOICE INV-100")
    c.drawString(72, 700, "Contoso Ltd")
    c.drawString(72, 680, "Widget  2 x 10.00 EUR  20.00 EUR")
    c.drawString(72, 660, "Total 20.00 EUR")
    c.save()
    return buf.getvalue()


def make_invoice_analysis(
    *,
    invoice_id: str | None = "INV-100",
    items: list[dict[str, Any]] | None = None,
    model_id: str = "prebuilt-invoice",
) -> dict[str, Any]:
    """Build an analyzeResult payload shaped like the prebuilt invoice model."""
    fields: dict[str, Any] = {
        "VendorName": {"type": "string", "valueString": "Contoso Ltd", "content": "Contoso Ltd"},
        "VendorAddress": {
            "type": "address",
            "valueAddress": {
                "streetAddress": "1 Main St",
                "city": "Redmond",
                "state": "WA",
                "postalCode": "98052",
                "countryRegion": "USA",
            },
            "content": "1 Main St Redmond WA 98052",
        },
        "InvoiceDate": {"type": "date", "valueDate": "2024-03-01", "content": "1 Mar 2024"},
        "InvoiceTotal": {
            "type": "currency",
            "valueCurrency": {"amount": 20.0, "currencyCode": "EUR"},
            "content": "20.00 EUR",
        },
    }
    if invoice_id is not None:
        fields["InvoiceId"] = {"type": "string", "valueString": invoice_id, "content": invoice_id}
    if items is None:
        items = [
            {
                "type": "object",
                "valueObject": {
                    "Description": {"type": "string", "valueString": "Widget"},
                    "Quantity": {"type": "number", "valueNumber": 2},
                    "UnitPrice": {
                        "type": "currency",
                        "valueCurrency": {"amount": 10.0, "currencyCode": "EUR"},
                    },
                    "Amount": {
                        "type": "currency",
                        "valueCurrency": {"amount": 20.0, "currencyCode": "EUR"},
                    },
                },
            }
        ]
    fields["Items"] = {"type": "array", "valueArray": items}
    return {
        "apiVersion": "2023-07-31",
        "modelId": model_id,
        "content": "INVOICE INV-100",
        "documents": [{"docType": "invoice", "confidence": 0.97, "fields": fields}],
    }


class FakeOneLake:
    """In-memory ADLS Gen2 filesystem speaking the DFS REST dialect."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.directories: set[str] = set()
        self._staged: dict[str, bytes] = {}
        self.requests: list[httpx.Request] = []

    def add_file(self, path: str, content: bytes) -> None:
        self.files[path] = content
        parts = path.split("/")
        for i in range(1, len(parts)):
            self.directories.add("/".join(parts[:i]))

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=self.transport())

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        prefix = f"/{WORKSPACE}"
        path = request.url.path[len(prefix):].strip("/")
        params = request.url.params
        method = request.method

        if method == "GET" and params.get("resource") == "filesystem":
            return self._list(params.get("directory", ""))
        if method == "PUT" and params.get("resource") == "directory":
            if path in self.directories:
                return httpx.Response(409, json={"error": {"code": "PathAlreadyExists"}})
            self.add_directory(path)
            return httpx.Response(201)
        if method == "PUT" and params.get("resource") == "file":
            self._staged[path] = b""
            return httpx.Response(201)
        if method == "PATCH" and params.get("action") == "append":
            self._staged[path] = request.content
            return httpx.Response(202)
        if method == "PATCH" and params.get("action") == "flush":
            position = int(params["position"])
            self.add_file(path, self._staged.pop(path, b"")[:position])
            return httpx.Response(200)
        if method == "HEAD":
            return httpx.Response(200 if path in self.files else 404)
        if method == "GET":
            if path not in self.files:
                return httpx.Response(404, json={"error": {"code": "PathNotFound", "message": "not found"}})
            return httpx.Response(200, content=self.files[path])
        return httpx.Response(400)

    def add_directory(self, path: str) -> None:
        parts = path.split("/")
        for i in range(1, len(parts) + 1):
            self.directories.add("/".join(parts[:i]))

    def _list(self, directory: str) -> httpx.Response:
        directory = directory.strip("/")
        if directory not in self.directories:
            return httpx.Response(404, json={"error": {"code": "PathNotFound", "message": "missing"}})
        prefix = directory + "/"
        entries = [
            {"name": d, "isDirectory": "true"}
            for d in sorted(self.directories)
            if d.startswith(prefix)
        ]
        entries += [
            {"name": p, "contentLength": str(len(c))}
            for p, c in sorted(self.files.items())
            if p.startswith(prefix)
        ]
        return httpx.Response(200, json={"paths": entries})


@pytest.fixture()
def fake_onelake() -> FakeOneLake:
    return FakeOneLake()


class FakeClock:
    """Monotonic clock advanced only by the injected sleep."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def invoice_analysis() -> Callable[..., dict[str, Any]]:
    return make_invoice_analysis


@pytest.fixture(autouse=True)
def isolated_settings_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep Settings() from reading the developer's environment or dotenv files."""
    for name in Settings.model_fields:
        monkeypatch.delenv(name.upper(), raising=False)
    for name in ("AZURE_OUTPUTS_JSON", "AZURE_ENV_NAME"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
