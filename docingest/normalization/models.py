from dataclasses import asdict, dataclass, field, fields
from typing import Any

SCHEMA_VERSION = 1


@dataclass(frozen=True)
class LineItem:
    """One itemized row of a document."""

    line_number: int
    description: str | None = None
    quantity: float | None = None
    unit: str | None = None
    unit_price: float | None = None
    amount: float | None = None
    product_code: str | None = None
    tax: float | None = None
    date: str | None = None


@dataclass(frozen=True)
class NormalizedDocument:
    """Stable, versioned record shape decoupled from the service's raw schema."""

    header: dict[str, Any]
    line_items: list[LineItem] = field(default_factory=list)
    schema_version: int = SCHEMA_VERSION

    @property
    def document_id(self) -> str:
        return str(self.header["document_id"])

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NormalizedDocument":
        known = {f.name for f in fields(LineItem)}
        items = [
            LineItem(**{k: v for k, v in raw.items() if k in known})
            for raw in data.get("line_items") or []
        ]
        return cls(
            header=dict(data["header"]),
            line_items=items,
            schema_version=int(data.get("schema_version", SCHEMA_VERSION)),
        )
