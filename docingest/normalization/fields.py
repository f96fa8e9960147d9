"""Value extraction over the analysis service's generic field cells.

A field cell is a mapping such as ``{"type": "currency", "valueCurrency":
{"amount": 10.5, "currencyCode": "EUR"}, "content": "€10.50"}``. Every reader
here walks a fixed, ordered list of representations, never the cell's own key
order.
"""

from collections.abc import Callable, Mapping
from typing import Any

Cell = Mapping[str, Any]


def _identity(value: Any) -> Any:
    return value


def _currency_amount(value: Any) -> Any:
    return value.get("amount") if isinstance(value, Mapping) else None


VALUE_PRECEDENCE: tuple[tuple[str, Callable[[Any], Any]], ...] = (
    ("valueString", _identity),
    ("valueCurrency", _currency_amount),
    ("valueNumber", _identity),
    ("valueInteger", _identity),
    ("valueDate", _identity),
    ("valueSelectionMark", _identity),
    ("valuePhoneNumber", _identity),
    ("valueSignature", _identity),
    ("content", _identity),
)

AMOUNT_PRECEDENCE: tuple[tuple[str, Callable[[Any], Any]], ...] = (
    ("valueCurrency", _currency_amount),
    ("valueNumber", _identity),
    ("valueInteger", _identity),
)

ADDRESS_COMPONENTS: tuple[str, ...] = (
    "streetAddress",
    "city",
    "state",
    "postalCode",
    "countryRegion",
)


def _first(cell: Cell | None, precedence: tuple[tuple[str, Callable[[Any], Any]], ...]) -> Any:
    if not isinstance(cell, Mapping):
        return None
    for key, read in precedence:
        if key not in cell:
            continue
        value = read(cell[key])
        if value is not None:
            return value
    return None


def field_value(cell: Cell | None) -> Any:
    """First populated representation in VALUE_PRECEDENCE order, else None."""
    return _first(cell, VALUE_PRECEDENCE)


def text_value(cell: Cell | None) -> str | None:
    value = field_value(cell)
    return None if value is None else str(value)


def amount_value(cell: Cell | None) -> float | None:
    """Numeric amount of a cell; string representations are never used."""
    value = _first(cell, AMOUNT_PRECEDENCE)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def date_value(cell: Cell | None) -> str | None:
    if isinstance(cell, Mapping) and cell.get("valueDate"):
        return str(cell["valueDate"])
    return text_value(cell)


def currency_code(cell: Cell | None) -> str | None:
    if not isinstance(cell, Mapping):
        return None
    currency = cell.get("valueCurrency")
    if isinstance(currency, Mapping) and currency.get("currencyCode"):
        return str(currency["currencyCode"])
    return None


def address_value(cell: Cell | None) -> str | None:
    """Comma-joined address components, falling back to the raw content."""
    if not isinstance(cell, Mapping):
        return None
    address = cell.get("valueAddress")
    if isinstance(address, Mapping):
        components = dict(address)
        if not components.get("streetAddress"):
            street = " ".join(
                str(part) for part in (address.get("houseNumber"), address.get("road")) if part
            )
            components["streetAddress"] = street or None
        parts = [str(components[name]) for name in ADDRESS_COMPONENTS if components.get(name)]
        if parts:
            return ", ".join(parts)
    content = cell.get("content")
    return str(content) if content else None
