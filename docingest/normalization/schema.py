"""Field tables mapping service field names onto normalized keys.

Each rule lists source field names in priority order; the first one present in
the analyzed document supplies the value. Invoice and receipt models share one
table because their fields rarely overlap.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from docingest.normalization.fields import (
    Cell,
    address_value,
    amount_value,
    date_value,
    text_value,
)


class FieldKind(str, Enum):
    TEXT = "text"
    AMOUNT = "amount"
    DATE = "date"
    ADDRESS = "address"


READERS: dict[FieldKind, Callable[[Cell | None], Any]] = {
    FieldKind.TEXT: text_value,
    FieldKind.AMOUNT: amount_value,
    FieldKind.DATE: date_value,
    FieldKind.ADDRESS: address_value,
}


@dataclass(frozen=True)
class FieldRule:
    target: str
    sources: tuple[str, ...]
    kind: FieldKind = FieldKind.TEXT


DOCUMENT_ID_SOURCES: tuple[str, ...] = ("InvoiceId", "ReceiptId", "DocumentId")

HEADER_FIELDS: tuple[FieldRule, ...] = (
    FieldRule("document_date", ("InvoiceDate", "TransactionDate"), FieldKind.DATE),
    FieldRule("due_date", ("DueDate",), FieldKind.DATE),
    FieldRule("transaction_time", ("TransactionTime",)),
    FieldRule("vendor_name", ("VendorName", "MerchantName")),
    FieldRule("vendor_address", ("VendorAddress", "MerchantAddress"), FieldKind.ADDRESS),
    FieldRule("vendor_tax_id", ("VendorTaxId",)),
    FieldRule("vendor_phone", ("MerchantPhoneNumber",)),
    FieldRule("customer_name", ("CustomerName",)),
    FieldRule("customer_id", ("CustomerId",)),
    FieldRule("customer_address", ("CustomerAddress",), FieldKind.ADDRESS),
    FieldRule("billing_address", ("BillingAddress",), FieldKind.ADDRESS),
    FieldRule("shipping_address", ("ShippingAddress",), FieldKind.ADDRESS),
    FieldRule("purchase_order", ("PurchaseOrder",)),
    FieldRule("payment_term", ("PaymentTerm",)),
    FieldRule("service_start_date", ("ServiceStartDate",), FieldKind.DATE),
    FieldRule("service_end_date", ("ServiceEndDate",), FieldKind.DATE),
    FieldRule("subtotal", ("SubTotal", "Subtotal"), FieldKind.AMOUNT),
    FieldRule("total_tax", ("TotalTax",), FieldKind.AMOUNT),
    FieldRule("tip", ("Tip",), FieldKind.AMOUNT),
    FieldRule("total_amount", ("InvoiceTotal", "Total"), FieldKind.AMOUNT),
    FieldRule("amount_due", ("AmountDue",), FieldKind.AMOUNT),
    FieldRule("previous_unpaid_balance", ("PreviousUnpaidBalance",), FieldKind.AMOUNT),
)

CURRENCY_CANDIDATES: tuple[str, ...] = (
    "InvoiceTotal",
    "AmountDue",
    "SubTotal",
    "TotalTax",
    "Total",
    "Subtotal",
)

LINE_ITEMS_FIELD = "Items"

LINE_ITEM_FIELDS: tuple[FieldRule, ...] = (
    FieldRule("description", ("Description",)),
    FieldRule("quantity", ("Quantity",), FieldKind.AMOUNT),
    FieldRule("unit", ("Unit",)),
    FieldRule("unit_price", ("UnitPrice", "Price"), FieldKind.AMOUNT),
    FieldRule("amount", ("Amount", "TotalPrice"), FieldKind.AMOUNT),
    FieldRule("product_code", ("ProductCode",)),
    FieldRule("tax", ("Tax",), FieldKind.AMOUNT),
    FieldRule("date", ("Date",), FieldKind.DATE),
)


def apply_rule(rule: FieldRule, cells: dict[str, Any]) -> Any:
    """Read the first source of ``rule`` that yields a value."""
    read = READERS[rule.kind]
    for source in rule.sources:
        if source not in cells:
            continue
        value = read(cells[source])
        if value is not None:
            return value
    return None
