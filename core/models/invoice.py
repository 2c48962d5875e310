"""Invoice domain models.

Amounts are Decimal in the ledger's native currency unit and are rendered as
JSON numbers on the wire. VAT is a percentage (8.1 = 8.1%).

The canonical JSON produced by CanonicalInvoice.canonical_bytes() is both the
encryption plaintext and the hash pre-image. Its field order is fixed.
"""

import json
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, Field, field_validator

# Version of the canonical field set below. A new field set means a new version.
CANONICAL_SCHEMA_VERSION = 1

CANONICAL_FIELDS = (
    "title",
    "vat",
    "lineItems",
    "totalAmount",
    "totalAmountWithVat",
    "paymentDueDate",
    "invoiceReference",
    "nonce",
)
CANONICAL_LINE_ITEM_FIELDS = ("index", "text", "preis")


def parse_decimal(value: Any) -> Decimal | None:
    """
    Parse a user-entered number, accepting ',' or '.' as decimal separator.

    Returns None for anything that is not a finite number.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, (int, float)):
        number = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip().replace(",", ".")
        if not text:
            return None
        try:
            number = Decimal(text)
        except InvalidOperation:
            return None
    else:
        return None

    if not number.is_finite():
        return None
    return number


def json_number(value: Decimal) -> int | float:
    """Render a Decimal as a JSON number (integral values without a fraction)."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


class LineItemDraft(BaseModel):
    """One line of an invoice being edited. The price is kept exactly as entered."""

    description: str = Field("", alias="text", max_length=500)
    unit_price: Any = Field(None, alias="preis")

    model_config = {"populate_by_name": True}


class InvoiceDraft(BaseModel):
    """Sender-owned invoice under construction. Lives only in the session."""

    title: str = Field("", max_length=200)
    vat_percent: Decimal = Field(Decimal("8.1"), alias="vat", ge=0)
    line_items: list[LineItemDraft] = Field(default_factory=list, alias="lineItems")
    payment_due_date: date | None = Field(None, alias="paymentDueDate")

    model_config = {"populate_by_name": True}

    @field_validator("vat_percent", mode="before")
    @classmethod
    def parse_vat(cls, value: Any) -> Decimal:
        number = parse_decimal(value)
        if number is None:
            raise ValueError(f"VAT percentage {value!r} is not a number")
        return number

    @field_validator("payment_due_date", mode="before")
    @classmethod
    def empty_due_date(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class CanonicalLineItem(BaseModel):
    """Line item as frozen into the canonical invoice."""

    index: int = Field(..., ge=0)
    text: str
    preis: Decimal = Field(..., ge=0)

    model_config = {"frozen": True}


class CanonicalInvoice(BaseModel):
    """Fully populated invoice whose serialization is encrypted and hashed."""

    title: str
    vat_percent: Decimal
    line_items: tuple[CanonicalLineItem, ...]
    total_amount: Decimal
    total_amount_with_vat: Decimal
    payment_due_date: date | None
    invoice_reference: str = Field(..., pattern=r"^0x[0-9a-f]{64}$")
    nonce: str = Field(..., pattern=r"^0x[0-9a-f]{32}$")
    schema_version: int = CANONICAL_SCHEMA_VERSION

    model_config = {"frozen": True}

    def to_wire(self) -> dict[str, Any]:
        """Canonical dict in wire field order."""
        return {
            "title": self.title,
            "vat": json_number(self.vat_percent),
            "lineItems": [
                {"index": item.index, "text": item.text, "preis": json_number(item.preis)}
                for item in self.line_items
            ],
            "totalAmount": json_number(self.total_amount),
            "totalAmountWithVat": json_number(self.total_amount_with_vat),
            "paymentDueDate": (
                self.payment_due_date.isoformat() if self.payment_due_date else None
            ),
            "invoiceReference": self.invoice_reference,
            "nonce": self.nonce,
        }

    def canonical_bytes(self) -> bytes:
        """Exact UTF-8 byte sequence fed to hashing and encryption."""
        return json.dumps(
            self.to_wire(),
            separators=(",", ":"),
            ensure_ascii=False,
        ).encode("utf-8")


class LocalInvoiceEntry(BaseModel):
    """
    Issuer-side record kept for reconciliation only.

    Created once a ledger write succeeds. Never mutated.
    """

    invoice_reference: str = Field(..., pattern=r"^0x[0-9a-f]+$")
    total_amount_with_vat: Decimal = Field(..., ge=0)
    payment_due_date: date | None = None
    created_at: datetime

    model_config = {"frozen": True}

    def to_record(self) -> dict[str, Any]:
        """Persisted JSON shape. Amount kept as a string to preserve precision."""
        return {
            "invoiceReference": self.invoice_reference,
            "totalAmount": str(self.total_amount_with_vat),
            "paymentDueDate": (
                self.payment_due_date.isoformat() if self.payment_due_date else None
            ),
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "LocalInvoiceEntry":
        return cls(
            invoice_reference=record["invoiceReference"],
            total_amount_with_vat=Decimal(record["totalAmount"]),
            payment_due_date=record.get("paymentDueDate"),
            created_at=record["createdAt"],
        )
