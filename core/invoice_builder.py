"""
Draft-to-canonical invoice construction.

build_canonical_invoice is a pure transformation apart from randomness, which
is injectable so tests can pin the reference and nonce.
"""

import json
import logging
import secrets
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable

from pydantic import ValidationError

from core.codec import bytes_to_hex
from core.exceptions import MalformedInvoiceError
from core.models.invoice import (
    CANONICAL_FIELDS,
    CANONICAL_LINE_ITEM_FIELDS,
    CanonicalInvoice,
    CanonicalLineItem,
    InvoiceDraft,
    parse_decimal,
)

logger = logging.getLogger(__name__)

REFERENCE_BYTES = 32
NONCE_BYTES = 16

_CENTS = Decimal("0.01")

RandomSource = Callable[[int], bytes]


def line_item_price(raw: Any) -> Decimal:
    """Parsed unit price. Malformed or negative entries count as zero."""
    price = parse_decimal(raw)
    if price is None or price < 0:
        return Decimal(0)
    return price


def round2(amount: Decimal) -> Decimal:
    """Round half-up to two decimal places."""
    return amount.quantize(_CENTS, rounding=ROUND_HALF_UP)


def compute_totals(draft: InvoiceDraft) -> tuple[Decimal, Decimal]:
    """
    Compute (total_amount, total_amount_with_vat) for a draft.

    The net total is the exact sum of line prices; only the VAT-inclusive
    total is rounded.
    """
    total = sum((line_item_price(item.unit_price) for item in draft.line_items), Decimal(0))
    with_vat = round2(total * (1 + draft.vat_percent / 100))
    return total, with_vat


def _random_hex(random_bytes: RandomSource, size: int) -> str:
    raw = random_bytes(size)
    if not isinstance(raw, (bytes, bytearray)) or len(raw) != size:
        raise ValueError(f"Random source must return exactly {size} bytes")
    return bytes_to_hex(bytes(raw))


def build_canonical_invoice(
    draft: InvoiceDraft,
    random_bytes: RandomSource = secrets.token_bytes,
) -> CanonicalInvoice:
    """
    Freeze a draft into a canonical invoice.

    Args:
        draft: Invoice being issued
        random_bytes: Source of cryptographically strong random bytes

    Returns:
        Canonical invoice with a fresh reference and nonce

    Raises:
        ValueError: If the random source returns the wrong number of bytes
    """
    total, with_vat = compute_totals(draft)

    line_items = tuple(
        CanonicalLineItem(
            index=index,
            text=item.description,
            preis=line_item_price(item.unit_price),
        )
        for index, item in enumerate(draft.line_items)
    )

    invoice = CanonicalInvoice(
        title=draft.title,
        vat_percent=draft.vat_percent,
        line_items=line_items,
        total_amount=total,
        total_amount_with_vat=with_vat,
        payment_due_date=draft.payment_due_date,
        invoice_reference=_random_hex(random_bytes, REFERENCE_BYTES),
        nonce=_random_hex(random_bytes, NONCE_BYTES),
    )

    logger.debug(
        f"Built canonical invoice {invoice.invoice_reference} "
        f"({len(line_items)} line items, total {with_vat})"
    )
    return invoice


def parse_canonical_invoice(plaintext: str | bytes) -> CanonicalInvoice:
    """
    Parse a decrypted canonical invoice.

    Only the exact schema-version-1 field set is accepted - no optional keys,
    no fallbacks.

    Raises:
        MalformedInvoiceError: Not JSON, wrong field set, or invalid values
    """
    try:
        data = json.loads(plaintext, parse_float=Decimal)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedInvoiceError(f"Invoice payload is not valid JSON: {e}")

    if not isinstance(data, dict) or tuple(data.keys()) != CANONICAL_FIELDS:
        raise MalformedInvoiceError("Invoice payload does not match the canonical field set")

    items = data["lineItems"]
    if not isinstance(items, list) or any(
        not isinstance(item, dict) or tuple(item.keys()) != CANONICAL_LINE_ITEM_FIELDS
        for item in items
    ):
        raise MalformedInvoiceError("Invoice line items do not match the canonical field set")

    try:
        return CanonicalInvoice(
            title=data["title"],
            vat_percent=Decimal(str(data["vat"])),
            line_items=tuple(
                CanonicalLineItem(
                    index=item["index"],
                    text=item["text"],
                    preis=Decimal(str(item["preis"])),
                )
                for item in items
            ),
            total_amount=Decimal(str(data["totalAmount"])),
            total_amount_with_vat=Decimal(str(data["totalAmountWithVat"])),
            payment_due_date=data["paymentDueDate"],
            invoice_reference=data["invoiceReference"],
            nonce=data["nonce"],
        )
    except (ValidationError, ArithmeticError, TypeError) as e:
        raise MalformedInvoiceError(f"Invoice payload has invalid values: {e}")
