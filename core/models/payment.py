"""Payment and reconciliation models.

All amounts are Decimal in the ledger's native unit (ether, not wei).
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class RawTransaction(BaseModel):
    """One transaction as reported by the history feed."""

    hash: str
    to: str | None = None
    from_address: str | None = Field(None, alias="from")
    value: Decimal = Decimal(0)
    input: str = "0x"
    timestamp: datetime
    is_error: bool = False

    model_config = {"populate_by_name": True, "frozen": True}


class IncomingPayment(BaseModel):
    """A transaction to our address that carries a known invoice reference."""

    tx_hash: str
    from_address: str | None
    amount: Decimal
    matched_reference: str
    timestamp: datetime
    ambiguous: bool = False  # payload also contained another known reference

    model_config = {"frozen": True}


class PaymentSummary(BaseModel):
    """
    Paid totals per known invoice reference.

    Every known reference has an entry (zero if unpaid). Payments are ordered
    by (timestamp, tx_hash).
    """

    totals: dict[str, Decimal]
    payments: tuple[IncomingPayment, ...] = ()

    model_config = {"frozen": True}

    def total_for(self, reference: str) -> Decimal:
        """Paid sum for a reference (zero if unknown)."""
        return self.totals.get(reference.lower(), Decimal(0))


class PaymentStatus(str, Enum):
    """Settlement state of an issued invoice, derived per reconciliation pass."""

    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


class InvoicePaymentStatus(BaseModel):
    """Local invoice entry joined with its reconciled payments."""

    invoice_reference: str
    amount_due: Decimal
    amount_paid: Decimal
    payment_due_date: date | None
    status: PaymentStatus
    payments: tuple[IncomingPayment, ...] = ()

    @property
    def outstanding(self) -> Decimal:
        """Remaining amount (never negative)."""
        return max(self.amount_due - self.amount_paid, Decimal(0))

    @property
    def is_paid(self) -> bool:
        return self.status == PaymentStatus.PAID
