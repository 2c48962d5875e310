"""Core domain models."""

from core.models.invoice import (
    CANONICAL_SCHEMA_VERSION,
    CanonicalInvoice,
    CanonicalLineItem,
    InvoiceDraft,
    LineItemDraft,
    LocalInvoiceEntry,
)
from core.models.ledger import (
    EncryptedEnvelope,
    InvoiceFilter,
    InvoiceFilterKind,
    IssuedInvoice,
    LedgerInvoiceRecord,
    OpenedInvoice,
    TransactionReceipt,
)
from core.models.payment import (
    IncomingPayment,
    InvoicePaymentStatus,
    PaymentStatus,
    PaymentSummary,
    RawTransaction,
)

__all__ = [
    # Invoice
    "CANONICAL_SCHEMA_VERSION", "CanonicalInvoice", "CanonicalLineItem",
    "InvoiceDraft", "LineItemDraft", "LocalInvoiceEntry",
    # Ledger
    "EncryptedEnvelope", "InvoiceFilter", "InvoiceFilterKind",
    "IssuedInvoice", "LedgerInvoiceRecord", "OpenedInvoice", "TransactionReceipt",
    # Payment
    "IncomingPayment", "InvoicePaymentStatus", "PaymentStatus",
    "PaymentSummary", "RawTransaction",
]
