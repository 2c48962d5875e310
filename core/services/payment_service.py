"""
Payment service: reconcile issued invoices and prepare payments.

Reconciliation is recomputed from scratch on every call from the local log
and the transaction history feed. Nothing is persisted.
"""

import logging
from datetime import date

from core.gateway import TransactionHistorySource
from core.invoice_log import LocalInvoiceLog
from core.models import (
    InvoicePaymentStatus,
    LocalInvoiceEntry,
    PaymentStatus,
    PaymentSummary,
)
from core.payment_request import build_payment_request
from core.reconciliation import reconcile
from core.services.invoice_service import InvoiceService
from utils.timezone import today_utc
from wallet.session import WalletSession

logger = logging.getLogger(__name__)


def payment_status(
    entry: LocalInvoiceEntry,
    summary: PaymentSummary,
    today: date,
) -> InvoicePaymentStatus:
    """Join one local entry with its reconciled payments."""
    reference = entry.invoice_reference.lower()
    paid = summary.total_for(reference)
    due = entry.total_amount_with_vat

    if paid >= due:
        status = PaymentStatus.PAID
    elif entry.payment_due_date is not None and entry.payment_due_date < today:
        status = PaymentStatus.OVERDUE
    elif paid > 0:
        status = PaymentStatus.PARTIAL
    else:
        status = PaymentStatus.UNPAID

    return InvoicePaymentStatus(
        invoice_reference=reference,
        amount_due=due,
        amount_paid=paid,
        payment_due_date=entry.payment_due_date,
        status=status,
        payments=tuple(p for p in summary.payments if p.matched_reference == reference),
    )


class PaymentService:
    """Service for the payment side of issued and received invoices."""

    def __init__(
        self,
        history: TransactionHistorySource,
        invoice_log: LocalInvoiceLog,
        invoices: InvoiceService,
    ):
        self.history = history
        self.invoice_log = invoice_log
        self.invoices = invoices

    def reconcile(self, session: WalletSession) -> PaymentSummary:
        """
        Paid totals for every invoice the session's address issued.

        Raises:
            HistoryFetchError: History feed unavailable (no partial summary)
        """
        references = self.invoice_log.references(session.address)
        transactions = self.history.fetch_transactions(session.address)
        return reconcile(session.address, references, transactions)

    def statuses(
        self,
        session: WalletSession,
        today: date | None = None,
    ) -> list[InvoicePaymentStatus]:
        """
        Settlement status of each locally logged invoice, in issue order.

        Raises:
            HistoryFetchError: History feed unavailable
        """
        entries = self.invoice_log.list_entries(session.address)
        if not entries:
            return []

        transactions = self.history.fetch_transactions(session.address)
        summary = reconcile(
            session.address, [e.invoice_reference for e in entries], transactions
        )

        today = today or today_utc()
        return [payment_status(entry, summary, today) for entry in entries]

    def payment_request(self, session: WalletSession, invoice_id: str) -> dict[str, str]:
        """
        Wallet-ready transaction paying a received invoice in full.

        Raises:
            ValueError: Invoice not found
            DecryptionDenied / DecryptionFailed: From the key-holder
            MalformedInvoiceError: Invoice has no payable amount
        """
        record = self.invoices.find_invoice(session, invoice_id)
        plaintext = self.invoices.decrypt(session, record)
        return build_payment_request(record, plaintext, session.address)
