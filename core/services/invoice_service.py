"""
Invoice service: issue, list, open and verify ledger invoices.

Issuing freezes a draft into a canonical invoice, encrypts it for the
receiver, anchors it on the ledger and only then records it in the issuer's
local log. Ledger writes are never retried here.
"""

import logging
import secrets

from core.codec import bytes_to_hex
from core.config import InvoiceVaultConfig
from core.envelope import encrypt_invoice, receiver_key_id, verify_integrity
from core.exceptions import InvoiceLogError
from core.gateway import KeyHolder, LedgerGateway
from core.invoice_builder import RandomSource, build_canonical_invoice, parse_canonical_invoice
from core.invoice_log import LocalInvoiceLog
from core.models import (
    InvoiceDraft,
    InvoiceFilter,
    IssuedInvoice,
    LedgerInvoiceRecord,
    LocalInvoiceEntry,
    OpenedInvoice,
)
from utils.timezone import now_utc
from wallet.session import WalletSession

logger = logging.getLogger(__name__)


class InvoiceService:
    """Service for invoice operations on behalf of a connected wallet."""

    def __init__(
        self,
        ledger: LedgerGateway,
        invoice_log: LocalInvoiceLog,
        key_holder: KeyHolder,
        config: InvoiceVaultConfig | None = None,
        random_bytes: RandomSource = secrets.token_bytes,
    ):
        self.ledger = ledger
        self.invoice_log = invoice_log
        self.key_holder = key_holder
        self.config = config or InvoiceVaultConfig()
        self.random_bytes = random_bytes

    def issue(
        self,
        session: WalletSession,
        draft: InvoiceDraft,
        receiver_public_key: str,
    ) -> IssuedInvoice:
        """
        Issue an invoice from the session's address to a receiver.

        Args:
            session: Issuer's wallet session
            draft: Invoice content
            receiver_public_key: Receiver's encryption key (base64 or 0x hex)

        Returns:
            The canonical invoice, its envelope and the ledger receipt

        Raises:
            DecodeError: Receiver key is malformed
            SubmissionRejected: Ledger write failed (nothing is logged locally)
            InvoiceLogError: Anchored on the ledger but not logged locally;
                carries the tx hash so the invoice is not resubmitted
        """
        invoice = build_canonical_invoice(draft, self.random_bytes)
        envelope = encrypt_invoice(invoice.canonical_bytes(), receiver_public_key)

        receipt = self.ledger.submit_invoice(
            receiver_key_id=envelope.receiver_key_id,
            ciphertext=envelope.ciphertext,
            integrity_hash=envelope.integrity_hash,
            sender=session.address,
        )

        entry = LocalInvoiceEntry(
            invoice_reference=invoice.invoice_reference,
            total_amount_with_vat=invoice.total_amount_with_vat,
            payment_due_date=invoice.payment_due_date,
            created_at=now_utc(),
        )
        try:
            self.invoice_log.append(session.address, entry)
        except InvoiceLogError as e:
            logger.error(
                f"Invoice {invoice.invoice_reference} anchored in tx {receipt.tx_hash} "
                f"but not logged locally: {e}"
            )
            raise InvoiceLogError(
                f"Invoice {invoice.invoice_reference} was anchored in tx {receipt.tx_hash} "
                "but could not be logged locally. Do not resubmit it.",
                invoice_reference=invoice.invoice_reference,
                tx_hash=receipt.tx_hash,
            ) from e

        logger.info(
            f"Issued invoice {invoice.invoice_reference} from {session.address} "
            f"in tx {receipt.tx_hash}"
        )
        return IssuedInvoice(invoice=invoice, envelope=envelope, receipt=receipt)

    def _walk(self, filter_by: InvoiceFilter) -> list[LedgerInvoiceRecord]:
        """All invoices for a filter, page by page in ledger sequence."""
        page_size = self.config.ledger_page_size
        records: list[LedgerInvoiceRecord] = []

        for page in range(self.config.ledger_max_pages):
            batch = list(self.ledger.list_invoices(filter_by, page * page_size, page_size))
            records.extend(batch)
            if len(batch) < page_size:
                break
        else:
            logger.warning(
                f"Listing by {filter_by.kind.value} stopped after "
                f"{self.config.ledger_max_pages} pages"
            )

        return records

    def list_sent(self, session: WalletSession) -> list[LedgerInvoiceRecord]:
        """Invoices anchored by the session's address."""
        return self._walk(InvoiceFilter.by_sender(session.address))

    def list_received(self, session: WalletSession) -> list[LedgerInvoiceRecord]:
        """
        Invoices encrypted for the session's encryption key.

        Raises:
            ValueError: Session has no encryption public key
        """
        if not session.encryption_public_key:
            raise ValueError("Session has no encryption public key")

        key_id = bytes_to_hex(receiver_key_id(session.encryption_public_key))
        return self._walk(InvoiceFilter.by_receiver(key_id))

    def find_invoice(self, session: WalletSession, invoice_id: str) -> LedgerInvoiceRecord:
        """
        Look up an invoice the session received or sent.

        Raises:
            ValueError: Invoice not found
        """
        wanted = invoice_id.lower()
        candidates = self.list_received(session) if session.encryption_public_key else []
        for record in [*candidates, *self.list_sent(session)]:
            if record.id.lower() == wanted:
                return record
        raise ValueError(f"Invoice {invoice_id} not found")

    def decrypt(self, session: WalletSession, record: LedgerInvoiceRecord) -> str:
        """
        Plaintext of a received invoice, prompting the key-holder at most once per session.

        Raises:
            DecryptionDenied: Key-holder refused
            DecryptionFailed: Ciphertext malformed or not for this key
        """
        def call() -> str:
            return self.key_holder.decrypt(record.ciphertext, session.address)

        return session.decrypt_once(record.id, call)

    def open(self, session: WalletSession, invoice_id: str) -> OpenedInvoice:
        """
        Decrypt, parse and integrity-check a received invoice.

        Raises:
            ValueError: Invoice not found
            DecryptionDenied / DecryptionFailed: From the key-holder
            MalformedInvoiceError: Plaintext is not a canonical invoice
        """
        record = self.find_invoice(session, invoice_id)
        plaintext = self.decrypt(session, record)
        invoice = parse_canonical_invoice(plaintext)

        verified = verify_integrity(plaintext, record.integrity_hash)
        if not verified:
            logger.warning(f"Invoice {record.id} does not match its anchored hash")

        return OpenedInvoice(record=record, invoice=invoice, integrity_verified=verified)

    def verify(self, session: WalletSession, invoice_id: str, plaintext: str) -> bool:
        """Check a disclosed plaintext against the hash anchored for invoice_id."""
        record = self.find_invoice(session, invoice_id)
        verified = verify_integrity(plaintext, record.integrity_hash)
        logger.info(f"Disclosure check for {record.id}: {'match' if verified else 'mismatch'}")
        return verified
