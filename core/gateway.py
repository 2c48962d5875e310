"""
Interfaces of the external collaborators the core depends on.

- LedgerGateway: write and enumerate anchored invoices (clients.ledger_client)
- KeyHolder: decrypt envelopes with a private key the core never sees
  (clients.wallet_client, clients.local_key_holder)
- TransactionHistorySource: incoming transaction feed (clients.explorer_client)
"""

from typing import Protocol, Sequence

from core.models import (
    InvoiceFilter,
    LedgerInvoiceRecord,
    RawTransaction,
    TransactionReceipt,
)


class LedgerGateway(Protocol):
    def submit_invoice(
        self,
        receiver_key_id: bytes,
        ciphertext: bytes,
        integrity_hash: bytes,
        sender: str,
    ) -> TransactionReceipt:
        """
        Anchor an invoice. Raises SubmissionRejected on any failure.

        Never retried by callers.
        """
        ...

    def list_invoices(
        self, filter_by: InvoiceFilter, start: int, count: int
    ) -> Sequence[LedgerInvoiceRecord]:
        """One page of invoices in ledger sequence. Raises LedgerReadError."""
        ...


class KeyHolder(Protocol):
    def decrypt(self, ciphertext: bytes, owner_identity: str) -> str:
        """
        Decrypt an envelope on behalf of owner_identity.

        Raises DecryptionDenied on refusal, DecryptionFailed on bad input.
        """
        ...


class TransactionHistorySource(Protocol):
    def fetch_transactions(self, address: str) -> Sequence[RawTransaction]:
        """All transactions touching address. Raises HistoryFetchError."""
        ...
