"""Models for data that is anchored on, or read back from, the ledger."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from core.codec import bytes_to_hex
from core.models.invoice import CanonicalInvoice


class EncryptedEnvelope(BaseModel):
    """Encrypted, integrity-anchored package derived from one canonical invoice."""

    ciphertext: bytes
    integrity_hash: bytes = Field(..., min_length=32, max_length=32)
    receiver_key_id: bytes = Field(..., min_length=32, max_length=32)

    model_config = {"frozen": True}

    @property
    def integrity_hash_hex(self) -> str:
        return bytes_to_hex(self.integrity_hash)

    @property
    def receiver_key_id_hex(self) -> str:
        return bytes_to_hex(self.receiver_key_id)


class InvoiceFilterKind(str, Enum):
    """Which index to enumerate ledger invoices by."""

    SENDER = "sender"
    RECEIVER = "receiver"


class InvoiceFilter(BaseModel):
    """
    Selector for list_invoices.

    value is the sender address for SENDER, or the 0x receiver key id for RECEIVER.
    """

    kind: InvoiceFilterKind
    value: str

    @classmethod
    def by_sender(cls, address: str) -> "InvoiceFilter":
        return cls(kind=InvoiceFilterKind.SENDER, value=address)

    @classmethod
    def by_receiver(cls, receiver_key_id: str) -> "InvoiceFilter":
        return cls(kind=InvoiceFilterKind.RECEIVER, value=receiver_key_id)


class LedgerInvoiceRecord(BaseModel):
    """Invoice as stored on the ledger. Read-only to this codebase."""

    id: str
    sender: str
    receiver_key_id: str
    ciphertext: bytes
    integrity_hash: str
    created_at: datetime

    model_config = {"frozen": True}


class TransactionReceipt(BaseModel):
    """Outcome of a mined ledger write."""

    tx_hash: str
    block_number: int | None = None
    status: int = 1


class IssuedInvoice(BaseModel):
    """Result of issuing: what was encrypted, what was anchored, and where."""

    invoice: CanonicalInvoice
    envelope: EncryptedEnvelope
    receipt: TransactionReceipt

    model_config = {"frozen": True}


class OpenedInvoice(BaseModel):
    """A ledger record decrypted by its receiver."""

    record: LedgerInvoiceRecord
    invoice: CanonicalInvoice
    integrity_verified: bool

    model_config = {"frozen": True}
