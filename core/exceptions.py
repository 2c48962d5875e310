"""Typed exceptions for invoice issuing, decryption and reconciliation."""


class InvoiceVaultError(Exception):
    """Base class for all invoice vault failures."""


class DecodeError(InvoiceVaultError):
    """
    Malformed base64 or hex input.

    Local and recoverable - the caller should prompt for re-entry.
    """


class DecryptionDenied(InvoiceVaultError):
    """The key-holder refused to decrypt (user rejected the prompt or policy)."""


class DecryptionFailed(InvoiceVaultError):
    """Ciphertext is malformed or was not encrypted for the key-holder's key."""


class SubmissionRejected(InvoiceVaultError):
    """
    Ledger write failed (network, signature, gas, or revert).

    Never retried automatically - a retry could create a duplicate invoice.
    """


class LedgerReadError(InvoiceVaultError):
    """Ledger read failed after all retry attempts."""


class HistoryFetchError(InvoiceVaultError):
    """Transaction history feed is unavailable. No summary is produced."""


class MalformedInvoiceError(InvoiceVaultError):
    """Decrypted payload does not match the canonical invoice schema."""


class SessionExpiredError(InvoiceVaultError):
    """Wallet session is unknown, disconnected or expired."""


class WalletAuthError(InvoiceVaultError):
    """Connect request did not prove control of the claimed address."""


class InvoiceLogError(InvoiceVaultError):
    """
    Local invoice log unavailable.

    When raised after a ledger write, the invoice is already anchored:
    invoice_reference and tx_hash identify it and it must not be resubmitted.
    """

    def __init__(self, message: str, invoice_reference: str | None = None, tx_hash: str | None = None):
        super().__init__(message)
        self.invoice_reference = invoice_reference
        self.tx_hash = tx_hash
