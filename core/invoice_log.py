"""
Append-only local log of issued invoices.

One Valkey list per issuing address. Entries are only ever appended; the log
is order-insensitive for reconciliation, so concurrent appends need no
coordination beyond the atomic RPUSH.
"""

import logging

import redis

from clients.valkey_client import ValkeyClient
from core.exceptions import InvoiceLogError
from core.models import LocalInvoiceEntry

logger = logging.getLogger(__name__)


class LocalInvoiceLog:
    """Issuer-side invoice metadata kept on the issuing party's device."""

    KEY_PREFIX = "invoice_log:"

    def __init__(self, valkey: ValkeyClient):
        self._valkey = valkey

    def _key(self, address: str) -> str:
        """Valkey key for an issuer (address normalized to lowercase)."""
        return f"{self.KEY_PREFIX}{address.lower()}"

    def append(self, issuer: str, entry: LocalInvoiceEntry) -> None:
        """
        Record an issued invoice for later reconciliation.

        Raises:
            InvoiceLogError: Valkey unavailable (carries the invoice reference)
        """
        try:
            length = self._valkey.append_json(self._key(issuer), entry.to_record())
        except redis.RedisError as e:
            logger.error(f"Failed to log invoice {entry.invoice_reference} for {issuer}: {e}")
            raise InvoiceLogError(
                f"Local invoice log unavailable: {e}",
                invoice_reference=entry.invoice_reference,
            )

        logger.info(f"Logged invoice {entry.invoice_reference} for {issuer} ({length} entries)")

    def list_entries(self, issuer: str) -> list[LocalInvoiceEntry]:
        """
        All entries for an issuer in insertion order.

        If the same reference was appended twice, the first entry wins.

        Raises:
            InvoiceLogError: Valkey unavailable
        """
        try:
            records = self._valkey.range_json(self._key(issuer))
        except redis.RedisError as e:
            logger.error(f"Failed to read invoice log for {issuer}: {e}")
            raise InvoiceLogError(f"Local invoice log unavailable: {e}")

        entries: list[LocalInvoiceEntry] = []
        seen: set[str] = set()

        for record in records:
            entry = LocalInvoiceEntry.from_record(record)
            if entry.invoice_reference in seen:
                logger.warning(f"Duplicate log entry for {entry.invoice_reference} ignored")
                continue
            seen.add(entry.invoice_reference)
            entries.append(entry)

        return entries

    def references(self, issuer: str) -> set[str]:
        """Invoice references issued from an address."""
        return {entry.invoice_reference for entry in self.list_entries(issuer)}
