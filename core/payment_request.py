"""
Receiver-side payment request.

Turns a decrypted invoice into wallet-ready transaction parameters. The
invoice reference travels in the transaction data field so the issuer's
reconciliation can attribute the payment.
"""

import logging
from decimal import Decimal

from web3 import Web3

from core.exceptions import MalformedInvoiceError
from core.invoice_builder import parse_canonical_invoice
from core.models import LedgerInvoiceRecord

logger = logging.getLogger(__name__)


def build_payment_request(
    record: LedgerInvoiceRecord,
    plaintext: str,
    payer: str,
) -> dict[str, str]:
    """
    Build eth_sendTransaction params paying an invoice in full.

    Args:
        record: Ledger record the plaintext was decrypted from
        plaintext: Decrypted canonical invoice
        payer: Address paying the invoice

    Returns:
        Dict with from, to, value (hex wei) and data (invoice reference)

    Raises:
        MalformedInvoiceError: Payload is not a canonical invoice or has no positive amount
        ValueError: Payer or sender address is invalid
    """
    invoice = parse_canonical_invoice(plaintext)

    amount: Decimal = invoice.total_amount_with_vat
    if amount <= 0:
        raise MalformedInvoiceError(
            f"Invoice {invoice.invoice_reference} has no payable amount"
        )

    if not Web3.is_address(payer):
        raise ValueError(f"Invalid payer address: {payer}")
    if not Web3.is_address(record.sender):
        raise ValueError(f"Invalid invoice sender address: {record.sender}")

    value_wei = Web3.to_wei(amount, "ether")

    logger.info(
        f"Payment request for invoice {invoice.invoice_reference}: {amount} to {record.sender}"
    )
    return {
        "from": Web3.to_checksum_address(payer),
        "to": Web3.to_checksum_address(record.sender),
        "value": hex(value_wei),
        "data": invoice.invoice_reference,
    }
