"""
Web3 ledger client for the invoice registry contract.

Writes are signed by the node/wallet behind the RPC endpoint (the core holds
no keys) and are never retried. Reads are idempotent and retried up to the
configured number of attempts.
"""

import logging
from typing import Any, Callable, Sequence, TypeVar

import requests
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from core.codec import bytes_to_hex, hex_to_bytes32
from core.config import InvoiceVaultConfig
from core.exceptions import LedgerReadError, SubmissionRejected
from core.models import (
    InvoiceFilter,
    InvoiceFilterKind,
    LedgerInvoiceRecord,
    TransactionReceipt,
)
from utils.timezone import from_unix

logger = logging.getLogger(__name__)

T = TypeVar("T")

_INVOICE_TUPLE = {
    "components": [
        {"internalType": "bytes32", "name": "id", "type": "bytes32"},
        {"internalType": "address", "name": "sender", "type": "address"},
        {"internalType": "bytes32", "name": "receiverKey", "type": "bytes32"},
        {"internalType": "bytes", "name": "encryptedData", "type": "bytes"},
        {"internalType": "bytes32", "name": "integrityHash", "type": "bytes32"},
        {"internalType": "uint256", "name": "timestamp", "type": "uint256"},
    ],
    "internalType": "struct SecureInvoiceVault.Invoice[]",
    "name": "",
    "type": "tuple[]",
}

INVOICE_REGISTRY_ABI = [
    {
        "inputs": [
            {"internalType": "bytes32", "name": "receiverKey", "type": "bytes32"},
            {"internalType": "bytes", "name": "encryptedData", "type": "bytes"},
            {"internalType": "bytes32", "name": "integrityHash", "type": "bytes32"},
        ],
        "name": "createInvoice",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "uint256", "name": "start", "type": "uint256"},
            {"internalType": "uint256", "name": "count", "type": "uint256"},
        ],
        "name": "getInvoicesForSender",
        "outputs": [_INVOICE_TUPLE],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "bytes32", "name": "receiverKey", "type": "bytes32"},
            {"internalType": "uint256", "name": "start", "type": "uint256"},
            {"internalType": "uint256", "name": "count", "type": "uint256"},
        ],
        "name": "getInvoicesForReceiver",
        "outputs": [_INVOICE_TUPLE],
        "stateMutability": "view",
        "type": "function",
    },
]

# Errors raised by web3 or the HTTP transport underneath it
_LEDGER_ERRORS = (Web3Exception, ValueError, requests.exceptions.RequestException)


def _as_hex(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes_to_hex(bytes(value))
    text = str(value).lower()
    return text if text.startswith("0x") else "0x" + text


def record_from_tuple(row: Sequence[Any]) -> LedgerInvoiceRecord:
    """Convert one (id, sender, receiverKey, encryptedData, integrityHash, timestamp) tuple."""
    invoice_id, sender, receiver_key, encrypted_data, integrity, timestamp = row
    return LedgerInvoiceRecord(
        id=_as_hex(invoice_id),
        sender=sender,
        receiver_key_id=_as_hex(receiver_key),
        ciphertext=bytes(encrypted_data),
        integrity_hash=_as_hex(integrity),
        created_at=from_unix(timestamp),
    )


class LedgerClient:
    """
    Invoice registry contract client.

    Usage:
        ledger = LedgerClient(rpc_url, contract_address, chain_id=1287)
        receipt = ledger.submit_invoice(key_id, ciphertext, digest, sender=address)
        page = ledger.list_invoices(InvoiceFilter.by_sender(address), 0, 20)
    """

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        chain_id: int | None = None,
        config: InvoiceVaultConfig | None = None,
        w3: Web3 | None = None,
    ):
        """
        Initialize contract binding.

        Args:
            rpc_url: JSON-RPC endpoint of a node/wallet able to sign for senders
            contract_address: Invoice registry address
            chain_id: Expected chain id (checked before the first call)
            config: Tunables (read attempts, receipt timeout)
            w3: Pre-built Web3 instance (skips HTTPProvider setup)

        Raises:
            ValueError: If contract_address is not an address
        """
        if not Web3.is_address(contract_address):
            raise ValueError(f"Invalid contract address: {contract_address}")

        self._config = config or InvoiceVaultConfig()
        self._w3 = w3 or Web3(Web3.HTTPProvider(
            rpc_url, request_kwargs={"timeout": self._config.http_timeout_seconds}
        ))
        self._contract = self._w3.eth.contract(
            address=Web3.to_checksum_address(contract_address),
            abi=INVOICE_REGISTRY_ABI,
        )
        self._expected_chain_id = int(chain_id) if chain_id is not None else None
        self._chain_verified = self._expected_chain_id is None

    def _verify_chain(self) -> None:
        """Check the endpoint serves the configured chain. Raises ValueError on mismatch."""
        if self._chain_verified:
            return

        actual = self._w3.eth.chain_id
        if actual != self._expected_chain_id:
            raise ValueError(
                f"Ledger endpoint is on chain {actual}, expected {self._expected_chain_id}"
            )
        self._chain_verified = True

    def submit_invoice(
        self,
        receiver_key_id: bytes,
        ciphertext: bytes,
        integrity_hash: bytes,
        sender: str,
    ) -> TransactionReceipt:
        """
        Anchor an invoice on the ledger and wait for it to be mined.

        Not retried on failure - a retry could create a duplicate invoice.

        Raises:
            SubmissionRejected: On any network, signing, gas or revert failure
        """
        if len(receiver_key_id) != 32 or len(integrity_hash) != 32:
            raise SubmissionRejected("Receiver key id and integrity hash must be 32 bytes")
        if not Web3.is_address(sender):
            raise SubmissionRejected(f"Invalid sender address: {sender}")

        try:
            self._verify_chain()
            tx_hash = self._contract.functions.createInvoice(
                receiver_key_id, ciphertext, integrity_hash
            ).transact({"from": Web3.to_checksum_address(sender)})
            receipt = self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._config.ledger_receipt_timeout_seconds
            )
        except ContractLogicError as e:
            logger.error(f"createInvoice reverted: {e}")
            raise SubmissionRejected(f"Ledger rejected invoice: {e}")
        except TimeExhausted as e:
            logger.error(f"createInvoice not mined in time: {e}")
            raise SubmissionRejected(f"Invoice submission not confirmed: {e}")
        except _LEDGER_ERRORS as e:
            logger.error(f"createInvoice failed: {e}")
            raise SubmissionRejected(f"Invoice submission failed: {e}")

        tx_hash_hex = _as_hex(receipt["transactionHash"])
        if receipt["status"] != 1:
            logger.error(f"createInvoice transaction {tx_hash_hex} reverted")
            raise SubmissionRejected(f"Invoice transaction {tx_hash_hex} reverted")

        logger.info(f"Invoice anchored in tx {tx_hash_hex}")
        return TransactionReceipt(
            tx_hash=tx_hash_hex,
            block_number=receipt.get("blockNumber"),
            status=receipt["status"],
        )

    def _read(self, description: str, call: Callable[[], T]) -> T:
        """Run an idempotent read with retries."""
        attempts = self._config.ledger_read_attempts
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                self._verify_chain()
                return call()
            except _LEDGER_ERRORS as e:
                last_error = e
                logger.warning(f"{description} failed (attempt {attempt}/{attempts}): {e}")

        logger.error(f"{description} failed after {attempts} attempts")
        raise LedgerReadError(f"{description} failed: {last_error}")

    def list_invoices(
        self, filter_by: InvoiceFilter, start: int, count: int
    ) -> list[LedgerInvoiceRecord]:
        """
        One page of invoices in ledger sequence.

        Args:
            filter_by: Sender address or receiver key id
            start: Index of the first invoice
            count: Maximum invoices to return

        Raises:
            LedgerReadError: If the read keeps failing
            DecodeError: If a receiver key id is not 32 bytes of hex
        """
        if filter_by.kind == InvoiceFilterKind.SENDER:
            if not Web3.is_address(filter_by.value):
                raise ValueError(f"Invalid sender address: {filter_by.value}")
            sender = Web3.to_checksum_address(filter_by.value)
            def call():
                return self._contract.functions.getInvoicesForSender(
                    start, count
                ).call({"from": sender})
        else:
            receiver_key = hex_to_bytes32(filter_by.value)
            def call():
                return self._contract.functions.getInvoicesForReceiver(
                    receiver_key, start, count
                ).call()

        rows = self._read(f"list invoices by {filter_by.kind.value}", call)
        return [record_from_tuple(row) for row in rows]
