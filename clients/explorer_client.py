"""
Block-explorer client for transaction history.

Speaks the Etherscan-style account API (module=account&action=txlist).
Values are converted from wei to native units before they reach
reconciliation.
"""

import logging

import requests
from pydantic import ValidationError
from web3 import Web3

from core.config import InvoiceVaultConfig
from core.exceptions import HistoryFetchError
from core.models import RawTransaction
from utils.timezone import from_unix

logger = logging.getLogger(__name__)

# Explorer answers status "0" with this message when an address has no history
_NO_TRANSACTIONS = "No transactions found"


def _may_be_incoming(row, address: str) -> bool:
    """True unless the row visibly names another recipient."""
    if not isinstance(row, dict) or "to" not in row:
        return True
    return str(row["to"] or "").lower() == address.lower()


class ExplorerClient:
    """Fetch an address's transaction history from an explorer API."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        config: InvoiceVaultConfig | None = None,
    ):
        """
        Initialize with explorer credentials.

        Args:
            api_url: Explorer API base URL (e.g. https://api-moonbase.moonscan.io/api)
            api_key: Explorer API key

        Raises:
            ValueError: If any credential is empty
        """
        if not api_url:
            raise ValueError("api_url is required")
        if not api_key:
            raise ValueError("api_key is required")

        self.api_url = api_url
        self.api_key = api_key
        self._config = config or InvoiceVaultConfig()

    def _get_page(self, address: str, page: int) -> list[dict]:
        """
        Fetch one page of raw explorer rows.

        Raises:
            HistoryFetchError: On any transport or API failure
        """
        params = {
            "module": "account",
            "action": "txlist",
            "address": address,
            "startblock": 0,
            "endblock": 99999999,
            "page": page,
            "offset": self._config.explorer_page_size,
            "sort": "asc",
            "apikey": self.api_key,
        }

        try:
            response = requests.get(
                self.api_url, params=params, timeout=self._config.http_timeout_seconds
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Explorer connection failed: {e}")
            raise HistoryFetchError(f"Connection failed: {e}")

        if response.status_code != 200:
            logger.error(f"Explorer returned HTTP {response.status_code}")
            raise HistoryFetchError(f"Explorer returned HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError:
            logger.error(f"Explorer returned invalid JSON: {response.text}")
            raise HistoryFetchError("Invalid response from explorer")

        result = body.get("result")
        if str(body.get("status")) != "1":
            if body.get("message") == _NO_TRANSACTIONS:
                return []
            error_msg = result if isinstance(result, str) else body.get("message", "Unknown error")
            logger.error(f"Explorer error: {error_msg}")
            raise HistoryFetchError(f"Explorer error: {error_msg}")

        if not isinstance(result, list):
            raise HistoryFetchError("Explorer result is not a list")

        return result

    @staticmethod
    def to_transaction(row: dict) -> RawTransaction:
        """
        Map one explorer row to a RawTransaction.

        Raises:
            ValueError: If the row is missing a hash/timestamp or has a bad value
        """
        try:
            return RawTransaction(
                hash=row["hash"],
                to=row.get("to") or None,
                from_address=row.get("from") or None,
                value=Web3.from_wei(int(row.get("value") or 0), "ether"),
                input=row.get("input") or "0x",
                timestamp=from_unix(row["timeStamp"]),
                is_error=str(row.get("isError", "0")) == "1",
            )
        except (AttributeError, KeyError, TypeError, ValidationError) as e:
            raise ValueError(f"Malformed explorer row: {e}")

    def fetch_transactions(self, address: str) -> list[RawTransaction]:
        """
        All transactions touching address, oldest first.

        Unparseable rows are skipped only when they are not addressed to
        address; an unreadable incoming row could hide a payment.

        Raises:
            HistoryFetchError: If any page cannot be fetched, an incoming row
                cannot be parsed, or history runs past explorer_max_pages
        """
        transactions: list[RawTransaction] = []

        for page in range(1, self._config.explorer_max_pages + 1):
            rows = self._get_page(address, page)
            for row in rows:
                try:
                    transactions.append(self.to_transaction(row))
                except ValueError as e:
                    if _may_be_incoming(row, address):
                        logger.error(f"Unreadable incoming transaction for {address}: {e}")
                        raise HistoryFetchError(f"Unreadable incoming transaction: {e}")
                    logger.warning(f"Skipping explorer row: {e}")

            if len(rows) < self._config.explorer_page_size:
                break
        else:
            logger.error(
                f"History for {address} exceeds {self._config.explorer_max_pages} pages"
            )
            raise HistoryFetchError(
                f"History exceeds {self._config.explorer_max_pages} pages; "
                "refusing to reconcile a partial history"
            )

        logger.info(f"Fetched {len(transactions)} transactions for {address}")
        return transactions
