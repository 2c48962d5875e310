"""Tests for ExplorerClient - Etherscan-style transaction history."""

from decimal import Decimal

import pytest
import requests
import responses
from responses import matchers

from clients.explorer_client import ExplorerClient
from core.config import InvoiceVaultConfig
from core.exceptions import HistoryFetchError

API_URL = "https://explorer.invalid/api"
ADDRESS = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"


def row(n: int, value="1500000000000000000", **overrides) -> dict:
    data = {
        "hash": f"0x{n:064x}",
        "to": ADDRESS.lower(),
        "from": "0xdbf03b407c01e7cd3cbea99509d93f8dddc8c6fb",
        "value": value,
        "input": "0x" + "aa" * 32,
        "timeStamp": str(1700000000 + n),
        "isError": "0",
    }
    data.update(overrides)
    return data


def ok(rows):
    return {"status": "1", "message": "OK", "result": rows}


@pytest.fixture
def explorer():
    return ExplorerClient(API_URL, "test-key")


class TestInit:

    def test_requires_url(self):
        with pytest.raises(ValueError, match="api_url"):
            ExplorerClient("", "key")

    def test_requires_key(self):
        with pytest.raises(ValueError, match="api_key"):
            ExplorerClient(API_URL, "")


class TestFetchTransactions:

    @responses.activate
    def test_sends_txlist_query(self, explorer):
        responses.add(
            responses.GET, API_URL, json=ok([]),
            match=[matchers.query_param_matcher({
                "module": "account",
                "action": "txlist",
                "address": ADDRESS,
                "startblock": "0",
                "endblock": "99999999",
                "page": "1",
                "offset": "1000",
                "sort": "asc",
                "apikey": "test-key",
            })],
        )
        assert explorer.fetch_transactions(ADDRESS) == []

    @responses.activate
    def test_converts_wei_to_native(self, explorer):
        responses.add(responses.GET, API_URL, json=ok([row(1)]))

        [tx] = explorer.fetch_transactions(ADDRESS)

        assert tx.value == Decimal("1.5")
        assert tx.to == ADDRESS.lower()
        assert tx.timestamp.timestamp() == 1700000001
        assert tx.is_error is False

    @responses.activate
    def test_zero_value(self, explorer):
        responses.add(responses.GET, API_URL, json=ok([row(1, value="0")]))
        assert explorer.fetch_transactions(ADDRESS)[0].value == 0

    @responses.activate
    def test_error_flag(self, explorer):
        responses.add(responses.GET, API_URL, json=ok([row(1, isError="1")]))
        assert explorer.fetch_transactions(ADDRESS)[0].is_error is True

    @responses.activate
    def test_no_transactions_is_empty(self, explorer):
        responses.add(
            responses.GET, API_URL,
            json={"status": "0", "message": "No transactions found", "result": []},
        )
        assert explorer.fetch_transactions(ADDRESS) == []

    @responses.activate
    def test_api_error_raises(self, explorer):
        responses.add(
            responses.GET, API_URL,
            json={"status": "0", "message": "NOTOK", "result": "Max rate limit reached"},
        )
        with pytest.raises(HistoryFetchError, match="rate limit"):
            explorer.fetch_transactions(ADDRESS)

    @responses.activate
    def test_http_error_raises(self, explorer):
        responses.add(responses.GET, API_URL, status=502)
        with pytest.raises(HistoryFetchError, match="502"):
            explorer.fetch_transactions(ADDRESS)

    @responses.activate
    def test_connection_error_raises(self, explorer):
        responses.add(responses.GET, API_URL, body=requests.exceptions.ConnectionError("down"))
        with pytest.raises(HistoryFetchError, match="Connection failed"):
            explorer.fetch_transactions(ADDRESS)

    @responses.activate
    def test_invalid_json_raises(self, explorer):
        responses.add(responses.GET, API_URL, body="<html>busy</html>")
        with pytest.raises(HistoryFetchError, match="Invalid response"):
            explorer.fetch_transactions(ADDRESS)

    @responses.activate
    def test_malformed_outgoing_row_skipped(self, explorer):
        outgoing = row(2, to="0xdbf03b407c01e7cd3cbea99509d93f8dddc8c6fb")
        del outgoing["timeStamp"]
        responses.add(responses.GET, API_URL, json=ok([row(1), outgoing]))

        txs = explorer.fetch_transactions(ADDRESS)
        assert [tx.hash for tx in txs] == [f"0x{1:064x}"]

    @pytest.mark.parametrize("broken", [
        row(2, value="oops"),
        {k: v for k, v in row(2).items() if k != "timeStamp"},
        {k: v for k, v in row(2).items() if k not in ("to", "hash")},
        ["not", "a", "row"],
    ])
    @responses.activate
    def test_malformed_incoming_row_raises(self, explorer, broken):
        responses.add(responses.GET, API_URL, json=ok([row(1), broken]))

        with pytest.raises(HistoryFetchError, match="Unreadable incoming"):
            explorer.fetch_transactions(ADDRESS)

    @responses.activate
    def test_pages_until_short_page(self):
        explorer = ExplorerClient(API_URL, "k", config=InvoiceVaultConfig(explorer_page_size=2))
        responses.add(responses.GET, API_URL, json=ok([row(1), row(2)]))
        responses.add(responses.GET, API_URL, json=ok([row(3)]))

        txs = explorer.fetch_transactions(ADDRESS)

        assert len(txs) == 3
        assert len(responses.calls) == 2

    @responses.activate
    def test_history_beyond_page_cap_raises(self):
        """A full last page means more history exists; a partial list is never returned."""
        explorer = ExplorerClient(
            API_URL, "k",
            config=InvoiceVaultConfig(explorer_page_size=1, explorer_max_pages=2),
        )
        responses.add(responses.GET, API_URL, json=ok([row(1)]))
        responses.add(responses.GET, API_URL, json=ok([row(2)]))
        responses.add(responses.GET, API_URL, json=ok([row(3)]))

        with pytest.raises(HistoryFetchError, match="2 pages"):
            explorer.fetch_transactions(ADDRESS)
        assert len(responses.calls) == 2

    @responses.activate
    def test_short_last_page_within_cap(self):
        explorer = ExplorerClient(
            API_URL, "k",
            config=InvoiceVaultConfig(explorer_page_size=2, explorer_max_pages=2),
        )
        responses.add(responses.GET, API_URL, json=ok([row(1), row(2)]))
        responses.add(responses.GET, API_URL, json=ok([row(3)]))

        assert len(explorer.fetch_transactions(ADDRESS)) == 3
