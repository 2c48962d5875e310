"""Shared test fixtures for the invoice vault test suite."""

import hashlib
import itertools
from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from eth_account import Account
from eth_account.messages import encode_defunct
from nacl.public import PrivateKey

from clients.local_key_holder import LocalKeyHolder
from clients.valkey_client import ValkeyClient
from core.exceptions import SubmissionRejected
from core.invoice_log import LocalInvoiceLog
from core.models import (
    InvoiceDraft,
    InvoiceFilterKind,
    LedgerInvoiceRecord,
    LineItemDraft,
    TransactionReceipt,
)
from utils.timezone import now_utc
from wallet.session import SessionRegistry


# =============================================================================
# TEST PARTY CONSTANTS
# =============================================================================

# Fixed keys so addresses are stable across runs; connects are signed with them
ISSUER_ACCOUNT = Account.from_key("0x" + "11" * 32)
RECEIVER_ACCOUNT = Account.from_key("0x" + "22" * 32)
STRANGER_ACCOUNT = Account.from_key("0x" + "33" * 32)

ISSUER_ADDRESS = ISSUER_ACCOUNT.address
RECEIVER_ADDRESS = RECEIVER_ACCOUNT.address
STRANGER_ADDRESS = STRANGER_ACCOUNT.address


def sign_challenge(account, message: str) -> str:
    """personal_sign over a connect challenge, as a wallet would."""
    signed = Account.sign_message(encode_defunct(text=message), private_key=account.key)
    return "0x" + bytes(signed.signature).hex()


# =============================================================================
# FAKES
# =============================================================================


class FakeRedis:
    """Just enough of redis.Redis for list-backed storage."""

    def __init__(self):
        self.lists: dict[str, list[str]] = {}
        self.closed = False

    def ping(self):
        return True

    def rpush(self, key, *values):
        self.lists.setdefault(key, []).extend(values)
        return len(self.lists[key])

    def lrange(self, key, start, end):
        items = self.lists.get(key, [])
        stop = None if end == -1 else end + 1
        return items[start:stop]

    def close(self):
        self.closed = True


class FakeLedger:
    """In-memory invoice registry with the LedgerGateway shape."""

    def __init__(self):
        self.records: list[LedgerInvoiceRecord] = []
        self.reject_with: str | None = None
        self.submissions = 0

    def submit_invoice(self, receiver_key_id, ciphertext, integrity_hash, sender):
        self.submissions += 1
        if self.reject_with:
            raise SubmissionRejected(self.reject_with)

        invoice_id = "0x" + hashlib.sha256(
            f"{len(self.records)}:{sender}".encode() + ciphertext
        ).hexdigest()
        self.records.append(LedgerInvoiceRecord(
            id=invoice_id,
            sender=sender,
            receiver_key_id="0x" + bytes(receiver_key_id).hex(),
            ciphertext=bytes(ciphertext),
            integrity_hash="0x" + bytes(integrity_hash).hex(),
            created_at=now_utc(),
        ))
        return TransactionReceipt(tx_hash="0x" + "ab" * 32, block_number=len(self.records))

    def list_invoices(self, filter_by, start, count):
        if filter_by.kind == InvoiceFilterKind.SENDER:
            matching = [r for r in self.records if r.sender.lower() == filter_by.value.lower()]
        else:
            matching = [
                r for r in self.records
                if r.receiver_key_id.lower() == filter_by.value.lower()
            ]
        return matching[start:start + count]


def counting_random():
    """Deterministic stand-in for secrets.token_bytes."""
    counter = itertools.count(1)

    def random_bytes(size: int) -> bytes:
        seed = next(counter).to_bytes(4, "big")
        return hashlib.sha256(seed).digest()[:size].ljust(size, b"\0")

    return random_bytes


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def issuer_address():
    return ISSUER_ADDRESS


@pytest.fixture
def receiver_address():
    return RECEIVER_ADDRESS


@pytest.fixture
def stranger_address():
    return STRANGER_ADDRESS


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def valkey(fake_redis):
    """ValkeyClient over an in-memory list store."""
    return ValkeyClient("redis://unused", connection=fake_redis)


@pytest.fixture
def invoice_log(valkey):
    return LocalInvoiceLog(valkey)


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def receiver_private_key():
    return PrivateKey.generate()


@pytest.fixture
def key_holder(receiver_private_key):
    """Key-holder holding the receiver's key only."""
    return LocalKeyHolder({RECEIVER_ADDRESS: receiver_private_key})


@pytest.fixture
def receiver_public_key(key_holder):
    """Receiver's base64 encryption key, as a wallet reports it."""
    return key_holder.public_key_base64(RECEIVER_ADDRESS)


@pytest.fixture
def random_bytes():
    return counting_random()


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def issuer_account():
    return ISSUER_ACCOUNT


@pytest.fixture
def receiver_account():
    return RECEIVER_ACCOUNT


@pytest.fixture
def stranger_account():
    return STRANGER_ACCOUNT


@pytest.fixture
def wallet_signature():
    """Signer for challenge messages: (account, message) -> hex signature."""
    return sign_challenge


@pytest.fixture
def connect_wallet(registry):
    """Run the challenge and signed connect for an account."""

    def connect(account, encryption_public_key=None):
        message = registry.challenge(account.address)
        return registry.connect(
            account.address, sign_challenge(account, message), encryption_public_key
        )

    return connect


@pytest.fixture
def issuer_session(connect_wallet):
    return connect_wallet(ISSUER_ACCOUNT)


@pytest.fixture
def receiver_session(connect_wallet, receiver_public_key):
    return connect_wallet(RECEIVER_ACCOUNT, receiver_public_key)


@pytest.fixture
def sample_draft():
    """The reference draft: one 100 line at 8.1% VAT."""
    return InvoiceDraft(
        title="A",
        vat="8.1",
        lineItems=[LineItemDraft(text="x", preis="100")],
    )
