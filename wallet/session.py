"""Wallet session lifecycle.

A session exists from wallet connect to disconnect. It carries the connected
address, the account's public encryption key and the cache of plaintexts the
user has already decrypted, so each ciphertext prompts the key-holder at most
once per session.

Sessions live in process memory only: decrypted invoices never reach Valkey.
Token format is cryptographically random (secrets.token_urlsafe).

Connecting proves control of the address: the registry hands out a one-time
challenge message, the wallet signs it (personal_sign) and the recovered
signer must equal the claimed address.
"""

import logging
import secrets
import threading
from datetime import datetime, timedelta
from typing import Callable

from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from core.codec import normalize_public_key
from core.config import InvoiceVaultConfig
from core.exceptions import SessionExpiredError, WalletAuthError
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

CHALLENGE_TEMPLATE = "Sign in to Invoice Vault\n\nAddress: {address}\nNonce: {nonce}"


class WalletSession:
    """One connected wallet and its decrypted-plaintext cache."""

    def __init__(
        self,
        token: str,
        address: str,
        created_at: datetime,
        expires_at: datetime,
        encryption_public_key: str | None = None,
    ):
        if not Web3.is_address(address):
            raise ValueError(f"Invalid wallet address: {address}")

        self.token = token
        self.address = Web3.to_checksum_address(address)
        self.created_at = created_at
        self.expires_at = expires_at
        self.encryption_public_key = (
            normalize_public_key(encryption_public_key) if encryption_public_key else None
        )

        self._plaintexts: dict[str, str] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def is_expired(self, at: datetime | None = None) -> bool:
        return (at or now_utc()) > self.expires_at

    def _lock_for(self, invoice_id: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(invoice_id, threading.Lock())

    def cached_plaintext(self, invoice_id: str) -> str | None:
        """Plaintext decrypted earlier in this session, if any."""
        with self._guard:
            return self._plaintexts.get(invoice_id.lower())

    def decrypt_once(self, invoice_id: str, decrypt: Callable[[], str]) -> str:
        """
        Return the cached plaintext for invoice_id, decrypting on first use.

        Concurrent callers for the same invoice wait for the first decryption
        instead of prompting the key-holder again. Failures are not cached, so
        a denied prompt can be retried by the user.
        """
        key = invoice_id.lower()
        with self._lock_for(key):
            cached = self.cached_plaintext(key)
            if cached is not None:
                return cached

            plaintext = decrypt()
            with self._guard:
                self._plaintexts[key] = plaintext
            return plaintext

    def clear(self) -> None:
        """Forget every decrypted plaintext."""
        with self._guard:
            count = len(self._plaintexts)
            self._plaintexts.clear()
            self._locks.clear()
        logger.debug(f"Cleared {count} cached plaintexts for {self.address}")


class SessionRegistry:
    """Token to WalletSession mapping with fixed expiry.

    Expired sessions and stale challenges are swept whenever a challenge is
    issued or a session is looked up.
    """

    def __init__(self, config: InvoiceVaultConfig | None = None):
        self._config = config or InvoiceVaultConfig()
        self._sessions: dict[str, WalletSession] = {}
        self._challenges: dict[str, tuple[str, datetime]] = {}
        self._lock = threading.Lock()

    def _sweep_expired(self) -> list[WalletSession]:
        """Drop expired sessions and challenges. Caller holds self._lock."""
        now = now_utc()
        expired = [token for token, s in self._sessions.items() if s.is_expired(now)]
        swept = [self._sessions.pop(token) for token in expired]

        stale = [address for address, (_, until) in self._challenges.items() if until < now]
        for address in stale:
            del self._challenges[address]
        return swept

    def _evict(self, sessions: list[WalletSession]) -> None:
        for session in sessions:
            session.clear()
            logger.info(f"Wallet session expired: {session.address}")

    def challenge(self, address: str) -> str:
        """Issue the one-time message a wallet must sign to connect.

        A new challenge replaces any pending one for the same address.
        Raises ValueError for an invalid address.
        """
        if not Web3.is_address(address):
            raise ValueError(f"Invalid wallet address: {address}")

        checksum = Web3.to_checksum_address(address)
        message = CHALLENGE_TEMPLATE.format(address=checksum, nonce=secrets.token_hex(16))
        valid_until = now_utc() + timedelta(seconds=self._config.connect_challenge_seconds)

        with self._lock:
            swept = self._sweep_expired()
            self._challenges[checksum] = (message, valid_until)

        self._evict(swept)
        return message

    def _verify_signature(self, address: str, signature: str) -> str:
        """Consume the pending challenge and check who signed it.

        Returns the checksummed address. Raises WalletAuthError.
        """
        if not Web3.is_address(address):
            raise ValueError(f"Invalid wallet address: {address}")
        checksum = Web3.to_checksum_address(address)

        with self._lock:
            pending = self._challenges.pop(checksum, None)

        if pending is None or pending[1] < now_utc():
            raise WalletAuthError("No pending connect challenge for this address")

        message, _ = pending
        try:
            signer = Account.recover_message(encode_defunct(text=message), signature=signature)
        except Exception as e:
            logger.warning(f"Unreadable connect signature for {checksum}: {e}")
            raise WalletAuthError(f"Invalid signature: {e}")

        if signer != checksum:
            logger.warning(f"Connect challenge for {checksum} was signed by {signer}")
            raise WalletAuthError("Signature does not match the wallet address")

        return checksum

    def connect(
        self,
        address: str,
        signature: str,
        encryption_public_key: str | None = None,
        public_key_source: Callable[[str], str] | None = None,
    ) -> WalletSession:
        """Create a session for a wallet that signed its challenge.

        Without an explicit encryption key, public_key_source is asked for one
        once the signature checks out.

        Raises WalletAuthError when the signature does not prove control of
        the address, ValueError for an invalid address and DecodeError for an
        invalid public key.
        """
        checksum = self._verify_signature(address, signature)
        if encryption_public_key is None and public_key_source is not None:
            encryption_public_key = public_key_source(checksum)

        now = now_utc()
        session = WalletSession(
            token=secrets.token_urlsafe(32),
            address=checksum,
            created_at=now,
            expires_at=now + timedelta(hours=self._config.session_expiry_hours),
            encryption_public_key=encryption_public_key,
        )

        with self._lock:
            self._sessions[session.token] = session

        logger.info(f"Wallet connected: {session.address}")
        return session

    def get(self, token: str) -> WalletSession:
        """Look up a live session.

        Raises SessionExpiredError if token is unknown or expired.
        """
        with self._lock:
            swept = self._sweep_expired()
            session = self._sessions.get(token)

        self._evict(swept)
        if session is None:
            raise SessionExpiredError("Session not found or expired")
        return session

    def disconnect(self, token: str) -> None:
        """End a session and drop its plaintext cache.

        Safe to call with nonexistent token.
        """
        with self._lock:
            session = self._sessions.pop(token, None)

        if session is not None:
            session.clear()
            logger.info(f"Wallet disconnected: {session.address}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
