"""
Wallet JSON-RPC client acting as the key-holder.

The wallet owns the user's x25519 encryption key. This client only asks it
for the public half (eth_getEncryptionPublicKey) and for decryptions
(eth_decrypt). Every decryption is a user-approved wallet prompt.
"""

import itertools
import logging
from typing import Any

import requests
from web3 import Web3

from core.codec import bytes_to_hex, normalize_public_key
from core.config import InvoiceVaultConfig
from core.exceptions import DecodeError, DecryptionDenied, DecryptionFailed

logger = logging.getLogger(__name__)

# 4001: user rejected the request. -32603: wallets report a dismissed decrypt
# prompt as an internal error.
DENIAL_CODES = frozenset({4001, -32603})


class WalletRPCError(Exception):
    """Wallet answered a JSON-RPC call with an error object."""

    def __init__(self, code: int | None, message: str):
        super().__init__(f"[{code}] {message}")
        self.code = code
        self.message = message


class WalletClient:
    """
    Key-holder backed by a wallet's JSON-RPC endpoint.

    Usage:
        wallet = WalletClient("http://localhost:8545")
        public_key = wallet.get_encryption_public_key(address)
        plaintext = wallet.decrypt(record.ciphertext, address)
    """

    def __init__(self, rpc_url: str, config: InvoiceVaultConfig | None = None):
        if not rpc_url:
            raise ValueError("rpc_url is required")

        self.rpc_url = rpc_url
        self._config = config or InvoiceVaultConfig()
        self._ids = itertools.count(1)

    def _call(self, method: str, params: list[Any]) -> Any:
        """
        Send one JSON-RPC request.

        Raises:
            WalletRPCError: Wallet returned an error object
            DecryptionFailed: Transport failure or unreadable response
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }

        try:
            response = requests.post(
                self.rpc_url, json=payload, timeout=self._config.http_timeout_seconds
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Wallet connection failed: {e}")
            raise DecryptionFailed(f"Wallet unreachable: {e}")

        if response.status_code != 200:
            logger.error(f"Wallet returned HTTP {response.status_code}")
            raise DecryptionFailed(f"Wallet returned HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError:
            raise DecryptionFailed("Invalid response from wallet")

        error = body.get("error")
        if error:
            raise WalletRPCError(error.get("code"), error.get("message", "Unknown error"))

        return body.get("result")

    def get_encryption_public_key(self, address: str) -> str:
        """
        Ask the wallet for an account's public encryption key.

        Returns:
            Base64 x25519 public key

        Raises:
            DecryptionDenied: User declined to share the key
            DecryptionFailed: Wallet unreachable or returned garbage
        """
        if not Web3.is_address(address):
            raise ValueError(f"Invalid address: {address}")

        try:
            result = self._call("eth_getEncryptionPublicKey", [address])
        except WalletRPCError as e:
            if e.code in DENIAL_CODES:
                raise DecryptionDenied(f"Wallet declined to share encryption key: {e.message}")
            raise DecryptionFailed(f"Wallet could not provide encryption key: {e}")

        try:
            return normalize_public_key(str(result))
        except DecodeError as e:
            raise DecryptionFailed(f"Wallet returned an invalid encryption key: {e}")

    def decrypt(self, ciphertext: bytes, owner_identity: str) -> str:
        """
        Decrypt an envelope with the owner's wallet key.

        Args:
            ciphertext: JSON envelope bytes as stored on the ledger
            owner_identity: Wallet address holding the key

        Raises:
            DecryptionDenied: User rejected the prompt
            DecryptionFailed: Envelope malformed or not for this key
        """
        try:
            result = self._call("eth_decrypt", [bytes_to_hex(ciphertext), owner_identity])
        except WalletRPCError as e:
            if e.code in DENIAL_CODES:
                logger.info(f"Decryption declined for {owner_identity}")
                raise DecryptionDenied(f"Decryption declined: {e.message}")
            logger.warning(f"Decryption failed for {owner_identity}: {e}")
            raise DecryptionFailed(f"Decryption failed: {e.message}")

        if not isinstance(result, str):
            raise DecryptionFailed("Wallet returned no plaintext")
        return result
