"""
In-process key-holder for tests, scripts and headless receivers.

Holds x25519 private keys per owner and opens the same JSON envelopes a
wallet would.
"""

import base64
import json
import logging

from nacl.exceptions import CryptoError
from nacl.public import Box, PrivateKey, PublicKey

from core.envelope import ENCRYPTION_VERSION
from core.exceptions import DecryptionDenied, DecryptionFailed

logger = logging.getLogger(__name__)


class LocalKeyHolder:
    """Software key store keyed by owner identity (case-insensitive)."""

    def __init__(self, keys: dict[str, PrivateKey] | None = None):
        self._keys: dict[str, PrivateKey] = {}
        for owner, key in (keys or {}).items():
            self.add_key(owner, key)

    def add_key(self, owner_identity: str, private_key: PrivateKey | None = None) -> PrivateKey:
        """Register (or generate) the private key for an owner."""
        key = private_key or PrivateKey.generate()
        self._keys[owner_identity.lower()] = key
        return key

    def public_key_base64(self, owner_identity: str) -> str:
        """Owner's public encryption key, as a wallet would return it."""
        key = self._keys.get(owner_identity.lower())
        if key is None:
            raise DecryptionDenied(f"No key held for {owner_identity}")
        return base64.b64encode(bytes(key.public_key)).decode("ascii")

    def decrypt(self, ciphertext: bytes, owner_identity: str) -> str:
        key = self._keys.get(owner_identity.lower())
        if key is None:
            raise DecryptionDenied(f"No key held for {owner_identity}")

        try:
            envelope = json.loads(ciphertext)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DecryptionFailed(f"Envelope is not JSON: {e}")

        if not isinstance(envelope, dict) or envelope.get("version") != ENCRYPTION_VERSION:
            raise DecryptionFailed("Unsupported envelope version")

        try:
            nonce = base64.b64decode(envelope["nonce"], validate=True)
            ephemeral = PublicKey(base64.b64decode(envelope["ephemPublicKey"], validate=True))
            body = base64.b64decode(envelope["ciphertext"], validate=True)
            plaintext = Box(key, ephemeral).decrypt(body, nonce)
        except (KeyError, TypeError, ValueError, CryptoError) as e:
            logger.warning(f"Could not open envelope for {owner_identity}: {e}")
            raise DecryptionFailed(f"Envelope could not be decrypted: {e}")

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionFailed(f"Plaintext is not UTF-8: {e}")
