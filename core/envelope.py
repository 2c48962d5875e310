"""
Public-key envelope encryption for canonical invoices.

Scheme: x25519-xsalsa20-poly1305 (NaCl box). Each call generates a fresh
ephemeral keypair and a fresh 24-byte nonce, so two encryptions of the same
plaintext are never bit-identical. The ciphertext is the self-contained JSON
envelope wallets accept for eth_decrypt:

    {"version": "x25519-xsalsa20-poly1305",
     "nonce": <b64>, "ephemPublicKey": <b64>, "ciphertext": <b64>}

Decryption is not done here. It belongs to a key-holder (see core.gateway.KeyHolder).
"""

import base64
import hashlib
import hmac
import json
import logging

from nacl.exceptions import CryptoError
from nacl.public import Box, PrivateKey, PublicKey
from nacl.utils import random as nacl_random

from core.codec import base64_to_bytes, hex_to_bytes, normalize_public_key
from core.exceptions import DecodeError
from core.models.ledger import EncryptedEnvelope

logger = logging.getLogger(__name__)

ENCRYPTION_VERSION = "x25519-xsalsa20-poly1305"


def _b64(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def integrity_hash(canonical: bytes) -> bytes:
    """SHA-256 over the exact canonical bytes."""
    return hashlib.sha256(canonical).digest()


def receiver_key_id(receiver_public_key: str) -> bytes:
    """
    32-byte on-chain identifier for a receiver's encryption key.

    The identifier is the raw x25519 public key, so a receiver can look up
    their invoices by converting their wallet key from base64.
    """
    return base64_to_bytes(normalize_public_key(receiver_public_key))


def encrypt_invoice(canonical: bytes | str, receiver_public_key: str) -> EncryptedEnvelope:
    """
    Encrypt a canonical invoice for a receiver.

    Args:
        canonical: Canonical serialization (str is encoded as UTF-8)
        receiver_public_key: Receiver's x25519 key, base64 or 0x hex

    Returns:
        Envelope with ciphertext, integrity hash and receiver key id

    Raises:
        DecodeError: If the public key cannot be decoded or is not a valid key
    """
    if isinstance(canonical, str):
        canonical = canonical.encode("utf-8")

    key_bytes = receiver_key_id(receiver_public_key)
    try:
        recipient = PublicKey(key_bytes)
    except (CryptoError, TypeError, ValueError) as e:
        raise DecodeError(f"Invalid receiver public key: {e}")

    ephemeral = PrivateKey.generate()
    nonce = nacl_random(Box.NONCE_SIZE)
    encrypted = Box(ephemeral, recipient).encrypt(canonical, nonce)

    payload = {
        "version": ENCRYPTION_VERSION,
        "nonce": _b64(nonce),
        "ephemPublicKey": _b64(bytes(ephemeral.public_key)),
        "ciphertext": _b64(encrypted.ciphertext),
    }
    ciphertext = json.dumps(payload, separators=(",", ":")).encode("utf-8")

    envelope = EncryptedEnvelope(
        ciphertext=ciphertext,
        integrity_hash=integrity_hash(canonical),
        receiver_key_id=key_bytes,
    )
    logger.debug(
        f"Encrypted {len(canonical)}-byte invoice for receiver {envelope.receiver_key_id_hex}"
    )
    return envelope


def verify_integrity(plaintext: bytes | str, expected_hash: bytes | str) -> bool:
    """
    Check a disclosed plaintext against the hash anchored on the ledger.

    Args:
        plaintext: Disclosed canonical invoice
        expected_hash: Anchored hash as raw bytes or 0x hex
    """
    if isinstance(plaintext, str):
        plaintext = plaintext.encode("utf-8")
    if isinstance(expected_hash, str):
        expected_hash = hex_to_bytes(expected_hash)

    return hmac.compare_digest(integrity_hash(plaintext), expected_hash)
