"""
Key and identifier encodings.

Wallets hand out x25519 encryption keys as standard base64. The ledger stores
the same bytes as a bytes32 value, rendered as 0x-prefixed lowercase hex.
These helpers move values between the two without drift:

    base64_to_hex(hex_to_base64(x)) == x

for every lowercase, 0x-prefixed, even-length hex string.
"""

import base64
import binascii
import re

from core.exceptions import DecodeError

_HEX_BODY = re.compile(r"[0-9a-fA-F]*")

KEY_SIZE = 32


def _strip_prefix(value: str) -> str:
    if value[:2] in ("0x", "0X"):
        return value[2:]
    return value


def bytes_to_hex(raw: bytes) -> str:
    """Render raw bytes as lowercase 0x-prefixed hex."""
    return "0x" + raw.hex()


def hex_to_bytes(value: str) -> bytes:
    """
    Decode hex (with or without 0x prefix) into raw bytes.

    Raises:
        DecodeError: Odd length or non-hex characters.
    """
    if not isinstance(value, str):
        raise DecodeError(f"Expected hex string, got {type(value).__name__}")

    body = _strip_prefix(value.strip())
    if len(body) % 2 != 0:
        raise DecodeError(f"Hex string has odd length ({len(body)} digits)")
    if not _HEX_BODY.fullmatch(body):
        raise DecodeError("Hex string contains non-hex characters")

    return bytes.fromhex(body)


def base64_to_bytes(value: str) -> bytes:
    """
    Decode standard base64 into raw bytes.

    Raises:
        DecodeError: Invalid alphabet or padding.
    """
    if not isinstance(value, str):
        raise DecodeError(f"Expected base64 string, got {type(value).__name__}")

    try:
        return base64.b64decode(value.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Invalid base64: {e}")


def base64_to_hex(value: str) -> str:
    """Convert a base64 string into 0x-prefixed lowercase hex."""
    return bytes_to_hex(base64_to_bytes(value))


def hex_to_base64(value: str) -> str:
    """Convert hex (optional 0x prefix) into standard base64."""
    return base64.b64encode(hex_to_bytes(value)).decode("ascii")


def hex_to_bytes32(value: str) -> bytes:
    """
    Decode hex into exactly 32 bytes for a bytes32 ledger slot.

    Raises:
        DecodeError: Not valid hex, or not exactly 32 bytes. Shorter values
            are never left-padded and longer values never truncated.
    """
    raw = hex_to_bytes(value)
    if len(raw) != KEY_SIZE:
        raise DecodeError(f"Expected {KEY_SIZE} bytes, got {len(raw)}")
    return raw


def normalize_public_key(value: str) -> str:
    """
    Accept an encryption public key in wallet (base64) or ledger (0x hex) form.

    A 0x prefix means hex; anything else is read as base64.

    Returns:
        The key as standard base64.

    Raises:
        DecodeError: Undecodable input or a key that is not 32 bytes.
    """
    if not isinstance(value, str) or not value.strip():
        raise DecodeError("Public key is required")

    value = value.strip()
    if value[:2] in ("0x", "0X"):
        raw = hex_to_bytes32(value)
    else:
        raw = base64_to_bytes(value)
        if len(raw) != KEY_SIZE:
            raise DecodeError(f"Public key must be {KEY_SIZE} bytes, got {len(raw)}")

    return base64.b64encode(raw).decode("ascii")
