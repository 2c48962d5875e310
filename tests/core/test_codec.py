"""Tests for core/codec.py - base64/hex/bytes32 conversions."""

import base64

import pytest

from core.codec import (
    base64_to_bytes,
    base64_to_hex,
    bytes_to_hex,
    hex_to_base64,
    hex_to_bytes,
    hex_to_bytes32,
    normalize_public_key,
)
from core.exceptions import DecodeError, InvoiceVaultError


class TestHexToBase64:

    def test_known_value(self):
        assert hex_to_base64("0x0102ff") == "AQL/"

    def test_prefix_optional(self):
        assert hex_to_base64("0102ff") == "AQL/"

    def test_empty(self):
        assert hex_to_base64("0x") == ""

    def test_odd_length_rejected(self):
        with pytest.raises(DecodeError, match="odd length"):
            hex_to_base64("0x123")

    def test_non_hex_rejected(self):
        with pytest.raises(DecodeError, match="non-hex"):
            hex_to_base64("0xzz")


class TestBase64ToHex:

    def test_known_value(self):
        assert base64_to_hex("AQL/") == "0x0102ff"

    def test_output_is_lowercase(self):
        assert base64_to_hex(base64.b64encode(b"\xab\xcd").decode()) == "0xabcd"

    def test_invalid_alphabet_rejected(self):
        with pytest.raises(DecodeError):
            base64_to_hex("not*base64")

    def test_bad_padding_rejected(self):
        with pytest.raises(DecodeError):
            base64_to_bytes("AQL")

    @pytest.mark.parametrize("value", ["0x", "0x00", "0x0102ff", "0x" + "ab" * 32])
    def test_round_trip_from_hex(self, value):
        assert base64_to_hex(hex_to_base64(value)) == value


class TestHexToBytes:

    def test_uppercase_accepted(self):
        assert hex_to_bytes("0XABCD") == b"\xab\xcd"

    def test_non_string_rejected(self):
        with pytest.raises(DecodeError):
            hex_to_bytes(b"00")

    def test_bytes_to_hex_is_lowercase_prefixed(self):
        assert bytes_to_hex(b"\xde\xad") == "0xdead"


class TestHexToBytes32:

    def test_exact_length(self):
        assert hex_to_bytes32("0x" + "11" * 32) == b"\x11" * 32

    def test_short_value_not_padded(self):
        with pytest.raises(DecodeError, match="32 bytes"):
            hex_to_bytes32("0x" + "11" * 31)

    def test_long_value_not_truncated(self):
        with pytest.raises(DecodeError, match="32 bytes"):
            hex_to_bytes32("0x" + "11" * 33)


class TestNormalizePublicKey:

    def test_base64_passes_through(self):
        key = base64.b64encode(b"\x07" * 32).decode()
        assert normalize_public_key(key) == key

    def test_hex_converted_to_base64(self):
        key = base64.b64encode(b"\x07" * 32).decode()
        assert normalize_public_key("0x" + "07" * 32) == key

    def test_wrong_size_rejected(self):
        with pytest.raises(DecodeError, match="32 bytes"):
            normalize_public_key(base64.b64encode(b"\x07" * 16).decode())

    def test_empty_rejected(self):
        with pytest.raises(DecodeError, match="required"):
            normalize_public_key("  ")

    def test_decode_error_is_invoice_vault_error(self):
        """Callers can catch the base class."""
        with pytest.raises(InvoiceVaultError):
            normalize_public_key("0x12")
