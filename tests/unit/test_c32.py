"""c32check address encoding tests."""

from __future__ import annotations

import pytest

from poapgate.ledger._c32 import (
    MAINNET_SINGLE_SIG,
    TESTNET_SINGLE_SIG,
    c32_address,
    c32_address_decode,
    c32_decode,
    c32_encode,
    is_valid_address,
)

KNOWN_HASH = bytes.fromhex("a46ff88886c2ef9762d970b4d2c63678835bd39d")
KNOWN_MAINNET = "SP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ7"


class TestC32Encoding:
    def test_leading_zero_bytes_become_zero_digits(self) -> None:
        assert c32_encode(b"\x00\x00\x01") == "001"
        assert c32_decode("001") == b"\x00\x00\x01"

    def test_empty(self) -> None:
        assert c32_encode(b"") == ""
        assert c32_decode("") == b""

    def test_ambiguous_characters_normalized(self) -> None:
        assert c32_decode("o1") == c32_decode("01")
        assert c32_decode("L") == c32_decode("1")

    def test_invalid_character_rejected(self) -> None:
        with pytest.raises(ValueError, match="Invalid c32 character"):
            c32_decode("U")


class TestAddresses:
    def test_known_mainnet_vector(self) -> None:
        assert c32_address(MAINNET_SINGLE_SIG, KNOWN_HASH) == KNOWN_MAINNET
        assert c32_address_decode(KNOWN_MAINNET) == (MAINNET_SINGLE_SIG, KNOWN_HASH)

    def test_testnet_prefix(self) -> None:
        address = c32_address(TESTNET_SINGLE_SIG, KNOWN_HASH)
        assert address.startswith("ST")
        assert c32_address_decode(address) == (TESTNET_SINGLE_SIG, KNOWN_HASH)

    def test_bad_checksum_rejected(self) -> None:
        last = KNOWN_MAINNET[-1]
        tampered = KNOWN_MAINNET[:-1] + ("8" if last != "8" else "9")
        with pytest.raises(ValueError, match="checksum"):
            c32_address_decode(tampered)
        assert is_valid_address(tampered) is False

    def test_wrong_prefix_rejected(self) -> None:
        assert is_valid_address("bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4") is False
        assert is_valid_address("") is False

    def test_hash_length_enforced(self) -> None:
        with pytest.raises(ValueError, match="20 bytes"):
            c32_address(TESTNET_SINGLE_SIG, b"\x01" * 19)

    def test_version_range_enforced(self) -> None:
        with pytest.raises(ValueError, match="version"):
            c32_address(32, KNOWN_HASH)
