"""
c32check encoding and decoding for Stacks addresses.

Minimal pure-Python implementation of Crockford base32 with a 4-byte
double-SHA256 checksum, as used by Stacks principals.
Reference: https://github.com/stacks-network/c32check
"""

from __future__ import annotations

import hashlib

C32_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"

# Address versions
MAINNET_SINGLE_SIG = 22  # SP...
MAINNET_MULTI_SIG = 20  # SM...
TESTNET_SINGLE_SIG = 26  # ST...
TESTNET_MULTI_SIG = 21  # SN...


def _checksum(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()[:4]


def _normalize(text: str) -> str:
    """Upper-case and map the visually ambiguous characters."""
    return text.upper().replace("O", "0").replace("L", "1").replace("I", "1")


def c32_encode(data: bytes) -> str:
    """Encode bytes as c32; each leading zero byte becomes one '0'."""
    leading_zeros = len(data) - len(data.lstrip(b"\x00"))
    value = int.from_bytes(data, "big")
    digits: list[str] = []
    while value > 0:
        value, rem = divmod(value, 32)
        digits.append(C32_ALPHABET[rem])
    return "0" * leading_zeros + "".join(reversed(digits))


def c32_decode(text: str) -> bytes:
    """Decode a c32 string to bytes.

    Raises:
        ValueError: If the string contains characters outside the alphabet.
    """
    text = _normalize(text)
    if not all(ch in C32_ALPHABET for ch in text):
        msg = "Invalid c32 character"
        raise ValueError(msg)
    leading_zeros = len(text) - len(text.lstrip("0"))
    value = 0
    for ch in text:
        value = value * 32 + C32_ALPHABET.index(ch)
    body = value.to_bytes((value.bit_length() + 7) // 8, "big") if value else b""
    return b"\x00" * leading_zeros + body


def c32_address(version: int, hash160: bytes) -> str:
    """Build a Stacks address from a version byte and a 20-byte hash160."""
    if not 0 <= version < 32:
        msg = f"Invalid address version: {version}"
        raise ValueError(msg)
    if len(hash160) != 20:
        msg = "hash160 must be 20 bytes"
        raise ValueError(msg)
    checksum = _checksum(bytes([version]) + hash160)
    return "S" + C32_ALPHABET[version] + c32_encode(hash160 + checksum)


def c32_address_decode(address: str) -> tuple[int, bytes]:
    """
    Decode a Stacks address.

    Args:
        address: A c32check address such as ``ST1PQHQKV0RJXZFY1DGX8MNSNYVE3VGZJSRTPGZGM``.

    Returns:
        Tuple of (version, hash160_bytes).

    Raises:
        ValueError: If the address is malformed or the checksum does not match.
    """
    if not address or len(address) < 5 or address[0].upper() != "S":
        msg = "Stacks addresses start with 'S'"
        raise ValueError(msg)
    version_char = _normalize(address[1])
    if version_char not in C32_ALPHABET:
        msg = "Invalid address version character"
        raise ValueError(msg)
    version = C32_ALPHABET.index(version_char)

    decoded = c32_decode(address[2:])
    if len(decoded) != 24:
        msg = "Invalid address length"
        raise ValueError(msg)
    hash160, checksum = decoded[:20], decoded[20:]
    if _checksum(bytes([version]) + hash160) != checksum:
        msg = "Invalid address checksum"
        raise ValueError(msg)
    return version, hash160


def is_valid_address(address: str) -> bool:
    """Return True if ``address`` decodes with a valid checksum."""
    try:
        c32_address_decode(address)
    except ValueError:
        return False
    return True
