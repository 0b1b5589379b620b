"""Clarity value encoding.

Builds typed contract-call arguments, serializes them to the consensus wire
format the Stacks node expects, and decodes read-only results back to native
Python values.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Any

from poapgate.ledger._c32 import c32_address, c32_address_decode

INT = 0x00
UINT = 0x01
BUFFER = 0x02
TRUE = 0x03
FALSE = 0x04
STANDARD_PRINCIPAL = 0x05
CONTRACT_PRINCIPAL = 0x06
RESPONSE_OK = 0x07
RESPONSE_ERR = 0x08
OPTIONAL_NONE = 0x09
OPTIONAL_SOME = 0x0A
LIST = 0x0B
TUPLE = 0x0C
STRING_ASCII = 0x0D
STRING_UTF8 = 0x0E

UINT_MAX = 2**128
INT_MIN = -(2**127)
INT_MAX = 2**127


class ClarityDecodeError(ValueError):
    """Raised when bytes do not form a valid Clarity value."""


@dataclass(frozen=True)
class ClarityValue:
    """A typed Clarity value ready for serialization."""

    type_id: int
    value: Any = None


@dataclass(frozen=True)
class ClarityResponse:
    """Decoded ``(ok v)`` / ``(err v)``."""

    ok: bool
    value: Any


# ── Constructors ──


def uint_cv(value: int) -> ClarityValue:
    if not 0 <= value < UINT_MAX:
        msg = f"uint out of range: {value}"
        raise ValueError(msg)
    return ClarityValue(UINT, int(value))


def int_cv(value: int) -> ClarityValue:
    if not INT_MIN <= value < INT_MAX:
        msg = f"int out of range: {value}"
        raise ValueError(msg)
    return ClarityValue(INT, int(value))


def bool_cv(value: bool) -> ClarityValue:
    return ClarityValue(TRUE if value else FALSE)


def buffer_cv(value: bytes) -> ClarityValue:
    return ClarityValue(BUFFER, bytes(value))


def principal_cv(address: str) -> ClarityValue:
    """Standard (``ST...``) or contract (``ST....name``) principal."""
    if "." in address:
        addr, name = address.split(".", 1)
        version, hash160 = c32_address_decode(addr)
        if not 1 <= len(name) <= 128:
            msg = "Contract name must be 1-128 characters"
            raise ValueError(msg)
        return ClarityValue(CONTRACT_PRINCIPAL, (version, hash160, name))
    version, hash160 = c32_address_decode(address)
    return ClarityValue(STANDARD_PRINCIPAL, (version, hash160))


def string_ascii_cv(value: str) -> ClarityValue:
    if not value.isascii():
        msg = "string-ascii values must be ASCII"
        raise ValueError(msg)
    return ClarityValue(STRING_ASCII, value)


def string_utf8_cv(value: str) -> ClarityValue:
    return ClarityValue(STRING_UTF8, value)


def list_cv(items: list[ClarityValue]) -> ClarityValue:
    return ClarityValue(LIST, tuple(items))


def tuple_cv(fields: dict[str, ClarityValue]) -> ClarityValue:
    return ClarityValue(TUPLE, dict(fields))


def some_cv(value: ClarityValue) -> ClarityValue:
    return ClarityValue(OPTIONAL_SOME, value)


def none_cv() -> ClarityValue:
    return ClarityValue(OPTIONAL_NONE)


def ok_cv(value: ClarityValue) -> ClarityValue:
    return ClarityValue(RESPONSE_OK, value)


def err_cv(value: ClarityValue) -> ClarityValue:
    return ClarityValue(RESPONSE_ERR, value)


# ── Serialization ──


def serialize(cv: ClarityValue) -> bytes:
    """Serialize a Clarity value to its wire bytes."""
    t = cv.type_id
    head = bytes([t])

    if t in (INT, UINT):
        return head + cv.value.to_bytes(16, "big", signed=(t == INT))
    if t in (TRUE, FALSE, OPTIONAL_NONE):
        return head
    if t == BUFFER:
        return head + struct.pack(">I", len(cv.value)) + cv.value
    if t == STANDARD_PRINCIPAL:
        version, hash160 = cv.value
        return head + bytes([version]) + hash160
    if t == CONTRACT_PRINCIPAL:
        version, hash160, name = cv.value
        raw_name = name.encode("ascii")
        return head + bytes([version]) + hash160 + bytes([len(raw_name)]) + raw_name
    if t in (RESPONSE_OK, RESPONSE_ERR, OPTIONAL_SOME):
        return head + serialize(cv.value)
    if t == LIST:
        return head + struct.pack(">I", len(cv.value)) + b"".join(serialize(item) for item in cv.value)
    if t == TUPLE:
        out = [head, struct.pack(">I", len(cv.value))]
        for key in sorted(cv.value):
            raw_key = key.encode("ascii")
            out.append(bytes([len(raw_key)]) + raw_key + serialize(cv.value[key]))
        return b"".join(out)
    if t in (STRING_ASCII, STRING_UTF8):
        raw = cv.value.encode("ascii" if t == STRING_ASCII else "utf-8")
        return head + struct.pack(">I", len(raw)) + raw

    msg = f"Unknown Clarity type id: {t:#x}"
    raise ValueError(msg)


def to_hex(cv: ClarityValue) -> str:
    """Serialize to the ``0x``-prefixed hex form used by the node API."""
    return "0x" + serialize(cv).hex()


# ── Deserialization ──


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def take(self, n: int) -> bytes:
        if self.pos + n > len(self.data):
            msg = "Unexpected end of Clarity value"
            raise ClarityDecodeError(msg)
        chunk = self.data[self.pos : self.pos + n]
        self.pos += n
        return chunk

    def u8(self) -> int:
        return self.take(1)[0]

    def u32(self) -> int:
        return struct.unpack(">I", self.take(4))[0]


def _read_value(reader: _Reader) -> Any:
    t = reader.u8()

    if t == INT:
        return int.from_bytes(reader.take(16), "big", signed=True)
    if t == UINT:
        return int.from_bytes(reader.take(16), "big", signed=False)
    if t == BUFFER:
        return reader.take(reader.u32())
    if t == TRUE:
        return True
    if t == FALSE:
        return False
    if t == STANDARD_PRINCIPAL:
        version = reader.u8()
        return c32_address(version, reader.take(20))
    if t == CONTRACT_PRINCIPAL:
        version = reader.u8()
        address = c32_address(version, reader.take(20))
        name = reader.take(reader.u8()).decode("ascii")
        return f"{address}.{name}"
    if t in (RESPONSE_OK, RESPONSE_ERR):
        return ClarityResponse(ok=(t == RESPONSE_OK), value=_read_value(reader))
    if t == OPTIONAL_NONE:
        return None
    if t == OPTIONAL_SOME:
        return _read_value(reader)
    if t == LIST:
        return [_read_value(reader) for _ in range(reader.u32())]
    if t == TUPLE:
        fields: dict[str, Any] = {}
        for _ in range(reader.u32()):
            key = reader.take(reader.u8()).decode("ascii")
            fields[key] = _read_value(reader)
        return fields
    if t == STRING_ASCII:
        return reader.take(reader.u32()).decode("ascii")
    if t == STRING_UTF8:
        return reader.take(reader.u32()).decode("utf-8")

    msg = f"Unknown Clarity type id: {t:#x}"
    raise ClarityDecodeError(msg)


def deserialize(data: bytes | str) -> Any:
    """Decode a serialized Clarity value (raw bytes or ``0x`` hex) to native Python.

    Raises:
        ClarityDecodeError: If the input is malformed or has trailing bytes.
    """
    if isinstance(data, str):
        text = data[2:] if data.startswith("0x") else data
        try:
            data = bytes.fromhex(text)
        except ValueError as e:
            msg = f"Invalid hex: {e}"
            raise ClarityDecodeError(msg) from e

    reader = _Reader(data)
    try:
        value = _read_value(reader)
    except (UnicodeDecodeError, ValueError) as e:
        if isinstance(e, ClarityDecodeError):
            raise
        raise ClarityDecodeError(str(e)) from e
    if reader.pos != len(data):
        msg = "Trailing bytes after Clarity value"
        raise ClarityDecodeError(msg)
    return value
