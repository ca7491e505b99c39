"""
argcodec.py — scalar arguments <-> raw byte buffers.

There is no schema on the wire: the operation's parameter list decides how a
buffer is read. Integers and floats are 4-byte little-endian ("binary"), or
UTF-8 decimal text when the engine runs with the "text" encoding. Booleans and
mode flags are always a single byte.
"""
from __future__ import annotations

import re
import struct
from typing import Union

import numpy as np

from errors import InvalidEncoding, MalformedArgument, MissingArgument

__all__ = [
    "decode_u32", "decode_i32", "decode_f32", "decode_bool", "decode_flag",
    "decode_text_number", "decode_number",
    "encode_u32", "encode_i32", "encode_f32", "encode_bool", "encode_flag",
    "encode_text_number", "encode_number",
    "NUMERIC_KINDS",
]

Number = Union[int, float]

_STRUCT = {"u32": "<I", "i32": "<i", "f32": "<f"}
NUMERIC_KINDS = tuple(_STRUCT)

_INT_RE = re.compile(r"[+-]?[0-9]+")
_FLOAT_RE = re.compile(
    r"[+-]?(?:[0-9]+(?:\.[0-9]*)?(?:[eE][+-]?[0-9]+)?|\.[0-9]+(?:[eE][+-]?[0-9]+)?|inf|infinity|nan)",
    re.IGNORECASE,
)
_RANGES = {"u32": (0, 2**32 - 1), "i32": (-(2**31), 2**31 - 1)}


# =============== fixed-width ===============
def _unpack(raw: bytes, kind: str) -> Number:
    if len(raw) != 4:
        raise MalformedArgument(f"expected 4 bytes for {kind}, got {len(raw)}")
    return struct.unpack(_STRUCT[kind], bytes(raw))[0]


def decode_u32(raw: bytes) -> int:
    return int(_unpack(raw, "u32"))


def decode_i32(raw: bytes) -> int:
    return int(_unpack(raw, "i32"))


def decode_f32(raw: bytes) -> float:
    return float(_unpack(raw, "f32"))


def decode_bool(raw: bytes) -> bool:
    """Empty buffer is False; otherwise False iff the first byte is 0."""
    return len(raw) > 0 and raw[0] != 0


def decode_flag(raw: bytes, name: str = "flag") -> int:
    """Strict one-byte mode flag: 0 or 1. An empty buffer counts as missing."""
    if len(raw) == 0:
        raise MissingArgument(f"{name}: mode flag buffer is empty")
    if len(raw) != 1:
        raise MalformedArgument(f"{name}: expected 1 byte, got {len(raw)}")
    if raw[0] not in (0, 1):
        raise MalformedArgument(f"{name}: mode flag must be 0 or 1, got {raw[0]}")
    return raw[0]


# =============== UTF-8 text ===============
def decode_text_number(raw: bytes, kind: str) -> Number:
    """Parse the canonical decimal form of `kind` ('u32' | 'i32' | 'f32')."""
    if kind not in _STRUCT:
        raise ValueError(f"Unknown numeric kind: {kind}")
    try:
        text = bytes(raw).decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidEncoding(f"argument is not valid UTF-8: {e}") from e

    if kind == "f32":
        if not _FLOAT_RE.fullmatch(text):
            raise MalformedArgument(f"cannot parse {text!r} as f32")
        with np.errstate(over="ignore"):
            return float(np.float32(float(text)))

    if not _INT_RE.fullmatch(text):
        raise MalformedArgument(f"cannot parse {text!r} as {kind}")
    value = int(text)
    lo, hi = _RANGES[kind]
    if not lo <= value <= hi:
        raise MalformedArgument(f"{value} is out of range for {kind}")
    return value


def decode_number(raw: bytes, kind: str, encoding: str = "binary") -> Number:
    if encoding == "text":
        return decode_text_number(raw, kind)
    if kind not in _STRUCT:
        raise ValueError(f"Unknown numeric kind: {kind}")
    value = _unpack(raw, kind)
    return float(value) if kind == "f32" else int(value)


# =============== encoders ===============
def encode_u32(value: int) -> bytes:
    return encode_number(value, "u32")


def encode_i32(value: int) -> bytes:
    return encode_number(value, "i32")


def encode_f32(value: float) -> bytes:
    return encode_number(value, "f32")


def encode_bool(value: bool) -> bytes:
    return b"\x01" if value else b"\x00"


def encode_flag(value: int) -> bytes:
    if value not in (0, 1):
        raise ValueError("mode flag must be 0 or 1")
    return bytes([value])


def encode_text_number(value: Number, kind: str) -> bytes:
    if kind == "f32":
        return np.format_float_positional(np.float32(value), trim="-").encode("utf-8")
    return str(int(value)).encode("utf-8")


def encode_number(value: Number, kind: str, encoding: str = "binary") -> bytes:
    if kind not in _STRUCT:
        raise ValueError(f"Unknown numeric kind: {kind}")
    if kind != "f32":
        lo, hi = _RANGES[kind]
        if not lo <= int(value) <= hi:
            raise ValueError(f"{value} is out of range for {kind}")
    if encoding == "text":
        return encode_text_number(value, kind)
    if kind == "f32":
        return struct.pack("<f", float(value))
    return struct.pack(_STRUCT[kind], int(value))
