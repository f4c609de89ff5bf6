"""
Field element codec.

A field element is a plain ``int`` in ``[0, FIELD_PRIME)``.  Text comes in
either as a decimal numeral or as ``0x``-prefixed hex (any case); free-form
strings such as names and URIs are folded in through ``hash_to_field``.

Everything leaving the package is rendered in decimal unless the receiving
field is hex-addressed (contract addresses).
"""

from __future__ import annotations

import hashlib
import re
from typing import Union

from starksign.errors import MalformedField

FieldElement = int
FieldLike = Union[int, str]

# 2**251 + 17 * 2**192 + 1
FIELD_PRIME: int = 0x800000000000011000000000000000000000000000000000000000000000001

# Output width of hash_to_field (SHA-1)
HASH_TO_FIELD_BITS: int = 160

_HEX_RE = re.compile(r"0[xX][0-9a-fA-F]+")
_DEC_RE = re.compile(r"[0-9]+")


def _check_range(value: int, source: object) -> int:
    if value < 0 or value >= FIELD_PRIME:
        raise MalformedField(f"{source!r} is outside the field [0, P)")
    return value


def parse_field(text: str) -> FieldElement:
    """
    Parse a decimal or ``0x``-hex numeral into a field element.

    >>> parse_field("0x1F")
    31
    >>> parse_field("42")
    42
    """
    if not isinstance(text, str):
        raise MalformedField(f"expected str, got {type(text).__name__}")
    if _HEX_RE.fullmatch(text):
        value = int(text[2:], 16)
    elif _DEC_RE.fullmatch(text):
        value = int(text, 10)
    else:
        raise MalformedField(f"not a decimal or 0x-hex numeral: {text!r}")
    return _check_range(value, text)


def hash_to_field(text: str) -> FieldElement:
    """SHA-1 of the exact UTF-8 string, read as a big-endian integer."""
    if not isinstance(text, str):
        raise MalformedField(f"expected str, got {type(text).__name__}")
    return int(hashlib.sha1(text.encode("utf-8")).hexdigest(), 16)


def to_field(value: FieldLike) -> FieldElement:
    """Coerce an int, bool or numeral string into a field element."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return _check_range(value, value)
    if isinstance(value, str):
        return parse_field(value)
    raise MalformedField(f"cannot convert {type(value).__name__} to a field element")


def render_decimal(value: FieldElement) -> str:
    return str(_check_range(int(value), value))


def render_hex(value: FieldElement) -> str:
    """``0x``-prefixed lowercase hex, for hex-addressed fields."""
    return hex(_check_range(int(value), value))


def canonical(text: str) -> str:
    """Canonical spelling of a numeral: hex stays lowercase hex, decimal loses leading zeros."""
    value = parse_field(text)
    if text[:2].lower() == "0x":
        return render_hex(value)
    return render_decimal(value)
