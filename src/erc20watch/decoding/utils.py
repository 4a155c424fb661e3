"""Decoding utilities: topic → address and data → uint parsers."""

from __future__ import annotations

_HEX_DIGITS = frozenset("0123456789abcdef")


def strip_0x(h: str) -> str:
    return h[2:] if h[:2].lower() == "0x" else h


def topic_to_address(topic_hex: str) -> str:
    """Return the lowercased 0x-address right-aligned in a 32-byte topic.

    The upper 12 bytes are padding and are dropped without inspection.
    Raises ValueError if fewer than 40 hex digits are present.
    """
    h = strip_0x(topic_hex).lower()
    tail = h[-40:]
    if len(tail) != 40 or not set(tail) <= _HEX_DIGITS:
        raise ValueError(f"topic {topic_hex!r} does not hold a 20-byte address")
    return "0x" + tail


def data_to_uint(data_hex: str) -> int:
    """Interpret the whole data payload as a big-endian unsigned integer.

    Raises ValueError on an empty or non-hex payload.
    """
    h = strip_0x(data_hex)
    if not h:
        raise ValueError("empty data payload")
    return int.from_bytes(bytes.fromhex(h), "big", signed=False)
