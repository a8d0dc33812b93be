"""
Canonical encoding primitives shared by the signer and the ABI encoder.

Addresses are carried as lowercase, 0x-prefixed, 40-hex-digit strings.
Integer widths follow the on-chain ABI types (uint32 / uint96 / uint256).
"""

from __future__ import annotations

import re
from typing import Union


UINT32_MAX = (1 << 32) - 1
UINT96_MAX = (1 << 96) - 1

ADDRESS_NBYTES = 20

_HEX_CHARS_RE = re.compile(r"^[0-9a-fA-F]+$")
_DECIMAL_RE = re.compile(r"^[0-9]+$")

Address = str


def require_uint(name: str, value: int, *, bits: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value < 0:
        raise ValueError(f"{name} must be non-negative: {value}")
    if value >> bits:
        raise ValueError(f"{name} does not fit in uint{bits}: {value}")
    return value


def normalize_address(value: Union[str, int], *, name: str = "address") -> Address:
    """
    Canonicalize an address to ``0x`` + 40 lowercase hex digits.

    JSON round-trips sometimes deliver an address as a decimal numeric string;
    those (and plain ints) are converted to the fixed 20-byte hex form.
    """
    if isinstance(value, bool):
        raise TypeError(f"{name} must be a str or int")
    if isinstance(value, int):
        number = value
    elif isinstance(value, str):
        s = value.strip()
        if s[:2].lower() == "0x":
            body = s[2:]
            if len(body) != 2 * ADDRESS_NBYTES:
                raise ValueError(f"{name} must be {ADDRESS_NBYTES} bytes (hex length {2 * ADDRESS_NBYTES})")
            if not _HEX_CHARS_RE.fullmatch(body):
                raise ValueError(f"{name} must be valid hex")
            return "0x" + body.lower()
        if not _DECIMAL_RE.fullmatch(s):
            raise ValueError(f"{name} must be 0x-prefixed hex or a decimal string: {value!r}")
        number = int(s, 10)
    else:
        raise TypeError(f"{name} must be a str or int")

    if number < 0 or number >> (8 * ADDRESS_NBYTES):
        raise ValueError(f"{name} does not fit in {ADDRESS_NBYTES} bytes")
    return "0x" + format(number, f"0{2 * ADDRESS_NBYTES}x")


def is_canonical_address(value: object) -> bool:
    return (
        isinstance(value, str)
        and len(value) == 2 + 2 * ADDRESS_NBYTES
        and value.startswith("0x")
        and value[2:] == value[2:].lower()
        and bool(_HEX_CHARS_RE.fullmatch(value[2:]))
    )


def hex_to_bytes(hex_str: str, *, name: str) -> bytes:
    """Decode 0x-prefixed (or raw) hex of any even length; ``"0x"`` decodes to ``b""``."""
    if not isinstance(hex_str, str):
        raise TypeError(f"{name} must be a str")
    s = hex_str[2:] if hex_str[:2].lower() == "0x" else hex_str
    if not s:
        return b""
    if len(s) % 2 != 0:
        raise ValueError(f"{name} must have an even number of hex chars")
    if not _HEX_CHARS_RE.fullmatch(s):
        raise ValueError(f"{name} must be valid hex")
    return bytes.fromhex(s)
