"""
Lossy amount rounding (deterministic, integer-only).

The settlement engine stores transfer amounts in a compact float format:
a `num_bits_mantissa`-bit mantissa and a `num_bits_exponent`-bit exponent of
`exponent_base`. Encoding picks the smallest exponent whose mantissa range covers the
value and truncates the mantissa, so `round_to_float_value(x) <= x` for every encodable `x`.

Every amount that crosses into ledger state must go through
`round_to_float_value` first.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import FloatOverflowError


@dataclass(frozen=True)
class FloatEncoding:
    num_bits_exponent: int
    num_bits_mantissa: int
    exponent_base: int

    def __post_init__(self) -> None:
        for name, v in (
            ("num_bits_exponent", self.num_bits_exponent),
            ("num_bits_mantissa", self.num_bits_mantissa),
            ("exponent_base", self.exponent_base),
        ):
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
            if v <= 0:
                raise ValueError(f"{name} must be positive: {v}")
        if self.exponent_base < 2:
            raise ValueError("exponent_base must be at least 2")

    @property
    def max_exponent(self) -> int:
        return (1 << self.num_bits_exponent) - 1

    @property
    def max_mantissa(self) -> int:
        return (1 << self.num_bits_mantissa) - 1

    @property
    def max_value(self) -> int:
        return self.max_mantissa * self.exponent_base ** self.max_exponent

    @property
    def num_bits(self) -> int:
        return self.num_bits_exponent + self.num_bits_mantissa


FLOAT16 = FloatEncoding(num_bits_exponent=5, num_bits_mantissa=11, exponent_base=10)
FLOAT24 = FloatEncoding(num_bits_exponent=5, num_bits_mantissa=19, exponent_base=10)


def to_float(value: int, encoding: FloatEncoding = FLOAT24) -> int:
    """
    Encode `value` as a packed float: ``(exponent << num_bits_mantissa) | mantissa``.

    Picks the smallest exponent for which the mantissa fits, then truncates.
    """
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError("value must be an int")
    if value < 0:
        raise ValueError(f"value must be non-negative: {value}")
    if value > encoding.max_value:
        raise FloatOverflowError(f"value too large: {value}, max value: {encoding.max_value}")

    base = encoding.exponent_base
    max_mantissa = encoding.max_mantissa

    exponent = 0
    r = value // max_mantissa
    d = 1
    while r >= base or d * max_mantissa < value:
        r //= base
        exponent += 1
        d *= base

    mantissa = value // d
    if exponent > encoding.max_exponent:
        raise AssertionError("internal error: exponent out of range")
    if mantissa > max_mantissa:
        raise AssertionError("internal error: mantissa out of range")
    return (exponent << encoding.num_bits_mantissa) + mantissa


def from_float(f: int, encoding: FloatEncoding = FLOAT24) -> int:
    if not isinstance(f, int) or isinstance(f, bool):
        raise TypeError("f must be an int")
    if f < 0 or f >> encoding.num_bits:
        raise ValueError(f"f does not fit in {encoding.num_bits} bits: {f}")
    exponent = f >> encoding.num_bits_mantissa
    mantissa = f & encoding.max_mantissa
    return mantissa * encoding.exponent_base ** exponent


def round_to_float_value(value: int, encoding: FloatEncoding = FLOAT24) -> int:
    """Round `value` down to the amount the encoding actually stores (never above `value`)."""
    return from_float(to_float(value, encoding), encoding)


def rounding_step(value: int, encoding: FloatEncoding = FLOAT24) -> int:
    """Distance between adjacent representable values around `value` (the precision lost by rounding)."""
    f = to_float(value, encoding)
    return encoding.exponent_base ** (f >> encoding.num_bits_mantissa)
