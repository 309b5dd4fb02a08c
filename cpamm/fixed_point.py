"""
UQ112x112 binary fixed point.

A price is stored as a 224-bit unsigned number whose low 112 bits are the
fraction. encode() lifts a uint112 reserve into the format, uqdiv() divides it
by another reserve, and decode144() drops the fractional bits of a price
multiplied by an amount.
"""
from cpamm.safe_math import check_uint

RESOLUTION = 112
Q112 = 1 << RESOLUTION


def encode(y: int) -> int:
    """Encode a uint112 as UQ112x112."""
    return check_uint(y, 112) * Q112


def uqdiv(x: int, y: int) -> int:
    """Divide a UQ112x112 by a uint112, returning UQ112x112."""
    if y == 0:
        raise ZeroDivisionError("UQ112x112 division by zero")
    return x // check_uint(y, 112)


def fraction(numerator: int, denominator: int) -> int:
    """Return numerator / denominator as UQ112x112."""
    return uqdiv(encode(numerator), denominator)


def decode144(x: int) -> int:
    """Integer part of a UQ144x112, e.g. a price multiplied by an amount."""
    return x >> RESOLUTION


def to_float(x: int) -> float:
    """Approximate value, for display only."""
    return x / Q112

