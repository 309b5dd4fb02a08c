"""
Fixed-width integer helpers.

Python integers never overflow, so every bound the pair relies on is checked
explicitly here. Checked operations raise Overflow; the wrapping helpers are
reserved for the timestamp and price accumulators.
"""
import math

from cpamm.errors import Overflow

UINT112_MAX = 2**112 - 1
UINT256_MAX = 2**256 - 1


def check_uint(value: int, bits: int = 256) -> int:
    """Return value unchanged if it fits in an unsigned `bits`-wide integer."""
    if value < 0 or value >> bits:
        raise Overflow(f"value {value} does not fit in uint{bits}")
    return value


def add(a: int, b: int, bits: int = 256) -> int:
    return check_uint(a + b, bits)


def sub(a: int, b: int, bits: int = 256) -> int:
    if b > a:
        raise Overflow(f"subtraction underflow: {a} - {b}")
    return a - b


def mul(a: int, b: int, bits: int = 256) -> int:
    return check_uint(a * b, bits)


def isqrt(value: int) -> int:
    """Floor square root of a uint256."""
    return math.isqrt(check_uint(value))


def wrap(value: int, bits: int) -> int:
    """Reduce modulo 2**bits. Deliberate wraparound, never an error."""
    return value & ((1 << bits) - 1)
