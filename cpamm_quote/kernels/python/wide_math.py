"""
Wide unsigned integer kernel (u64 / u128 / u256 semantics on Python ints).

Python ints never wrap, so "overflow" here means: the exact value does not fit
the width the on-chain program would hold it in. Every helper checks that
explicitly and raises instead of truncating:
- `MathOverflowError` when a u256 intermediate (or a division by zero) fails,
- `TypeCastError` when a value does not narrow to the requested output width.

Rounding is always an explicit argument. It decides who (trader or pool)
absorbs the last unit of dust, so there is no default.
"""

from __future__ import annotations

from enum import Enum, unique
from typing import Optional

from ...errors import MathOverflowError, TypeCastError


U16_MAX = (1 << 16) - 1
U32_MAX = (1 << 32) - 1
U64_MAX = (1 << 64) - 1
U128_MAX = (1 << 128) - 1
U256_MAX = (1 << 256) - 1

# Q64.64 fixed point.
RESOLUTION = 64
SCALE_OFFSET = 64
ONE_Q64 = 1 << SCALE_OFFSET

MAX_EXPONENTIAL = 0x80000


@unique
class Rounding(Enum):
    UP = "up"
    DOWN = "down"


def require_uint(name: str, value: int, bits: Optional[int] = None) -> None:
    """Argument check: a non-negative int, optionally no wider than `bits`."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value < 0:
        raise ValueError(f"{name} must be non-negative: {value}")
    if bits is not None and value >> bits:
        raise ValueError(f"{name} must fit u{bits}: {value}")


def _width_max(bits: int) -> int:
    if bits not in (16, 32, 64, 128, 256):
        raise ValueError(f"unsupported width: {bits}")
    return (1 << bits) - 1


def checked_u256(value: int) -> int:
    """Reject values outside [0, U256_MAX] (a checked u256 op would fail)."""
    if value < 0 or value > U256_MAX:
        raise MathOverflowError(f"value does not fit u256: {value}")
    return value


def narrow(value: int, bits: int) -> int:
    """Narrowing cast: `value` must fit `bits` unsigned bits."""
    if value < 0 or value > _width_max(bits):
        raise TypeCastError(f"value does not fit u{bits}: {value}")
    return value


def checked_sub(a: int, b: int) -> int:
    """Unsigned subtraction; underflow is an overflow error."""
    if b > a:
        raise MathOverflowError(f"subtraction underflow: {a} - {b}")
    return a - b


def mul_div(x: int, y: int, denominator: int, rounding: Rounding) -> int:
    """
    `x * y / denominator` rounded per `rounding`, with an unbounded intermediate.

    The product of two u128 values always fits; the quotient must fit u256.
    """
    require_uint("x", x)
    require_uint("y", y)
    require_uint("denominator", denominator)
    if not isinstance(rounding, Rounding):
        raise TypeError("rounding must be a Rounding")
    if denominator == 0:
        raise MathOverflowError("mul_div by zero")

    quotient, remainder = divmod(x * y, denominator)
    if rounding is Rounding.UP and remainder != 0:
        quotient += 1
    return checked_u256(quotient)


def mul_div_u64(x: int, y: int, denominator: int, rounding: Rounding) -> int:
    return narrow(mul_div(x, y, denominator, rounding), 64)


def shl_div(x: int, y: int, offset: int, rounding: Rounding) -> int:
    """`(x << offset) / y` narrowed to u128."""
    require_uint("offset", offset)
    return narrow(mul_div(x, 1 << offset, y, rounding), 128)


def div_ceil(numerator: int, denominator: int) -> int:
    if denominator <= 0:
        raise MathOverflowError("div_ceil by zero")
    if numerator < 0:
        raise ValueError("numerator must be non-negative")
    return (numerator + denominator - 1) // denominator


def pow_q64(base: int, exp: int) -> int:
    """
    `base ** exp` for a Q64.64 `base`, by squaring over at most 19 exponent bits.

    Exponents beyond MAX_EXPONENTIAL collapse to 0. A base >= 1.0 is inverted
    first (and the result inverted back) so the squares stay below 1.0.
    """
    if not isinstance(exp, int) or isinstance(exp, bool):
        raise TypeError("exp must be an int")
    require_uint("base", base)

    invert = exp < 0
    if exp == 0:
        return ONE_Q64
    if invert:
        exp = -exp
    if exp > MAX_EXPONENTIAL:
        return 0

    squared_base = base
    result = ONE_Q64
    if squared_base >= result:
        squared_base = U128_MAX // squared_base
        invert = not invert

    for bit in range(19):
        if exp & (1 << bit):
            result = (result * squared_base) >> SCALE_OFFSET
        squared_base = (squared_base * squared_base) >> SCALE_OFFSET

    if result == 0:
        return 0
    if invert:
        result = U128_MAX // result
    return result
