"""
Human-facing price helpers.

These convert between the Q64.64 sqrt price and a decimal price of token A in
token B, adjusted for mint decimals. They are for display and impact checks
only: nothing in the quote path depends on them, and they use Decimal with an
explicit context rather than the integer kernel.
"""

from __future__ import annotations

from decimal import ROUND_FLOOR, Context, Decimal
from typing import Union

from ..kernels.python.wide_math import RESOLUTION, U128_MAX, require_uint

_CTX = Context(prec=80)
_Q64 = Decimal(1 << RESOLUTION)
_Q128 = Decimal(1 << (RESOLUTION * 2))


def _decimals_scale(token_a_decimal: int, token_b_decimal: int) -> Decimal:
    return _CTX.power(Decimal(10), token_a_decimal - token_b_decimal)


def get_price_from_sqrt_price(sqrt_price: int, token_a_decimal: int, token_b_decimal: int) -> Decimal:
    """price = sqrt_price^2 * 10^(a_decimals - b_decimals) / 2^128"""
    require_uint("sqrt_price", sqrt_price)
    squared = _CTX.multiply(Decimal(sqrt_price), Decimal(sqrt_price))
    scaled = _CTX.multiply(squared, _decimals_scale(token_a_decimal, token_b_decimal))
    return _CTX.divide(scaled, _Q128)


def get_sqrt_price_from_price(
    price: Union[str, int, Decimal],
    token_a_decimal: int,
    token_b_decimal: int,
) -> int:
    """sqrt(price / 10^(a_decimals - b_decimals)) * 2^64, floored."""
    if isinstance(price, float):
        raise TypeError("price must be a str, int or Decimal, not float")
    value = Decimal(price)
    if value < 0:
        raise ValueError(f"price must be non-negative: {price}")
    adjusted = _CTX.divide(value, _decimals_scale(token_a_decimal, token_b_decimal))
    sqrt_q64 = _CTX.multiply(_CTX.sqrt(adjusted), _Q64)
    result = int(sqrt_q64.to_integral_value(rounding=ROUND_FLOOR))
    if result > U128_MAX:
        raise ValueError(f"sqrt price exceeds u128 for price {price}")
    return result


def get_price_impact(
    amount_in: int,
    amount_out: int,
    current_sqrt_price: int,
    a_to_b: bool,
    token_a_decimal: int,
    token_b_decimal: int,
) -> Decimal:
    """
    Percent distance between the execution price and the spot price.

    Both prices are expressed as token B per token A, so an A→B trade inverts
    its raw in/out ratio first.
    """
    require_uint("amount_in", amount_in)
    require_uint("amount_out", amount_out)
    if amount_in == 0:
        return Decimal(0)
    if amount_out == 0:
        raise ValueError("amount_out must be positive")

    spot_price = get_price_from_sqrt_price(current_sqrt_price, token_a_decimal, token_b_decimal)
    if spot_price == 0:
        raise ValueError("spot price is zero")

    if a_to_b:
        exponent = token_b_decimal - token_a_decimal
    else:
        exponent = token_a_decimal - token_b_decimal
    execution_price = _CTX.multiply(
        _CTX.divide(Decimal(amount_in), Decimal(amount_out)),
        _CTX.power(Decimal(10), exponent),
    )
    if a_to_b:
        execution_price = _CTX.divide(Decimal(1), execution_price)

    diff = _CTX.abs(_CTX.subtract(execution_price, spot_price))
    return _CTX.multiply(_CTX.divide(diff, spot_price), Decimal(100))


def get_price_change(next_sqrt_price: int, current_sqrt_price: int) -> Decimal:
    """|next^2 - current^2| / current^2 * 100; the decimals scale cancels out."""
    require_uint("next_sqrt_price", next_sqrt_price)
    require_uint("current_sqrt_price", current_sqrt_price)
    if current_sqrt_price == 0:
        raise ValueError("current_sqrt_price must be positive")
    current_sq = current_sqrt_price * current_sqrt_price
    diff = abs(next_sqrt_price * next_sqrt_price - current_sq)
    return _CTX.multiply(_CTX.divide(Decimal(diff), Decimal(current_sq)), Decimal(100))
