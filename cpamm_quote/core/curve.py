"""
Concentrated-liquidity curve math over a bounded Q64.64 sqrt-price range.

Formulas (L = liquidity, prices are sqrt prices):
    Δa = L * (√P_upper - √P_lower) / (√P_upper * √P_lower)
    Δb = L * (√P_upper - √P_lower)          (scaled down by 2^128)

Rounding policy: every helper takes the direction from its caller, and the swap
paths choose the direction that never lets the trader move the price past the
exact answer nor take out more than the exact amount.
"""

from __future__ import annotations

from typing import Tuple

from ..errors import MathOverflowError
from ..kernels.python.wide_math import (
    RESOLUTION,
    U64_MAX,
    Rounding,
    checked_u256,
    div_ceil,
    mul_div,
    narrow,
    require_uint,
)


def _require_ordered(lower_sqrt_price: int, upper_sqrt_price: int) -> None:
    if upper_sqrt_price < lower_sqrt_price:
        raise MathOverflowError(
            f"upper sqrt price below lower: {upper_sqrt_price} < {lower_sqrt_price}"
        )


def _require_curve_inputs(sqrt_price: int, liquidity: int) -> None:
    # A zero price or zero liquidity means the caller passed a broken snapshot.
    if sqrt_price <= 0:
        raise AssertionError("sqrt_price must be positive")
    if liquidity <= 0:
        raise AssertionError("liquidity must be positive")


def _to_u64(value: int) -> int:
    if value > U64_MAX:
        raise MathOverflowError(f"delta amount exceeds u64: {value}")
    return narrow(value, 64)


def get_delta_amount_a_unsigned_unchecked(
    lower_sqrt_price: int,
    upper_sqrt_price: int,
    liquidity: int,
    rounding: Rounding,
) -> int:
    """Δa as a u256 value (no u64 narrowing)."""
    _require_ordered(lower_sqrt_price, upper_sqrt_price)
    denominator = checked_u256(lower_sqrt_price * upper_sqrt_price)
    if denominator == 0:
        raise AssertionError("sqrt price bounds must be positive")
    return mul_div(liquidity, upper_sqrt_price - lower_sqrt_price, denominator, rounding)


def get_delta_amount_a_unsigned(
    lower_sqrt_price: int,
    upper_sqrt_price: int,
    liquidity: int,
    rounding: Rounding,
) -> int:
    """Token A backing `liquidity` between two sqrt prices, as u64."""
    return _to_u64(
        get_delta_amount_a_unsigned_unchecked(lower_sqrt_price, upper_sqrt_price, liquidity, rounding)
    )


def get_delta_amount_b_unsigned_unchecked(
    lower_sqrt_price: int,
    upper_sqrt_price: int,
    liquidity: int,
    rounding: Rounding,
) -> int:
    """Δb as a u256 value (no u64 narrowing)."""
    require_uint("liquidity", liquidity)
    _require_ordered(lower_sqrt_price, upper_sqrt_price)
    prod = checked_u256(liquidity * (upper_sqrt_price - lower_sqrt_price))
    shift = RESOLUTION * 2
    if rounding is Rounding.UP:
        return div_ceil(prod, 1 << shift)
    if rounding is Rounding.DOWN:
        return prod >> shift
    raise TypeError("rounding must be a Rounding")


def get_delta_amount_b_unsigned(
    lower_sqrt_price: int,
    upper_sqrt_price: int,
    liquidity: int,
    rounding: Rounding,
) -> int:
    """Token B backing `liquidity` between two sqrt prices, as u64."""
    return _to_u64(
        get_delta_amount_b_unsigned_unchecked(lower_sqrt_price, upper_sqrt_price, liquidity, rounding)
    )


def get_next_sqrt_price_from_amount_a_rounding_up(sqrt_price: int, liquidity: int, amount: int) -> int:
    """√P' = L * √P / (L + Δa * √P), rounded up."""
    if amount == 0:
        return sqrt_price
    product = checked_u256(amount * sqrt_price)
    denominator = checked_u256(liquidity + product)
    result = mul_div(liquidity, sqrt_price, denominator, Rounding.UP)
    return narrow(result, 128)


def get_next_sqrt_price_from_amount_b_rounding_down(sqrt_price: int, liquidity: int, amount: int) -> int:
    """√P' = √P + Δb / L, rounded down."""
    quotient = checked_u256(amount << (RESOLUTION * 2)) // liquidity
    result = checked_u256(sqrt_price + quotient)
    return narrow(result, 128)


def get_next_sqrt_price_from_input(sqrt_price: int, liquidity: int, amount_in: int, a_for_b: bool) -> int:
    """
    Sqrt price after the curve absorbs an exact input.

    Rounds so the price never moves past the exact target: up for token A input
    (price falls), down for token B input (price rises).
    """
    require_uint("sqrt_price", sqrt_price)
    require_uint("liquidity", liquidity)
    require_uint("amount_in", amount_in)
    _require_curve_inputs(sqrt_price, liquidity)

    if a_for_b:
        return get_next_sqrt_price_from_amount_a_rounding_up(sqrt_price, liquidity, amount_in)
    return get_next_sqrt_price_from_amount_b_rounding_down(sqrt_price, liquidity, amount_in)


def get_next_sqrt_price_from_amount_b_out_rounding_down(sqrt_price: int, liquidity: int, amount: int) -> int:
    """√P' = √P - Δb / L, with the quotient rounded up."""
    quotient = div_ceil(checked_u256(amount << (RESOLUTION * 2)), liquidity)
    if quotient > sqrt_price:
        raise MathOverflowError("sqrt price cannot go negative")
    return sqrt_price - quotient


def get_next_sqrt_price_from_amount_a_out_rounding_up(sqrt_price: int, liquidity: int, amount: int) -> int:
    """√P' = L * √P / (L - Δa * √P), rounded up."""
    if amount == 0:
        return sqrt_price
    product = checked_u256(amount * sqrt_price)
    if product >= liquidity:
        raise MathOverflowError("denominator is zero or negative")
    result = mul_div(liquidity, sqrt_price, liquidity - product, Rounding.UP)
    return narrow(result, 128)


def get_next_sqrt_price_from_output(sqrt_price: int, liquidity: int, amount_out: int, a_for_b: bool) -> int:
    """Sqrt price after the curve releases an exact output (B for A→B, A for B→A)."""
    require_uint("sqrt_price", sqrt_price)
    require_uint("liquidity", liquidity)
    require_uint("amount_out", amount_out)
    _require_curve_inputs(sqrt_price, liquidity)

    if a_for_b:
        return get_next_sqrt_price_from_amount_b_out_rounding_down(sqrt_price, liquidity, amount_out)
    return get_next_sqrt_price_from_amount_a_out_rounding_up(sqrt_price, liquidity, amount_out)


def get_initialize_amounts(
    sqrt_min_price: int,
    sqrt_max_price: int,
    sqrt_price: int,
    liquidity: int,
) -> Tuple[int, int]:
    """Token A and B a pool needs to open at `sqrt_price` with `liquidity` (rounded up)."""
    amount_a = get_delta_amount_a_unsigned(sqrt_price, sqrt_max_price, liquidity, Rounding.UP)
    amount_b = get_delta_amount_b_unsigned(sqrt_min_price, sqrt_price, liquidity, Rounding.UP)
    return amount_a, amount_b


def get_liquidity_delta_from_amount_a(amount_a: int, lower_sqrt_price: int, upper_sqrt_price: int) -> int:
    """L = Δa * √P_lower * √P_upper / (√P_upper - √P_lower), rounded down."""
    require_uint("amount_a", amount_a)
    if upper_sqrt_price <= lower_sqrt_price:
        raise MathOverflowError("empty price range")
    product = checked_u256(amount_a * lower_sqrt_price * upper_sqrt_price)
    return narrow(product // (upper_sqrt_price - lower_sqrt_price), 128)


def get_liquidity_delta_from_amount_b(amount_b: int, lower_sqrt_price: int, upper_sqrt_price: int) -> int:
    """L = Δb / (√P_upper - √P_lower), rounded down."""
    require_uint("amount_b", amount_b)
    if upper_sqrt_price <= lower_sqrt_price:
        raise MathOverflowError("empty price range")
    product = checked_u256(amount_b << (RESOLUTION * 2))
    return narrow(product // (upper_sqrt_price - lower_sqrt_price), 128)


def get_liquidity_for_amounts(
    amount_a: int,
    amount_b: int,
    sqrt_min_price: int,
    sqrt_max_price: int,
    sqrt_price: int,
) -> int:
    """Largest liquidity that both deposits can back at `sqrt_price`."""
    liquidity_a = get_liquidity_delta_from_amount_a(amount_a, sqrt_price, sqrt_max_price)
    liquidity_b = get_liquidity_delta_from_amount_b(amount_b, sqrt_min_price, sqrt_price)
    return min(liquidity_a, liquidity_b)
