"""
Quote facade: snapshot in, swap outcome out.

A quote never mutates the caller's records. The dynamic-fee references are
advanced on a private copy (the same update the program applies before a swap),
the pool's time axis is resolved to a single point, and the simulator runs once.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional, Union

from ..errors import AmountIsZeroError, ExceededSlippageError, InvalidFeeError, QuoteError
from ..kernels.python.wide_math import Rounding, mul_div, narrow, require_uint
from ..state.pool import ActivationType, PoolConfig, PoolSnapshot, TradeDirection
from .fees import BASIS_POINT_MAX, update_pre_swap, validate_base_fee
from .swap import (
    ExactOutSwapResult,
    PartialFillSwapResult,
    SwapResult,
    get_swap_result,
    get_swap_result_from_exact_output,
    get_swap_result_from_partial_input,
)

logger = logging.getLogger(__name__)


def get_current_point(pool: PoolSnapshot, current_timestamp: int, current_slot: int) -> int:
    """The counter the pool's schedule runs on: slot or unix timestamp."""
    if pool.activation_type is ActivationType.SLOT:
        return current_slot
    if pool.activation_type is ActivationType.TIMESTAMP:
        return current_timestamp
    raise TypeError(f"activation_type must be an ActivationType: {pool.activation_type!r}")


def _require_amount(name: str, amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise TypeError(f"{name} must be an int")
    if amount <= 0:
        raise AmountIsZeroError(f"{name} must be positive: {amount}")
    # Token amounts are u64 on chain.
    narrow(amount, 64)


def _prepare(pool: PoolSnapshot, current_timestamp: int) -> PoolSnapshot:
    validate_base_fee(pool.pool_fees.base_fee, pool.collect_fee_mode)
    pool_fees = update_pre_swap(pool.pool_fees, pool.sqrt_price, current_timestamp)
    if pool_fees is pool.pool_fees:
        return pool
    return replace(pool, pool_fees=pool_fees)


def _log_config(config: Optional[PoolConfig]) -> None:
    if config is not None:
        logger.debug("quoting with config %s", config.config_key)


def quote_exact_in(
    pool: PoolSnapshot,
    config: Optional[PoolConfig],
    a_for_b: bool,
    current_timestamp: int,
    current_slot: int,
    amount_in: int,
    is_referral: bool,
) -> SwapResult:
    """
    Quote an exact-input swap.

    `config` is accepted for parity with the on-chain instruction and is only
    read. Raises AmountIsZeroError before touching any math when
    `amount_in` is not positive, and TypeCastError when it does not fit u64.
    """
    _require_amount("amount_in", amount_in)
    require_uint("current_timestamp", current_timestamp)
    require_uint("current_slot", current_slot)
    _log_config(config)

    quoted_pool = _prepare(pool, current_timestamp)
    current_point = get_current_point(quoted_pool, current_timestamp, current_slot)
    trade_direction = TradeDirection.from_a_for_b(a_for_b)
    try:
        return get_swap_result(
            quoted_pool,
            amount_in,
            is_referral=is_referral,
            trade_direction=trade_direction,
            current_point=current_point,
        )
    except QuoteError as exc:
        logger.debug("exact-in quote failed at point %d: %s (%d)", current_point, exc.name, exc.code)
        raise


def quote_partial_input(
    pool: PoolSnapshot,
    config: Optional[PoolConfig],
    a_for_b: bool,
    current_timestamp: int,
    current_slot: int,
    amount_in: int,
    is_referral: bool,
) -> PartialFillSwapResult:
    """Like `quote_exact_in`, but a trade that would leave the price range is filled up to the bound."""
    _require_amount("amount_in", amount_in)
    require_uint("current_timestamp", current_timestamp)
    require_uint("current_slot", current_slot)
    _log_config(config)

    quoted_pool = _prepare(pool, current_timestamp)
    current_point = get_current_point(quoted_pool, current_timestamp, current_slot)
    try:
        return get_swap_result_from_partial_input(
            quoted_pool,
            amount_in,
            is_referral=is_referral,
            trade_direction=TradeDirection.from_a_for_b(a_for_b),
            current_point=current_point,
        )
    except QuoteError as exc:
        logger.debug("partial-fill quote failed at point %d: %s (%d)", current_point, exc.name, exc.code)
        raise


def quote_exact_out(
    pool: PoolSnapshot,
    config: Optional[PoolConfig],
    a_for_b: bool,
    current_timestamp: int,
    current_slot: int,
    amount_out: int,
    is_referral: bool,
) -> ExactOutSwapResult:
    _require_amount("amount_out", amount_out)
    require_uint("current_timestamp", current_timestamp)
    require_uint("current_slot", current_slot)
    _log_config(config)

    quoted_pool = _prepare(pool, current_timestamp)
    current_point = get_current_point(quoted_pool, current_timestamp, current_slot)
    try:
        return get_swap_result_from_exact_output(
            quoted_pool,
            amount_out,
            is_referral=is_referral,
            trade_direction=TradeDirection.from_a_for_b(a_for_b),
            current_point=current_point,
        )
    except QuoteError as exc:
        logger.debug("exact-out quote failed at point %d: %s (%d)", current_point, exc.name, exc.code)
        raise


# ---------------------------------------------------------------------------
# Slippage
# ---------------------------------------------------------------------------

def _require_slippage_bps(slippage_bps: int) -> None:
    require_uint("slippage_bps", slippage_bps)
    if slippage_bps > BASIS_POINT_MAX:
        raise InvalidFeeError(f"slippage_bps must be in [0, {BASIS_POINT_MAX}]: {slippage_bps}")


def get_min_amount_with_slippage(amount: int, slippage_bps: int) -> int:
    """Smallest acceptable output: amount * (1 - bps), rounded down."""
    _require_slippage_bps(slippage_bps)
    return mul_div(amount, BASIS_POINT_MAX - slippage_bps, BASIS_POINT_MAX, Rounding.DOWN)


def get_max_amount_with_slippage(amount: int, slippage_bps: int) -> int:
    """Largest acceptable input: amount * (1 + bps), rounded up."""
    _require_slippage_bps(slippage_bps)
    return mul_div(amount, BASIS_POINT_MAX + slippage_bps, BASIS_POINT_MAX, Rounding.UP)


def check_minimum_amount_out(result: Union[SwapResult, PartialFillSwapResult], minimum_amount_out: int) -> None:
    require_uint("minimum_amount_out", minimum_amount_out)
    if result.output_amount < minimum_amount_out:
        raise ExceededSlippageError(
            f"output {result.output_amount} below minimum {minimum_amount_out}"
        )


def check_maximum_amount_in(result: ExactOutSwapResult, maximum_amount_in: int) -> None:
    require_uint("maximum_amount_in", maximum_amount_in)
    if result.included_fee_input_amount > maximum_amount_in:
        raise ExceededSlippageError(
            f"input {result.included_fee_input_amount} above maximum {maximum_amount_in}"
        )
