"""Tests for the quote facade (exact in / exact out) and slippage helpers."""

from __future__ import annotations

from dataclasses import replace

import pytest

from cpamm_quote.core.fees import BIN_STEP_BPS_U128_DEFAULT
from cpamm_quote.core.quote import (
    check_maximum_amount_in,
    check_minimum_amount_out,
    get_current_point,
    get_max_amount_with_slippage,
    get_min_amount_with_slippage,
    quote_exact_in,
    quote_exact_out,
    quote_partial_input,
)
from cpamm_quote.core.swap import get_swap_result
from cpamm_quote.errors import (
    AmountIsZeroError,
    ExceededSlippageError,
    InvalidFeeError,
    MathOverflowError,
    PriceRangeViolationError,
    TypeCastError,
)
from cpamm_quote.kernels.python.wide_math import ONE_Q64, U64_MAX
from cpamm_quote.state.fees import BaseFeeConfig, DynamicFeeState, PoolFees, RateLimiterConfig
from cpamm_quote.state.pool import ActivationType, CollectFeeMode, PoolConfig, PoolSnapshot, TradeDirection

LIQ = 10**12 << 64


def _scheduled_pool(activation_type: ActivationType) -> PoolSnapshot:
    return PoolSnapshot(
        pool_fees=PoolFees(
            base_fee=BaseFeeConfig(
                cliff_fee_numerator=100_000_000,
                number_of_period=5,
                period_frequency=10,
                reduction_factor=10_000_000,
            ),
        ),
        sqrt_price=ONE_Q64,
        liquidity=LIQ,
        sqrt_min_price=ONE_Q64 // 2,
        sqrt_max_price=ONE_Q64 * 2,
        activation_point=1_000,
        activation_type=activation_type,
        collect_fee_mode=CollectFeeMode.ONLY_B,
    )


def _dynamic_pool() -> PoolSnapshot:
    dynamic_fee = DynamicFeeState(
        initialized=True,
        max_volatility_accumulator=14_460_000,
        variable_fee_control=956,
        bin_step=1,
        filter_period=10,
        decay_period=120,
        reduction_factor=5000,
        last_update_timestamp=1_000,
        bin_step_u128=BIN_STEP_BPS_U128_DEFAULT,
        sqrt_price_reference=ONE_Q64,
        volatility_accumulator=40_000,
    )
    return PoolSnapshot(
        pool_fees=PoolFees(base_fee=BaseFeeConfig(cliff_fee_numerator=10_000_000), dynamic_fee=dynamic_fee),
        sqrt_price=ONE_Q64,
        liquidity=LIQ,
        activation_type=ActivationType.TIMESTAMP,
    )


def _rate_limited_pool(collect_fee_mode: CollectFeeMode = CollectFeeMode.ONLY_B) -> PoolSnapshot:
    return PoolSnapshot(
        pool_fees=PoolFees(
            base_fee=RateLimiterConfig(
                cliff_fee_numerator=10_000_000,
                fee_increment_bps=10,
                max_fee_bps=5_000,
                max_limiter_duration=100,
                reference_amount=1_000_000,
            ),
        ),
        sqrt_price=ONE_Q64,
        liquidity=LIQ,
        sqrt_min_price=ONE_Q64 // 2,
        sqrt_max_price=ONE_Q64 * 2,
        activation_type=ActivationType.SLOT,
        collect_fee_mode=collect_fee_mode,
    )


# ---------------------------------------------------------------------------
# Current point
# ---------------------------------------------------------------------------

def test_current_point_follows_activation_type() -> None:
    assert get_current_point(_scheduled_pool(ActivationType.SLOT), 1_700_000_000, 42) == 42
    assert get_current_point(_scheduled_pool(ActivationType.TIMESTAMP), 1_700_000_000, 42) == 1_700_000_000


# ---------------------------------------------------------------------------
# Exact in
# ---------------------------------------------------------------------------

def test_exact_in_rejects_zero_and_negative() -> None:
    pool = _scheduled_pool(ActivationType.SLOT)
    with pytest.raises(AmountIsZeroError):
        quote_exact_in(pool, None, True, 0, 0, 0, False)
    with pytest.raises(AmountIsZeroError):
        quote_exact_in(pool, None, True, 0, 0, -5, False)


def test_exact_in_rejects_bool_amount() -> None:
    with pytest.raises(TypeError):
        quote_exact_in(_scheduled_pool(ActivationType.SLOT), None, True, 0, 0, True, False)  # type: ignore[arg-type]


def test_exact_in_uses_timestamp_for_timestamp_pools() -> None:
    pool = _scheduled_pool(ActivationType.TIMESTAMP)
    result = quote_exact_in(pool, None, False, 1_010, 0, 1_000_000, False)
    # Period 1: 10% - 1% = 9% charged on the B input.
    assert result.total_fee == 90_000


def test_exact_in_uses_slot_for_slot_pools() -> None:
    pool = _scheduled_pool(ActivationType.SLOT)
    assert quote_exact_in(pool, None, False, 1_010, 1_010, 1_000_000, False).total_fee == 90_000
    # Slot 0 is before activation: the last period's fee applies.
    assert quote_exact_in(pool, None, False, 1_010, 0, 1_000_000, False).total_fee == 50_000


def test_exact_in_matches_simulator() -> None:
    pool = _scheduled_pool(ActivationType.SLOT)
    expected = get_swap_result(
        pool, 1_000_000, is_referral=True, trade_direction=TradeDirection.A_TO_B, current_point=1_020
    )
    assert quote_exact_in(pool, None, True, 0, 1_020, 1_000_000, True) == expected


def test_exact_in_config_is_read_only() -> None:
    pool = _scheduled_pool(ActivationType.SLOT)
    config = PoolConfig(config_key="cfg", pool_fees=pool.pool_fees)
    with_config = quote_exact_in(pool, config, True, 0, 1_020, 1_000_000, False)
    without_config = quote_exact_in(pool, None, True, 0, 1_020, 1_000_000, False)
    assert with_config == without_config
    assert config == PoolConfig(config_key="cfg", pool_fees=pool.pool_fees)


def test_exact_in_range_violation_leaves_snapshot_untouched() -> None:
    pool = _scheduled_pool(ActivationType.SLOT)
    before = replace(pool)
    with pytest.raises(PriceRangeViolationError):
        quote_exact_in(pool, None, True, 0, 1_020, 10**13, False)
    assert pool == before


def test_exact_in_dynamic_fee_does_not_mutate_caller() -> None:
    pool = _dynamic_pool()
    before = replace(pool)
    result = quote_exact_in(pool, None, True, 1_050, 0, 1_000_000, False)
    assert result.output_amount > 0
    assert pool == before


def test_exact_in_dynamic_fee_adds_variable_component() -> None:
    pool = _dynamic_pool()
    no_dynamic = replace(pool, pool_fees=replace(pool.pool_fees, dynamic_fee=DynamicFeeState()))
    with_variable = quote_exact_in(pool, None, True, 1_050, 0, 1_000_000, False)
    base_only = quote_exact_in(no_dynamic, None, True, 1_050, 0, 1_000_000, False)
    assert with_variable.total_fee > base_only.total_fee


def test_exact_in_timestamp_before_last_update_fails() -> None:
    with pytest.raises(MathOverflowError):
        quote_exact_in(_dynamic_pool(), None, True, 999, 0, 1_000_000, False)


# ---------------------------------------------------------------------------
# Exact out
# ---------------------------------------------------------------------------

def test_exact_out_rejects_zero() -> None:
    with pytest.raises(AmountIsZeroError):
        quote_exact_out(_scheduled_pool(ActivationType.SLOT), None, True, 0, 0, 0, False)


def test_exact_out_fee_on_input_for_only_b() -> None:
    pool = _scheduled_pool(ActivationType.SLOT)
    result = quote_exact_out(pool, None, False, 0, 1_010, 500_000, False)
    assert result.output_amount == 500_000
    assert result.included_fee_input_amount > result.excluded_fee_input_amount
    assert result.total_fee == result.included_fee_input_amount - result.excluded_fee_input_amount


# ---------------------------------------------------------------------------
# Slippage
# ---------------------------------------------------------------------------

def test_slippage_bounds() -> None:
    assert get_min_amount_with_slippage(1_000_000, 50) == 995_000
    assert get_max_amount_with_slippage(1_000_000, 50) == 1_005_000
    assert get_min_amount_with_slippage(999, 50) == 994
    assert get_max_amount_with_slippage(999, 50) == 1_004
    assert get_min_amount_with_slippage(999, 0) == 999


def test_slippage_bps_out_of_range() -> None:
    with pytest.raises(InvalidFeeError):
        get_min_amount_with_slippage(1, 10_001)


def test_check_minimum_amount_out() -> None:
    result = quote_exact_in(_scheduled_pool(ActivationType.SLOT), None, True, 0, 1_020, 1_000_000, False)
    check_minimum_amount_out(result, result.output_amount)
    with pytest.raises(ExceededSlippageError) as excinfo:
        check_minimum_amount_out(result, result.output_amount + 1)
    assert excinfo.value.code == 6004


def test_check_maximum_amount_in() -> None:
    result = quote_exact_out(_scheduled_pool(ActivationType.SLOT), None, True, 0, 1_020, 500_000, False)
    check_maximum_amount_in(result, result.included_fee_input_amount)
    with pytest.raises(ExceededSlippageError):
        check_maximum_amount_in(result, result.included_fee_input_amount - 1)


# ---------------------------------------------------------------------------
# Amount width
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("quote", [quote_exact_in, quote_exact_out, quote_partial_input])
def test_amount_past_u64_is_type_cast_error(quote) -> None:
    pool = _scheduled_pool(ActivationType.SLOT)
    with pytest.raises(TypeCastError) as excinfo:
        quote(pool, None, True, 0, 0, U64_MAX + 1, False)
    assert excinfo.value.code == 6042


# ---------------------------------------------------------------------------
# Partial fill
# ---------------------------------------------------------------------------

def test_partial_input_fills_up_to_min_price() -> None:
    pool = _scheduled_pool(ActivationType.SLOT)
    result = quote_partial_input(pool, None, True, 0, 1_020, 10**13, False)
    assert result.next_sqrt_price == pool.sqrt_min_price
    assert result.amount_left > 0
    assert result.included_fee_input_amount < 10**13
    check_minimum_amount_out(result, result.output_amount)


def test_partial_input_within_range_matches_exact_in() -> None:
    pool = _scheduled_pool(ActivationType.SLOT)
    partial = quote_partial_input(pool, None, False, 0, 1_010, 1_000_000, False)
    exact = quote_exact_in(pool, None, False, 0, 1_010, 1_000_000, False)
    assert partial.amount_left == 0
    assert partial.output_amount == exact.output_amount
    assert partial.total_fee == exact.total_fee == 90_000


def test_partial_input_rejects_zero() -> None:
    with pytest.raises(AmountIsZeroError):
        quote_partial_input(_scheduled_pool(ActivationType.SLOT), None, True, 0, 0, 0, False)


# ---------------------------------------------------------------------------
# Rate limiter
# ---------------------------------------------------------------------------

def test_rate_limiter_charges_b_to_a_by_size() -> None:
    pool = _rate_limited_pool()
    # Slot 50 is inside the 100-slot limiter window.
    assert quote_exact_in(pool, None, False, 0, 50, 1_000_000, False).total_fee == 10_000
    assert quote_exact_in(pool, None, False, 0, 50, 2_500_000, False).total_fee == 27_000
    assert quote_exact_in(pool, None, False, 0, 101, 2_500_000, False).total_fee == 25_000


def test_rate_limiter_exact_out_grosses_up_input() -> None:
    pool = _rate_limited_pool()
    exact_out = quote_exact_out(pool, None, False, 0, 50, 2_000_000, False)
    assert exact_out.output_amount == 2_000_000
    # Past the first reference slice the effective fee is above the cliff.
    assert exact_out.total_fee * 100 > exact_out.included_fee_input_amount


def test_rate_limiter_on_both_token_pool_is_rejected() -> None:
    with pytest.raises(InvalidFeeError):
        quote_exact_in(_rate_limited_pool(CollectFeeMode.BOTH_TOKEN), None, False, 0, 50, 1_000_000, False)
