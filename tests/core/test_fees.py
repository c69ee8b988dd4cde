"""Tests for the trading fee engine: schedule, variable fee, references, split."""

from __future__ import annotations

from dataclasses import replace

import pytest

from cpamm_quote.core.fees import (
    BIN_STEP_BPS_U128_DEFAULT,
    FEE_DENOMINATOR,
    MAX_FEE_NUMERATOR_V0,
    MAX_FEE_NUMERATOR_V1,
    BaseFeeContext,
    bps_to_fee_numerator,
    fee_numerator_to_bps,
    get_base_fee_handler,
    get_base_fee_params,
    get_current_base_fee_numerator,
    get_delta_bin_id,
    get_dynamic_fee_params,
    get_fee_in_period,
    get_fee_on_amount,
    get_included_fee_amount,
    get_market_cap_base_fee_numerator,
    get_max_base_fee_numerator,
    get_max_fee_numerator,
    get_min_base_fee_numerator,
    get_rate_limiter_fee_numerator_from_excluded_fee_amount,
    get_rate_limiter_fee_numerator_from_included_fee_amount,
    get_rate_limiter_max_index,
    get_total_trading_fee,
    get_trade_fee_numerator,
    get_variable_fee,
    split_fees,
    update_post_swap,
    update_pre_swap,
    validate_base_fee,
)
from cpamm_quote.errors import FeeCalculationError, InvalidFeeError, MathOverflowError, TypeCastError
from cpamm_quote.kernels.python.wide_math import ONE_Q64, U64_MAX
from cpamm_quote.state.fees import (
    BaseFeeConfig,
    BaseFeeMode,
    DynamicFeeState,
    FeeSchedulerMode,
    MarketCapSchedulerConfig,
    PoolFees,
    RateLimiterConfig,
)
from cpamm_quote.state.pool import CollectFeeMode, PoolVersion, TradeDirection


def _linear_schedule() -> BaseFeeConfig:
    return BaseFeeConfig(
        cliff_fee_numerator=100_000_000,
        fee_scheduler_mode=FeeSchedulerMode.LINEAR,
        number_of_period=10,
        period_frequency=60,
        reduction_factor=5_000_000,
    )


def _dynamic(**overrides) -> DynamicFeeState:
    params = dict(
        initialized=True,
        max_volatility_accumulator=14_460_000,
        variable_fee_control=100_000,
        bin_step=1,
        filter_period=10,
        decay_period=120,
        reduction_factor=5000,
        last_update_timestamp=1_000,
        bin_step_u128=BIN_STEP_BPS_U128_DEFAULT,
        sqrt_price_reference=ONE_Q64,
        volatility_accumulator=20_000,
        volatility_reference=0,
    )
    params.update(overrides)
    return DynamicFeeState(**params)


def _split_fees_config() -> PoolFees:
    return PoolFees(
        base_fee=BaseFeeConfig(cliff_fee_numerator=2_500_000),
        protocol_fee_percent=20,
        partner_fee_percent=50,
        referral_fee_percent=20,
    )


# ---------------------------------------------------------------------------
# Conversions
# ---------------------------------------------------------------------------

def test_bps_conversions() -> None:
    assert bps_to_fee_numerator(25) == 2_500_000
    assert fee_numerator_to_bps(2_500_000) == 25
    assert fee_numerator_to_bps(MAX_FEE_NUMERATOR_V0) == 5000


def test_max_fee_numerator_by_version() -> None:
    assert get_max_fee_numerator(PoolVersion.V0) == MAX_FEE_NUMERATOR_V0
    assert get_max_fee_numerator(PoolVersion.V1) == MAX_FEE_NUMERATOR_V1


# ---------------------------------------------------------------------------
# Base fee schedule
# ---------------------------------------------------------------------------

def test_flat_fee_ignores_points() -> None:
    base_fee = BaseFeeConfig(cliff_fee_numerator=2_500_000)
    assert get_current_base_fee_numerator(base_fee, 0, 1_000) == 2_500_000
    assert get_current_base_fee_numerator(base_fee, 10**9, 0) == 2_500_000


def test_linear_schedule_steps_per_period() -> None:
    base_fee = _linear_schedule()
    assert get_current_base_fee_numerator(base_fee, 1_000, 1_000) == 100_000_000
    assert get_current_base_fee_numerator(base_fee, 1_059, 1_000) == 100_000_000
    assert get_current_base_fee_numerator(base_fee, 1_060, 1_000) == 95_000_000
    assert get_current_base_fee_numerator(base_fee, 1_119, 1_000) == 95_000_000


def test_linear_schedule_stops_at_last_period() -> None:
    base_fee = _linear_schedule()
    assert get_current_base_fee_numerator(base_fee, 1_600, 1_000) == 50_000_000
    assert get_current_base_fee_numerator(base_fee, 10**9, 1_000) == 50_000_000
    assert get_min_base_fee_numerator(base_fee) == 50_000_000


def test_before_activation_pays_minimum_fee() -> None:
    assert get_current_base_fee_numerator(_linear_schedule(), 999, 1_000) == 50_000_000


def test_exponential_schedule() -> None:
    base_fee = BaseFeeConfig(
        cliff_fee_numerator=100_000_000,
        fee_scheduler_mode=FeeSchedulerMode.EXPONENTIAL,
        number_of_period=2,
        period_frequency=1,
        reduction_factor=1_000,
    )
    assert get_current_base_fee_numerator(base_fee, 0, 0) == 100_000_000
    assert get_current_base_fee_numerator(base_fee, 1, 0) == 90_000_000
    assert get_current_base_fee_numerator(base_fee, 2, 0) == 81_000_000
    assert get_current_base_fee_numerator(base_fee, 50, 0) == 81_000_000


def test_linear_schedule_underflow_is_overflow_error() -> None:
    base_fee = BaseFeeConfig(
        cliff_fee_numerator=1_000,
        number_of_period=2,
        period_frequency=1,
        reduction_factor=2_000,
    )
    with pytest.raises(MathOverflowError):
        get_current_base_fee_numerator(base_fee, 1, 0)


# ---------------------------------------------------------------------------
# Variable fee
# ---------------------------------------------------------------------------

def test_variable_fee_disabled_is_zero() -> None:
    assert get_variable_fee(DynamicFeeState()) == 0


def test_variable_fee_exact_and_ceil() -> None:
    assert get_variable_fee(_dynamic(volatility_accumulator=10_000)) == 100
    assert get_variable_fee(_dynamic(volatility_accumulator=10_001)) == 101
    assert get_variable_fee(_dynamic(volatility_accumulator=0)) == 0


def test_trade_fee_numerator_adds_variable_and_clamps() -> None:
    pool_fees = PoolFees(
        base_fee=BaseFeeConfig(cliff_fee_numerator=2_500_000),
        dynamic_fee=_dynamic(volatility_accumulator=10_000),
    )
    assert get_trade_fee_numerator(
        pool_fees, current_point=0, activation_point=0, max_fee_numerator=MAX_FEE_NUMERATOR_V0
    ) == 2_500_100

    high = PoolFees(base_fee=BaseFeeConfig(cliff_fee_numerator=600_000_000))
    assert get_trade_fee_numerator(
        high, current_point=0, activation_point=0, max_fee_numerator=MAX_FEE_NUMERATOR_V0
    ) == MAX_FEE_NUMERATOR_V0
    assert get_trade_fee_numerator(
        high, current_point=0, activation_point=0, max_fee_numerator=MAX_FEE_NUMERATOR_V1
    ) == 600_000_000


def test_total_fee_past_u64_is_type_cast_error_not_clamped() -> None:
    pool_fees = PoolFees(
        base_fee=BaseFeeConfig(cliff_fee_numerator=2_500_000),
        dynamic_fee=DynamicFeeState(
            initialized=True,
            variable_fee_control=1,
            bin_step=1,
            bin_step_u128=BIN_STEP_BPS_U128_DEFAULT,
            volatility_accumulator=1 << 60,
        ),
    )
    with pytest.raises(TypeCastError):
        get_total_trading_fee(pool_fees, 0, 0)
    with pytest.raises(TypeCastError):
        get_trade_fee_numerator(pool_fees, current_point=0, activation_point=0, max_fee_numerator=MAX_FEE_NUMERATOR_V0)


# ---------------------------------------------------------------------------
# Volatility references
# ---------------------------------------------------------------------------

def test_delta_bin_id_is_symmetric() -> None:
    upper = ONE_Q64 + 10 * BIN_STEP_BPS_U128_DEFAULT
    assert get_delta_bin_id(BIN_STEP_BPS_U128_DEFAULT, ONE_Q64, ONE_Q64) == 0
    assert get_delta_bin_id(BIN_STEP_BPS_U128_DEFAULT, upper, ONE_Q64) == 20
    assert get_delta_bin_id(BIN_STEP_BPS_U128_DEFAULT, ONE_Q64, upper) == 20


def test_update_pre_swap_uninitialized_is_identity() -> None:
    pool_fees = PoolFees(base_fee=BaseFeeConfig(cliff_fee_numerator=1))
    assert update_pre_swap(pool_fees, ONE_Q64, 10**9) is pool_fees


def test_update_pre_swap_within_filter_period_keeps_references() -> None:
    pool_fees = PoolFees(base_fee=BaseFeeConfig(cliff_fee_numerator=1), dynamic_fee=_dynamic())
    assert update_pre_swap(pool_fees, 2 * ONE_Q64, 1_009) is pool_fees


def test_update_pre_swap_decays_volatility_reference() -> None:
    pool_fees = PoolFees(base_fee=BaseFeeConfig(cliff_fee_numerator=1), dynamic_fee=_dynamic())
    updated = update_pre_swap(pool_fees, 2 * ONE_Q64, 1_010)
    assert updated.dynamic_fee.sqrt_price_reference == 2 * ONE_Q64
    assert updated.dynamic_fee.volatility_reference == 10_000
    # Input is untouched.
    assert pool_fees.dynamic_fee.sqrt_price_reference == ONE_Q64
    assert pool_fees.dynamic_fee.volatility_reference == 0


def test_update_pre_swap_resets_after_decay_period() -> None:
    pool_fees = PoolFees(base_fee=BaseFeeConfig(cliff_fee_numerator=1), dynamic_fee=_dynamic())
    updated = update_pre_swap(pool_fees, 2 * ONE_Q64, 1_120)
    assert updated.dynamic_fee.volatility_reference == 0
    assert updated.dynamic_fee.volatility_accumulator == 20_000


def test_update_pre_swap_rejects_time_going_backwards() -> None:
    pool_fees = PoolFees(base_fee=BaseFeeConfig(cliff_fee_numerator=1), dynamic_fee=_dynamic())
    with pytest.raises(MathOverflowError):
        update_pre_swap(pool_fees, ONE_Q64, 999)


def test_update_post_swap_accumulates_and_stamps() -> None:
    pool_fees = PoolFees(base_fee=BaseFeeConfig(cliff_fee_numerator=1), dynamic_fee=_dynamic())
    new_price = ONE_Q64 + 10 * BIN_STEP_BPS_U128_DEFAULT
    updated = update_post_swap(pool_fees, ONE_Q64, new_price, 2_000)
    assert updated.dynamic_fee.volatility_accumulator == 200_000
    assert updated.dynamic_fee.last_update_timestamp == 2_000


def test_update_post_swap_caps_accumulator() -> None:
    pool_fees = PoolFees(base_fee=BaseFeeConfig(cliff_fee_numerator=1), dynamic_fee=_dynamic())
    updated = update_post_swap(pool_fees, ONE_Q64, 2 * ONE_Q64, 2_000)
    assert updated.dynamic_fee.volatility_accumulator == 14_460_000


def test_update_post_swap_without_price_move_keeps_timestamp() -> None:
    pool_fees = PoolFees(base_fee=BaseFeeConfig(cliff_fee_numerator=1), dynamic_fee=_dynamic())
    updated = update_post_swap(pool_fees, ONE_Q64, ONE_Q64, 2_000)
    assert updated.dynamic_fee.volatility_accumulator == 0
    assert updated.dynamic_fee.last_update_timestamp == 1_000


# ---------------------------------------------------------------------------
# Split
# ---------------------------------------------------------------------------

def test_split_fees_protocol_and_lp_only() -> None:
    split = split_fees(_split_fees_config(), 2_500, has_referral=False, has_partner=False)
    assert (split.lp_fee, split.protocol_fee, split.partner_fee, split.referral_fee) == (2_000, 500, 0, 0)


def test_split_fees_referral() -> None:
    split = split_fees(_split_fees_config(), 2_500, has_referral=True, has_partner=False)
    assert (split.lp_fee, split.protocol_fee, split.partner_fee, split.referral_fee) == (2_000, 400, 0, 100)


def test_split_fees_partner() -> None:
    split = split_fees(_split_fees_config(), 2_500, has_referral=False, has_partner=True)
    assert (split.lp_fee, split.protocol_fee, split.partner_fee, split.referral_fee) == (2_000, 250, 250, 0)


def test_split_fees_referral_and_partner() -> None:
    split = split_fees(_split_fees_config(), 2_500, has_referral=True, has_partner=True)
    assert (split.lp_fee, split.protocol_fee, split.partner_fee, split.referral_fee) == (2_000, 200, 200, 100)
    assert split.total == 2_500


def test_split_fees_partner_without_percent_gets_nothing() -> None:
    pool_fees = replace(_split_fees_config(), partner_fee_percent=0)
    split = split_fees(pool_fees, 2_500, has_referral=False, has_partner=True)
    assert split.partner_fee == 0
    assert split.protocol_fee == 500


def test_split_fees_dust_goes_to_last_leg() -> None:
    split = split_fees(_split_fees_config(), 7, has_referral=True, has_partner=True)
    assert split.total == 7
    assert split.lp_fee == 6


# ---------------------------------------------------------------------------
# Charging
# ---------------------------------------------------------------------------

def test_fee_on_amount_rounds_up() -> None:
    result = get_fee_on_amount(
        _split_fees_config(),
        999_999,
        has_referral=False,
        has_partner=False,
        current_point=0,
        activation_point=0,
        max_fee_numerator=MAX_FEE_NUMERATOR_V0,
    )
    assert result.amount == 997_499
    assert result.lp_fee + result.protocol_fee == 2_500


def test_fee_on_amount_wraps_arithmetic_failures() -> None:
    pool_fees = PoolFees(
        base_fee=BaseFeeConfig(cliff_fee_numerator=1_000, number_of_period=2, period_frequency=1, reduction_factor=2_000)
    )
    with pytest.raises(FeeCalculationError) as excinfo:
        get_fee_on_amount(
            pool_fees,
            1_000,
            has_referral=False,
            has_partner=False,
            current_point=1,
            activation_point=0,
            max_fee_numerator=MAX_FEE_NUMERATOR_V0,
        )
    assert isinstance(excinfo.value.__cause__, MathOverflowError)


def test_included_fee_amount() -> None:
    assert get_included_fee_amount(2_500_000, 997_500) == (1_000_000, 2_500)
    assert get_included_fee_amount(0, 123) == (123, 0)


def test_included_fee_amount_rejects_full_fee() -> None:
    with pytest.raises(InvalidFeeError):
        get_included_fee_amount(1_000_000_000, 1)


# ---------------------------------------------------------------------------
# Parameter builders
# ---------------------------------------------------------------------------

def test_base_fee_params_flat() -> None:
    base_fee = get_base_fee_params(100, 100, FeeSchedulerMode.LINEAR, 0, 0)
    assert base_fee == BaseFeeConfig(cliff_fee_numerator=10_000_000)


def test_base_fee_params_flat_rejects_periods() -> None:
    with pytest.raises(InvalidFeeError):
        get_base_fee_params(100, 100, FeeSchedulerMode.LINEAR, 5, 0)


def test_base_fee_params_linear() -> None:
    base_fee = get_base_fee_params(5000, 100, FeeSchedulerMode.LINEAR, 10, 600)
    assert base_fee.cliff_fee_numerator == 500_000_000
    assert base_fee.reduction_factor == 49_000_000
    assert base_fee.period_frequency == 60
    assert get_min_base_fee_numerator(base_fee) == 10_000_000


def test_base_fee_params_exponential_reaches_minimum() -> None:
    base_fee = get_base_fee_params(5000, 100, FeeSchedulerMode.EXPONENTIAL, 10, 600)
    assert base_fee.reduction_factor > 0
    assert 9_900_000 <= get_min_base_fee_numerator(base_fee) <= 10_100_000


def test_base_fee_params_rejections() -> None:
    with pytest.raises(InvalidFeeError):
        get_base_fee_params(5001, 100, FeeSchedulerMode.LINEAR, 10, 600)
    with pytest.raises(InvalidFeeError):
        get_base_fee_params(100, 200, FeeSchedulerMode.LINEAR, 10, 600)
    with pytest.raises(InvalidFeeError):
        get_base_fee_params(100, 0, FeeSchedulerMode.LINEAR, 10, 600)
    with pytest.raises(InvalidFeeError):
        get_base_fee_params(100, 50, FeeSchedulerMode.LINEAR, 0, 600)


def test_base_fee_params_v1_allows_higher_cliff() -> None:
    base_fee = get_base_fee_params(9000, 100, FeeSchedulerMode.LINEAR, 10, 600, version=PoolVersion.V1)
    assert base_fee.cliff_fee_numerator == 900_000_000


def test_dynamic_fee_params_default() -> None:
    dynamic_fee = get_dynamic_fee_params(100)
    assert dynamic_fee.initialized is True
    assert dynamic_fee.max_volatility_accumulator == 14_460_000
    assert dynamic_fee.variable_fee_control == 956
    assert dynamic_fee.bin_step_u128 == BIN_STEP_BPS_U128_DEFAULT


def test_dynamic_fee_params_rejects_price_change() -> None:
    with pytest.raises(InvalidFeeError):
        get_dynamic_fee_params(100, max_price_change_bps=0)
    with pytest.raises(InvalidFeeError):
        get_dynamic_fee_params(100, max_price_change_bps=1501)


# ---------------------------------------------------------------------------
# Market-cap scheduler
# ---------------------------------------------------------------------------

INIT_SQRT_PRICE = 10_000 << 64


def _market_cap(**overrides) -> MarketCapSchedulerConfig:
    params = dict(
        cliff_fee_numerator=50_000_000,
        fee_scheduler_mode=FeeSchedulerMode.LINEAR,
        number_of_period=10,
        sqrt_price_step_bps=100,
        scheduler_expiration_duration=1_000,
        reduction_factor=4_000_000,
    )
    params.update(overrides)
    return MarketCapSchedulerConfig(**params)


def test_market_cap_fee_at_init_price_is_cliff() -> None:
    fee = get_market_cap_base_fee_numerator(_market_cap(), 100, 0, INIT_SQRT_PRICE, INIT_SQRT_PRICE)
    assert fee == 50_000_000
    below = get_market_cap_base_fee_numerator(_market_cap(), 100, 0, INIT_SQRT_PRICE, INIT_SQRT_PRICE // 2)
    assert below == 50_000_000


def test_market_cap_fee_steps_with_price_gain() -> None:
    # +3.5% on the sqrt price with 1% steps is period 3.
    sqrt_price = INIT_SQRT_PRICE + (350 << 64)
    assert get_market_cap_base_fee_numerator(_market_cap(), 100, 0, INIT_SQRT_PRICE, sqrt_price) == 38_000_000


def test_market_cap_fee_caps_at_last_period() -> None:
    sqrt_price = INIT_SQRT_PRICE * 2
    assert get_market_cap_base_fee_numerator(_market_cap(), 100, 0, INIT_SQRT_PRICE, sqrt_price) == 10_000_000


def test_market_cap_fee_outside_window_is_last_period() -> None:
    base_fee = _market_cap()
    assert get_market_cap_base_fee_numerator(base_fee, 1_001, 0, INIT_SQRT_PRICE, INIT_SQRT_PRICE) == 10_000_000
    assert get_market_cap_base_fee_numerator(base_fee, 5, 10, INIT_SQRT_PRICE, INIT_SQRT_PRICE) == 10_000_000
    assert get_market_cap_base_fee_numerator(base_fee, 1_000, 0, INIT_SQRT_PRICE, INIT_SQRT_PRICE) == 50_000_000


def test_market_cap_fee_exponential() -> None:
    base_fee = _market_cap(fee_scheduler_mode=FeeSchedulerMode.EXPONENTIAL, reduction_factor=1_000)
    sqrt_price = INIT_SQRT_PRICE + (350 << 64)
    fee = get_market_cap_base_fee_numerator(base_fee, 100, 0, INIT_SQRT_PRICE, sqrt_price)
    assert fee == get_fee_in_period(50_000_000, 1_000, 3)
    assert fee < 50_000_000


def test_market_cap_requires_init_sqrt_price_on_pool_fees() -> None:
    with pytest.raises(ValueError):
        PoolFees(base_fee=_market_cap())
    with pytest.raises(ValueError):
        _market_cap(sqrt_price_step_bps=0)


# ---------------------------------------------------------------------------
# Rate limiter
# ---------------------------------------------------------------------------

def _rate_limiter(**overrides) -> RateLimiterConfig:
    params = dict(
        cliff_fee_numerator=10_000_000,
        fee_increment_bps=10,
        max_fee_bps=5_000,
        max_limiter_duration=100,
        reference_amount=1_000_000,
    )
    params.update(overrides)
    return RateLimiterConfig(**params)


def test_rate_limiter_max_index() -> None:
    assert get_rate_limiter_max_index(_rate_limiter()) == 490
    with pytest.raises(InvalidFeeError):
        get_rate_limiter_max_index(_rate_limiter(cliff_fee_numerator=600_000_000))
    with pytest.raises(InvalidFeeError):
        get_rate_limiter_max_index(_rate_limiter(fee_increment_bps=0))


def test_rate_limiter_fee_from_included_amount() -> None:
    config = _rate_limiter()
    assert get_rate_limiter_fee_numerator_from_included_fee_amount(config, 1) == 10_000_000
    assert get_rate_limiter_fee_numerator_from_included_fee_amount(config, 1_000_000) == 10_000_000
    # 1.0 slice at the cliff, 1.0 at +1 increment, 0.5 at +2 increments.
    assert get_rate_limiter_fee_numerator_from_included_fee_amount(config, 2_500_000) == 10_800_000


def test_rate_limiter_fee_past_max_index_approaches_max_fee() -> None:
    fee = get_rate_limiter_fee_numerator_from_included_fee_amount(_rate_limiter(), 493_000_000)
    assert 10_000_000 < fee < 500_000_000
    assert get_max_base_fee_numerator(_rate_limiter()) > fee


def test_rate_limiter_fee_from_excluded_amount_below_reference() -> None:
    config = _rate_limiter()
    assert get_rate_limiter_fee_numerator_from_excluded_fee_amount(config, 1) == 10_000_000
    assert get_rate_limiter_fee_numerator_from_excluded_fee_amount(config, 990_000) == 10_000_000


def test_rate_limiter_fee_from_excluded_amount_solves_slices() -> None:
    fee = get_rate_limiter_fee_numerator_from_excluded_fee_amount(_rate_limiter(), 2_473_000)
    assert 10_800_000 <= fee <= 10_802_000


def test_rate_limiter_fee_from_excluded_amount_at_and_past_max_index() -> None:
    config = _rate_limiter(reference_amount=1_000)
    assert get_rate_limiter_fee_numerator_from_included_fee_amount(config, 491_000) == 255_000_000
    assert get_rate_limiter_fee_numerator_from_excluded_fee_amount(config, 365_795) == 255_000_000

    # 491_000 grossed-up input plus the 9_634_205 excess at the 50% max fee.
    included = 491_000 + 19_268_410
    expected = -(-(included - 10_000_000) * FEE_DENOMINATOR // included)
    assert get_rate_limiter_fee_numerator_from_excluded_fee_amount(config, 10_000_000) == expected


def test_rate_limiter_fee_from_excluded_amount_past_u64_input_fails() -> None:
    config = _rate_limiter(reference_amount=1 << 60)
    with pytest.raises(MathOverflowError):
        get_rate_limiter_fee_numerator_from_excluded_fee_amount(config, U64_MAX)


def test_rate_limiter_only_applies_to_b_to_a_inside_window() -> None:
    pool_fees = PoolFees(base_fee=_rate_limiter())
    kwargs = dict(amount=2_500_000, trade_direction=TradeDirection.B_TO_A)
    assert get_total_trading_fee(pool_fees, 150, 100, **kwargs) == 10_800_000
    assert get_total_trading_fee(pool_fees, 200, 100, **kwargs) == 10_800_000
    assert get_total_trading_fee(pool_fees, 201, 100, **kwargs) == 10_000_000
    assert get_total_trading_fee(pool_fees, 99, 100, **kwargs) == 10_000_000
    assert get_total_trading_fee(
        pool_fees, 150, 100, amount=2_500_000, trade_direction=TradeDirection.A_TO_B
    ) == 10_000_000


def test_rate_limiter_zero_config_is_flat() -> None:
    config = RateLimiterConfig(cliff_fee_numerator=10_000_000)
    assert config.is_zero
    pool_fees = PoolFees(base_fee=config)
    assert get_total_trading_fee(
        pool_fees, 0, 0, amount=10**12, trade_direction=TradeDirection.B_TO_A
    ) == 10_000_000
    assert get_max_base_fee_numerator(config) == 10_000_000


def test_rate_limiter_config_rejects_missing_reference_amount() -> None:
    with pytest.raises(ValueError):
        RateLimiterConfig(cliff_fee_numerator=10_000_000, fee_increment_bps=10, max_fee_bps=5_000)


def test_validate_base_fee_rate_limiter_needs_only_b() -> None:
    validate_base_fee(_rate_limiter(), CollectFeeMode.ONLY_B)
    with pytest.raises(InvalidFeeError):
        validate_base_fee(_rate_limiter(), CollectFeeMode.BOTH_TOKEN)
    with pytest.raises(InvalidFeeError):
        validate_base_fee(_rate_limiter(cliff_fee_numerator=1_000), CollectFeeMode.ONLY_B)
    validate_base_fee(RateLimiterConfig(cliff_fee_numerator=1_000), CollectFeeMode.BOTH_TOKEN)
    validate_base_fee(_linear_schedule(), CollectFeeMode.BOTH_TOKEN)


# ---------------------------------------------------------------------------
# Base fee handler lookup
# ---------------------------------------------------------------------------

def test_base_fee_mode_per_record() -> None:
    assert _linear_schedule().base_fee_mode is BaseFeeMode.FEE_TIME_SCHEDULER_LINEAR
    exponential = replace(_linear_schedule(), fee_scheduler_mode=FeeSchedulerMode.EXPONENTIAL, reduction_factor=100)
    assert exponential.base_fee_mode is BaseFeeMode.FEE_TIME_SCHEDULER_EXPONENTIAL
    assert _rate_limiter().base_fee_mode is BaseFeeMode.RATE_LIMITER
    assert _market_cap().base_fee_mode is BaseFeeMode.FEE_MARKET_CAP_SCHEDULER_LINEAR
    assert (
        _market_cap(fee_scheduler_mode=FeeSchedulerMode.EXPONENTIAL, reduction_factor=100).base_fee_mode
        is BaseFeeMode.FEE_MARKET_CAP_SCHEDULER_EXPONENTIAL
    )


def test_base_fee_mode_from_byte() -> None:
    assert BaseFeeMode.from_byte(2) is BaseFeeMode.RATE_LIMITER
    with pytest.raises(ValueError):
        BaseFeeMode.from_byte(5)


def test_base_fee_handler_lookup_by_mode() -> None:
    time_handler = get_base_fee_handler(_linear_schedule())
    rate_handler = get_base_fee_handler(_rate_limiter())
    market_cap_handler = get_base_fee_handler(_market_cap())
    assert len({id(time_handler), id(rate_handler), id(market_cap_handler)}) == 3

    context = BaseFeeContext(
        current_point=150,
        activation_point=100,
        trade_direction=TradeDirection.B_TO_A,
        init_sqrt_price=INIT_SQRT_PRICE,
        sqrt_price=INIT_SQRT_PRICE + (350 << 64),
    )
    assert time_handler.from_included_fee_amount(_linear_schedule(), context, 0) == 100_000_000
    assert rate_handler.from_included_fee_amount(_rate_limiter(), context, 2_500_000) == 10_800_000
    assert rate_handler.from_excluded_fee_amount(_rate_limiter(), context, 990_000) == 10_000_000
    assert market_cap_handler.from_included_fee_amount(_market_cap(), context, 0) == 38_000_000


def test_base_fee_handler_min_and_max() -> None:
    assert get_min_base_fee_numerator(_linear_schedule()) == 50_000_000
    assert get_max_base_fee_numerator(_linear_schedule()) == 100_000_000
    assert get_min_base_fee_numerator(_market_cap()) == 10_000_000
    assert get_max_base_fee_numerator(_market_cap()) == 50_000_000
    assert get_min_base_fee_numerator(_rate_limiter()) == 10_000_000


def test_fee_on_amount_prices_rate_limiter_on_gross_input() -> None:
    pool_fees = PoolFees(base_fee=_rate_limiter())
    result = get_fee_on_amount(
        pool_fees,
        2_500_000,
        has_referral=False,
        has_partner=False,
        current_point=150,
        activation_point=100,
        max_fee_numerator=MAX_FEE_NUMERATOR_V0,
        trade_direction=TradeDirection.B_TO_A,
    )
    assert result.amount == 2_500_000 - 27_000
