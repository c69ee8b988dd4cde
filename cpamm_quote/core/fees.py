"""
Trading fee engine (deterministic, integer-only).

Fee numerators are expressed over FEE_DENOMINATOR (1e9 = 100%). The total fee is
    base (time schedule, market-cap schedule or rate limiter) + variable (volatility)
must fit u64, is clamped to the pool version's maximum, charged with ceil
rounding, then split:

    fee ──► protocol share (floor of protocol_fee_percent)
     │          ├─► referral  (floor of referral_fee_percent, referral swaps only)
     │          ├─► partner   (floor of partner_fee_percent, pools with a partner)
     │          └─► protocol  (remainder)
     └────► lp fee (remainder)

Every split leg rounds down and the remainder lands on the last recipient, so
the legs always sum back to the charged fee.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from decimal import Context, Decimal
from typing import Any, Callable, Dict, Optional, Tuple, Union

from ..errors import FeeCalculationError, InvalidFeeError, MathOverflowError, QuoteError
from ..kernels.python.wide_math import (
    ONE_Q64,
    SCALE_OFFSET,
    U16_MAX,
    U32_MAX,
    U64_MAX,
    U128_MAX,
    Rounding,
    checked_sub,
    div_ceil,
    mul_div,
    mul_div_u64,
    narrow,
    pow_q64,
    require_uint,
    shl_div,
)
from ..state.fees import (
    BaseFee,
    BaseFeeConfig,
    BaseFeeMode,
    DynamicFeeState,
    FeeSchedulerMode,
    MarketCapSchedulerConfig,
    PoolFees,
    RateLimiterConfig,
)
from ..state.pool import CollectFeeMode, PoolVersion, TradeDirection


FEE_DENOMINATOR = 1_000_000_000
BASIS_POINT_MAX = 10_000

MAX_FEE_NUMERATOR_V0 = 500_000_000
MAX_FEE_NUMERATOR_V1 = 990_000_000
MIN_FEE_NUMERATOR = 100_000

DYNAMIC_FEE_SCALING_FACTOR = 100_000_000_000
DYNAMIC_FEE_ROUNDING_OFFSET = 99_999_999_999

# Defaults used when deriving dynamic fee parameters from a base fee.
BIN_STEP_BPS_DEFAULT = 1
BIN_STEP_BPS_U128_DEFAULT = 1844674407370955
DYNAMIC_FEE_FILTER_PERIOD_DEFAULT = 10
DYNAMIC_FEE_DECAY_PERIOD_DEFAULT = 120
DYNAMIC_FEE_REDUCTION_FACTOR_DEFAULT = 5000
MAX_PRICE_CHANGE_BPS_DEFAULT = 1500
MAX_DYNAMIC_FEE_PERCENT_OF_BASE = 20

_MAX_FEE_NUMERATOR = {
    PoolVersion.V0: MAX_FEE_NUMERATOR_V0,
    PoolVersion.V1: MAX_FEE_NUMERATOR_V1,
}


@dataclass(frozen=True)
class SplitFees:
    lp_fee: int
    protocol_fee: int
    partner_fee: int
    referral_fee: int

    @property
    def total(self) -> int:
        return self.lp_fee + self.protocol_fee + self.partner_fee + self.referral_fee


@dataclass(frozen=True)
class FeeOnAmountResult:
    """Post-fee remainder of an amount plus the four fee legs taken from it."""

    amount: int
    lp_fee: int
    protocol_fee: int
    partner_fee: int
    referral_fee: int


# ---------------------------------------------------------------------------
# Conversions
# ---------------------------------------------------------------------------

def bps_to_fee_numerator(bps: int) -> int:
    require_uint("bps", bps)
    return (bps * FEE_DENOMINATOR) // BASIS_POINT_MAX


def fee_numerator_to_bps(fee_numerator: int) -> int:
    require_uint("fee_numerator", fee_numerator)
    return (fee_numerator * BASIS_POINT_MAX) // FEE_DENOMINATOR


def get_max_fee_numerator(version: PoolVersion) -> int:
    try:
        return _MAX_FEE_NUMERATOR[version]
    except KeyError:
        raise InvalidFeeError(f"invalid pool version: {version}") from None


# ---------------------------------------------------------------------------
# Base fee: time scheduler
# ---------------------------------------------------------------------------

def get_fee_in_period(cliff_fee_numerator: int, reduction_factor: int, period: int) -> int:
    """cliff * (1 - reduction_factor / 10_000) ** period, in Q64.64."""
    if reduction_factor == 0:
        return cliff_fee_numerator

    bps = (reduction_factor << SCALE_OFFSET) // BASIS_POINT_MAX
    base = checked_sub(ONE_Q64, bps)
    result = pow_q64(base, period)
    if result > U128_MAX:
        raise MathOverflowError("fee decay factor exceeds u128")

    fee = (result * cliff_fee_numerator) >> SCALE_OFFSET
    return narrow(fee, 64)


def _fee_numerator_by_period(base_fee: Union[BaseFeeConfig, MarketCapSchedulerConfig], period: int) -> int:
    period = min(period, base_fee.number_of_period)
    mode = base_fee.fee_scheduler_mode
    if mode is FeeSchedulerMode.LINEAR:
        return checked_sub(base_fee.cliff_fee_numerator, base_fee.reduction_factor * period)
    if mode is FeeSchedulerMode.EXPONENTIAL:
        if period > U16_MAX:
            raise MathOverflowError("period exceeds u16")
        return get_fee_in_period(base_fee.cliff_fee_numerator, base_fee.reduction_factor, period)
    raise InvalidFeeError(f"invalid fee scheduler mode: {mode}")


def get_current_base_fee_numerator(base_fee: BaseFeeConfig, current_point: int, activation_point: int) -> int:
    """
    Base fee numerator at `current_point`.

    Before activation only whitelisted (alpha-vault) trades are possible and they
    pay the minimum scheduled fee, so the period is pinned to the last one.
    """
    if base_fee.period_frequency == 0:
        return base_fee.cliff_fee_numerator

    if current_point < activation_point:
        period = base_fee.number_of_period
    else:
        period = (current_point - activation_point) // base_fee.period_frequency
    return _fee_numerator_by_period(base_fee, period)


# ---------------------------------------------------------------------------
# Base fee: market-cap scheduler
# ---------------------------------------------------------------------------

def get_market_cap_base_fee_numerator(
    base_fee: MarketCapSchedulerConfig,
    current_point: int,
    activation_point: int,
    init_sqrt_price: int,
    sqrt_price: int,
) -> int:
    """
    One period passes per `sqrt_price_step_bps` the sqrt price has gained over
    `init_sqrt_price`. Outside [activation, activation + expiration] the
    schedule is over and the fee is the last period's.
    """
    expiration_point = activation_point + base_fee.scheduler_expiration_duration
    if current_point > expiration_point or current_point < activation_point:
        period = base_fee.number_of_period
    elif sqrt_price <= init_sqrt_price or base_fee.number_of_period == 0:
        period = 0
    else:
        if init_sqrt_price == 0:
            raise InvalidFeeError("market-cap scheduler needs a positive init_sqrt_price")
        gain_bps = (sqrt_price - init_sqrt_price) * BASIS_POINT_MAX // init_sqrt_price
        period = gain_bps // base_fee.sqrt_price_step_bps
    return _fee_numerator_by_period(base_fee, period)


# ---------------------------------------------------------------------------
# Base fee: rate limiter
# ---------------------------------------------------------------------------
#
# With reference amount x0, cliff fee c and fee increment i, an input of
# x0 + (a * x0 + b) pays c on the first x0, c + i on the next x0, and so on:
#
#     a < max_index:   fee = x0 * (c + c*a + i*a*(a+1)/2) + b * (c + i*(a+1))
#     a >= max_index:  fee = x0 * (c + c*m + i*m*(m+1)/2) + ((a - m)*x0 + b) * max_fee
#
# where m = max_index = (max_fee - c) // i.

def is_rate_limiter_applied(
    config: RateLimiterConfig,
    current_point: int,
    activation_point: int,
    trade_direction: TradeDirection,
) -> bool:
    """Only B→A trades inside [activation, activation + max_limiter_duration] are rate limited."""
    if config.is_zero or trade_direction is TradeDirection.A_TO_B:
        return False
    if current_point < activation_point:
        return False
    return current_point <= activation_point + config.max_limiter_duration


def get_rate_limiter_max_index(config: RateLimiterConfig) -> int:
    max_fee_numerator = bps_to_fee_numerator(config.max_fee_bps)
    if config.cliff_fee_numerator > max_fee_numerator:
        raise InvalidFeeError(
            f"cliff fee {config.cliff_fee_numerator} exceeds rate limiter max fee {max_fee_numerator}"
        )
    fee_increment_numerator = bps_to_fee_numerator(config.fee_increment_bps)
    if fee_increment_numerator == 0:
        raise InvalidFeeError("rate limiter fee increment is zero")
    return (max_fee_numerator - config.cliff_fee_numerator) // fee_increment_numerator


def get_rate_limiter_fee_numerator_from_included_fee_amount(config: RateLimiterConfig, input_amount: int) -> int:
    """Effective fee numerator for a gross input of `input_amount`."""
    x0 = config.reference_amount
    c = config.cliff_fee_numerator
    if input_amount <= x0:
        return c

    max_index = get_rate_limiter_max_index(config)
    i = bps_to_fee_numerator(config.fee_increment_bps)
    a, b = divmod(input_amount - x0, x0)
    if a < max_index:
        first_fee = x0 * (c + c * a + i * a * (a + 1) // 2)
        second_fee = b * (c + i * (a + 1))
    else:
        first_fee = x0 * (c + c * max_index + i * max_index * (max_index + 1) // 2)
        second_fee = ((a - max_index) * x0 + b) * bps_to_fee_numerator(config.max_fee_bps)

    trading_fee = div_ceil(first_fee + second_fee, FEE_DENOMINATOR)
    return narrow(mul_div(trading_fee, FEE_DENOMINATOR, input_amount, Rounding.UP), 64)


def _rate_limiter_excluded_fee_amount(config: RateLimiterConfig, included_fee_amount: int) -> int:
    fee_numerator = get_rate_limiter_fee_numerator_from_included_fee_amount(config, included_fee_amount)
    return included_fee_amount - mul_div_u64(included_fee_amount, fee_numerator, FEE_DENOMINATOR, Rounding.UP)


def _rate_limiter_checked_amounts(config: RateLimiterConfig) -> Tuple[int, int, bool]:
    """(excluded, included, clipped) at the input where the fee reaches its maximum, clipped to u64."""
    max_index_input_amount = (get_rate_limiter_max_index(config) + 1) * config.reference_amount
    if max_index_input_amount <= U64_MAX:
        return _rate_limiter_excluded_fee_amount(config, max_index_input_amount), max_index_input_amount, False
    return _rate_limiter_excluded_fee_amount(config, U64_MAX), U64_MAX, True


def get_rate_limiter_fee_numerator_from_excluded_fee_amount(config: RateLimiterConfig, excluded_fee_amount: int) -> int:
    """
    Fee numerator for a trade whose post-fee amount is `excluded_fee_amount`.

    Below the max-fee input the gross amount solves the quadratic
        i*n^2 - (2*d*x0 + i*x0 - 2*c*x0)*n + 2*ex*d*x0 = 0      (d = FEE_DENOMINATOR)
    for its whole slices; the remainder is grossed up at its slice's rate.
    Past it, the excess is grossed up at the max fee.
    """
    x0 = config.reference_amount
    c = config.cliff_fee_numerator
    if excluded_fee_amount <= _rate_limiter_excluded_fee_amount(config, x0):
        return c

    checked_excluded, checked_included, clipped = _rate_limiter_checked_amounts(config)
    if excluded_fee_amount == checked_excluded:
        return get_rate_limiter_fee_numerator_from_included_fee_amount(config, checked_included)

    if excluded_fee_amount < checked_excluded:
        i = bps_to_fee_numerator(config.fee_increment_bps)
        y = 2 * FEE_DENOMINATOR * x0 + i * x0 - 2 * c * x0
        z = 2 * excluded_fee_amount * FEE_DENOMINATOR * x0
        discriminant = y * y - 4 * i * z
        if discriminant < 0:
            raise MathOverflowError("rate limiter quadratic has no real root")
        included_fee_amount = (y - math.isqrt(discriminant)) // (2 * i)
        a_plus_one = included_fee_amount // x0

        remaining = excluded_fee_amount - _rate_limiter_excluded_fee_amount(config, included_fee_amount)
        remaining_included, _ = get_included_fee_amount(c + i * a_plus_one, remaining)
        included_fee_amount += remaining_included
    else:
        if clipped:
            raise MathOverflowError("excluded amount is past the largest rate-limited input")
        remaining_included, _ = get_included_fee_amount(
            bps_to_fee_numerator(config.max_fee_bps), excluded_fee_amount - checked_excluded
        )
        included_fee_amount = checked_included + remaining_included

    fee_numerator = mul_div(
        included_fee_amount - excluded_fee_amount, FEE_DENOMINATOR, included_fee_amount, Rounding.UP
    )
    if fee_numerator < c:
        raise FeeCalculationError(f"rate limiter fee numerator {fee_numerator} below cliff fee {c}")
    return fee_numerator


def get_rate_limiter_max_fee_numerator(config: RateLimiterConfig) -> int:
    if config.is_zero:
        return config.cliff_fee_numerator
    return get_rate_limiter_fee_numerator_from_included_fee_amount(config, U64_MAX)


def validate_base_fee(base_fee: BaseFee, collect_fee_mode: CollectFeeMode) -> None:
    """Reject base fee settings the program would never have accepted for this pool."""
    if not isinstance(base_fee, RateLimiterConfig) or base_fee.is_zero:
        return
    if collect_fee_mode is not CollectFeeMode.ONLY_B:
        raise InvalidFeeError("rate limiter requires fees collected in token B only")
    if base_fee.cliff_fee_numerator < MIN_FEE_NUMERATOR:
        raise InvalidFeeError(f"cliff fee below the minimum fee: {base_fee.cliff_fee_numerator}")
    get_rate_limiter_max_index(base_fee)


# ---------------------------------------------------------------------------
# Base fee dispatch
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BaseFeeContext:
    """Pool and trade facts a base fee may depend on, besides the amount."""

    current_point: int
    activation_point: int
    trade_direction: TradeDirection = TradeDirection.A_TO_B
    init_sqrt_price: int = 0
    sqrt_price: int = 0


_FeeNumeratorFn = Callable[[Any, BaseFeeContext, int], int]


@dataclass(frozen=True)
class BaseFeeHandler:
    from_included_fee_amount: _FeeNumeratorFn
    from_excluded_fee_amount: _FeeNumeratorFn
    min_fee_numerator: Callable[[Any], int]
    max_fee_numerator: Callable[[Any], int]


def _time_scheduler_fee(base_fee: BaseFeeConfig, context: BaseFeeContext, amount: int) -> int:
    return get_current_base_fee_numerator(base_fee, context.current_point, context.activation_point)


def _market_cap_fee(base_fee: MarketCapSchedulerConfig, context: BaseFeeContext, amount: int) -> int:
    return get_market_cap_base_fee_numerator(
        base_fee, context.current_point, context.activation_point, context.init_sqrt_price, context.sqrt_price
    )


def _rate_limiter_fee_from_included(base_fee: RateLimiterConfig, context: BaseFeeContext, amount: int) -> int:
    if not is_rate_limiter_applied(base_fee, context.current_point, context.activation_point, context.trade_direction):
        return base_fee.cliff_fee_numerator
    return get_rate_limiter_fee_numerator_from_included_fee_amount(base_fee, amount)


def _rate_limiter_fee_from_excluded(base_fee: RateLimiterConfig, context: BaseFeeContext, amount: int) -> int:
    if not is_rate_limiter_applied(base_fee, context.current_point, context.activation_point, context.trade_direction):
        return base_fee.cliff_fee_numerator
    return get_rate_limiter_fee_numerator_from_excluded_fee_amount(base_fee, amount)


def _last_period_fee(base_fee: Union[BaseFeeConfig, MarketCapSchedulerConfig]) -> int:
    return _fee_numerator_by_period(base_fee, base_fee.number_of_period)


def _cliff_fee(base_fee: BaseFee) -> int:
    return base_fee.cliff_fee_numerator


_TIME_SCHEDULER = BaseFeeHandler(_time_scheduler_fee, _time_scheduler_fee, _last_period_fee, _cliff_fee)
_MARKET_CAP_SCHEDULER = BaseFeeHandler(_market_cap_fee, _market_cap_fee, _last_period_fee, _cliff_fee)
_RATE_LIMITER = BaseFeeHandler(
    _rate_limiter_fee_from_included, _rate_limiter_fee_from_excluded, _cliff_fee, get_rate_limiter_max_fee_numerator
)

_BASE_FEE_HANDLERS: Dict[BaseFeeMode, BaseFeeHandler] = {
    BaseFeeMode.FEE_TIME_SCHEDULER_LINEAR: _TIME_SCHEDULER,
    BaseFeeMode.FEE_TIME_SCHEDULER_EXPONENTIAL: _TIME_SCHEDULER,
    BaseFeeMode.RATE_LIMITER: _RATE_LIMITER,
    BaseFeeMode.FEE_MARKET_CAP_SCHEDULER_LINEAR: _MARKET_CAP_SCHEDULER,
    BaseFeeMode.FEE_MARKET_CAP_SCHEDULER_EXPONENTIAL: _MARKET_CAP_SCHEDULER,
}


def get_base_fee_handler(base_fee: BaseFee) -> BaseFeeHandler:
    handler = _BASE_FEE_HANDLERS.get(base_fee.base_fee_mode)
    if handler is None:
        raise InvalidFeeError(f"unsupported base fee mode: {base_fee.base_fee_mode!r}")
    return handler


def get_min_base_fee_numerator(base_fee: BaseFee) -> int:
    return get_base_fee_handler(base_fee).min_fee_numerator(base_fee)


def get_max_base_fee_numerator(base_fee: BaseFee) -> int:
    return get_base_fee_handler(base_fee).max_fee_numerator(base_fee)


# ---------------------------------------------------------------------------
# Dynamic (variable) fee
# ---------------------------------------------------------------------------

def get_variable_fee(dynamic_fee: DynamicFeeState) -> int:
    """ceil((volatility_accumulator * bin_step)^2 * variable_fee_control / 1e11)."""
    if not dynamic_fee.initialized:
        return 0
    square_vfa_bin = (dynamic_fee.volatility_accumulator * dynamic_fee.bin_step) ** 2
    if square_vfa_bin > U128_MAX:
        raise MathOverflowError("squared volatility exceeds u128")
    v_fee = square_vfa_bin * dynamic_fee.variable_fee_control
    if v_fee > U128_MAX:
        raise MathOverflowError("variable fee exceeds u128")
    return (v_fee + DYNAMIC_FEE_ROUNDING_OFFSET) // DYNAMIC_FEE_SCALING_FACTOR


def get_total_trading_fee(
    pool_fees: PoolFees,
    current_point: int,
    activation_point: int,
    *,
    trade_direction: TradeDirection = TradeDirection.A_TO_B,
    amount: int = 0,
    amount_includes_fee: bool = True,
    sqrt_price: int = 0,
) -> int:
    """
    Base plus variable fee numerator, unclamped.

    `amount` is the trade amount the base fee is priced on: the gross input when
    `amount_includes_fee`, otherwise the post-fee amount. Only the rate limiter
    reads it. A total that does not fit u64 is a TypeCastError.
    """
    context = BaseFeeContext(
        current_point=current_point,
        activation_point=activation_point,
        trade_direction=trade_direction,
        init_sqrt_price=pool_fees.init_sqrt_price,
        sqrt_price=sqrt_price,
    )
    handler = get_base_fee_handler(pool_fees.base_fee)
    if amount_includes_fee:
        base_fee_numerator = handler.from_included_fee_amount(pool_fees.base_fee, context, amount)
    else:
        base_fee_numerator = handler.from_excluded_fee_amount(pool_fees.base_fee, context, amount)
    return narrow(get_variable_fee(pool_fees.dynamic_fee) + base_fee_numerator, 64)


def get_trade_fee_numerator(
    pool_fees: PoolFees,
    *,
    current_point: int,
    activation_point: int,
    max_fee_numerator: int,
    trade_direction: TradeDirection = TradeDirection.A_TO_B,
    amount: int = 0,
    amount_includes_fee: bool = True,
    sqrt_price: int = 0,
) -> int:
    """Total fee numerator clamped at `max_fee_numerator`."""
    total = get_total_trading_fee(
        pool_fees,
        current_point,
        activation_point,
        trade_direction=trade_direction,
        amount=amount,
        amount_includes_fee=amount_includes_fee,
        sqrt_price=sqrt_price,
    )
    return min(total, max_fee_numerator)


def get_delta_bin_id(bin_step_u128: int, sqrt_price_a: int, sqrt_price_b: int) -> int:
    """Number of bins (times two) between two sqrt prices."""
    if sqrt_price_a > sqrt_price_b:
        upper_sqrt_price, lower_sqrt_price = sqrt_price_a, sqrt_price_b
    else:
        upper_sqrt_price, lower_sqrt_price = sqrt_price_b, sqrt_price_a
    if bin_step_u128 == 0:
        raise MathOverflowError("bin step is zero")

    price_ratio = shl_div(upper_sqrt_price, lower_sqrt_price, SCALE_OFFSET, Rounding.DOWN)
    delta_bin_id = checked_sub(price_ratio, ONE_Q64) // bin_step_u128
    return delta_bin_id * 2


def update_pre_swap(pool_fees: PoolFees, sqrt_price: int, current_timestamp: int) -> PoolFees:
    """
    Advance the volatility references before a swap is priced.

    Trades closer together than `filter_period` share one reference. Past that,
    the price reference moves to `sqrt_price` and the volatility reference keeps
    a `reduction_factor` share of the accumulator, or resets to zero once
    `decay_period` has elapsed.
    """
    dynamic_fee = pool_fees.dynamic_fee
    if not dynamic_fee.initialized:
        return pool_fees

    require_uint("current_timestamp", current_timestamp)
    elapsed = checked_sub(current_timestamp, dynamic_fee.last_update_timestamp)
    if elapsed < dynamic_fee.filter_period:
        return pool_fees

    if elapsed < dynamic_fee.decay_period:
        volatility_reference = (
            dynamic_fee.volatility_accumulator * dynamic_fee.reduction_factor
        ) // BASIS_POINT_MAX
    else:
        volatility_reference = 0

    return replace(
        pool_fees,
        dynamic_fee=replace(
            dynamic_fee,
            sqrt_price_reference=sqrt_price,
            volatility_reference=volatility_reference,
        ),
    )


def update_post_swap(
    pool_fees: PoolFees,
    old_sqrt_price: int,
    new_sqrt_price: int,
    current_timestamp: int,
) -> PoolFees:
    """
    Fold a completed swap's price move into the volatility accumulator.

    Callers that chain several quotes through one pool use this to carry the
    fee state forward; a single quote never needs it.
    """
    dynamic_fee = pool_fees.dynamic_fee
    if not dynamic_fee.initialized:
        return pool_fees

    delta_reference = get_delta_bin_id(dynamic_fee.bin_step_u128, new_sqrt_price, dynamic_fee.sqrt_price_reference)
    volatility_accumulator = min(
        dynamic_fee.volatility_reference + delta_reference * BASIS_POINT_MAX,
        dynamic_fee.max_volatility_accumulator,
    )

    last_update_timestamp = dynamic_fee.last_update_timestamp
    if get_delta_bin_id(dynamic_fee.bin_step_u128, old_sqrt_price, new_sqrt_price) > 0:
        last_update_timestamp = current_timestamp

    return replace(
        pool_fees,
        dynamic_fee=replace(
            dynamic_fee,
            volatility_accumulator=volatility_accumulator,
            last_update_timestamp=last_update_timestamp,
        ),
    )


# ---------------------------------------------------------------------------
# Charging and splitting
# ---------------------------------------------------------------------------

def split_fees(pool_fees: PoolFees, fee_amount: int, *, has_referral: bool, has_partner: bool) -> SplitFees:
    require_uint("fee_amount", fee_amount)

    protocol_fee = mul_div_u64(fee_amount, pool_fees.protocol_fee_percent, 100, Rounding.DOWN)
    lp_fee = checked_sub(fee_amount, protocol_fee)

    referral_fee = 0
    if has_referral:
        referral_fee = mul_div_u64(protocol_fee, pool_fees.referral_fee_percent, 100, Rounding.DOWN)
    protocol_fee_after_referral = checked_sub(protocol_fee, referral_fee)

    partner_fee = 0
    if has_partner and pool_fees.partner_fee_percent > 0:
        partner_fee = mul_div_u64(protocol_fee_after_referral, pool_fees.partner_fee_percent, 100, Rounding.DOWN)

    return SplitFees(
        lp_fee=lp_fee,
        protocol_fee=checked_sub(protocol_fee_after_referral, partner_fee),
        partner_fee=partner_fee,
        referral_fee=referral_fee,
    )


def get_fee_on_amount(
    pool_fees: PoolFees,
    amount: int,
    *,
    has_referral: bool,
    has_partner: bool,
    current_point: int,
    activation_point: int,
    max_fee_numerator: int,
    trade_direction: TradeDirection = TradeDirection.A_TO_B,
    amount_in: Optional[int] = None,
    sqrt_price: int = 0,
) -> FeeOnAmountResult:
    """
    Charge the trading fee on `amount` (ceil rounding) and split it.

    The fee numerator is priced on the trade's gross input `amount_in`, which
    defaults to `amount` (the fee-on-input case).

    Raises FeeCalculationError on any arithmetic failure or if the fee would
    exceed `amount`.
    """
    require_uint("amount", amount)
    try:
        trade_fee_numerator = get_trade_fee_numerator(
            pool_fees,
            current_point=current_point,
            activation_point=activation_point,
            max_fee_numerator=max_fee_numerator,
            trade_direction=trade_direction,
            amount=amount if amount_in is None else amount_in,
            sqrt_price=sqrt_price,
        )
        trading_fee = mul_div_u64(amount, trade_fee_numerator, FEE_DENOMINATOR, Rounding.UP)
        if trading_fee > amount:
            raise FeeCalculationError(f"fee {trading_fee} exceeds amount {amount}")
        split = split_fees(pool_fees, trading_fee, has_referral=has_referral, has_partner=has_partner)
    except FeeCalculationError:
        raise
    except QuoteError as exc:
        raise FeeCalculationError(f"fee calculation failed: {exc}") from exc

    return FeeOnAmountResult(
        amount=amount - trading_fee,
        lp_fee=split.lp_fee,
        protocol_fee=split.protocol_fee,
        partner_fee=split.partner_fee,
        referral_fee=split.referral_fee,
    )


def get_included_fee_amount(trade_fee_numerator: int, excluded_fee_amount: int) -> Tuple[int, int]:
    """
    Gross amount whose post-fee remainder is at least `excluded_fee_amount`.

    Returns (included_fee_amount, fee_amount).
    """
    denominator = FEE_DENOMINATOR - trade_fee_numerator
    if denominator <= 0:
        raise InvalidFeeError(f"fee numerator leaves nothing to trade: {trade_fee_numerator}")
    included_fee_amount = mul_div_u64(excluded_fee_amount, FEE_DENOMINATOR, denominator, Rounding.UP)
    return included_fee_amount, included_fee_amount - excluded_fee_amount


# ---------------------------------------------------------------------------
# Parameter builders
# ---------------------------------------------------------------------------

def get_base_fee_params(
    max_base_fee_bps: int,
    min_base_fee_bps: int,
    fee_scheduler_mode: FeeSchedulerMode,
    number_of_period: int,
    total_duration: int,
    *,
    version: PoolVersion = PoolVersion.V0,
) -> BaseFeeConfig:
    """Derive a base fee schedule that decays from max to min bps over `total_duration` points."""
    if max_base_fee_bps == min_base_fee_bps:
        if number_of_period != 0 or total_duration != 0:
            raise InvalidFeeError("number_of_period and total_duration must both be zero for a flat fee")
        return BaseFeeConfig(cliff_fee_numerator=bps_to_fee_numerator(max_base_fee_bps))

    max_fee_bps = fee_numerator_to_bps(get_max_fee_numerator(version))
    if max_base_fee_bps > max_fee_bps:
        raise InvalidFeeError(f"max_base_fee_bps ({max_base_fee_bps}) exceeds {max_fee_bps}")
    if min_base_fee_bps > max_base_fee_bps:
        raise InvalidFeeError("min_base_fee_bps must not exceed max_base_fee_bps")
    if number_of_period <= 0 or total_duration <= 0:
        raise InvalidFeeError("number_of_period and total_duration must both be positive")

    max_base_fee_numerator = bps_to_fee_numerator(max_base_fee_bps)
    min_base_fee_numerator = bps_to_fee_numerator(min_base_fee_bps)
    if min_base_fee_numerator < MIN_FEE_NUMERATOR:
        raise InvalidFeeError(f"min_base_fee_bps below the minimum fee: {min_base_fee_bps}")

    if fee_scheduler_mode is FeeSchedulerMode.LINEAR:
        reduction_factor = (max_base_fee_numerator - min_base_fee_numerator) // number_of_period
    else:
        ctx = Context(prec=40)
        ratio = ctx.divide(Decimal(min_base_fee_numerator), Decimal(max_base_fee_numerator))
        decay_base = ctx.power(ratio, ctx.divide(Decimal(1), Decimal(number_of_period)))
        reduction_factor = int(ctx.multiply(Decimal(BASIS_POINT_MAX), ctx.subtract(Decimal(1), decay_base)))

    return BaseFeeConfig(
        cliff_fee_numerator=max_base_fee_numerator,
        fee_scheduler_mode=fee_scheduler_mode,
        number_of_period=number_of_period,
        period_frequency=total_duration // number_of_period,
        reduction_factor=reduction_factor,
    )


def get_dynamic_fee_params(
    base_fee_bps: int,
    max_price_change_bps: int = MAX_PRICE_CHANGE_BPS_DEFAULT,
) -> DynamicFeeState:
    """
    Dynamic fee parameters whose surcharge tops out at 20% of the base fee
    once the price has moved `max_price_change_bps` away from its reference.
    """
    if not (0 < max_price_change_bps <= MAX_PRICE_CHANGE_BPS_DEFAULT):
        raise InvalidFeeError(
            f"max_price_change_bps must be in (0, {MAX_PRICE_CHANGE_BPS_DEFAULT}]: {max_price_change_bps}"
        )

    ctx = Context(prec=60)
    price_ratio = ctx.add(ctx.divide(Decimal(max_price_change_bps), Decimal(BASIS_POINT_MAX)), Decimal(1))
    sqrt_price_ratio_q64 = int(ctx.multiply(ctx.sqrt(price_ratio), Decimal(ONE_Q64)))
    delta_bin_id = ((sqrt_price_ratio_q64 - ONE_Q64) // BIN_STEP_BPS_U128_DEFAULT) * 2
    max_volatility_accumulator = delta_bin_id * BASIS_POINT_MAX
    square_vfa_bin = (max_volatility_accumulator * BIN_STEP_BPS_DEFAULT) ** 2

    max_dynamic_fee_numerator = bps_to_fee_numerator(base_fee_bps) * MAX_DYNAMIC_FEE_PERCENT_OF_BASE // 100
    v_fee = max_dynamic_fee_numerator * DYNAMIC_FEE_SCALING_FACTOR - DYNAMIC_FEE_ROUNDING_OFFSET
    if v_fee <= 0 or square_vfa_bin == 0:
        raise InvalidFeeError(f"base fee too small for a dynamic fee: {base_fee_bps} bps")
    variable_fee_control = v_fee // square_vfa_bin
    if max_volatility_accumulator > U32_MAX or variable_fee_control > U32_MAX:
        raise InvalidFeeError("dynamic fee parameters exceed u32")

    return DynamicFeeState(
        initialized=True,
        max_volatility_accumulator=max_volatility_accumulator,
        variable_fee_control=variable_fee_control,
        bin_step=BIN_STEP_BPS_DEFAULT,
        filter_period=DYNAMIC_FEE_FILTER_PERIOD_DEFAULT,
        decay_period=DYNAMIC_FEE_DECAY_PERIOD_DEFAULT,
        reduction_factor=DYNAMIC_FEE_REDUCTION_FACTOR_DEFAULT,
        bin_step_u128=BIN_STEP_BPS_U128_DEFAULT,
    )
