"""Fee state carried by a pool snapshot.

Records:
- base fee, one of three kinds selected by `BaseFeeMode`:
    BaseFeeConfig             cliff fee decaying per elapsed period after activation
    MarketCapSchedulerConfig  cliff fee decaying as the sqrt price climbs above its initial value
    RateLimiterConfig         fee rising with trade size (B→A only) for a window after activation
- DynamicFeeState: volatility accumulator and its references for the variable fee
- PoolFees: a base fee plus the dynamic fee and the protocol / partner / referral percents

All are immutable. Fee-state "updates" (see core/fees.py) return new values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, unique
from typing import Union

from ..kernels.python.wide_math import require_uint


def _require_percent(name: str, value: int) -> None:
    require_uint(name, value, 8)
    if value > 100:
        raise ValueError(f"{name} must be in [0, 100]: {value}")


@unique
class FeeSchedulerMode(Enum):
    LINEAR = 0
    EXPONENTIAL = 1

    @classmethod
    def from_byte(cls, value: int) -> "FeeSchedulerMode":
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"invalid fee scheduler mode: {value}") from None


@unique
class BaseFeeMode(Enum):
    """Kind of base fee, as stored in the pool's base fee bytes."""

    FEE_TIME_SCHEDULER_LINEAR = 0
    FEE_TIME_SCHEDULER_EXPONENTIAL = 1
    RATE_LIMITER = 2
    FEE_MARKET_CAP_SCHEDULER_LINEAR = 3
    FEE_MARKET_CAP_SCHEDULER_EXPONENTIAL = 4

    @classmethod
    def from_byte(cls, value: int) -> "BaseFeeMode":
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"invalid base fee mode: {value}") from None


@dataclass(frozen=True)
class BaseFeeConfig:
    """Time-scheduled base fee. `period_frequency == 0` means a flat cliff fee."""

    cliff_fee_numerator: int
    fee_scheduler_mode: FeeSchedulerMode = FeeSchedulerMode.LINEAR
    number_of_period: int = 0
    period_frequency: int = 0
    reduction_factor: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.fee_scheduler_mode, FeeSchedulerMode):
            raise TypeError("fee_scheduler_mode must be a FeeSchedulerMode")
        require_uint("cliff_fee_numerator", self.cliff_fee_numerator, 64)
        require_uint("number_of_period", self.number_of_period, 16)
        require_uint("period_frequency", self.period_frequency, 64)
        require_uint("reduction_factor", self.reduction_factor, 64)

    @property
    def base_fee_mode(self) -> BaseFeeMode:
        if self.fee_scheduler_mode is FeeSchedulerMode.EXPONENTIAL:
            return BaseFeeMode.FEE_TIME_SCHEDULER_EXPONENTIAL
        return BaseFeeMode.FEE_TIME_SCHEDULER_LINEAR


@dataclass(frozen=True)
class MarketCapSchedulerConfig:
    """
    Base fee that steps down once per `sqrt_price_step_bps` of sqrt-price gain
    over the pool's initial sqrt price. After `scheduler_expiration_duration`
    points (or before activation) the fee sits at its last period.
    """

    cliff_fee_numerator: int
    fee_scheduler_mode: FeeSchedulerMode = FeeSchedulerMode.LINEAR
    number_of_period: int = 0
    sqrt_price_step_bps: int = 0
    scheduler_expiration_duration: int = 0
    reduction_factor: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.fee_scheduler_mode, FeeSchedulerMode):
            raise TypeError("fee_scheduler_mode must be a FeeSchedulerMode")
        require_uint("cliff_fee_numerator", self.cliff_fee_numerator, 64)
        require_uint("number_of_period", self.number_of_period, 16)
        require_uint("sqrt_price_step_bps", self.sqrt_price_step_bps, 32)
        require_uint("scheduler_expiration_duration", self.scheduler_expiration_duration, 32)
        require_uint("reduction_factor", self.reduction_factor, 64)
        if self.number_of_period > 0 and self.sqrt_price_step_bps == 0:
            raise ValueError("sqrt_price_step_bps must be positive when number_of_period is set")

    @property
    def base_fee_mode(self) -> BaseFeeMode:
        if self.fee_scheduler_mode is FeeSchedulerMode.EXPONENTIAL:
            return BaseFeeMode.FEE_MARKET_CAP_SCHEDULER_EXPONENTIAL
        return BaseFeeMode.FEE_MARKET_CAP_SCHEDULER_LINEAR


@dataclass(frozen=True)
class RateLimiterConfig:
    """
    Size-dependent base fee: every further `reference_amount` of input pays
    `fee_increment_bps` more than the previous slice, up to `max_fee_bps`.
    All-zero limiter parameters mean a flat cliff fee.
    """

    cliff_fee_numerator: int
    fee_increment_bps: int = 0
    max_fee_bps: int = 0
    max_limiter_duration: int = 0
    reference_amount: int = 0

    def __post_init__(self) -> None:
        require_uint("cliff_fee_numerator", self.cliff_fee_numerator, 64)
        require_uint("fee_increment_bps", self.fee_increment_bps, 16)
        require_uint("max_fee_bps", self.max_fee_bps, 32)
        require_uint("max_limiter_duration", self.max_limiter_duration, 32)
        require_uint("reference_amount", self.reference_amount, 64)
        if not self.is_zero and self.reference_amount == 0:
            raise ValueError("reference_amount must be positive for an active rate limiter")

    @property
    def is_zero(self) -> bool:
        return (
            self.reference_amount == 0
            and self.max_limiter_duration == 0
            and self.max_fee_bps == 0
            and self.fee_increment_bps == 0
        )

    @property
    def base_fee_mode(self) -> BaseFeeMode:
        return BaseFeeMode.RATE_LIMITER


BaseFee = Union[BaseFeeConfig, MarketCapSchedulerConfig, RateLimiterConfig]

_BASE_FEE_TYPES = (BaseFeeConfig, MarketCapSchedulerConfig, RateLimiterConfig)


@dataclass(frozen=True)
class DynamicFeeState:
    """Volatility-driven surcharge parameters and their moving references."""

    initialized: bool = False
    max_volatility_accumulator: int = 0
    variable_fee_control: int = 0
    bin_step: int = 0
    filter_period: int = 0
    decay_period: int = 0
    reduction_factor: int = 0
    last_update_timestamp: int = 0
    bin_step_u128: int = 0
    sqrt_price_reference: int = 0
    volatility_accumulator: int = 0
    volatility_reference: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.initialized, bool):
            raise TypeError("initialized must be a bool")
        for name, val, bits in (
            ("max_volatility_accumulator", self.max_volatility_accumulator, 32),
            ("variable_fee_control", self.variable_fee_control, 32),
            ("bin_step", self.bin_step, 16),
            ("filter_period", self.filter_period, 16),
            ("decay_period", self.decay_period, 16),
            ("reduction_factor", self.reduction_factor, 16),
            ("last_update_timestamp", self.last_update_timestamp, 64),
            ("bin_step_u128", self.bin_step_u128, 128),
            ("sqrt_price_reference", self.sqrt_price_reference, 128),
            ("volatility_accumulator", self.volatility_accumulator, 128),
            ("volatility_reference", self.volatility_reference, 128),
        ):
            require_uint(name, val, bits)
        if self.initialized and self.bin_step_u128 == 0:
            raise ValueError("bin_step_u128 must be positive when dynamic fee is initialized")


@dataclass(frozen=True)
class PoolFees:
    """`init_sqrt_price` is the pool's sqrt price at creation; the market-cap scheduler measures from it."""

    base_fee: BaseFee
    protocol_fee_percent: int = 0
    partner_fee_percent: int = 0
    referral_fee_percent: int = 0
    dynamic_fee: DynamicFeeState = field(default_factory=DynamicFeeState)
    init_sqrt_price: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.base_fee, _BASE_FEE_TYPES):
            raise TypeError("base_fee must be a BaseFeeConfig, MarketCapSchedulerConfig or RateLimiterConfig")
        if not isinstance(self.dynamic_fee, DynamicFeeState):
            raise TypeError("dynamic_fee must be a DynamicFeeState")
        _require_percent("protocol_fee_percent", self.protocol_fee_percent)
        _require_percent("partner_fee_percent", self.partner_fee_percent)
        _require_percent("referral_fee_percent", self.referral_fee_percent)
        require_uint("init_sqrt_price", self.init_sqrt_price, 128)
        if isinstance(self.base_fee, MarketCapSchedulerConfig) and self.init_sqrt_price == 0:
            raise ValueError("init_sqrt_price is required for a market-cap fee scheduler")

    @property
    def dynamic_fee_enabled(self) -> bool:
        return self.dynamic_fee.initialized
