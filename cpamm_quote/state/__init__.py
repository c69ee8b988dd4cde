"""
Pool and fee state records for quoting
"""

from .fees import (
    BaseFeeConfig,
    BaseFeeMode,
    DynamicFeeState,
    FeeSchedulerMode,
    MarketCapSchedulerConfig,
    PoolFees,
    RateLimiterConfig,
)
from .pool import (
    DEFAULT_PUBKEY,
    ActivationType,
    CollectFeeMode,
    PoolConfig,
    PoolSnapshot,
    PoolVersion,
    PriceCurveState,
    TradeDirection,
)

__all__ = [
    "BaseFeeConfig",
    "BaseFeeMode",
    "DynamicFeeState",
    "FeeSchedulerMode",
    "MarketCapSchedulerConfig",
    "PoolFees",
    "RateLimiterConfig",
    "DEFAULT_PUBKEY",
    "ActivationType",
    "CollectFeeMode",
    "PoolConfig",
    "PoolSnapshot",
    "PoolVersion",
    "PriceCurveState",
    "TradeDirection",
]
