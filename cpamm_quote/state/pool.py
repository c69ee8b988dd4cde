"""
Pool snapshot and config records.

These are typed views of state owned by the on-chain program. The quote engine
only reads them; decoding them from account bytes happens elsewhere.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, unique
from typing import Optional

from ..errors import InvalidActivationTypeError, InvalidCollectFeeModeError
from ..kernels.python.wide_math import require_uint
from .fees import PoolFees


# Bounds of the Q64.64 sqrt price accepted by the program.
MIN_SQRT_PRICE = 4295048016
MAX_SQRT_PRICE = 79226673521066979257578248091

# Base58 of the zero pubkey.
DEFAULT_PUBKEY = "11111111111111111111111111111111"


@unique
class ActivationType(Enum):
    """Which monotonic counter the pool uses as its time axis."""

    SLOT = 0
    TIMESTAMP = 1

    @classmethod
    def from_byte(cls, value: int) -> "ActivationType":
        try:
            return cls(value)
        except ValueError:
            raise InvalidActivationTypeError(f"invalid activation type: {value}") from None


@unique
class CollectFeeMode(Enum):
    """Which token denominates trading fees."""

    BOTH_TOKEN = 0
    ONLY_B = 1

    @classmethod
    def from_byte(cls, value: int) -> "CollectFeeMode":
        try:
            return cls(value)
        except ValueError:
            raise InvalidCollectFeeModeError(f"invalid collect fee mode: {value}") from None


@unique
class TradeDirection(Enum):
    A_TO_B = 0
    B_TO_A = 1

    @classmethod
    def from_a_for_b(cls, a_for_b: bool) -> "TradeDirection":
        return cls.A_TO_B if a_for_b else cls.B_TO_A


@unique
class PoolVersion(Enum):
    V0 = 0
    V1 = 1


@dataclass(frozen=True)
class PriceCurveState:
    sqrt_price: int
    liquidity: int
    sqrt_min_price: int
    sqrt_max_price: int

    def __post_init__(self) -> None:
        for name, val in (
            ("sqrt_price", self.sqrt_price),
            ("liquidity", self.liquidity),
            ("sqrt_min_price", self.sqrt_min_price),
            ("sqrt_max_price", self.sqrt_max_price),
        ):
            require_uint(name, val, 128)
        if not (self.sqrt_min_price <= self.sqrt_price <= self.sqrt_max_price):
            raise ValueError(
                "sqrt_price must lie within [sqrt_min_price, sqrt_max_price]: "
                f"{self.sqrt_min_price} <= {self.sqrt_price} <= {self.sqrt_max_price}"
            )


@dataclass(frozen=True)
class PoolSnapshot:
    """Point-in-time copy of a pool, as read from chain by the caller."""

    pool_fees: PoolFees
    sqrt_price: int
    liquidity: int
    sqrt_min_price: int = MIN_SQRT_PRICE
    sqrt_max_price: int = MAX_SQRT_PRICE
    activation_point: int = 0
    activation_type: ActivationType = ActivationType.SLOT
    collect_fee_mode: CollectFeeMode = CollectFeeMode.BOTH_TOKEN
    version: PoolVersion = PoolVersion.V0
    partner: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.pool_fees, PoolFees):
            raise TypeError("pool_fees must be a PoolFees")
        if not isinstance(self.activation_type, ActivationType):
            raise TypeError("activation_type must be an ActivationType")
        if not isinstance(self.collect_fee_mode, CollectFeeMode):
            raise TypeError("collect_fee_mode must be a CollectFeeMode")
        if not isinstance(self.version, PoolVersion):
            raise TypeError("version must be a PoolVersion")
        if self.partner is not None and not isinstance(self.partner, str):
            raise TypeError("partner must be a string or None")
        require_uint("activation_point", self.activation_point, 64)
        # Validates the price fields and their ordering.
        _ = self.curve

    @property
    def curve(self) -> PriceCurveState:
        return PriceCurveState(
            sqrt_price=self.sqrt_price,
            liquidity=self.liquidity,
            sqrt_min_price=self.sqrt_min_price,
            sqrt_max_price=self.sqrt_max_price,
        )

    @property
    def has_partner(self) -> bool:
        """An unset partner is stored on chain as the zero pubkey."""
        return bool(self.partner) and self.partner != DEFAULT_PUBKEY


@dataclass(frozen=True)
class PoolConfig:
    """Pool-wide parameters a pool was created from (read-only for quoting)."""

    config_key: str
    pool_fees: PoolFees
    activation_type: ActivationType = ActivationType.SLOT
    collect_fee_mode: CollectFeeMode = CollectFeeMode.BOTH_TOKEN
    sqrt_min_price: int = MIN_SQRT_PRICE
    sqrt_max_price: int = MAX_SQRT_PRICE
    pool_creator_authority: Optional[str] = None
    quote_mint: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.config_key, str) or not self.config_key:
            raise ValueError("config_key must be a non-empty string")
        if not isinstance(self.pool_fees, PoolFees):
            raise TypeError("pool_fees must be a PoolFees")
        require_uint("sqrt_min_price", self.sqrt_min_price, 128)
        require_uint("sqrt_max_price", self.sqrt_max_price, 128)
        if self.sqrt_min_price > self.sqrt_max_price:
            raise ValueError("sqrt_min_price must not exceed sqrt_max_price")
