"""
Pool snapshot encoding.

Goals:
- Build typed `PoolSnapshot` / `PoolConfig` records from plain JSON or YAML documents.
- Render them back into the same shape (round-trippable through `canonical_json_bytes`).
- Accept wide integers as decimal strings, since u128 prices do not survive JSON doubles.
"""

from __future__ import annotations

import json
import logging
import re
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Type, TypeVar, Union

import yaml

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
from ..state.pool import (
    MAX_SQRT_PRICE,
    MIN_SQRT_PRICE,
    ActivationType,
    CollectFeeMode,
    PoolConfig,
    PoolSnapshot,
    PoolVersion,
)

logger = logging.getLogger(__name__)

MAX_DOCUMENT_BYTES = 1_000_000

_DIGITS_RE = re.compile(r"^[0-9]+$")

_E = TypeVar("_E", bound=Enum)


def _require_int(value: Any, *, name: str) -> int:
    if isinstance(value, str):
        s = value.strip()
        if not _DIGITS_RE.fullmatch(s):
            raise ValueError(f"{name} must be a non-negative decimal integer string")
        return int(s)
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int or a decimal string")
    if value < 0:
        raise ValueError(f"{name} must be non-negative")
    return int(value)


def _require_bool(value: Any, *, name: str) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"{name} must be a bool")
    return value


def _require_optional_str(value: Any, *, name: str, max_len: int = 256) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a string or null")
    if len(value) > max_len:
        raise ValueError(f"{name} too large")
    return value or None


def _require_mapping(value: Any, *, name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise TypeError(f"{name} must be an object")
    return value


def _require_enum(value: Any, enum_cls: Type[_E], *, name: str) -> _E:
    """Accept an enum member, its byte value, or its (case-insensitive) name."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        member = enum_cls.__members__.get(value.strip().upper())
        if member is not None:
            return member
    elif not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int or a member name")

    from_byte = getattr(enum_cls, "from_byte", None)
    if from_byte is not None:
        return from_byte(value)
    try:
        return enum_cls(value)
    except ValueError:
        raise ValueError(f"invalid {name}: {value!r}") from None


# ---------------------------------------------------------------------------
# Fees
# ---------------------------------------------------------------------------

def _time_scheduler_from_mapping(obj: Mapping[str, Any], mode: FeeSchedulerMode) -> BaseFeeConfig:
    return BaseFeeConfig(
        cliff_fee_numerator=_require_int(obj.get("cliff_fee_numerator"), name="base_fee.cliff_fee_numerator"),
        fee_scheduler_mode=mode,
        number_of_period=_require_int(obj.get("number_of_period", 0), name="base_fee.number_of_period"),
        period_frequency=_require_int(obj.get("period_frequency", 0), name="base_fee.period_frequency"),
        reduction_factor=_require_int(obj.get("reduction_factor", 0), name="base_fee.reduction_factor"),
    )


def _market_cap_scheduler_from_mapping(obj: Mapping[str, Any], mode: FeeSchedulerMode) -> MarketCapSchedulerConfig:
    return MarketCapSchedulerConfig(
        cliff_fee_numerator=_require_int(obj.get("cliff_fee_numerator"), name="base_fee.cliff_fee_numerator"),
        fee_scheduler_mode=mode,
        number_of_period=_require_int(obj.get("number_of_period", 0), name="base_fee.number_of_period"),
        sqrt_price_step_bps=_require_int(obj.get("sqrt_price_step_bps", 0), name="base_fee.sqrt_price_step_bps"),
        scheduler_expiration_duration=_require_int(
            obj.get("scheduler_expiration_duration", 0), name="base_fee.scheduler_expiration_duration"
        ),
        reduction_factor=_require_int(obj.get("reduction_factor", 0), name="base_fee.reduction_factor"),
    )


def _rate_limiter_from_mapping(obj: Mapping[str, Any]) -> RateLimiterConfig:
    return RateLimiterConfig(
        cliff_fee_numerator=_require_int(obj.get("cliff_fee_numerator"), name="base_fee.cliff_fee_numerator"),
        fee_increment_bps=_require_int(obj.get("fee_increment_bps", 0), name="base_fee.fee_increment_bps"),
        max_fee_bps=_require_int(obj.get("max_fee_bps", 0), name="base_fee.max_fee_bps"),
        max_limiter_duration=_require_int(obj.get("max_limiter_duration", 0), name="base_fee.max_limiter_duration"),
        reference_amount=_require_int(obj.get("reference_amount", 0), name="base_fee.reference_amount"),
    )


def base_fee_from_mapping(obj: Mapping[str, Any]) -> BaseFee:
    """
    `base_fee_mode` picks the kind of base fee. Without it the block is a time
    schedule whose curve is given by `fee_scheduler_mode`.
    """
    obj = _require_mapping(obj, name="base_fee")
    if "base_fee_mode" not in obj:
        mode = _require_enum(
            obj.get("fee_scheduler_mode", FeeSchedulerMode.LINEAR.value),
            FeeSchedulerMode,
            name="base_fee.fee_scheduler_mode",
        )
        return _time_scheduler_from_mapping(obj, mode)

    base_fee_mode = _require_enum(obj["base_fee_mode"], BaseFeeMode, name="base_fee.base_fee_mode")
    if base_fee_mode is BaseFeeMode.FEE_TIME_SCHEDULER_LINEAR:
        return _time_scheduler_from_mapping(obj, FeeSchedulerMode.LINEAR)
    if base_fee_mode is BaseFeeMode.FEE_TIME_SCHEDULER_EXPONENTIAL:
        return _time_scheduler_from_mapping(obj, FeeSchedulerMode.EXPONENTIAL)
    if base_fee_mode is BaseFeeMode.RATE_LIMITER:
        return _rate_limiter_from_mapping(obj)
    if base_fee_mode is BaseFeeMode.FEE_MARKET_CAP_SCHEDULER_LINEAR:
        return _market_cap_scheduler_from_mapping(obj, FeeSchedulerMode.LINEAR)
    return _market_cap_scheduler_from_mapping(obj, FeeSchedulerMode.EXPONENTIAL)


def base_fee_to_mapping(base_fee: BaseFee) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "base_fee_mode": base_fee.base_fee_mode.value,
        "cliff_fee_numerator": int(base_fee.cliff_fee_numerator),
    }
    if isinstance(base_fee, RateLimiterConfig):
        out.update(
            fee_increment_bps=int(base_fee.fee_increment_bps),
            max_fee_bps=int(base_fee.max_fee_bps),
            max_limiter_duration=int(base_fee.max_limiter_duration),
            reference_amount=int(base_fee.reference_amount),
        )
    elif isinstance(base_fee, MarketCapSchedulerConfig):
        out.update(
            number_of_period=int(base_fee.number_of_period),
            sqrt_price_step_bps=int(base_fee.sqrt_price_step_bps),
            scheduler_expiration_duration=int(base_fee.scheduler_expiration_duration),
            reduction_factor=int(base_fee.reduction_factor),
        )
    else:
        out.update(
            number_of_period=int(base_fee.number_of_period),
            period_frequency=int(base_fee.period_frequency),
            reduction_factor=int(base_fee.reduction_factor),
        )
    return out


_DYNAMIC_INT_FIELDS = (
    "max_volatility_accumulator",
    "variable_fee_control",
    "bin_step",
    "filter_period",
    "decay_period",
    "reduction_factor",
    "last_update_timestamp",
    "bin_step_u128",
    "sqrt_price_reference",
    "volatility_accumulator",
    "volatility_reference",
)


def dynamic_fee_from_mapping(obj: Optional[Mapping[str, Any]]) -> DynamicFeeState:
    """A missing or null dynamic fee block means the dynamic fee is off."""
    if obj is None:
        return DynamicFeeState()
    obj = _require_mapping(obj, name="dynamic_fee")
    kwargs: Dict[str, Any] = {
        field_name: _require_int(obj.get(field_name, 0), name=f"dynamic_fee.{field_name}")
        for field_name in _DYNAMIC_INT_FIELDS
    }
    kwargs["initialized"] = _require_bool(obj.get("initialized", True), name="dynamic_fee.initialized")
    return DynamicFeeState(**kwargs)


def pool_fees_from_mapping(obj: Mapping[str, Any]) -> PoolFees:
    obj = _require_mapping(obj, name="pool_fees")
    return PoolFees(
        base_fee=base_fee_from_mapping(obj.get("base_fee")),
        protocol_fee_percent=_require_int(obj.get("protocol_fee_percent", 0), name="protocol_fee_percent"),
        partner_fee_percent=_require_int(obj.get("partner_fee_percent", 0), name="partner_fee_percent"),
        referral_fee_percent=_require_int(obj.get("referral_fee_percent", 0), name="referral_fee_percent"),
        dynamic_fee=dynamic_fee_from_mapping(obj.get("dynamic_fee")),
        init_sqrt_price=_require_int(obj.get("init_sqrt_price", 0), name="init_sqrt_price"),
    )


def pool_fees_to_mapping(pool_fees: PoolFees) -> Dict[str, Any]:
    dynamic_fee = pool_fees.dynamic_fee
    dynamic_obj: Optional[Dict[str, Any]] = None
    if dynamic_fee.initialized:
        dynamic_obj = {field_name: int(getattr(dynamic_fee, field_name)) for field_name in _DYNAMIC_INT_FIELDS}
        dynamic_obj["initialized"] = True
    return {
        "base_fee": base_fee_to_mapping(pool_fees.base_fee),
        "protocol_fee_percent": int(pool_fees.protocol_fee_percent),
        "partner_fee_percent": int(pool_fees.partner_fee_percent),
        "referral_fee_percent": int(pool_fees.referral_fee_percent),
        "dynamic_fee": dynamic_obj,
        "init_sqrt_price": int(pool_fees.init_sqrt_price),
    }


# ---------------------------------------------------------------------------
# Pool / config
# ---------------------------------------------------------------------------

def pool_snapshot_from_mapping(obj: Mapping[str, Any]) -> PoolSnapshot:
    obj = _require_mapping(obj, name="pool")
    return PoolSnapshot(
        pool_fees=pool_fees_from_mapping(obj.get("pool_fees")),
        sqrt_price=_require_int(obj.get("sqrt_price"), name="sqrt_price"),
        liquidity=_require_int(obj.get("liquidity"), name="liquidity"),
        sqrt_min_price=_require_int(obj.get("sqrt_min_price", MIN_SQRT_PRICE), name="sqrt_min_price"),
        sqrt_max_price=_require_int(obj.get("sqrt_max_price", MAX_SQRT_PRICE), name="sqrt_max_price"),
        activation_point=_require_int(obj.get("activation_point", 0), name="activation_point"),
        activation_type=_require_enum(
            obj.get("activation_type", ActivationType.SLOT.value), ActivationType, name="activation_type"
        ),
        collect_fee_mode=_require_enum(
            obj.get("collect_fee_mode", CollectFeeMode.BOTH_TOKEN.value), CollectFeeMode, name="collect_fee_mode"
        ),
        version=_require_enum(obj.get("version", PoolVersion.V0.value), PoolVersion, name="version"),
        partner=_require_optional_str(obj.get("partner"), name="partner"),
    )


def pool_snapshot_to_mapping(pool: PoolSnapshot) -> Dict[str, Any]:
    return {
        "pool_fees": pool_fees_to_mapping(pool.pool_fees),
        "sqrt_price": int(pool.sqrt_price),
        "liquidity": int(pool.liquidity),
        "sqrt_min_price": int(pool.sqrt_min_price),
        "sqrt_max_price": int(pool.sqrt_max_price),
        "activation_point": int(pool.activation_point),
        "activation_type": pool.activation_type.value,
        "collect_fee_mode": pool.collect_fee_mode.value,
        "version": pool.version.value,
        "partner": pool.partner,
    }


def pool_config_from_mapping(obj: Mapping[str, Any]) -> PoolConfig:
    obj = _require_mapping(obj, name="config")
    config_key = obj.get("config_key")
    if not isinstance(config_key, str):
        raise TypeError("config_key must be a string")
    return PoolConfig(
        config_key=config_key,
        pool_fees=pool_fees_from_mapping(obj.get("pool_fees")),
        activation_type=_require_enum(
            obj.get("activation_type", ActivationType.SLOT.value), ActivationType, name="activation_type"
        ),
        collect_fee_mode=_require_enum(
            obj.get("collect_fee_mode", CollectFeeMode.BOTH_TOKEN.value), CollectFeeMode, name="collect_fee_mode"
        ),
        sqrt_min_price=_require_int(obj.get("sqrt_min_price", MIN_SQRT_PRICE), name="sqrt_min_price"),
        sqrt_max_price=_require_int(obj.get("sqrt_max_price", MAX_SQRT_PRICE), name="sqrt_max_price"),
        pool_creator_authority=_require_optional_str(obj.get("pool_creator_authority"), name="pool_creator_authority"),
        quote_mint=_require_optional_str(obj.get("quote_mint"), name="quote_mint"),
    )


def pool_config_to_mapping(config: PoolConfig) -> Dict[str, Any]:
    return {
        "config_key": config.config_key,
        "pool_fees": pool_fees_to_mapping(config.pool_fees),
        "activation_type": config.activation_type.value,
        "collect_fee_mode": config.collect_fee_mode.value,
        "sqrt_min_price": int(config.sqrt_min_price),
        "sqrt_max_price": int(config.sqrt_max_price),
        "pool_creator_authority": config.pool_creator_authority,
        "quote_mint": config.quote_mint,
    }


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

def load_document(path: Union[str, Path], *, max_bytes: int = MAX_DOCUMENT_BYTES) -> Mapping[str, Any]:
    """
    Read a JSON or YAML (by suffix) document whose root is an object.

    Unparseable text raises ValueError for either format.
    """
    p = Path(path)
    raw = p.read_bytes()
    if len(raw) > max_bytes:
        raise ValueError(f"document too large: {p} ({len(raw)} > {max_bytes} bytes)")
    text = raw.decode("utf-8")
    if p.suffix.lower() in (".yaml", ".yml"):
        try:
            obj = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(f"invalid YAML in {p}: {exc}") from exc
    else:
        obj = json.loads(text)
    logger.debug("loaded %s (%d bytes)", p, len(raw))
    return _require_mapping(obj, name=str(p))


def load_pool_snapshot(path: Union[str, Path]) -> PoolSnapshot:
    return pool_snapshot_from_mapping(load_document(path))


def load_pool_config(path: Union[str, Path]) -> PoolConfig:
    return pool_config_from_mapping(load_document(path))
