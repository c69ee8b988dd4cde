"""
Environment-driven settings for the command-line quoter.

Malformed values fall back to the default and out-of-range values clamp, so a
bad environment never stops a quote from being produced.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from ..core.fees import BASIS_POINT_MAX

ENV_LOG_LEVEL = "CPAMM_QUOTE_LOG_LEVEL"
ENV_SLIPPAGE_BPS = "CPAMM_QUOTE_SLIPPAGE_BPS"

DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_SLIPPAGE_BPS = 50

_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def _env_int(name: str, default: int, *, lo: int, hi: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return int(default)
    try:
        v = int(raw.strip())
    except ValueError:
        return int(default)
    if v < lo:
        return int(lo)
    if v > hi:
        return int(hi)
    return int(v)


def _env_str(name: str, default: str) -> str:
    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip()
    return v if v else default


@dataclass(frozen=True)
class Settings:
    log_level: str = DEFAULT_LOG_LEVEL
    slippage_bps: int = DEFAULT_SLIPPAGE_BPS

    @property
    def log_level_number(self) -> int:
        return getattr(logging, self.log_level)


def load_settings() -> Settings:
    log_level = _env_str(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL).upper()
    if log_level not in _LOG_LEVELS:
        log_level = DEFAULT_LOG_LEVEL
    return Settings(
        log_level=log_level,
        slippage_bps=_env_int(ENV_SLIPPAGE_BPS, DEFAULT_SLIPPAGE_BPS, lo=0, hi=BASIS_POINT_MAX),
    )
