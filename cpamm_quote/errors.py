"""Exception types for the quote engine.

Every failure carries the numeric code the on-chain program reports for the
same condition, so a caller that speaks that taxonomy can translate without a
lookup table of its own.
"""

from __future__ import annotations

from typing import Dict, Type


class QuoteError(Exception):
    """Base class for all deterministic quote failures."""

    code: int = 0
    name: str = "Unknown"

    def __init__(self, message: str = "") -> None:
        self.message = message or self.name
        super().__init__(self.message)


class MathOverflowError(QuoteError, ArithmeticError):
    """An intermediate or final value exceeds its representable width."""

    code = 6000
    name = "MathOverflow"


class InvalidFeeError(QuoteError, ValueError):
    """Fee parameters are out of their allowed range."""

    code = 6001
    name = "InvalidFee"


class FeeCalculationError(QuoteError):
    code = 6003
    name = "FeeCalculationFailure"


class ExceededSlippageError(QuoteError):
    code = 6004
    name = "ExceededSlippage"


class AmountIsZeroError(QuoteError, ValueError):
    code = 6041
    name = "AmountIsZero"


class TypeCastError(QuoteError, OverflowError):
    """A wide intermediate does not fit the narrow output type."""

    code = 6042
    name = "TypeCastFailed"


class InvalidActivationTypeError(QuoteError, ValueError):
    code = 6048
    name = "InvalidActivationType"


class PriceRangeViolationError(QuoteError):
    """The next sqrt price falls outside [sqrt_min_price, sqrt_max_price]."""

    code = 6055
    name = "PriceRangeViolation"


class InvalidCollectFeeModeError(QuoteError, ValueError):
    code = 6057
    name = "InvalidCollectFeeMode"


_BY_CODE: Dict[int, Type[QuoteError]] = {
    cls.code: cls
    for cls in (
        MathOverflowError,
        InvalidFeeError,
        FeeCalculationError,
        ExceededSlippageError,
        AmountIsZeroError,
        TypeCastError,
        InvalidActivationTypeError,
        PriceRangeViolationError,
        InvalidCollectFeeModeError,
    )
}


def error_code(exc: BaseException) -> int:
    """Numeric code for `exc`; raises TypeError for non-quote exceptions."""
    if not isinstance(exc, QuoteError):
        raise TypeError(f"not a quote error: {type(exc).__name__}")
    return exc.code


def error_for_code(code: int) -> Type[QuoteError]:
    try:
        return _BY_CODE[code]
    except KeyError:
        raise ValueError(f"unknown error code: {code}") from None
