"""
Single-step swap simulation over a pool snapshot.

The outcome depends on (TradeDirection, CollectFeeMode):

    direction  mode        fee leg
    A→B        BothToken   output (B)
    B→A        BothToken   output (A)
    A→B        OnlyB       output (B)      same as BothToken
    B→A        OnlyB       input  (B)      charged before the curve; curve runs fee-skipped

The table is a dispatch dict so every combination is listed explicitly.
A next price outside [sqrt_min_price, sqrt_max_price] is a PriceRangeViolation:
the pool has no depth left on that side, and the quote fails rather than clamps.
The partial-fill variant instead stops at the bound and reports what is left.

Exact-in fees are priced on the gross input amount; exact-out fees on the
post-fee amount (the output, or the curve input when the fee is on the input).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, unique
from typing import Callable, Dict, Tuple

from ..errors import AmountIsZeroError, PriceRangeViolationError
from ..kernels.python.wide_math import Rounding, require_uint
from ..state.pool import CollectFeeMode, PoolSnapshot, TradeDirection
from .curve import (
    get_delta_amount_a_unsigned,
    get_delta_amount_a_unsigned_unchecked,
    get_delta_amount_b_unsigned,
    get_delta_amount_b_unsigned_unchecked,
    get_next_sqrt_price_from_input,
    get_next_sqrt_price_from_output,
)
from .fees import (
    FeeOnAmountResult,
    get_fee_on_amount,
    get_included_fee_amount,
    get_max_fee_numerator,
    get_trade_fee_numerator,
    split_fees,
)

logger = logging.getLogger(__name__)


@unique
class FeeTreatment(Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class SwapResult:
    """Exact-in swap outcome; field names match the swap event's result record."""

    output_amount: int
    next_sqrt_price: int
    lp_fee: int
    protocol_fee: int
    partner_fee: int
    referral_fee: int

    @property
    def total_fee(self) -> int:
        return self.lp_fee + self.protocol_fee + self.partner_fee + self.referral_fee

    def as_dict(self) -> Dict[str, int]:
        return {
            "output_amount": self.output_amount,
            "next_sqrt_price": self.next_sqrt_price,
            "lp_fee": self.lp_fee,
            "protocol_fee": self.protocol_fee,
            "partner_fee": self.partner_fee,
            "referral_fee": self.referral_fee,
        }


@dataclass(frozen=True)
class ExactOutSwapResult:
    included_fee_input_amount: int
    excluded_fee_input_amount: int
    output_amount: int
    next_sqrt_price: int
    lp_fee: int
    protocol_fee: int
    partner_fee: int
    referral_fee: int

    @property
    def total_fee(self) -> int:
        return self.lp_fee + self.protocol_fee + self.partner_fee + self.referral_fee

    def as_dict(self) -> Dict[str, int]:
        return {
            "included_fee_input_amount": self.included_fee_input_amount,
            "excluded_fee_input_amount": self.excluded_fee_input_amount,
            "output_amount": self.output_amount,
            "next_sqrt_price": self.next_sqrt_price,
            "lp_fee": self.lp_fee,
            "protocol_fee": self.protocol_fee,
            "partner_fee": self.partner_fee,
            "referral_fee": self.referral_fee,
        }


@dataclass(frozen=True)
class PartialFillSwapResult:
    """
    Exact-in outcome that stops at the price bound instead of failing.

    `amount_left` is the part of the requested input the pool could not take;
    `included_fee_input_amount` is what the trader actually pays.
    """

    included_fee_input_amount: int
    excluded_fee_input_amount: int
    amount_left: int
    output_amount: int
    next_sqrt_price: int
    lp_fee: int
    protocol_fee: int
    partner_fee: int
    referral_fee: int

    @property
    def total_fee(self) -> int:
        return self.lp_fee + self.protocol_fee + self.partner_fee + self.referral_fee

    def as_dict(self) -> Dict[str, int]:
        return {
            "included_fee_input_amount": self.included_fee_input_amount,
            "excluded_fee_input_amount": self.excluded_fee_input_amount,
            "amount_left": self.amount_left,
            "output_amount": self.output_amount,
            "next_sqrt_price": self.next_sqrt_price,
            "lp_fee": self.lp_fee,
            "protocol_fee": self.protocol_fee,
            "partner_fee": self.partner_fee,
            "referral_fee": self.referral_fee,
        }


def _fee_on_amount(
    pool: PoolSnapshot,
    amount: int,
    is_referral: bool,
    current_point: int,
    trade_direction: TradeDirection,
    amount_in: int,
) -> FeeOnAmountResult:
    return get_fee_on_amount(
        pool.pool_fees,
        amount,
        has_referral=is_referral,
        has_partner=pool.has_partner,
        current_point=current_point,
        activation_point=pool.activation_point,
        max_fee_numerator=get_max_fee_numerator(pool.version),
        trade_direction=trade_direction,
        amount_in=amount_in,
        sqrt_price=pool.sqrt_price,
    )


def _result_with_fees(next_sqrt_price: int, fee: FeeOnAmountResult) -> SwapResult:
    return SwapResult(
        output_amount=fee.amount,
        next_sqrt_price=next_sqrt_price,
        lp_fee=fee.lp_fee,
        protocol_fee=fee.protocol_fee,
        partner_fee=fee.partner_fee,
        referral_fee=fee.referral_fee,
    )


# ---------------------------------------------------------------------------
# Curve steps
# ---------------------------------------------------------------------------

def get_swap_result_from_a_to_b(
    pool: PoolSnapshot,
    amount_in: int,
    is_referral: bool,
    current_point: int,
) -> SwapResult:
    """Token A in, token B out; the fee is taken from the B output."""
    next_sqrt_price = get_next_sqrt_price_from_input(pool.sqrt_price, pool.liquidity, amount_in, True)
    if next_sqrt_price < pool.sqrt_min_price:
        raise PriceRangeViolationError(
            f"next sqrt price {next_sqrt_price} below sqrt_min_price {pool.sqrt_min_price}"
        )

    output_amount = get_delta_amount_b_unsigned(next_sqrt_price, pool.sqrt_price, pool.liquidity, Rounding.DOWN)
    fee = _fee_on_amount(pool, output_amount, is_referral, current_point, TradeDirection.A_TO_B, amount_in)
    return _result_with_fees(next_sqrt_price, fee)


def get_swap_result_from_b_to_a(
    pool: PoolSnapshot,
    amount_in: int,
    is_referral: bool,
    fee_treatment: FeeTreatment,
    current_point: int,
) -> SwapResult:
    """Token B in, token A out; the fee is taken from the A output unless skipped."""
    next_sqrt_price = get_next_sqrt_price_from_input(pool.sqrt_price, pool.liquidity, amount_in, False)
    if next_sqrt_price > pool.sqrt_max_price:
        raise PriceRangeViolationError(
            f"next sqrt price {next_sqrt_price} above sqrt_max_price {pool.sqrt_max_price}"
        )

    output_amount = get_delta_amount_a_unsigned(pool.sqrt_price, next_sqrt_price, pool.liquidity, Rounding.DOWN)

    if fee_treatment is FeeTreatment.SKIPPED:
        return SwapResult(
            output_amount=output_amount,
            next_sqrt_price=next_sqrt_price,
            lp_fee=0,
            protocol_fee=0,
            partner_fee=0,
            referral_fee=0,
        )
    if fee_treatment is FeeTreatment.APPLIED:
        fee = _fee_on_amount(pool, output_amount, is_referral, current_point, TradeDirection.B_TO_A, amount_in)
        return _result_with_fees(next_sqrt_price, fee)
    raise TypeError(f"fee_treatment must be a FeeTreatment: {fee_treatment!r}")


# ---------------------------------------------------------------------------
# Dispatch table
# ---------------------------------------------------------------------------

def _a_to_b_fee_on_output(pool: PoolSnapshot, amount_in: int, is_referral: bool, current_point: int) -> SwapResult:
    return get_swap_result_from_a_to_b(pool, amount_in, is_referral, current_point)


def _b_to_a_fee_on_output(pool: PoolSnapshot, amount_in: int, is_referral: bool, current_point: int) -> SwapResult:
    return get_swap_result_from_b_to_a(pool, amount_in, is_referral, FeeTreatment.APPLIED, current_point)


def _b_to_a_fee_on_input(pool: PoolSnapshot, amount_in: int, is_referral: bool, current_point: int) -> SwapResult:
    # Fee is charged in token B before the curve sees the amount.
    fee = _fee_on_amount(pool, amount_in, is_referral, current_point, TradeDirection.B_TO_A, amount_in)
    swap = get_swap_result_from_b_to_a(pool, fee.amount, is_referral, FeeTreatment.SKIPPED, current_point)
    return SwapResult(
        output_amount=swap.output_amount,
        next_sqrt_price=swap.next_sqrt_price,
        lp_fee=fee.lp_fee,
        protocol_fee=fee.protocol_fee,
        partner_fee=fee.partner_fee,
        referral_fee=fee.referral_fee,
    )


_SwapStep = Callable[[PoolSnapshot, int, bool, int], SwapResult]

_DISPATCH: Dict[Tuple[TradeDirection, CollectFeeMode], _SwapStep] = {
    (TradeDirection.A_TO_B, CollectFeeMode.BOTH_TOKEN): _a_to_b_fee_on_output,
    (TradeDirection.B_TO_A, CollectFeeMode.BOTH_TOKEN): _b_to_a_fee_on_output,
    (TradeDirection.A_TO_B, CollectFeeMode.ONLY_B): _a_to_b_fee_on_output,
    (TradeDirection.B_TO_A, CollectFeeMode.ONLY_B): _b_to_a_fee_on_input,
}


def is_fee_on_input(trade_direction: TradeDirection, collect_fee_mode: CollectFeeMode) -> bool:
    return trade_direction is TradeDirection.B_TO_A and collect_fee_mode is CollectFeeMode.ONLY_B


def get_swap_result(
    pool: PoolSnapshot,
    amount_in: int,
    *,
    is_referral: bool,
    trade_direction: TradeDirection,
    current_point: int,
) -> SwapResult:
    """Exact-in swap against `pool` at `current_point`."""
    require_uint("amount_in", amount_in)
    step = _DISPATCH.get((trade_direction, pool.collect_fee_mode))
    if step is None:
        raise TypeError(f"unsupported swap: {trade_direction!r} / {pool.collect_fee_mode!r}")

    result = step(pool, amount_in, is_referral, current_point)
    logger.debug(
        "swap %s mode=%s amount_in=%d -> out=%d next_sqrt_price=%d fee=%d",
        trade_direction.name,
        pool.collect_fee_mode.name,
        amount_in,
        result.output_amount,
        result.next_sqrt_price,
        result.total_fee,
    )
    return result


# ---------------------------------------------------------------------------
# Partial fill
# ---------------------------------------------------------------------------

def _partial_step(pool: PoolSnapshot, amount_in: int, trade_direction: TradeDirection) -> Tuple[int, int, int]:
    """(output_amount, next_sqrt_price, amount_left) with the price stopping at its bound."""
    if trade_direction is TradeDirection.A_TO_B:
        max_amount_in = get_delta_amount_a_unsigned_unchecked(
            pool.sqrt_min_price, pool.sqrt_price, pool.liquidity, Rounding.UP
        )
        if amount_in >= max_amount_in:
            consumed, next_sqrt_price = max_amount_in, pool.sqrt_min_price
        else:
            consumed = amount_in
            next_sqrt_price = get_next_sqrt_price_from_input(pool.sqrt_price, pool.liquidity, amount_in, True)
        output_amount = get_delta_amount_b_unsigned(next_sqrt_price, pool.sqrt_price, pool.liquidity, Rounding.DOWN)
    else:
        max_amount_in = get_delta_amount_b_unsigned_unchecked(
            pool.sqrt_price, pool.sqrt_max_price, pool.liquidity, Rounding.UP
        )
        if amount_in >= max_amount_in:
            consumed, next_sqrt_price = max_amount_in, pool.sqrt_max_price
        else:
            consumed = amount_in
            next_sqrt_price = get_next_sqrt_price_from_input(pool.sqrt_price, pool.liquidity, amount_in, False)
        output_amount = get_delta_amount_a_unsigned(pool.sqrt_price, next_sqrt_price, pool.liquidity, Rounding.DOWN)
    return output_amount, next_sqrt_price, amount_in - consumed


def get_swap_result_from_partial_input(
    pool: PoolSnapshot,
    amount_in: int,
    *,
    is_referral: bool,
    trade_direction: TradeDirection,
    current_point: int,
) -> PartialFillSwapResult:
    """
    Exact-in swap that fills as much of `amount_in` as the price range allows.

    When the pool runs out of range the unconsumed input is returned in
    `amount_left`, and an input-side fee is recomputed on the consumed part.
    """
    require_uint("amount_in", amount_in)
    fee_on_input = is_fee_on_input(trade_direction, pool.collect_fee_mode)

    input_fee = None
    actual_amount_in = amount_in
    if fee_on_input:
        input_fee = _fee_on_amount(pool, amount_in, is_referral, current_point, trade_direction, amount_in)
        actual_amount_in = input_fee.amount

    output_amount, next_sqrt_price, amount_left = _partial_step(pool, actual_amount_in, trade_direction)

    included_fee_input_amount = amount_in
    if amount_left > 0:
        actual_amount_in -= amount_left
        included_fee_input_amount = actual_amount_in
        if fee_on_input:
            trade_fee_numerator = get_trade_fee_numerator(
                pool.pool_fees,
                current_point=current_point,
                activation_point=pool.activation_point,
                max_fee_numerator=get_max_fee_numerator(pool.version),
                trade_direction=trade_direction,
                amount=actual_amount_in,
                amount_includes_fee=False,
                sqrt_price=pool.sqrt_price,
            )
            included_fee_input_amount, fee_amount = get_included_fee_amount(trade_fee_numerator, actual_amount_in)
            split = split_fees(pool.pool_fees, fee_amount, has_referral=is_referral, has_partner=pool.has_partner)
            input_fee = FeeOnAmountResult(
                amount=actual_amount_in,
                lp_fee=split.lp_fee,
                protocol_fee=split.protocol_fee,
                partner_fee=split.partner_fee,
                referral_fee=split.referral_fee,
            )

    if input_fee is not None:
        fee = input_fee
        final_output = output_amount
    else:
        fee = _fee_on_amount(pool, output_amount, is_referral, current_point, trade_direction, amount_in)
        final_output = fee.amount

    result = PartialFillSwapResult(
        included_fee_input_amount=included_fee_input_amount,
        excluded_fee_input_amount=actual_amount_in,
        amount_left=amount_left,
        output_amount=final_output,
        next_sqrt_price=next_sqrt_price,
        lp_fee=fee.lp_fee,
        protocol_fee=fee.protocol_fee,
        partner_fee=fee.partner_fee,
        referral_fee=fee.referral_fee,
    )
    logger.debug(
        "partial swap %s mode=%s amount_in=%d -> in=%d left=%d out=%d fee=%d",
        trade_direction.name,
        pool.collect_fee_mode.name,
        amount_in,
        result.included_fee_input_amount,
        result.amount_left,
        result.output_amount,
        result.total_fee,
    )
    return result


# ---------------------------------------------------------------------------
# Exact output
# ---------------------------------------------------------------------------

def _input_for_output(pool: PoolSnapshot, amount_out: int, trade_direction: TradeDirection) -> Tuple[int, int]:
    """(input_amount, next_sqrt_price) the curve needs to release `amount_out`."""
    a_for_b = trade_direction is TradeDirection.A_TO_B
    next_sqrt_price = get_next_sqrt_price_from_output(pool.sqrt_price, pool.liquidity, amount_out, a_for_b)
    if a_for_b:
        if next_sqrt_price < pool.sqrt_min_price:
            raise PriceRangeViolationError(
                f"next sqrt price {next_sqrt_price} below sqrt_min_price {pool.sqrt_min_price}"
            )
        input_amount = get_delta_amount_a_unsigned(next_sqrt_price, pool.sqrt_price, pool.liquidity, Rounding.UP)
    else:
        if next_sqrt_price > pool.sqrt_max_price:
            raise PriceRangeViolationError(
                f"next sqrt price {next_sqrt_price} above sqrt_max_price {pool.sqrt_max_price}"
            )
        input_amount = get_delta_amount_b_unsigned(pool.sqrt_price, next_sqrt_price, pool.liquidity, Rounding.UP)
    return input_amount, next_sqrt_price


def _excluded_fee_numerator(
    pool: PoolSnapshot,
    excluded_fee_amount: int,
    trade_direction: TradeDirection,
    current_point: int,
) -> int:
    return get_trade_fee_numerator(
        pool.pool_fees,
        current_point=current_point,
        activation_point=pool.activation_point,
        max_fee_numerator=get_max_fee_numerator(pool.version),
        trade_direction=trade_direction,
        amount=excluded_fee_amount,
        amount_includes_fee=False,
        sqrt_price=pool.sqrt_price,
    )


def get_swap_result_from_exact_output(
    pool: PoolSnapshot,
    amount_out: int,
    *,
    is_referral: bool,
    trade_direction: TradeDirection,
    current_point: int,
) -> ExactOutSwapResult:
    """
    Input needed to receive exactly `amount_out`.

    The fee leg follows the same table as exact-in: when the fee is on the
    output, the curve must release `amount_out` grossed up by the fee; when it
    is on the input, the curve's input is grossed up instead.
    """
    require_uint("amount_out", amount_out)
    if amount_out == 0:
        raise AmountIsZeroError("amount_out is zero")

    if is_fee_on_input(trade_direction, pool.collect_fee_mode):
        input_amount, next_sqrt_price = _input_for_output(pool, amount_out, trade_direction)
        trade_fee_numerator = _excluded_fee_numerator(pool, input_amount, trade_direction, current_point)
        included_fee_input_amount, fee_amount = get_included_fee_amount(trade_fee_numerator, input_amount)
    else:
        trade_fee_numerator = _excluded_fee_numerator(pool, amount_out, trade_direction, current_point)
        included_fee_output, fee_amount = get_included_fee_amount(trade_fee_numerator, amount_out)
        input_amount, next_sqrt_price = _input_for_output(pool, included_fee_output, trade_direction)
        included_fee_input_amount = input_amount

    split = split_fees(pool.pool_fees, fee_amount, has_referral=is_referral, has_partner=pool.has_partner)
    result = ExactOutSwapResult(
        included_fee_input_amount=included_fee_input_amount,
        excluded_fee_input_amount=input_amount,
        output_amount=amount_out,
        next_sqrt_price=next_sqrt_price,
        lp_fee=split.lp_fee,
        protocol_fee=split.protocol_fee,
        partner_fee=split.partner_fee,
        referral_fee=split.referral_fee,
    )
    logger.debug(
        "exact-out %s mode=%s amount_out=%d -> in=%d next_sqrt_price=%d fee=%d",
        trade_direction.name,
        pool.collect_fee_mode.name,
        amount_out,
        result.included_fee_input_amount,
        result.next_sqrt_price,
        result.total_fee,
    )
    return result
