"""
Core quote algorithms
"""

from .curve import (
    get_delta_amount_a_unsigned,
    get_delta_amount_b_unsigned,
    get_next_sqrt_price_from_input,
    get_next_sqrt_price_from_output,
)
from .fees import (
    BaseFeeHandler,
    get_base_fee_handler,
    get_fee_on_amount,
    get_included_fee_amount,
    split_fees,
    update_post_swap,
    update_pre_swap,
)
from .swap import (
    ExactOutSwapResult,
    FeeTreatment,
    PartialFillSwapResult,
    SwapResult,
    get_swap_result,
    get_swap_result_from_exact_output,
    get_swap_result_from_partial_input,
)
from .quote import (
    check_maximum_amount_in,
    check_minimum_amount_out,
    get_current_point,
    get_max_amount_with_slippage,
    get_min_amount_with_slippage,
    quote_exact_in,
    quote_exact_out,
    quote_partial_input,
)
from .price import get_price_change, get_price_from_sqrt_price, get_price_impact, get_sqrt_price_from_price

__all__ = [
    "get_delta_amount_a_unsigned",
    "get_delta_amount_b_unsigned",
    "get_next_sqrt_price_from_input",
    "get_next_sqrt_price_from_output",
    "BaseFeeHandler",
    "get_base_fee_handler",
    "get_fee_on_amount",
    "get_included_fee_amount",
    "split_fees",
    "update_post_swap",
    "update_pre_swap",
    "ExactOutSwapResult",
    "FeeTreatment",
    "PartialFillSwapResult",
    "SwapResult",
    "get_swap_result",
    "get_swap_result_from_exact_output",
    "get_swap_result_from_partial_input",
    "check_maximum_amount_in",
    "check_minimum_amount_out",
    "get_current_point",
    "get_max_amount_with_slippage",
    "get_min_amount_with_slippage",
    "quote_exact_in",
    "quote_exact_out",
    "quote_partial_input",
    "get_price_change",
    "get_price_from_sqrt_price",
    "get_price_impact",
    "get_sqrt_price_from_price",
]
