"""
Pure-Python fixed-point kernels.

Integer-only, with widths checked against u64/u128/u256 and rounding passed in
explicitly by every caller.
"""
