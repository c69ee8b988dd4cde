"""
Kernel layer.

Integer-only primitives shared by the curve and fee math. Nothing here knows
about pools; it only knows widths and rounding.
"""
