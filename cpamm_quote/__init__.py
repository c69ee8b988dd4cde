"""
Off-chain quote engine for a concentrated-liquidity constant-product pool
"""

__version__ = "0.1.0"
