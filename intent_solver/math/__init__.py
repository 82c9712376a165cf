"""Mathematical utilities for the intent solver.

This package provides exact integer primitives for token amounts:
prices in basis points, slippage, fees, and decimal formatting.
"""

from intent_solver.math.fixed_point import (
    apply_slippage,
    apply_spread,
    bps_of,
    calculate_fee,
    calculate_price,
    format_amount,
    meets_min_output,
    parse_amount,
    price_impact_bps,
    proportional_min_output,
)

__all__ = [
    "apply_slippage",
    "apply_spread",
    "bps_of",
    "calculate_fee",
    "calculate_price",
    "format_amount",
    "meets_min_output",
    "parse_amount",
    "price_impact_bps",
    "proportional_min_output",
]
