"""Baseline strategy: deliver the market quote unchanged."""

from intent_solver.strategies.base import BaseStrategy


class BaselineStrategy(BaseStrategy):
    """Handles every intent type and passes the quote through.

    Profit is reported with the baseline output-minus-input convention but
    never gates submission; the min-output floor is the only constraint.
    """

    name = "BaselineStrategy"
