"""Arbitrage strategy: fill swaps whose quote clears the floor by a margin."""

from __future__ import annotations

import structlog

from intent_solver.math.fixed_point import bps_of
from intent_solver.models.intent import Intent, IntentType
from intent_solver.models.schedule import ScheduleWindow
from intent_solver.models.solution import Solution
from intent_solver.schedule.decomposer import window_min_output
from intent_solver.strategies.base import BaseStrategy

logger = structlog.get_logger()


class ArbitrageStrategy(BaseStrategy):
    """Takes SWAP intents when the quoted output beats the floor.

    Profit is the surplus over the intent's minimum output. An intent with
    no floor is always taken but reports zero profit.

    Args:
        min_profit_bps: Minimum surplus over the floor, in basis points
    """

    name = "ArbitrageStrategy"
    supported_types = frozenset({IntentType.SWAP})

    def __init__(self, min_profit_bps: int = 10) -> None:
        self.min_profit_bps = min_profit_bps

    def estimate_profit(
        self, intent: Intent, solution: Solution, window: ScheduleWindow | None = None
    ) -> int:
        floor = window_min_output(intent, window)
        if floor is None:
            return 0
        return solution.output_amount - floor

    def is_profitable(
        self, intent: Intent, solution: Solution, window: ScheduleWindow | None = None
    ) -> bool:
        floor = window_min_output(intent, window)
        if not floor:
            return True
        surplus_bps = bps_of(solution.output_amount - floor, floor)
        if surplus_bps < self.min_profit_bps:
            logger.debug(
                "arbitrage_margin_too_thin",
                intent_id=intent.id,
                surplus_bps=surplus_bps,
                min_profit_bps=self.min_profit_bps,
            )
            return False
        return True
