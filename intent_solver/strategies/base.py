"""Base protocol and data structures for solver strategies."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import structlog

from intent_solver.math.fixed_point import meets_min_output
from intent_solver.models.intent import Intent, IntentType
from intent_solver.models.schedule import ScheduleWindow
from intent_solver.models.solution import Solution
from intent_solver.schedule.decomposer import window_min_output

logger = structlog.get_logger()


class SolverStrategy(Protocol):
    """Protocol for solver strategies.

    A strategy decides which intents it serves, turns a raw quote into the
    solution it is willing to deliver, and scores that solution. Strategies
    are chosen once at startup from configuration (see
    `intent_solver.strategies.registry.build_strategy`).
    """

    name: str

    def can_handle(self, intent: Intent) -> bool:
        """True if this strategy serves intents of this kind."""
        ...

    def build_solution(
        self, intent: Intent, window: ScheduleWindow, quote: Solution
    ) -> Solution | None:
        """Adjust a market quote into the solution to submit.

        Returns:
            The solution, or None if the strategy declines the intent.
        """
        ...

    def estimate_profit(
        self, intent: Intent, solution: Solution, window: ScheduleWindow | None = None
    ) -> int:
        """Signed profit estimate. Positive means profitable."""
        ...

    def is_profitable(
        self, intent: Intent, solution: Solution, window: ScheduleWindow | None = None
    ) -> bool:
        ...

    def meets_min_output(
        self, solution: Solution, intent: Intent, window: ScheduleWindow | None = None
    ) -> bool:
        ...

    def is_expired(self, intent: Intent, now: int) -> bool:
        ...

    def record_fill(self, intent: Intent, amount: int) -> None:
        """Hook called after the ledger accepts one of our fills."""
        ...


class BaseStrategy:
    """Baseline contract shared by every strategy.

    - profit is output minus input (for a window: minus the window amount)
    - min-output compliance delegates to the fixed-point helper, pro-rata
      for schedule windows
    - an intent is expired strictly after its deadline
    """

    name = "BaseStrategy"
    supported_types: frozenset[IntentType] = frozenset(IntentType)

    def can_handle(self, intent: Intent) -> bool:
        return intent.type in self.supported_types

    def build_solution(
        self, intent: Intent, window: ScheduleWindow, quote: Solution
    ) -> Solution | None:
        return quote

    def estimate_profit(
        self, intent: Intent, solution: Solution, window: ScheduleWindow | None = None
    ) -> int:
        input_amount = window.amount_for_period if window is not None else intent.input_amount
        return solution.output_amount - input_amount

    def is_profitable(
        self, intent: Intent, solution: Solution, window: ScheduleWindow | None = None
    ) -> bool:
        return True

    def meets_min_output(
        self, solution: Solution, intent: Intent, window: ScheduleWindow | None = None
    ) -> bool:
        return meets_min_output(solution.output_amount, window_min_output(intent, window))

    def is_expired(self, intent: Intent, now: int) -> bool:
        return now > intent.deadline

    def record_fill(self, intent: Intent, amount: int) -> None:
        return None


@dataclass(frozen=True)
class Evaluation:
    """Score of one candidate solution.

    Attributes:
        profit: Signed profit estimate from the strategy
        meets_min_output: True if the solution clears the window's floor
        expired: True if the intent is past its deadline
        profitable: True if the strategy's profitability gate passed
        reason: Why the candidate was rejected, None if accepted
    """

    profit: int
    meets_min_output: bool
    expired: bool
    profitable: bool = True
    reason: str | None = None

    @property
    def accepted(self) -> bool:
        return self.reason is None


def evaluate(
    strategy: SolverStrategy,
    intent: Intent,
    solution: Solution,
    now: int,
    window: ScheduleWindow | None = None,
) -> Evaluation:
    """Score a solution against an intent with the given strategy.

    Arithmetic errors raised by the strategy propagate; the solver loop
    contains them per intent.
    """
    expired = strategy.is_expired(intent, now)
    meets_min = strategy.meets_min_output(solution, intent, window)
    profit = strategy.estimate_profit(intent, solution, window)
    profitable = strategy.is_profitable(intent, solution, window)

    reason = None
    if expired:
        reason = "expired"
    elif not meets_min:
        reason = "below_min_output"
    elif not profitable:
        reason = "unprofitable"

    evaluation = Evaluation(
        profit=profit,
        meets_min_output=meets_min,
        expired=expired,
        profitable=profitable,
        reason=reason,
    )
    logger.debug(
        "solution_evaluated",
        strategy=strategy.name,
        intent_id=intent.id,
        period_index=window.period_index if window is not None else None,
        output_amount=solution.output_amount,
        profit=profit,
        reason=reason,
    )
    return evaluation
