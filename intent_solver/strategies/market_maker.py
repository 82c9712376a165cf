"""Market maker strategy: quote with a spread and cap per-token exposure."""

from __future__ import annotations

import structlog

from intent_solver.constants import BPS_DENOMINATOR
from intent_solver.math.fixed_point import apply_spread
from intent_solver.models.intent import Intent, IntentType
from intent_solver.models.schedule import ScheduleWindow
from intent_solver.models.solution import Solution
from intent_solver.models.types import normalize_address
from intent_solver.safe_int import S
from intent_solver.strategies.base import BaseStrategy

logger = structlog.get_logger()

# Default inventory cap per input token, in smallest units
DEFAULT_MAX_EXPOSURE = 1_000_000_000_000


class MarketMakerStrategy(BaseStrategy):
    """Provides liquidity on SWAP and LIMIT_ORDER intents.

    The delivered output is the quote reduced by `spread_bps`; the spread is
    the profit. Accepted fills accumulate exposure in the input token, and
    intents that would push it above `max_exposure` are declined.

    Args:
        spread_bps: Spread kept from each quote, in basis points
        max_exposure: Inventory cap per input token
    """

    name = "MarketMakerStrategy"
    supported_types = frozenset({IntentType.SWAP, IntentType.LIMIT_ORDER})

    def __init__(self, spread_bps: int = 10, max_exposure: int = DEFAULT_MAX_EXPOSURE) -> None:
        self.spread_bps = spread_bps
        self.max_exposure = max_exposure
        self._exposure: dict[str, int] = {}

    def build_solution(
        self, intent: Intent, window: ScheduleWindow, quote: Solution
    ) -> Solution | None:
        if not self.within_exposure_limits(intent, window.amount_for_period):
            logger.info(
                "exposure_limit_reached",
                intent_id=intent.id,
                token=intent.input_token,
                exposure=self.exposure(intent.input_token),
                max_exposure=self.max_exposure,
            )
            return None
        adjusted = apply_spread(quote.output_amount, self.spread_bps)
        return quote.model_copy(update={"output_amount": adjusted})

    def estimate_profit(
        self, intent: Intent, solution: Solution, window: ScheduleWindow | None = None
    ) -> int:
        return (S(solution.output_amount) * self.spread_bps // BPS_DENOMINATOR).value

    def exposure(self, token: str) -> int:
        return self._exposure.get(_token_key(token), 0)

    def within_exposure_limits(self, intent: Intent, amount: int) -> bool:
        return self.exposure(intent.input_token) + amount <= self.max_exposure

    def record_fill(self, intent: Intent, amount: int) -> None:
        key = _token_key(intent.input_token)
        self._exposure[key] = self._exposure.get(key, 0) + amount

    def reset_exposure(self) -> None:
        self._exposure.clear()


def _token_key(token: str) -> str:
    try:
        return normalize_address(token)
    except ValueError:
        return token
