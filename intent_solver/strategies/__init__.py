"""Solver strategies.

Every strategy satisfies the SolverStrategy protocol: it decides which
intents it serves, shapes the market quote into the solution it will
deliver, and scores that solution (profit, min-output compliance, expiry).

The strategy is chosen once at startup from configuration:
    - BaselineStrategy: every intent type, quote passed through
    - ArbitrageStrategy: SWAP only, requires a margin over the floor
    - MarketMakerStrategy: SWAP and LIMIT_ORDER, keeps a spread, caps exposure
"""

from intent_solver.strategies.arbitrage import ArbitrageStrategy
from intent_solver.strategies.base import BaseStrategy, Evaluation, SolverStrategy, evaluate
from intent_solver.strategies.baseline import BaselineStrategy
from intent_solver.strategies.market_maker import MarketMakerStrategy
from intent_solver.strategies.registry import build_strategy

__all__ = [
    "ArbitrageStrategy",
    "BaseStrategy",
    "BaselineStrategy",
    "Evaluation",
    "MarketMakerStrategy",
    "SolverStrategy",
    "build_strategy",
    "evaluate",
]
