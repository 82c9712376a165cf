"""Strategy selection by configured name."""

from __future__ import annotations

from intent_solver.config import SolverConfig
from intent_solver.errors import PreconditionFailure
from intent_solver.strategies.arbitrage import ArbitrageStrategy
from intent_solver.strategies.base import SolverStrategy
from intent_solver.strategies.baseline import BaselineStrategy
from intent_solver.strategies.market_maker import MarketMakerStrategy


def build_strategy(config: SolverConfig) -> SolverStrategy:
    """Instantiate the strategy named by `config.strategy`.

    Raises:
        PreconditionFailure: For an unknown strategy name
    """
    if config.strategy == "baseline":
        return BaselineStrategy()
    if config.strategy == "arbitrage":
        return ArbitrageStrategy(min_profit_bps=config.min_profit_bps)
    if config.strategy == "market_maker":
        return MarketMakerStrategy(spread_bps=config.spread_bps, max_exposure=config.max_exposure)
    raise PreconditionFailure(f"Unknown strategy: {config.strategy}")
