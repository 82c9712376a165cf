"""Token pricing: USD price sources, a TTL cache and the oracle quoter."""

from intent_solver.pricing.cache import PriceCache
from intent_solver.pricing.quoter import OracleQuoter, Quoter, convert_amount
from intent_solver.pricing.sources import (
    CoinGeckoPriceSource,
    PriceSource,
    StaticPriceSource,
    TokenInfo,
)

__all__ = [
    "CoinGeckoPriceSource",
    "OracleQuoter",
    "PriceCache",
    "PriceSource",
    "Quoter",
    "StaticPriceSource",
    "TokenInfo",
    "convert_amount",
]
