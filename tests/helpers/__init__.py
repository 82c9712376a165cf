"""Test helpers module for shared test utilities.

This module consolidates common test utilities to reduce duplication:
- constants: Accounts, tokens and reference times
- factories: Intent, auction and config factory functions
- ledger: In-memory ledger, fake clock and fixed-rate quoter
"""

from tests.helpers.constants import HOUR, MAKER, OTHER_SOLVER, SOLVER, T0, TMOVE, TUSDC, VELOX
from tests.helpers.factories import (
    make_bid,
    make_config,
    make_dca_intent,
    make_dutch_auction,
    make_fill,
    make_sealed_auction,
    make_solution,
    make_swap_intent,
    make_twap_intent,
)
from tests.helpers.ledger import FailingQuoter, FakeClock, FixedQuoter, InMemoryLedger

__all__ = [
    # Constants
    "HOUR",
    "MAKER",
    "OTHER_SOLVER",
    "SOLVER",
    "T0",
    "TMOVE",
    "TUSDC",
    "VELOX",
    # Factories
    "make_bid",
    "make_config",
    "make_dca_intent",
    "make_dutch_auction",
    "make_fill",
    "make_sealed_auction",
    "make_solution",
    "make_swap_intent",
    "make_twap_intent",
    # Fakes
    "FailingQuoter",
    "FakeClock",
    "FixedQuoter",
    "InMemoryLedger",
]
