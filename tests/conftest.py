"""Pytest configuration and fixtures."""

import pytest

from intent_solver.strategies import BaselineStrategy
from tests.helpers import FakeClock, FixedQuoter, InMemoryLedger, make_config


@pytest.fixture
def clock() -> FakeClock:
    """Fake unix clock starting at T0."""
    return FakeClock()


@pytest.fixture
def ledger(clock: FakeClock) -> InMemoryLedger:
    """Empty in-memory ledger sharing the fake clock."""
    return InMemoryLedger(clock)


@pytest.fixture
def quoter() -> FixedQuoter:
    """Quoter at 0.036 tUSDC per tMOVE."""
    return FixedQuoter()


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def strategy() -> BaselineStrategy:
    return BaselineStrategy()
