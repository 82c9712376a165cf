"""Unit tests for the operator API."""

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from intent_solver import __version__
from intent_solver.api.endpoints import attach_solver_loop, get_solver_loop
from intent_solver.api.main import app
from intent_solver.errors import DivisionByZero, InvariantViolation, LedgerError
from intent_solver.loop import SolverLoop
from intent_solver.strategies import BaselineStrategy
from tests.helpers import (
    FailingQuoter,
    FakeClock,
    FixedQuoter,
    InMemoryLedger,
    make_config,
    make_dca_intent,
    make_swap_intent,
)


@pytest.fixture
def solver_loop() -> SolverLoop:
    clock = FakeClock()
    ledger = InMemoryLedger(clock)
    ledger.add(make_dca_intent(intent_id=0))
    ledger.add(make_swap_intent(intent_id=1, min_output_amount=9_000_000))
    return SolverLoop(ledger, FixedQuoter(), BaselineStrategy(), make_config(), clock=clock)


@pytest.fixture
def client() -> Iterator[TestClient]:
    """Create a test client for the API."""
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def client_with_loop(solver_loop) -> Iterator[TestClient]:
    """Create a test client with an injected solver loop."""
    app.dependency_overrides[get_solver_loop] = lambda: solver_loop
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:
    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "version": __version__}


class TestStatus:
    def test_no_loop_attached(self, client):
        """Without a running loop the status endpoint is unavailable."""
        response = client.get("/status")
        assert response.status_code == 503

    def test_reports_stats_and_config(self, client_with_loop):
        response = client_with_loop.get("/status")
        assert response.status_code == 200

        data = response.json()
        assert data["running"] is False
        assert data["strategy"] == "BaselineStrategy"
        assert data["stats"]["polls"] == 0
        assert data["config"]["signer"] == "none"

    def test_attach_solver_loop(self, client, solver_loop):
        attach_solver_loop(solver_loop)
        try:
            assert client.get("/status").status_code == 200
        finally:
            attach_solver_loop(None)
        assert client.get("/status").status_code == 503


class TestQuote:
    def test_ready_plan(self, client_with_loop, solver_loop):
        response = client_with_loop.post("/quote/0")
        assert response.status_code == 200

        data = response.json()
        assert data["type"] == "DCA"
        assert data["window"]["period_index"] == 0
        assert data["output_amount"] == 360_000
        assert data["decision"]["may_submit"] is True
        assert data["halt"] is None
        # Dry run only
        assert solver_loop.ledger.submissions == []

    def test_halted_plan(self, client_with_loop):
        """A quote below the floor is reported, not an error."""
        response = client_with_loop.post("/quote/1")
        assert response.status_code == 200

        data = response.json()
        assert data["halt"] == "skipped"
        assert data["reason"] == "below_min_output"

    def test_unknown_intent(self, client_with_loop):
        response = client_with_loop.post("/quote/99")
        assert response.status_code == 404

    def test_ledger_error(self, client, solver_loop):
        solver_loop.quoter = FailingQuoter(LedgerError("node down"))
        app.dependency_overrides[get_solver_loop] = lambda: solver_loop

        response = client.post("/quote/0")
        assert response.status_code == 502
        assert "node down" in response.json()["detail"]

    @pytest.mark.parametrize(
        "error",
        [InvariantViolation("malformed fill record"), DivisionByZero("zero price")],
    )
    def test_unevaluable_intent(self, client, solver_loop, error):
        solver_loop.quoter = FailingQuoter(error)
        app.dependency_overrides[get_solver_loop] = lambda: solver_loop

        response = client.post("/quote/0")
        assert response.status_code == 422
        assert str(error) in response.json()["detail"]

    def test_invalid_intent_id(self, client_with_loop):
        response = client_with_loop.post("/quote/not-a-number")
        assert response.status_code == 422
