"""Tests for the intent-solver command line."""

import json

import httpx
import pytest

from intent_solver.cli import build_loop, load_config, main
from intent_solver.errors import PreconditionFailure
from intent_solver.ledger import RestLedgerClient
from intent_solver.strategies import ArbitrageStrategy
from tests.helpers import SOLVER, VELOX, make_config


@pytest.fixture
def solver_env(monkeypatch):
    monkeypatch.setenv("RPC_URL", "https://testnet.movementnetwork.xyz/v1")
    monkeypatch.setenv("VELOX_ADDRESS", VELOX)
    monkeypatch.setenv("SOLVER_ADDRESS", SOLVER)


class TestStatusCommand:
    def test_prints_summary(self, solver_env, capsys):
        assert main(["status"]) == 0
        output = json.loads(capsys.readouterr().out)
        assert output["errors"] == []
        assert output["config"]["solver_address"] == SOLVER

    def test_reports_validation_errors(self, solver_env, monkeypatch, capsys):
        monkeypatch.setenv("MAX_CONCURRENT", "0")
        assert main(["status"]) == 1
        output = json.loads(capsys.readouterr().out)
        assert any("MAX_CONCURRENT" in e for e in output["errors"])

    def test_missing_environment(self, monkeypatch, capsys):
        monkeypatch.delenv("RPC_URL", raising=False)
        assert main(["status"]) == 1
        assert "Configuration error" in capsys.readouterr().err


class TestLoadConfig:
    def test_dry_run_flag(self, solver_env):
        assert load_config(dry_run=True).dry_run is True

    def test_invalid_config_raises(self, solver_env, monkeypatch):
        monkeypatch.setenv("SOLVER_STRATEGY", "yolo")
        with pytest.raises(PreconditionFailure, match="SOLVER_STRATEGY"):
            load_config()


class TestBuildLoop:
    def test_without_signer_forces_dry_run(self):
        loop = build_loop(make_config(), httpx.AsyncClient())
        assert loop.config.dry_run is True
        assert isinstance(loop.ledger, RestLedgerClient)
        assert loop.ledger.signer is None

    def test_with_signer(self):
        config = make_config(signer_url="https://signer.test", strategy="arbitrage")
        loop = build_loop(config, httpx.AsyncClient())
        assert loop.config.dry_run is False
        assert loop.ledger.signer is not None
        assert isinstance(loop.strategy, ArbitrageStrategy)
