"""Command line entry point for the intent solver.

Usage:
    # Poll the ledger and submit fills (configuration from the environment)
    intent-solver run

    # Same, with the operator API on SOLVER_HOST:SOLVER_PORT
    intent-solver run --api

    # Print the effective configuration and any validation problems
    intent-solver status

    # Dry-run the decision pipeline for one intent
    intent-solver inspect 42
"""

from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys
from dataclasses import replace

import httpx
import structlog

from intent_solver.config import SolverConfig
from intent_solver.errors import LedgerError, PreconditionFailure
from intent_solver.ledger.rest import RemoteSigner, RestLedgerClient
from intent_solver.logging_config import configure_logging
from intent_solver.loop import SolverLoop
from intent_solver.pricing.cache import PriceCache
from intent_solver.pricing.quoter import OracleQuoter
from intent_solver.pricing.sources import CoinGeckoPriceSource
from intent_solver.strategies.registry import build_strategy

logger = structlog.get_logger()


def build_loop(config: SolverConfig, client: httpx.AsyncClient) -> SolverLoop:
    """Wire the production components for one solver identity."""
    signer = None
    if config.signer_url:
        signer = RemoteSigner(config.signer_url, config.solver_address, client=client)
    elif not config.dry_run:
        logger.warning("no_signer_configured", message="Forcing dry run")
        config = replace(config, dry_run=True)

    ledger = RestLedgerClient(
        config.rpc_url, config.velox_address, signer=signer, client=client
    )
    source = CoinGeckoPriceSource(client=client, cache=PriceCache(ttl=config.price_cache_ttl))
    return SolverLoop(
        ledger=ledger,
        quoter=OracleQuoter(source),
        strategy=build_strategy(config),
        config=config,
    )


def load_config(dry_run: bool = False) -> SolverConfig:
    """Read and validate configuration from the environment.

    Raises:
        PreconditionFailure: If the configuration is missing or invalid
    """
    config = SolverConfig.from_env()
    if dry_run:
        config = replace(config, dry_run=True)
    errors = config.validate()
    if errors:
        raise PreconditionFailure("Invalid configuration: " + "; ".join(errors))
    return config


async def run_solver(config: SolverConfig, with_api: bool = False) -> None:
    """Run the solver loop (and optionally the API) until interrupted."""
    async with httpx.AsyncClient(timeout=30.0) as client:
        loop = build_loop(config, client)

        event_loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            event_loop.add_signal_handler(sig, loop.stop)

        if not with_api:
            await loop.run()
            return

        from intent_solver.api.endpoints import attach_solver_loop
        from intent_solver.api.main import server as api_server

        attach_solver_loop(loop)
        server = api_server(log_level=config.log_level)
        solver_task = asyncio.create_task(loop.run())
        api_task = asyncio.create_task(server.serve())
        try:
            # Whichever finishes first (signal, crash) takes the other down
            await asyncio.wait({solver_task, api_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            loop.stop()
            server.should_exit = True
            await asyncio.gather(solver_task, api_task, return_exceptions=True)
            attach_solver_loop(None)


async def inspect_intent(config: SolverConfig, intent_id: int) -> dict[str, object] | None:
    async with httpx.AsyncClient(timeout=30.0) as client:
        loop = build_loop(replace(config, dry_run=True), client)
        plan = await loop.inspect(intent_id)
        return plan.to_dict() if plan is not None else None


def main(argv: list[str] | None = None) -> int:
    """Entry point for the intent-solver command."""
    parser = argparse.ArgumentParser(
        description="Solver engine for intent-based trade settlement",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Poll the ledger and submit fills")
    run_parser.add_argument(
        "--api",
        action="store_true",
        help="Serve the operator API alongside the loop",
    )
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Evaluate and log, never submit",
    )

    subparsers.add_parser("status", help="Show configuration and validation problems")

    inspect_parser = subparsers.add_parser("inspect", help="Dry-run one intent")
    inspect_parser.add_argument("intent_id", type=int, help="Ledger intent id")

    args = parser.parse_args(argv)

    if args.command == "status":
        try:
            config = SolverConfig.from_env()
        except PreconditionFailure as err:
            print(f"Configuration error: {err}", file=sys.stderr)
            return 1
        errors = config.validate()
        print(json.dumps({"config": config.summary(), "errors": errors}, indent=2))
        return 1 if errors else 0

    try:
        config = load_config(dry_run=getattr(args, "dry_run", False))
    except PreconditionFailure as err:
        print(f"Configuration error: {err}", file=sys.stderr)
        return 1

    configure_logging(config.log_level, json_output=config.log_json)

    if args.command == "inspect":
        try:
            result = asyncio.run(inspect_intent(config, args.intent_id))
        except (LedgerError, PreconditionFailure) as err:
            print(f"Inspection failed: {err}", file=sys.stderr)
            return 1
        if result is None:
            print(f"Intent {args.intent_id} not found", file=sys.stderr)
            return 1
        print(json.dumps(result, indent=2, default=str))
        return 0

    logger.info("solver_config", **config.summary())
    asyncio.run(run_solver(config, with_api=args.api))
    return 0


if __name__ == "__main__":
    sys.exit(main())
