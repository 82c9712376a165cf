"""Solver configuration.

All values can be set through environment variables (see
`SolverConfig.from_env`). Required: RPC_URL, VELOX_ADDRESS, SOLVER_ADDRESS.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from urllib.parse import urlparse

from intent_solver.constants import AUCTION_MODES
from intent_solver.errors import PreconditionFailure
from intent_solver.models.intent import AuctionType, Intent, IntentType
from intent_solver.models.types import is_valid_address, same_address
from intent_solver.safe_int import U64_MAX

REQUIRED_ENV_VARS = ("RPC_URL", "VELOX_ADDRESS", "SOLVER_ADDRESS")

STRATEGY_NAMES = frozenset({"baseline", "arbitrage", "market_maker"})


@dataclass(frozen=True)
class SolverConfig:
    """Centralized configuration for one solver identity.

    Attributes:
        rpc_url: Ledger node REST endpoint
        velox_address: Settlement contract address
        solver_address: This solver's account address
        signer_url: Remote signing service; without one the solver runs dry
        poll_interval: Seconds between polls (default: 5)
        skip_existing_on_startup: Ignore intents that exist before the first poll
        max_concurrent: Intents evaluated in parallel (default: 5)
        dry_run: Evaluate and log, never submit
        enable_*: Per intent type / auction type participation switches
        min_input_amount, max_input_amount: Input size bounds, inclusive
        input_token_whitelist, output_token_whitelist: Empty means all tokens
        strategy: "baseline", "arbitrage" or "market_maker"
        min_profit_bps: Arbitrage margin over the floor (default: 10)
        spread_bps: Market maker spread (default: 10)
        max_exposure: Market maker inventory cap per input token
        min_deadline_seconds: Skip intents closer than this to their deadline
        dutch_auction_mode: Dutch acceptance band
        sealed_bid_mode: Sealed-bid premium
        retry_base_delay: Backoff after a failed submission; 0 retries next poll
        retry_max_delay: Backoff cap in seconds
        price_cache_ttl: Seconds a fetched USD price stays fresh
        log_level: structlog level name
        log_json: Render logs as JSON lines
    """

    rpc_url: str
    velox_address: str
    solver_address: str
    signer_url: str | None = None

    # Behavior
    poll_interval: float = 5.0
    skip_existing_on_startup: bool = True
    max_concurrent: int = 5
    dry_run: bool = False

    # Intent filtering
    enable_swap: bool = True
    enable_limit_order: bool = True
    enable_twap: bool = True
    enable_dca: bool = True
    enable_sealed_bid_auction: bool = True
    enable_dutch_auction: bool = True
    min_input_amount: int = 0
    max_input_amount: int = U64_MAX
    input_token_whitelist: tuple[str, ...] = field(default_factory=tuple)
    output_token_whitelist: tuple[str, ...] = field(default_factory=tuple)

    # Strategy
    strategy: str = "baseline"
    min_profit_bps: int = 10
    spread_bps: int = 10
    max_exposure: int = 1_000_000_000_000
    min_deadline_seconds: int = 30

    # Auctions
    dutch_auction_mode: str = "moderate"
    sealed_bid_mode: str = "moderate"

    # Retry
    retry_base_delay: float = 0.0
    retry_max_delay: float = 60.0

    # Pricing
    price_cache_ttl: float = 300.0

    # Logging
    log_level: str = "info"
    log_json: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SolverConfig:
        """Build a config from environment variables.

        POLLING_INTERVAL is in milliseconds.

        Raises:
            PreconditionFailure: If a required variable is missing or a
                numeric variable does not parse
        """
        env = os.environ if environ is None else environ
        missing = [name for name in REQUIRED_ENV_VARS if not env.get(name)]
        if missing:
            raise PreconditionFailure(
                f"Missing required environment variables: {', '.join(missing)}"
            )

        try:
            return cls(
                rpc_url=env["RPC_URL"],
                velox_address=env["VELOX_ADDRESS"],
                solver_address=env["SOLVER_ADDRESS"],
                signer_url=env.get("SIGNER_URL") or None,
                poll_interval=int(env.get("POLLING_INTERVAL", "5000")) / 1000,
                skip_existing_on_startup=_env_flag(env, "SKIP_EXISTING", True),
                max_concurrent=int(env.get("MAX_CONCURRENT", "5")),
                dry_run=_env_flag(env, "DRY_RUN", False),
                enable_swap=_env_flag(env, "ENABLE_SWAP", True),
                enable_limit_order=_env_flag(env, "ENABLE_LIMIT_ORDER", True),
                enable_twap=_env_flag(env, "ENABLE_TWAP", True),
                enable_dca=_env_flag(env, "ENABLE_DCA", True),
                enable_sealed_bid_auction=_env_flag(env, "ENABLE_SEALED_BID_AUCTION", True),
                enable_dutch_auction=_env_flag(env, "ENABLE_DUTCH_AUCTION", True),
                min_input_amount=int(env.get("MIN_INPUT_AMOUNT", "0")),
                max_input_amount=int(env.get("MAX_INPUT_AMOUNT", str(U64_MAX))),
                input_token_whitelist=_env_list(env, "INPUT_TOKEN_WHITELIST"),
                output_token_whitelist=_env_list(env, "OUTPUT_TOKEN_WHITELIST"),
                strategy=env.get("SOLVER_STRATEGY", "baseline"),
                min_profit_bps=int(env.get("MIN_PROFIT_BPS", "10")),
                spread_bps=int(env.get("SPREAD_BPS", "10")),
                max_exposure=int(env.get("MAX_EXPOSURE", "1000000000000")),
                min_deadline_seconds=int(env.get("MIN_DEADLINE_SECONDS", "30")),
                dutch_auction_mode=env.get("DUTCH_AUCTION_STRATEGY", "moderate"),
                sealed_bid_mode=env.get("SEALED_BID_STRATEGY", "moderate"),
                retry_base_delay=float(env.get("RETRY_BASE_DELAY", "0")),
                retry_max_delay=float(env.get("RETRY_MAX_DELAY", "60")),
                price_cache_ttl=float(env.get("PRICE_CACHE_TTL", "300")),
                log_level=env.get("LOG_LEVEL", "info"),
                log_json=_env_flag(env, "LOG_JSON", False),
            )
        except ValueError as err:
            raise PreconditionFailure(f"Invalid numeric environment variable: {err}") from err

    def validate(self) -> list[str]:
        """Human-readable configuration problems. Empty means valid."""
        errors = []

        parsed = urlparse(self.rpc_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            errors.append("Invalid RPC_URL format")
        if not is_valid_address(self.velox_address):
            errors.append("Invalid VELOX_ADDRESS format")
        if not is_valid_address(self.solver_address):
            errors.append("Invalid SOLVER_ADDRESS format")

        if self.poll_interval < 1:
            errors.append("POLLING_INTERVAL must be at least 1000ms")
        if not 1 <= self.max_concurrent <= 100:
            errors.append("MAX_CONCURRENT must be between 1 and 100")
        if not 0 <= self.min_profit_bps <= 10_000:
            errors.append("MIN_PROFIT_BPS must be between 0 and 10000")
        if not 0 <= self.spread_bps < 10_000:
            errors.append("SPREAD_BPS must be between 0 and 9999")
        if self.min_deadline_seconds < 5:
            errors.append("MIN_DEADLINE_SECONDS must be at least 5")
        if self.min_input_amount > self.max_input_amount:
            errors.append("MIN_INPUT_AMOUNT exceeds MAX_INPUT_AMOUNT")
        if self.strategy not in STRATEGY_NAMES:
            errors.append(f"SOLVER_STRATEGY must be one of {sorted(STRATEGY_NAMES)}")
        for name, mode in (
            ("DUTCH_AUCTION_STRATEGY", self.dutch_auction_mode),
            ("SEALED_BID_STRATEGY", self.sealed_bid_mode),
        ):
            if mode not in AUCTION_MODES:
                errors.append(f"{name} must be one of {sorted(AUCTION_MODES)}")
        if self.retry_base_delay < 0 or self.retry_max_delay < self.retry_base_delay:
            errors.append("RETRY_BASE_DELAY must be >= 0 and <= RETRY_MAX_DELAY")

        return errors

    def accepts(self, intent: Intent) -> str | None:
        """Why this solver filters the intent out, or None to consider it."""
        type_enabled = {
            IntentType.SWAP: self.enable_swap,
            IntentType.LIMIT_ORDER: self.enable_limit_order,
            IntentType.TWAP: self.enable_twap,
            IntentType.DCA: self.enable_dca,
        }
        if not type_enabled[intent.type]:
            return "type_disabled"
        if intent.auction_type == AuctionType.SEALED_BID and not self.enable_sealed_bid_auction:
            return "auction_disabled"
        if intent.auction_type == AuctionType.DUTCH and not self.enable_dutch_auction:
            return "auction_disabled"
        if not self.min_input_amount <= intent.input_amount <= self.max_input_amount:
            return "input_out_of_bounds"
        if self.input_token_whitelist and not any(
            same_address(intent.input_token, t) for t in self.input_token_whitelist
        ):
            return "input_token_not_whitelisted"
        if self.output_token_whitelist and not any(
            same_address(intent.output_token, t) for t in self.output_token_whitelist
        ):
            return "output_token_not_whitelisted"
        return None

    def summary(self) -> dict[str, object]:
        """Operator-facing summary. Never includes signer credentials."""
        return {
            "rpc_url": self.rpc_url,
            "velox_address": self.velox_address,
            "solver_address": self.solver_address,
            "signer": "remote" if self.signer_url else "none",
            "strategy": self.strategy,
            "intent_types": {
                "swap": self.enable_swap,
                "limit_order": self.enable_limit_order,
                "twap": self.enable_twap,
                "dca": self.enable_dca,
            },
            "auctions": {
                "sealed_bid": self.enable_sealed_bid_auction,
                "dutch": self.enable_dutch_auction,
                "dutch_mode": self.dutch_auction_mode,
                "sealed_bid_mode": self.sealed_bid_mode,
            },
            "min_profit_bps": self.min_profit_bps,
            "spread_bps": self.spread_bps,
            "min_deadline_seconds": self.min_deadline_seconds,
            "poll_interval": self.poll_interval,
            "max_concurrent": self.max_concurrent,
            "skip_existing_on_startup": self.skip_existing_on_startup,
            "dry_run": self.dry_run,
        }


def _env_flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = env.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("true", "1", "yes")


def _env_list(env: Mapping[str, str], name: str) -> tuple[str, ...]:
    return tuple(t.strip() for t in env.get(name, "").split(",") if t.strip())
