"""The solver control loop.

One SolverLoop runs per solver identity. Each poll it reads every intent the
ledger knows about and, for each PENDING or PARTIALLY_FILLED one:

1. skips it if expired (checked client-side, never left to the ledger)
2. picks the single eligible schedule window (FIFO by period)
3. quotes the window and lets the strategy shape and score a solution
4. asks the auction resolver whether and at what price it may submit
5. re-reads the intent and, if the window is still open, submits with a
   nonce reserved from the loop-owned NonceManager

Failures stay local to one intent: arithmetic and precondition errors are
logged and the intent is tried again next poll, stale state is skipped
silently, failed submissions retry the same window until the deadline, and
terminal intents are dropped.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

import structlog

from intent_solver.auction.resolver import AuctionDecision, AuctionPhase, AuctionResolver
from intent_solver.bookkeeping import BookkeepingSink, LoggingBookkeepingSink, TxHashCache, TxKind
from intent_solver.config import SolverConfig
from intent_solver.errors import (
    ArithmeticFailure,
    ExpiredFailure,
    InvariantViolation,
    LedgerError,
    PreconditionFailure,
    StaleStateFailure,
    SubmissionFailure,
)
from intent_solver.ledger.base import LedgerClient
from intent_solver.ledger.result import RejectionReason, SubmitResult
from intent_solver.models.intent import Intent
from intent_solver.models.schedule import ScheduleWindow
from intent_solver.models.solution import (
    AcceptRequest,
    BidRequest,
    FillRequest,
    Solution,
    SubmissionKind,
)
from intent_solver.models.types import same_address
from intent_solver.nonce import NonceManager
from intent_solver.pricing.quoter import Quoter
from intent_solver.schedule.decomposer import ScheduleDecomposer, window_min_output
from intent_solver.strategies.base import Evaluation, SolverStrategy, evaluate

logger = structlog.get_logger()


class OutcomeKind(str, Enum):
    """What happened to one intent during one poll."""

    SUBMITTED = "submitted"
    DRY_RUN = "dry_run"
    WAITING = "waiting"
    SKIPPED = "skipped"
    STALE = "stale"
    REJECTED = "rejected"
    FAILED = "failed"
    ERROR = "error"
    EXPIRED = "expired"
    DROPPED = "dropped"


@dataclass(frozen=True)
class Outcome:
    intent_id: int
    kind: OutcomeKind
    period_index: int | None = None
    action: SubmissionKind | None = None
    tx_hash: str | None = None
    reason: str | None = None


@dataclass
class SolverStats:
    """Counters since the loop started."""

    polls: int = 0
    evaluations: int = 0
    submissions: int = 0
    accepted: int = 0
    rejections: int = 0
    failures: int = 0
    errors: int = 0
    expired: int = 0
    dropped: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class Plan:
    """Everything the loop decided about one intent at one instant.

    `halt` is set when the pipeline stopped before a submission decision.
    """

    intent: Intent
    window: ScheduleWindow | None = None
    solution: Solution | None = None
    evaluation: Evaluation | None = None
    decision: AuctionDecision | None = None
    halt: OutcomeKind | None = None
    reason: str | None = None

    @property
    def ready(self) -> bool:
        return self.halt is None and self.decision is not None and self.decision.may_submit

    def to_dict(self) -> dict[str, Any]:
        windows = self.intent.schedule or []
        return {
            "intent_id": self.intent.id,
            "type": self.intent.type.value,
            "status": self.intent.status.value,
            "auction_type": self.intent.auction_type.value,
            "deadline": self.intent.deadline,
            "amount_filled": self.intent.amount_filled,
            "amount_remaining": self.intent.amount_remaining,
            "windows": [w.model_dump() for w in windows],
            "window": self.window.model_dump() if self.window is not None else None,
            "output_amount": self.solution.output_amount if self.solution is not None else None,
            "evaluation": asdict(self.evaluation) if self.evaluation is not None else None,
            "decision": _decision_dict(self.decision),
            "halt": self.halt.value if self.halt is not None else None,
            "reason": self.reason,
        }


def _decision_dict(decision: AuctionDecision | None) -> dict[str, Any] | None:
    if decision is None:
        return None
    return {
        "phase": decision.phase.value,
        "may_submit": decision.may_submit,
        "action": decision.action.value if decision.action is not None else None,
        "price": decision.price,
        "reason": decision.reason,
    }


@dataclass
class _RetryState:
    attempts: int = 0
    next_attempt: float = 0.0


@dataclass
class _Bookkeeping:
    tx_cache: TxHashCache = field(default_factory=TxHashCache)
    sink: BookkeepingSink = field(default_factory=LoggingBookkeepingSink)


class SolverLoop:
    """Polls the ledger and submits fills for one solver identity.

    Args:
        ledger: Authoritative intent state and submission endpoint
        quoter: Market quotes for intent windows
        strategy: Shapes and scores solutions
        config: Solver configuration
        resolver: Auction resolver (default: built from config)
        decomposer: Schedule decomposer
        nonces: Signing nonce sequencer (default: synced from the ledger)
        tx_cache: Local intent id -> tx hash cache
        bookkeeping: External bookkeeping sink
        clock: Current unix time in seconds
    """

    def __init__(
        self,
        ledger: LedgerClient,
        quoter: Quoter,
        strategy: SolverStrategy,
        config: SolverConfig,
        resolver: AuctionResolver | None = None,
        decomposer: ScheduleDecomposer | None = None,
        nonces: NonceManager | None = None,
        tx_cache: TxHashCache | None = None,
        bookkeeping: BookkeepingSink | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.ledger = ledger
        self.quoter = quoter
        self.strategy = strategy
        self.config = config
        self.resolver = resolver or AuctionResolver(
            config.solver_address,
            dutch_mode=config.dutch_auction_mode,
            sealed_bid_mode=config.sealed_bid_mode,
        )
        self.decomposer = decomposer or ScheduleDecomposer()
        self.nonces = nonces or NonceManager(
            lambda: ledger.get_sequence_number(config.solver_address)
        )
        self.books = _Bookkeeping(
            tx_cache=tx_cache if tx_cache is not None else TxHashCache(),
            sink=bookkeeping or LoggingBookkeepingSink(),
        )
        self.clock = clock or (lambda: int(time.time()))
        self.stats = SolverStats()

        self._semaphore = asyncio.Semaphore(config.max_concurrent)
        self._locks: dict[int, asyncio.Lock] = {}
        self._dropped: set[int] = set()
        self._retries: dict[tuple[int, int | None], _RetryState] = {}
        self._first_id = 0
        self._started = False
        self._stop_event: asyncio.Event | None = None

    # --- Lifecycle ---

    @property
    def running(self) -> bool:
        return self._stop_event is not None and not self._stop_event.is_set()

    async def run(self) -> None:
        """Poll every `poll_interval` seconds until stop() is called."""
        self._stop_event = asyncio.Event()
        logger.info(
            "solver_started",
            solver=self.config.solver_address,
            strategy=self.strategy.name,
            dry_run=self.config.dry_run,
            poll_interval=self.config.poll_interval,
        )
        while not self._stop_event.is_set():
            try:
                await self.poll_once()
            except Exception:
                logger.exception("poll_failed")
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.config.poll_interval)
            except TimeoutError:
                pass
        logger.info("solver_stopped", **self.stats.as_dict())

    def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    # --- Polling ---

    async def poll_once(self, now: int | None = None) -> list[Outcome]:
        """Run one pass over every live intent.

        Returns:
            One Outcome per intent considered this pass.
        """
        now = self.clock() if now is None else now
        self.stats.polls += 1
        try:
            total = await self.ledger.get_total_intents()
        except LedgerError as err:
            logger.warning("poll_read_failed", error=str(err))
            return []

        if not self._started:
            self._started = True
            if self.config.skip_existing_on_startup:
                self._first_id = total
                logger.info("skipping_existing_intents", count=total)

        intent_ids = [i for i in range(self._first_id, total) if i not in self._dropped]
        outcomes = await asyncio.gather(*(self._guarded(i, now) for i in intent_ids))
        return list(outcomes)

    async def _guarded(self, intent_id: int, now: int) -> Outcome:
        async with self._semaphore:
            lock = self._locks.setdefault(intent_id, asyncio.Lock())
            async with lock:
                return await self.process_intent(intent_id, now)

    async def process_intent(self, intent_id: int, now: int) -> Outcome:
        """Evaluate and possibly submit for one intent. Never raises."""
        try:
            return await self._process(intent_id, now)
        except StaleStateFailure as err:
            logger.debug("stale_state_skipped", intent_id=intent_id, reason=str(err))
            return Outcome(intent_id, OutcomeKind.STALE, reason=str(err))
        except ExpiredFailure as err:
            self._expire(intent_id, str(err))
            return Outcome(intent_id, OutcomeKind.EXPIRED, reason=str(err))
        except SubmissionFailure as err:
            self.stats.failures += 1
            logger.warning(
                "submission_failed", intent_id=intent_id, error=str(err), reason=err.reason
            )
            return Outcome(intent_id, OutcomeKind.FAILED, reason=str(err))
        except LedgerError as err:
            logger.warning("ledger_read_failed", intent_id=intent_id, error=str(err))
            return Outcome(intent_id, OutcomeKind.FAILED, reason=str(err))
        except (ArithmeticFailure, PreconditionFailure, InvariantViolation) as err:
            self.stats.errors += 1
            logger.warning(
                "evaluation_aborted",
                intent_id=intent_id,
                error_type=type(err).__name__,
                error=str(err),
            )
            return Outcome(intent_id, OutcomeKind.ERROR, reason=str(err))
        except Exception as err:
            self.stats.errors += 1
            logger.exception("intent_processing_error", intent_id=intent_id)
            return Outcome(intent_id, OutcomeKind.ERROR, reason=f"{type(err).__name__}: {err}")

    async def _process(self, intent_id: int, now: int) -> Outcome:
        intent = await self.ledger.get_intent(intent_id)
        if intent is None:
            return Outcome(intent_id, OutcomeKind.SKIPPED, reason="not_found")

        plan = await self.plan(intent, now)
        period = plan.window.period_index if plan.window is not None else None

        if plan.halt == OutcomeKind.EXPIRED:
            self._expire(intent_id, plan.reason or "deadline_passed")
        elif plan.halt == OutcomeKind.DROPPED:
            self._drop(intent_id, plan.reason)
        if plan.halt is not None:
            return Outcome(intent_id, plan.halt, period_index=period, reason=plan.reason)

        decision = plan.decision
        assert decision is not None and plan.window is not None and plan.solution is not None
        if self.config.dry_run:
            logger.info(
                "dry_run_submission",
                intent_id=intent_id,
                period_index=period,
                action=decision.action.value if decision.action else None,
                price=decision.price,
            )
            return Outcome(
                intent_id, OutcomeKind.DRY_RUN, period_index=period, action=decision.action
            )

        return await self._submit(intent, plan.window, decision)

    async def plan(self, intent: Intent, now: int) -> Plan:
        """Run the decision pipeline for one intent without submitting."""
        if intent.status.is_terminal:
            return Plan(intent, halt=OutcomeKind.DROPPED, reason=intent.status.value.lower())
        if self.strategy.is_expired(intent, now):
            return Plan(intent, halt=OutcomeKind.EXPIRED, reason="deadline_passed")

        filtered = self.config.accepts(intent)
        if filtered is not None:
            return Plan(intent, halt=OutcomeKind.DROPPED, reason=filtered)
        if not self.strategy.can_handle(intent):
            return Plan(intent, halt=OutcomeKind.DROPPED, reason="unsupported_by_strategy")
        if not self._has_enough_time(intent, now):
            return Plan(intent, halt=OutcomeKind.SKIPPED, reason="deadline_too_close")

        window = self.decomposer.next_eligible(intent, now)
        if window is None:
            return Plan(intent, halt=OutcomeKind.WAITING, reason="no_eligible_window")

        retry = self._retries.get((intent.id, window.period_index))
        if retry is not None and now < retry.next_attempt:
            return Plan(intent, window=window, halt=OutcomeKind.WAITING, reason="retry_backoff")

        quote = await self.quoter.quote(intent, window.amount_for_period)
        solution = self.strategy.build_solution(intent, window, quote)
        if solution is None:
            return Plan(intent, window=window, halt=OutcomeKind.SKIPPED, reason="strategy_declined")

        self.stats.evaluations += 1
        evaluation = evaluate(self.strategy, intent, solution, now, window)
        if not evaluation.accepted:
            return Plan(
                intent,
                window=window,
                solution=solution,
                evaluation=evaluation,
                halt=OutcomeKind.SKIPPED,
                reason=evaluation.reason,
            )

        decision = self.resolver.resolve(intent, solution, now, window)
        halt = None
        if decision.phase == AuctionPhase.EXPIRED:
            halt = OutcomeKind.EXPIRED
        elif decision.phase == AuctionPhase.CLOSED:
            halt = OutcomeKind.DROPPED
        elif not decision.may_submit:
            halt = OutcomeKind.WAITING
        return Plan(
            intent,
            window=window,
            solution=solution,
            evaluation=evaluation,
            decision=decision,
            halt=halt,
            reason=decision.reason,
        )

    async def inspect(self, intent_id: int, now: int | None = None) -> Plan | None:
        """Dry evaluation of one intent, for operators. None if not found."""
        intent = await self.ledger.get_intent(intent_id)
        if intent is None:
            return None
        return await self.plan(intent, self.clock() if now is None else now)

    # --- Submission ---

    async def _submit(
        self, intent: Intent, window: ScheduleWindow, decision: AuctionDecision
    ) -> Outcome:
        fresh = await self._revalidate(intent, window, decision)
        assert decision.action is not None and decision.price is not None

        try:
            async with self.nonces.reserve() as lease:
                self.stats.submissions += 1
                result = await self._send(fresh, window, decision, lease.value)
                if not result.accepted:
                    lease.release()
        except SubmissionFailure:
            self._schedule_retry(intent.id, window.period_index)
            raise

        if result.accepted:
            return self._on_accepted(fresh, window, decision, result)
        return self._on_rejected(fresh, window, decision, result)

    async def _revalidate(
        self, intent: Intent, window: ScheduleWindow, decision: AuctionDecision
    ) -> Intent:
        """Re-read the ledger right before submitting.

        Raises:
            StaleStateFailure: If the window is no longer ours to act on
            ExpiredFailure: If the deadline passed while we were deciding
        """
        fresh = await self.ledger.get_intent(intent.id)
        if fresh is None or fresh.status.is_terminal:
            raise StaleStateFailure(f"Intent {intent.id} is no longer active")
        if self.strategy.is_expired(fresh, self.clock()):
            raise ExpiredFailure(f"Intent {intent.id} deadline {fresh.deadline} passed")

        if decision.action == SubmissionKind.BID:
            bids = fresh.auction.bids if fresh.auction is not None else []
            if any(same_address(b.solver, self.config.solver_address) for b in bids):
                raise StaleStateFailure(f"Bid on intent {intent.id} already recorded")
            return fresh
        if decision.action == SubmissionKind.ACCEPT:
            if fresh.auction is not None and fresh.auction.accepted_by is not None:
                raise StaleStateFailure(f"Dutch auction {intent.id} already accepted")
            return fresh

        if window.period_index is not None and window.period_index in fresh.filled_periods:
            raise StaleStateFailure(
                f"Period {window.period_index} of intent {intent.id} already filled"
            )
        if window.period_index is None and fresh.amount_remaining != intent.amount_remaining:
            raise StaleStateFailure(f"Intent {intent.id} was filled since it was evaluated")
        return fresh

    async def _send(
        self, intent: Intent, window: ScheduleWindow, decision: AuctionDecision, nonce: int
    ) -> SubmitResult:
        assert decision.price is not None
        if decision.action == SubmissionKind.BID:
            return await self.ledger.submit_bid(
                BidRequest(
                    intent_id=intent.id,
                    output_amount=decision.price,
                    solver_address=self.config.solver_address,
                    nonce=nonce,
                )
            )
        if decision.action == SubmissionKind.ACCEPT:
            return await self.ledger.accept_dutch(
                AcceptRequest(
                    intent_id=intent.id,
                    expected_price=decision.price,
                    solver_address=self.config.solver_address,
                    nonce=nonce,
                )
            )
        return await self.ledger.submit_fill(
            FillRequest(
                intent_id=intent.id,
                intent_type=intent.type,
                period_index=window.period_index,
                amount=window.amount_for_period,
                min_output=window_min_output(intent, window) or 0,
                output_amount=decision.price,
                solver_address=self.config.solver_address,
                nonce=nonce,
            )
        )

    def _on_accepted(
        self,
        intent: Intent,
        window: ScheduleWindow,
        decision: AuctionDecision,
        result: SubmitResult,
    ) -> Outcome:
        assert result.tx_hash is not None
        self.stats.accepted += 1
        self._retries.pop((intent.id, window.period_index), None)
        self.books.tx_cache.record(intent.id, result.tx_hash)

        kind = TxKind.BID if decision.action == SubmissionKind.BID else TxKind.TAKER
        self.books.sink.record(kind, intent.id, result.tx_hash)
        if decision.action == SubmissionKind.FILL:
            self.strategy.record_fill(intent, window.amount_for_period)

        logger.info(
            "submission_accepted",
            intent_id=intent.id,
            period_index=window.period_index,
            action=decision.action.value if decision.action else None,
            price=decision.price,
            tx_hash=result.tx_hash,
        )
        return Outcome(
            intent.id,
            OutcomeKind.SUBMITTED,
            period_index=window.period_index,
            action=decision.action,
            tx_hash=result.tx_hash,
        )

    def _on_rejected(
        self,
        intent: Intent,
        window: ScheduleWindow,
        decision: AuctionDecision,
        result: SubmitResult,
    ) -> Outcome:
        reason = result.rejection or RejectionReason.UNKNOWN
        self.stats.rejections += 1
        outcome = Outcome(
            intent.id,
            OutcomeKind.REJECTED,
            period_index=window.period_index,
            action=decision.action,
            reason=reason.value,
        )

        if reason == RejectionReason.ALREADY_FILLED:
            logger.debug("filled_elsewhere", intent_id=intent.id, period_index=window.period_index)
            return Outcome(
                intent.id, OutcomeKind.STALE, period_index=window.period_index, reason=reason.value
            )
        if reason == RejectionReason.EXPIRED:
            self._expire(intent.id, reason.value)
            return Outcome(
                intent.id,
                OutcomeKind.EXPIRED,
                period_index=window.period_index,
                reason=reason.value,
            )
        if not reason.is_retryable:
            self._drop(intent.id, reason.value)
            return outcome

        self._schedule_retry(intent.id, window.period_index)
        logger.warning(
            "submission_rejected",
            intent_id=intent.id,
            period_index=window.period_index,
            reason=reason.value,
            detail=result.detail,
        )
        return outcome

    # --- Bookkeeping of local state ---

    def _has_enough_time(self, intent: Intent, now: int) -> bool:
        """Deadline margin for intents the solver has not yet acted on.

        Scheduled intents stay eligible until they expire, as do intents
        already filled, bid on, claimed or awaiting a retry.
        """
        if intent.is_scheduled or intent.live_fills:
            return True
        if any(key[0] == intent.id for key in self._retries):
            return True
        auction = intent.auction
        if auction is not None:
            solvers = [auction.winner, auction.accepted_by, *(b.solver for b in auction.bids)]
            if any(same_address(s, self.config.solver_address) for s in solvers):
                return True
        return intent.deadline - now >= self.config.min_deadline_seconds

    def _schedule_retry(self, intent_id: int, period_index: int | None) -> None:
        state = self._retries.setdefault((intent_id, period_index), _RetryState())
        state.attempts += 1
        delay = 0.0
        if self.config.retry_base_delay > 0:
            delay = min(
                self.config.retry_base_delay * 2 ** (state.attempts - 1),
                self.config.retry_max_delay,
            )
        state.next_attempt = self.clock() + delay

    def _expire(self, intent_id: int, reason: str) -> None:
        if intent_id in self._dropped:
            return
        self.stats.expired += 1
        logger.warning("intent_expired", intent_id=intent_id, reason=reason)
        self._drop(intent_id, None)

    def _drop(self, intent_id: int, reason: str | None) -> None:
        if intent_id in self._dropped:
            return
        self._dropped.add(intent_id)
        self.stats.dropped += 1
        self._locks.pop(intent_id, None)
        for key in [k for k in self._retries if k[0] == intent_id]:
            del self._retries[key]
        if reason is not None:
            logger.debug("intent_dropped", intent_id=intent_id, reason=reason)

    @property
    def dropped(self) -> frozenset[int]:
        return frozenset(self._dropped)

    def status(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "strategy": self.strategy.name,
            "stats": self.stats.as_dict(),
            "dropped": len(self._dropped),
            "pending_retries": len(self._retries),
            "nonce": self.nonces.current,
        }
