"""Tests for the solver control loop against the in-memory ledger."""

import asyncio
from dataclasses import dataclass

from structlog.testing import capture_logs

from intent_solver.config import SolverConfig
from intent_solver.errors import DivisionByZero, LedgerError
from intent_solver.ledger.result import RejectionReason
from intent_solver.loop import OutcomeKind, SolverLoop
from intent_solver.models import AuctionType, IntentStatus, SubmissionKind
from intent_solver.strategies import BaselineStrategy
from tests.helpers import (
    HOUR,
    OTHER_SOLVER,
    SOLVER,
    T0,
    FailingQuoter,
    FakeClock,
    FixedQuoter,
    InMemoryLedger,
    make_config,
    make_dca_intent,
    make_dutch_auction,
    make_fill,
    make_sealed_auction,
    make_swap_intent,
)


DEFAULT_MARGIN = SolverConfig.min_deadline_seconds


def make_loop(ledger, clock, quoter=None, strategy=None, **overrides) -> SolverLoop:
    return SolverLoop(
        ledger=ledger,
        quoter=quoter or FixedQuoter(),
        strategy=strategy or BaselineStrategy(),
        config=make_config(**overrides),
        clock=clock,
    )


def poll(loop: SolverLoop):
    return asyncio.run(loop.poll_once())


def only(outcomes):
    assert len(outcomes) == 1
    return outcomes[0]


class TestOpenIntents:
    def test_fills_swap_once(self, ledger, clock):
        ledger.add(make_swap_intent())
        loop = make_loop(ledger, clock)

        outcome = only(poll(loop))
        assert outcome.kind == OutcomeKind.SUBMITTED
        assert outcome.action == SubmissionKind.FILL
        assert outcome.tx_hash is not None

        intent = ledger.intents[0]
        assert intent.status == IntentStatus.FILLED
        assert intent.output_received == 3_600_000
        assert loop.books.tx_cache.get(0) == outcome.tx_hash
        assert loop.stats.accepted == 1

        # The filled intent is dropped on the next pass, then never read again
        assert only(poll(loop)).kind == OutcomeKind.DROPPED
        assert poll(loop) == []
        assert len(ledger.accepted()) == 1

    def test_dry_run_never_submits(self, ledger, clock):
        ledger.add(make_swap_intent())
        loop = make_loop(ledger, clock, dry_run=True)

        outcome = only(poll(loop))
        assert outcome.kind == OutcomeKind.DRY_RUN
        assert outcome.action == SubmissionKind.FILL
        assert ledger.submissions == []

    def test_below_min_output_is_skipped_and_retried(self, ledger, clock):
        ledger.add(make_swap_intent())
        loop = make_loop(ledger, clock, quoter=FixedQuoter(1, 1000))

        outcome = only(poll(loop))
        assert outcome.kind == OutcomeKind.SKIPPED
        assert outcome.reason == "below_min_output"
        assert 0 not in loop.dropped
        assert only(poll(loop)).kind == OutcomeKind.SKIPPED

    def test_expired_intent_is_dropped_without_submitting(self, ledger):
        clock = FakeClock(T0 + HOUR + 1)
        ledger.clock = clock
        ledger.add(make_swap_intent())
        loop = make_loop(ledger, clock)

        assert only(poll(loop)).kind == OutcomeKind.EXPIRED
        assert loop.stats.expired == 1
        assert 0 in loop.dropped
        assert ledger.submissions == []

    def test_deadline_too_close_is_skipped(self, ledger, clock):
        ledger.add(make_swap_intent(deadline=T0 + 3))
        loop = make_loop(ledger, clock)

        outcome = only(poll(loop))
        assert outcome.kind == OutcomeKind.SKIPPED
        assert outcome.reason == "deadline_too_close"
        assert 0 not in loop.dropped
        assert ledger.submissions == []

    def test_failed_swap_retried_inside_deadline_margin(self, ledger, clock):
        ledger.add(make_swap_intent(deadline=T0 + 40))
        ledger.fail_submissions = 1
        loop = make_loop(ledger, clock, min_deadline_seconds=DEFAULT_MARGIN)

        assert only(poll(loop)).kind == OutcomeKind.FAILED
        clock.advance(20)
        outcome = only(poll(loop))
        assert outcome.kind == OutcomeKind.SUBMITTED
        assert ledger.intents[0].status == IntentStatus.FILLED

    def test_filtered_by_config(self, ledger, clock):
        ledger.add(make_swap_intent(input_amount=5, min_output_amount=None))
        loop = make_loop(ledger, clock, min_input_amount=10)

        outcome = only(poll(loop))
        assert outcome.kind == OutcomeKind.DROPPED
        assert outcome.reason == "input_out_of_bounds"

    def test_skip_existing_on_startup(self, ledger, clock):
        ledger.add(make_swap_intent(intent_id=0))
        loop = make_loop(ledger, clock, skip_existing_on_startup=True)

        assert poll(loop) == []
        ledger.add(make_swap_intent(intent_id=1))
        outcome = only(poll(loop))
        assert outcome.intent_id == 1
        assert outcome.kind == OutcomeKind.SUBMITTED


class TestScheduledIntents:
    def test_dca_fills_periods_in_order(self, ledger, clock):
        ledger.add(make_dca_intent())
        loop = make_loop(ledger, clock)

        first = only(poll(loop))
        assert first.kind == OutcomeKind.SUBMITTED
        assert first.period_index == 0

        waiting = only(poll(loop))
        assert waiting.kind == OutcomeKind.WAITING
        assert waiting.reason == "no_eligible_window"

        clock.advance(10)
        second = only(poll(loop))
        assert second.period_index == 1
        assert ledger.intents[0].status == IntentStatus.FILLED

        requests = [s.request for s in ledger.accepted("fill")]
        assert [r.amount for r in requests] == [10_000_000, 10_000_000]
        assert [r.nonce for r in requests] == [0, 1]

    def test_short_schedule_runs_under_default_margin(self, ledger, clock):
        # Both windows fit inside the default deadline margin
        ledger.add(make_dca_intent(deadline=T0 + 20))
        loop = make_loop(ledger, clock, min_deadline_seconds=DEFAULT_MARGIN)

        assert only(poll(loop)).kind == OutcomeKind.SUBMITTED
        clock.advance(10)
        assert only(poll(loop)).kind == OutcomeKind.SUBMITTED
        assert ledger.intents[0].status == IntentStatus.FILLED

    def test_last_window_retried_near_deadline(self, ledger, clock):
        ledger.add(make_dca_intent(interval_seconds=60, deadline=T0 + 120))
        loop = make_loop(ledger, clock, min_deadline_seconds=DEFAULT_MARGIN)

        assert only(poll(loop)).kind == OutcomeKind.SUBMITTED

        clock.advance(60)
        ledger.fail_submissions = 1
        failed = only(poll(loop))
        assert failed.kind == OutcomeKind.FAILED
        assert failed.period_index == 1

        clock.advance(35)
        retried = only(poll(loop))
        assert retried.kind == OutcomeKind.SUBMITTED
        assert retried.period_index == 1
        assert 0 not in loop.dropped
        assert ledger.intents[0].filled_periods == {0, 1}


class TestFailureHandling:
    def test_state_changed_between_reads_is_stale(self, clock):
        @dataclass
        class RacingLedger(InMemoryLedger):
            """Another solver fills the intent right after our first read."""

            def __post_init__(self):
                self._raced = False

            async def get_intent(self, intent_id):
                intent = await super().get_intent(intent_id)
                if not self._raced:
                    self._raced = True
                    filled = make_fill(
                        amount_filled=100_000_000,
                        amount_received=3_700_000,
                        solver_address=OTHER_SOLVER,
                    )
                    self.update(intent.with_fill(filled))
                return intent

        ledger = RacingLedger(clock)
        ledger.add(make_swap_intent())
        loop = make_loop(ledger, clock)

        assert only(poll(loop)).kind == OutcomeKind.STALE
        assert ledger.submissions == []

    def test_already_filled_rejection_is_stale(self, ledger, clock):
        ledger.add(make_swap_intent())
        ledger.forced_rejection = RejectionReason.ALREADY_FILLED
        loop = make_loop(ledger, clock)

        outcome = only(poll(loop))
        assert outcome.kind == OutcomeKind.STALE
        assert outcome.reason == "already_filled"

    def test_retryable_rejection_retries_next_poll(self, ledger, clock):
        ledger.add(make_swap_intent())
        ledger.forced_rejection = RejectionReason.SLIPPAGE_EXCEEDED
        loop = make_loop(ledger, clock)

        with capture_logs() as logs:
            outcome = only(poll(loop))
        assert outcome.kind == OutcomeKind.REJECTED
        assert outcome.reason == "slippage_exceeded"
        assert any(e["event"] == "submission_rejected" for e in logs)

        ledger.forced_rejection = None
        assert only(poll(loop)).kind == OutcomeKind.SUBMITTED
        # The rejected attempt did not consume a nonce
        assert ledger.accepted()[0].request.nonce == 0

    def test_retry_backoff_doubles(self, ledger, clock):
        ledger.add(make_swap_intent())
        ledger.forced_rejection = RejectionReason.UNKNOWN
        loop = make_loop(ledger, clock, retry_base_delay=10.0, retry_max_delay=60.0)

        assert only(poll(loop)).kind == OutcomeKind.REJECTED
        waiting = only(poll(loop))
        assert waiting.kind == OutcomeKind.WAITING
        assert waiting.reason == "retry_backoff"

        clock.advance(10)
        assert only(poll(loop)).kind == OutcomeKind.REJECTED
        clock.advance(10)
        assert only(poll(loop)).reason == "retry_backoff"
        clock.advance(10)
        ledger.forced_rejection = None
        assert only(poll(loop)).kind == OutcomeKind.SUBMITTED
        assert loop.status()["pending_retries"] == 0

    def test_submission_failure_retries(self, ledger, clock):
        ledger.add(make_swap_intent())
        ledger.fail_submissions = 1
        loop = make_loop(ledger, clock)

        assert only(poll(loop)).kind == OutcomeKind.FAILED
        assert loop.stats.failures == 1
        assert only(poll(loop)).kind == OutcomeKind.SUBMITTED

    def test_expired_rejection_drops(self, ledger, clock):
        ledger.add(make_swap_intent())
        ledger.forced_rejection = RejectionReason.EXPIRED
        loop = make_loop(ledger, clock)

        assert only(poll(loop)).kind == OutcomeKind.EXPIRED
        assert 0 in loop.dropped

    def test_not_winner_rejection_drops(self, ledger, clock):
        ledger.add(make_swap_intent())
        ledger.forced_rejection = RejectionReason.NOT_WINNER
        loop = make_loop(ledger, clock)

        assert only(poll(loop)).kind == OutcomeKind.REJECTED
        assert 0 in loop.dropped

    def test_strategy_errors_stay_local(self, ledger, clock):
        class PickyQuoter(FixedQuoter):
            async def quote(self, intent, amount_in):
                if intent.id == 0:
                    raise RuntimeError("quote service exploded")
                return await super().quote(intent, amount_in)

        ledger.add(make_swap_intent(intent_id=0))
        ledger.add(make_swap_intent(intent_id=1))
        loop = make_loop(ledger, clock, quoter=PickyQuoter())

        outcomes = {o.intent_id: o for o in poll(loop)}
        assert outcomes[0].kind == OutcomeKind.ERROR
        assert "RuntimeError" in outcomes[0].reason
        assert outcomes[1].kind == OutcomeKind.SUBMITTED
        assert 0 not in loop.dropped

    def test_arithmetic_failure_aborts_one_evaluation(self, ledger, clock):
        ledger.add(make_swap_intent())
        loop = make_loop(ledger, clock, quoter=FailingQuoter(DivisionByZero("zero reserve")))

        with capture_logs() as logs:
            outcome = only(poll(loop))
        assert outcome.kind == OutcomeKind.ERROR
        assert loop.stats.errors == 1
        aborted = [e for e in logs if e["event"] == "evaluation_aborted"]
        assert aborted[0]["error_type"] == "DivisionByZero"

    def test_ledger_outage_skips_the_poll(self, clock):
        class DownLedger(InMemoryLedger):
            async def get_total_intents(self):
                raise LedgerError("node unreachable")

        loop = make_loop(DownLedger(clock), clock)
        assert poll(loop) == []
        assert loop.stats.polls == 1


class TestAuctions:
    def test_sealed_bid_then_winner_fill(self, ledger, clock):
        ledger.add(
            make_swap_intent(auction_type=AuctionType.SEALED_BID, auction=make_sealed_auction())
        )
        loop = make_loop(ledger, clock)

        bid = only(poll(loop))
        assert bid.kind == OutcomeKind.SUBMITTED
        assert bid.action == SubmissionKind.BID
        # 50 bps over the 0.036 quote
        assert ledger.intents[0].auction.bids[0].output_amount == 3_618_000

        clock.advance(1)
        waiting = only(poll(loop))
        assert waiting.kind == OutcomeKind.WAITING
        assert waiting.reason == "already_bid"

        clock.now = T0 + 60
        fill = only(poll(loop))
        assert fill.action == SubmissionKind.FILL
        assert ledger.intents[0].output_received == 3_618_000

    def test_sealed_bid_lost(self, ledger, clock):
        auction = make_sealed_auction(winner=OTHER_SOLVER, winning_bid=3_700_000)
        ledger.add(make_swap_intent(auction_type=AuctionType.SEALED_BID, auction=auction))
        clock.now = T0 + 61
        loop = make_loop(ledger, clock)

        assert only(poll(loop)).kind == OutcomeKind.DROPPED
        assert ledger.submissions == []

    def test_dutch_accept_then_fill(self, ledger, clock):
        ledger.add(make_swap_intent(auction_type=AuctionType.DUTCH, auction=make_dutch_auction()))
        loop = make_loop(ledger, clock)

        # 4.0M asked, the quote only covers 3.6M
        assert only(poll(loop)).reason == "solution_below_price"

        clock.now = T0 + 20
        assert only(poll(loop)).reason == "price_above_threshold"

        clock.now = T0 + 50
        accept = only(poll(loop))
        assert accept.action == SubmissionKind.ACCEPT
        assert ledger.intents[0].auction.accepted_by == SOLVER
        assert ledger.intents[0].auction.accepted_price == 3_000_000

        fill = only(poll(loop))
        assert fill.action == SubmissionKind.FILL
        assert ledger.intents[0].status == IntentStatus.FILLED
        assert ledger.intents[0].output_received == 3_000_000

    def test_dutch_accepted_by_other(self, ledger, clock):
        auction = make_dutch_auction(accepted_by=OTHER_SOLVER, accepted_price=3_000_000)
        ledger.add(make_swap_intent(auction_type=AuctionType.DUTCH, auction=auction))
        loop = make_loop(ledger, clock)

        outcome = only(poll(loop))
        assert outcome.kind == OutcomeKind.DROPPED
        assert outcome.reason == "accepted_by_other"


class TestConcurrency:
    def test_overlapping_polls_submit_once(self, ledger, clock):
        ledger.add(make_swap_intent())
        loop = make_loop(ledger, clock)

        async def scenario():
            return await asyncio.gather(loop.poll_once(), loop.poll_once())

        first, second = asyncio.run(scenario())
        kinds = sorted(o.kind.value for o in first + second)
        assert kinds == ["dropped", "submitted"]
        assert len(ledger.accepted()) == 1


class TestOperatorViews:
    def test_inspect(self, ledger, clock):
        ledger.add(make_dca_intent())
        loop = make_loop(ledger, clock)

        plan = asyncio.run(loop.inspect(0))
        assert plan.ready
        data = plan.to_dict()
        assert data["window"]["period_index"] == 0
        assert len(data["windows"]) == 2
        assert data["decision"]["action"] == "fill"
        assert ledger.submissions == []

        assert asyncio.run(loop.inspect(42)) is None

    def test_run_until_stopped(self, ledger, clock):
        ledger.add(make_swap_intent())
        loop = make_loop(ledger, clock)

        async def scenario():
            task = asyncio.create_task(loop.run())
            while loop.stats.accepted == 0:
                await asyncio.sleep(0)
            assert loop.running
            loop.stop()
            await task

        asyncio.run(scenario())
        assert not loop.running
        status = loop.status()
        assert status["stats"]["accepted"] == 1
        assert status["strategy"] == "BaselineStrategy"
        assert status["nonce"] == 1
