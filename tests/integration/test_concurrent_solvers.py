"""Several solver identities racing on one ledger.

The ledger is the only arbiter: whatever each solver believes locally, at
most one fill per window is ever accepted, and losers back off cleanly.
"""

import asyncio

from intent_solver.loop import OutcomeKind, SolverLoop
from intent_solver.models import AuctionType, IntentStatus
from intent_solver.strategies import BaselineStrategy
from tests.helpers import (
    OTHER_SOLVER,
    SOLVER,
    T0,
    FakeClock,
    FixedQuoter,
    InMemoryLedger,
    make_config,
    make_dca_intent,
    make_dutch_auction,
    make_sealed_auction,
    make_swap_intent,
)


def solver_pair(ledger, clock, other_quoter=None) -> tuple[SolverLoop, SolverLoop]:
    alice = SolverLoop(ledger, FixedQuoter(), BaselineStrategy(), make_config(), clock=clock)
    bob = SolverLoop(
        ledger,
        other_quoter or FixedQuoter(),
        BaselineStrategy(),
        make_config(solver_address=OTHER_SOLVER),
        clock=clock,
    )
    return alice, bob


def poll_all(*loops: SolverLoop):
    async def scenario():
        return await asyncio.gather(*(loop.poll_once() for loop in loops))

    return asyncio.run(scenario())


class TestOpenRace:
    def test_swap_is_filled_once(self):
        clock = FakeClock()
        ledger = InMemoryLedger(clock)
        ledger.add(make_swap_intent())
        alice, bob = solver_pair(ledger, clock)

        first, second = poll_all(alice, bob)
        kinds = sorted(o.kind for o in first + second)
        assert kinds == sorted([OutcomeKind.SUBMITTED, OutcomeKind.STALE])
        assert len(ledger.accepted("fill")) == 1
        assert ledger.intents[0].status == IntentStatus.FILLED

        # Both drop the intent on the next pass
        poll_all(alice, bob)
        assert 0 in alice.dropped and 0 in bob.dropped

    def test_one_fill_per_dca_window(self):
        clock = FakeClock()
        ledger = InMemoryLedger(clock)
        ledger.add(make_dca_intent(total_periods=3))
        alice, bob = solver_pair(ledger, clock)

        for _ in range(3):
            poll_all(alice, bob)
            poll_all(alice, bob)
            clock.advance(10)

        periods = [s.request.period_index for s in ledger.accepted("fill")]
        assert periods == [0, 1, 2]
        assert ledger.intents[0].status == IntentStatus.FILLED

    def test_many_intents(self):
        clock = FakeClock()
        ledger = InMemoryLedger(clock)
        for intent_id in range(6):
            ledger.add(make_swap_intent(intent_id=intent_id))
        alice, bob = solver_pair(ledger, clock)

        poll_all(alice, bob)
        filled = sorted(s.request.intent_id for s in ledger.accepted("fill"))
        assert filled == list(range(6))
        # Each solver's accepted fills used consecutive nonces
        for address in (SOLVER, OTHER_SOLVER):
            nonces = [
                s.request.nonce
                for s in ledger.accepted("fill")
                if s.request.solver_address == address
            ]
            assert nonces == list(range(len(nonces)))


class TestAuctionRace:
    def test_dutch_first_acceptor_settles(self):
        clock = FakeClock(T0 + 50)
        ledger = InMemoryLedger(clock)
        ledger.add(make_swap_intent(auction_type=AuctionType.DUTCH, auction=make_dutch_auction()))
        alice, bob = solver_pair(ledger, clock)

        poll_all(alice, bob)
        [accept] = ledger.accepted("accept")
        winner = accept.request.solver_address

        poll_all(alice, bob)
        [fill] = ledger.accepted("fill")
        assert fill.request.solver_address == winner
        assert fill.request.output_amount == 3_000_000

        loser = bob if winner == SOLVER else alice
        assert 0 in loser.dropped

    def test_sealed_bid_best_offer_wins(self):
        clock = FakeClock()
        ledger = InMemoryLedger(clock)
        ledger.add(
            make_swap_intent(auction_type=AuctionType.SEALED_BID, auction=make_sealed_auction())
        )
        alice, bob = solver_pair(ledger, clock, other_quoter=FixedQuoter(37, 1000))

        poll_all(alice, bob)
        assert len(ledger.accepted("bid")) == 2

        clock.now = T0 + 60
        outcomes = dict(zip(("alice", "bob"), poll_all(alice, bob), strict=True))
        assert outcomes["alice"][0].reason == "lost_auction"
        assert outcomes["bob"][0].kind == OutcomeKind.SUBMITTED

        [fill] = ledger.accepted("fill")
        assert fill.request.solver_address == OTHER_SOLVER
        # 0.037 quote plus the 50 bps moderate premium
        assert fill.request.output_amount == 3_718_500
