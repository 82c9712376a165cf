"""Per-intent auction resolution.

Given an intent snapshot, a candidate solution and the current instant, the
resolver reports the auction phase and whether this solver may submit right
now, and at what price:

- NONE: first come, first served. Valid whenever the candidate meets the
  window's minimum output.
- DUTCH: valid while the candidate can pay the current curve price, the
  price still meets the minimum output, and the price sits inside the
  configured acceptance band. The solver first claims the auction; once the
  ledger records it as the acceptor it fills at the accepted price.
- SEALED_BID: bid while committing; after the commit deadline only the
  winning solver may execute, until the reveal deadline.

Everything here is advisory. The ledger is the only arbiter of who wins a
race or whether a late submission is accepted.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import structlog

from intent_solver.auction.dutch import DutchCurve
from intent_solver.auction.sealed_bid import (
    SealedBidWindow,
    bid_with_premium,
    has_bid_from,
    select_winner,
)
from intent_solver.constants import AUCTION_MODES, DUTCH_ACCEPT_FRACTION
from intent_solver.errors import PreconditionFailure
from intent_solver.math.fixed_point import meets_min_output
from intent_solver.models.intent import AuctionType, Intent, IntentStatus
from intent_solver.models.schedule import ScheduleWindow
from intent_solver.models.solution import Solution, SubmissionKind
from intent_solver.models.types import same_address
from intent_solver.schedule.decomposer import decompose_schedule, window_min_output
from intent_solver.safe_int import S

logger = structlog.get_logger()


class AuctionPhase(str, Enum):
    """Auction state for one intent. EXPIRED is distinct from CLOSED."""

    NOT_STARTED = "not_started"
    OPEN = "open"
    SETTLING = "settling"
    CLOSED = "closed"
    EXPIRED = "expired"


@dataclass(frozen=True)
class AuctionDecision:
    """Outcome of resolving an auction for one candidate.

    Attributes:
        phase: Auction phase at the resolution instant
        may_submit: True if this solver's candidate is currently valid
        action: What to submit (fill, sealed bid or Dutch claim) when may_submit
        price: Output amount to deliver (fill) or commit (bid)
        reason: Why the solver may not submit, for logging
    """

    phase: AuctionPhase
    may_submit: bool = False
    action: SubmissionKind | None = None
    price: int | None = None
    reason: str | None = None

    @classmethod
    def wait(cls, phase: AuctionPhase, reason: str) -> AuctionDecision:
        return cls(phase=phase, reason=reason)

    @classmethod
    def submit(cls, phase: AuctionPhase, action: SubmissionKind, price: int) -> AuctionDecision:
        return cls(phase=phase, may_submit=True, action=action, price=price)


class AuctionResolver:
    """Resolves auction validity for a single solver identity.

    Args:
        solver_address: This solver's account address
        dutch_mode: Dutch acceptance band ("conservative", "moderate", "aggressive")
        sealed_bid_mode: Sealed-bid premium ("conservative", "moderate", "aggressive")
    """

    def __init__(
        self,
        solver_address: str,
        dutch_mode: str = "moderate",
        sealed_bid_mode: str = "moderate",
    ) -> None:
        for mode in (dutch_mode, sealed_bid_mode):
            if mode not in AUCTION_MODES:
                raise PreconditionFailure(f"Unknown auction mode: {mode}")
        self.solver_address = solver_address
        self.dutch_mode = dutch_mode
        self.sealed_bid_mode = sealed_bid_mode

    def resolve(
        self,
        intent: Intent,
        solution: Solution,
        now: int,
        window: ScheduleWindow | None = None,
    ) -> AuctionDecision:
        """Decide whether `solution` may be submitted for `window` at `now`.

        Raises:
            PreconditionFailure: If the intent lacks the parameters its
                auction type needs
        """
        if now >= intent.deadline or intent.status == IntentStatus.EXPIRED:
            return AuctionDecision.wait(AuctionPhase.EXPIRED, "deadline_passed")
        if intent.status.is_terminal:
            return AuctionDecision.wait(AuctionPhase.CLOSED, intent.status.value.lower())

        if window is None:
            window = decompose_schedule(intent)[0]
        min_output = window_min_output(intent, window)

        if intent.auction_type == AuctionType.DUTCH:
            return self._resolve_dutch(intent, solution, now, window, min_output)
        if intent.auction_type == AuctionType.SEALED_BID:
            return self._resolve_sealed_bid(intent, solution, now, window, min_output)
        return self._resolve_open(solution, min_output)

    def _resolve_open(self, solution: Solution, min_output: int | None) -> AuctionDecision:
        if not meets_min_output(solution.output_amount, min_output):
            return AuctionDecision.wait(AuctionPhase.OPEN, "below_min_output")
        return AuctionDecision.submit(
            AuctionPhase.OPEN, SubmissionKind.FILL, solution.output_amount
        )

    def _resolve_dutch(
        self,
        intent: Intent,
        solution: Solution,
        now: int,
        window: ScheduleWindow,
        min_output: int | None,
    ) -> AuctionDecision:
        auction = intent.auction
        if auction is not None and auction.accepted_by is not None:
            if not same_address(auction.accepted_by, self.solver_address):
                return AuctionDecision.wait(AuctionPhase.CLOSED, "accepted_by_other")
            price = auction.accepted_price
            if price is None:
                price = DutchCurve.from_intent(intent).current_price(now)
            if window.amount_for_period != intent.input_amount:
                price = (S(price) * window.amount_for_period // intent.input_amount).value
            return AuctionDecision.submit(AuctionPhase.SETTLING, SubmissionKind.FILL, price)

        curve = DutchCurve.from_intent(intent)
        if now < curve.start_time:
            return AuctionDecision.wait(AuctionPhase.NOT_STARTED, "auction_not_started")

        price = curve.scaled_price(now, window.amount_for_period, intent.input_amount)
        if not meets_min_output(price, min_output):
            return AuctionDecision.wait(AuctionPhase.OPEN, "price_below_min_output")
        if solution.output_amount < price:
            return AuctionDecision.wait(AuctionPhase.OPEN, "solution_below_price")

        numerator, denominator = DUTCH_ACCEPT_FRACTION[self.dutch_mode]
        ceiling = curve.acceptance_ceiling(numerator, denominator)
        if window.amount_for_period != intent.input_amount:
            ceiling = (S(ceiling) * window.amount_for_period // intent.input_amount).value
        if price > ceiling:
            logger.debug(
                "dutch_price_above_threshold",
                intent_id=intent.id,
                price=price,
                ceiling=ceiling,
                target_time=curve.time_at_price(curve.acceptance_ceiling(numerator, denominator)),
            )
            return AuctionDecision.wait(AuctionPhase.OPEN, "price_above_threshold")

        return AuctionDecision.submit(AuctionPhase.OPEN, SubmissionKind.ACCEPT, price)

    def _resolve_sealed_bid(
        self,
        intent: Intent,
        solution: Solution,
        now: int,
        window: ScheduleWindow,
        min_output: int | None,
    ) -> AuctionDecision:
        timing = SealedBidWindow.from_intent(intent)
        auction = intent.auction
        assert auction is not None  # checked by SealedBidWindow.from_intent

        if now >= timing.reveal_deadline:
            if intent.is_scheduled and auction.winner is None:
                # No winner: later windows fall back to first-come fills
                return self._resolve_open(solution, min_output)
            return AuctionDecision.wait(AuctionPhase.CLOSED, "reveal_elapsed")

        if auction.winner is not None:
            if not same_address(auction.winner, self.solver_address):
                return AuctionDecision.wait(AuctionPhase.CLOSED, "lost_auction")
            price = auction.winning_bid
            if price is None:
                price = solution.output_amount
            return AuctionDecision.submit(AuctionPhase.SETTLING, SubmissionKind.FILL, price)

        if now < timing.opens_at:
            return AuctionDecision.wait(AuctionPhase.NOT_STARTED, "auction_not_started")

        if timing.is_committing(now):
            if has_bid_from(auction.bids, self.solver_address):
                return AuctionDecision.wait(AuctionPhase.OPEN, "already_bid")
            bid = bid_with_premium(solution.output_amount, self.sealed_bid_mode)
            if not meets_min_output(bid, min_output):
                return AuctionDecision.wait(AuctionPhase.OPEN, "below_min_output")
            return AuctionDecision.submit(AuctionPhase.OPEN, SubmissionKind.BID, bid)

        winner = select_winner(auction.bids, timing.commit_deadline)
        if winner is None:
            return AuctionDecision.wait(AuctionPhase.SETTLING, "no_bids")
        if not same_address(winner.solver, self.solver_address):
            return AuctionDecision.wait(AuctionPhase.SETTLING, "lost_auction")
        return AuctionDecision.submit(
            AuctionPhase.SETTLING, SubmissionKind.FILL, winner.output_amount
        )
