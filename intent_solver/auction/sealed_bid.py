"""Sealed-bid (commit/reveal) auction helpers.

Solvers commit bids until the commit deadline. Between the commit and reveal
deadlines the best revealed bid wins, ties going to the earliest commit. If
the reveal window elapses without a winner executing, the auction closes
with no settlement.
"""

from __future__ import annotations

from dataclasses import dataclass

from intent_solver.constants import BPS_DENOMINATOR, SEALED_BID_PREMIUM_BPS
from intent_solver.errors import PreconditionFailure
from intent_solver.models.intent import Bid, Intent
from intent_solver.models.types import same_address
from intent_solver.safe_int import S


@dataclass(frozen=True)
class SealedBidWindow:
    """Commit and reveal deadlines for one sealed-bid auction."""

    opens_at: int
    commit_deadline: int
    reveal_deadline: int

    def __post_init__(self) -> None:
        if self.reveal_deadline < self.commit_deadline:
            raise PreconditionFailure(
                f"Reveal deadline {self.reveal_deadline} precedes commit deadline "
                f"{self.commit_deadline}"
            )

    @classmethod
    def from_intent(cls, intent: Intent) -> SealedBidWindow:
        """Derive the window from intent metadata.

        A missing reveal deadline collapses the reveal window onto the intent
        deadline.

        Raises:
            PreconditionFailure: If the commit deadline is missing
        """
        auction = intent.auction
        if auction is None or auction.commit_deadline is None:
            raise PreconditionFailure(f"Intent {intent.id} has no sealed-bid commit deadline")
        reveal = auction.reveal_deadline
        if reveal is None:
            reveal = max(intent.deadline, auction.commit_deadline)
        return cls(
            opens_at=intent.created_at,
            commit_deadline=auction.commit_deadline,
            reveal_deadline=reveal,
        )

    def is_committing(self, now: int) -> bool:
        return self.opens_at <= now < self.commit_deadline

    def is_revealing(self, now: int) -> bool:
        return self.commit_deadline <= now < self.reveal_deadline


def select_winner(bids: list[Bid], commit_deadline: int) -> Bid | None:
    """Best bid committed before the deadline.

    Highest output wins; ties go to the earliest commit, then to list order.
    """
    eligible = [(i, b) for i, b in enumerate(bids) if b.submitted_at < commit_deadline]
    if not eligible:
        return None
    _, winner = min(
        eligible, key=lambda item: (-item[1].output_amount, item[1].submitted_at, item[0])
    )
    return winner


def has_bid_from(bids: list[Bid], solver_address: str) -> bool:
    return any(same_address(b.solver, solver_address) for b in bids)


def bid_with_premium(output_amount: int, mode: str) -> int:
    """Scale a quoted output up by the bidding mode's premium.

    Raises:
        PreconditionFailure: For an unknown mode
    """
    try:
        premium_bps = SEALED_BID_PREMIUM_BPS[mode]
    except KeyError as err:
        raise PreconditionFailure(f"Unknown sealed-bid mode: {mode}") from err
    return (S(output_amount) * (BPS_DENOMINATOR + premium_bps) // BPS_DENOMINATOR).value
