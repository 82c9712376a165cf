"""Pydantic models for intents, fills and their auction metadata.

An Intent is created once by its maker on the ledger and afterwards only
changes through accepted fills or by its deadline elapsing. Snapshots are
treated as immutable: updates return new instances.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, model_validator

from intent_solver.errors import InvariantViolation
from intent_solver.models.schedule import ScheduleWindow
from intent_solver.models.types import Amount, Timestamp


class IntentType(str, Enum):
    """Kind of trade the maker asked for."""

    SWAP = "SWAP"
    LIMIT_ORDER = "LIMIT_ORDER"
    TWAP = "TWAP"
    DCA = "DCA"


class IntentStatus(str, Enum):
    """Lifecycle status of an intent. Transitions are monotonic."""

    PENDING = "PENDING"
    PARTIALLY_FILLED = "PARTIALLY_FILLED"
    FILLED = "FILLED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        """True while the intent can still receive fills."""
        return not self.is_terminal


_TERMINAL_STATUSES = frozenset(
    {IntentStatus.FILLED, IntentStatus.CANCELLED, IntentStatus.EXPIRED}
)

# Statuses never move to a lower rank; terminal statuses share the top rank
_STATUS_RANK = {
    IntentStatus.PENDING: 0,
    IntentStatus.PARTIALLY_FILLED: 1,
    IntentStatus.FILLED: 2,
    IntentStatus.CANCELLED: 2,
    IntentStatus.EXPIRED: 2,
}


class AuctionType(str, Enum):
    """Price discovery mechanism attached to an intent."""

    NONE = "NONE"
    SEALED_BID = "SEALED_BID"
    DUTCH = "DUTCH"


class Bid(BaseModel):
    """A committed sealed-bid offer."""

    solver: str
    output_amount: Amount
    submitted_at: Timestamp

    model_config = {"frozen": True}


class AuctionInfo(BaseModel):
    """Auction parameters and ledger-observed auction progress.

    Sealed bid: commit_deadline, reveal_deadline, bids, winner.
    Dutch: start_time, start_price, end_time, floor_price, accepted_by.
    """

    commit_deadline: Timestamp | None = None
    reveal_deadline: Timestamp | None = None
    bids: list[Bid] = Field(default_factory=list)
    winner: str | None = None
    winning_bid: Amount | None = None

    start_time: Timestamp | None = None
    start_price: Amount | None = None
    end_time: Timestamp | None = None
    floor_price: Amount | None = None
    accepted_by: str | None = None
    accepted_price: Amount | None = None

    model_config = {"frozen": True}


class Fill(BaseModel):
    """A settled (partial or total) execution against an intent.

    Attributes:
        period_index: Schedule window for TWAP/DCA fills, None for atomic intents
        amount_filled: Input token consumed
        amount_received: Output token delivered to the maker
        solver_address: Executing solver
        executed_at: Settlement time
        reverted: Reverted fills are kept for history but count toward nothing
    """

    period_index: int | None = Field(default=None, ge=0)
    amount_filled: Amount
    amount_received: Amount
    solver_address: str
    executed_at: Timestamp
    reverted: bool = False

    model_config = {"frozen": True}


class Intent(BaseModel):
    """A user's declarative trade request, as read from the ledger."""

    id: int = Field(ge=0)
    user: str = ""
    type: IntentType
    input_token: str
    output_token: str
    input_amount: Amount
    min_output_amount: Amount | None = None
    deadline: Timestamp
    created_at: Timestamp = 0
    auction_type: AuctionType = AuctionType.NONE
    auction: AuctionInfo | None = None
    status: IntentStatus = IntentStatus.PENDING
    fills: list[Fill] = Field(default_factory=list)

    # LIMIT_ORDER
    limit_price: Amount | None = None

    # TWAP
    total_amount: Amount | None = None
    num_chunks: int | None = Field(default=None, gt=0)
    max_slippage_bps: int | None = Field(default=None, ge=0)
    start_time: Timestamp | None = None

    # DCA
    amount_per_period: Amount | None = None
    total_periods: int | None = Field(default=None, gt=0)

    # TWAP and DCA
    interval_seconds: int | None = Field(default=None, ge=0)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_invariants(self) -> Intent:
        if self.type == IntentType.TWAP:
            if (
                self.total_amount is None
                or self.num_chunks is None
                or self.interval_seconds is None
            ):
                raise InvariantViolation(
                    "TWAP intent requires total_amount, num_chunks, interval_seconds"
                )
            if self.total_amount != self.input_amount:
                raise InvariantViolation(
                    f"TWAP total_amount {self.total_amount} != input_amount {self.input_amount}"
                )
        elif self.type == IntentType.DCA:
            if (
                self.amount_per_period is None
                or self.total_periods is None
                or self.interval_seconds is None
            ):
                raise InvariantViolation(
                    "DCA intent requires amount_per_period, total_periods, interval_seconds"
                )
            if self.amount_per_period * self.total_periods != self.input_amount:
                raise InvariantViolation(
                    f"DCA amount_per_period * total_periods != input_amount {self.input_amount}"
                )

        _check_fill_invariants(self, self.fills)
        return self

    # --- Derived views ---

    @property
    def is_scheduled(self) -> bool:
        """True for TWAP and DCA intents."""
        return self.type in (IntentType.TWAP, IntentType.DCA)

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    @property
    def period_count(self) -> int:
        """Number of schedule windows (1 for atomic intents)."""
        if self.type == IntentType.TWAP:
            return self.num_chunks or 0
        if self.type == IntentType.DCA:
            return self.total_periods or 0
        return 1

    @property
    def live_fills(self) -> list[Fill]:
        """Fills that have not been reverted."""
        return [f for f in self.fills if not f.reverted]

    @property
    def amount_filled(self) -> int:
        return sum(f.amount_filled for f in self.live_fills)

    @property
    def amount_remaining(self) -> int:
        return self.input_amount - self.amount_filled

    @property
    def output_received(self) -> int:
        return sum(f.amount_received for f in self.live_fills)

    @property
    def filled_periods(self) -> frozenset[int]:
        """Period indexes that already have a non-reverted fill."""
        return frozenset(f.period_index for f in self.live_fills if f.period_index is not None)

    @property
    def fill_percentage(self) -> int:
        """Filled share of input_amount as a whole percentage (floored)."""
        if self.input_amount == 0:
            return 0
        return self.amount_filled * 100 // self.input_amount

    @property
    def schedule(self) -> list[ScheduleWindow] | None:
        """Fill windows for TWAP/DCA intents, None for atomic intents."""
        if not self.is_scheduled:
            return None
        from intent_solver.schedule.decomposer import decompose_schedule

        return decompose_schedule(self)

    def is_past_deadline(self, now: int) -> bool:
        return now > self.deadline

    # --- State transitions ---

    def transition(self, status: IntentStatus) -> Intent:
        """Return a snapshot with a new status.

        Raises:
            InvariantViolation: If the move would regress the status or leave
                a terminal status
        """
        if status == self.status:
            return self
        if self.status.is_terminal:
            raise InvariantViolation(
                f"Intent {self.id} is {self.status.value}; cannot move to {status.value}"
            )
        if _STATUS_RANK[status] < _STATUS_RANK[self.status]:
            raise InvariantViolation(
                f"Intent {self.id} status cannot regress from {self.status.value} to {status.value}"
            )
        return self.model_copy(update={"status": status})

    def with_fill(self, fill: Fill) -> Intent:
        """Return a snapshot with `fill` appended and status advanced.

        Raises:
            InvariantViolation: If the intent is terminal, the period index
                does not match the intent type, the period already has a live
                fill, or the fills would exceed input_amount
        """
        if self.status.is_terminal:
            raise InvariantViolation(f"Intent {self.id} is {self.status.value}; cannot fill")
        if self.is_scheduled and fill.period_index is None:
            raise InvariantViolation(f"Fill for scheduled intent {self.id} needs a period_index")
        if not self.is_scheduled and fill.period_index is not None:
            raise InvariantViolation(
                f"Fill for atomic intent {self.id} cannot carry a period_index"
            )
        if fill.period_index is not None and fill.period_index >= self.period_count:
            raise InvariantViolation(
                f"Period {fill.period_index} out of range for intent {self.id}"
            )

        fills = [*self.fills, fill]
        _check_fill_invariants(self, fills)

        updated = self.model_copy(update={"fills": fills})
        if updated.amount_remaining == 0:
            status = IntentStatus.FILLED
        elif updated.amount_filled > 0:
            status = IntentStatus.PARTIALLY_FILLED
        else:
            status = self.status
        return updated.transition(status)


def _check_fill_invariants(intent: Intent, fills: list[Fill]) -> None:
    live = [f for f in fills if not f.reverted]

    total = sum(f.amount_filled for f in live)
    if total > intent.input_amount:
        raise InvariantViolation(
            f"Fills for intent {intent.id} total {total} > input_amount {intent.input_amount}"
        )

    seen: set[int] = set()
    for fill in live:
        if fill.period_index is None:
            continue
        if fill.period_index in seen:
            raise InvariantViolation(
                f"Intent {intent.id} has more than one live fill for period {fill.period_index}"
            )
        seen.add(fill.period_index)
