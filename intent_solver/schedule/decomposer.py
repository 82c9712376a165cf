"""Decomposition of intents into ordered fill windows.

DCA intents open one window per interval starting at the intent's creation
time, each for exactly amount_per_period. TWAP intents open one chunk per
interval starting at start_time; every chunk gets total // num_chunks except
the last, which absorbs the remainder so the chunks always sum to the total.
Atomic intents (SWAP, LIMIT_ORDER) have a single implicit window.

Windows are filled strictly in period order. The decomposer never hands out
a later window while an earlier one is still unfilled, even when the later
window's open time has passed (e.g. after solver downtime).
"""

from __future__ import annotations

import structlog

from intent_solver.errors import PreconditionFailure
from intent_solver.math.fixed_point import proportional_min_output
from intent_solver.models.intent import Intent, IntentType
from intent_solver.models.schedule import ScheduleWindow
from intent_solver.safe_int import S

logger = structlog.get_logger()


def decompose_dca(
    amount_per_period: int,
    total_periods: int,
    interval_seconds: int,
    t0: int,
    deadline: int,
) -> list[ScheduleWindow]:
    """Build DCA windows: window k opens at t0 + k * interval_seconds."""
    if total_periods <= 0:
        raise PreconditionFailure(f"DCA total_periods must be positive, got {total_periods}")

    return [
        ScheduleWindow(
            period_index=k,
            earliest_start=t0 + k * interval_seconds,
            latest_end=deadline,
            amount_for_period=amount_per_period,
        )
        for k in range(total_periods)
    ]


def decompose_twap(
    total_amount: int,
    num_chunks: int,
    interval_seconds: int,
    start_time: int,
    deadline: int,
) -> list[ScheduleWindow]:
    """Build TWAP chunks: chunk k opens at start_time + k * interval_seconds.

    Every chunk but the last gets floor(total_amount / num_chunks); the last
    gets total_amount - floor(total_amount / num_chunks) * (num_chunks - 1).
    """
    if num_chunks <= 0:
        raise PreconditionFailure(f"TWAP num_chunks must be positive, got {num_chunks}")

    base = (S(total_amount) // num_chunks).value
    last = total_amount - base * (num_chunks - 1)

    return [
        ScheduleWindow(
            period_index=k,
            earliest_start=start_time + k * interval_seconds,
            latest_end=deadline,
            amount_for_period=last if k == num_chunks - 1 else base,
        )
        for k in range(num_chunks)
    ]


def decompose_schedule(intent: Intent) -> list[ScheduleWindow]:
    """Ordered windows for any intent type."""
    if intent.type == IntentType.DCA:
        # Presence of the DCA fields is enforced by the Intent model
        return decompose_dca(
            amount_per_period=intent.amount_per_period or 0,
            total_periods=intent.total_periods or 0,
            interval_seconds=intent.interval_seconds or 0,
            t0=intent.created_at,
            deadline=intent.deadline,
        )
    if intent.type == IntentType.TWAP:
        return decompose_twap(
            total_amount=intent.total_amount or 0,
            num_chunks=intent.num_chunks or 0,
            interval_seconds=intent.interval_seconds or 0,
            start_time=intent.start_time if intent.start_time is not None else intent.created_at,
            deadline=intent.deadline,
        )

    # Atomic intents: one implicit window covering whatever is left in escrow
    return [
        ScheduleWindow(
            period_index=None,
            earliest_start=intent.created_at,
            latest_end=intent.deadline,
            amount_for_period=intent.amount_remaining,
        )
    ]


def window_min_output(intent: Intent, window: ScheduleWindow | None) -> int | None:
    """Minimum output owed for a window, pro-rata to the intent's floor.

    Returns None when the intent has no floor.
    """
    if intent.min_output_amount is None:
        return None
    if window is None or window.amount_for_period == intent.input_amount:
        return intent.min_output_amount
    return proportional_min_output(
        intent.min_output_amount, window.amount_for_period, intent.input_amount
    )


class ScheduleDecomposer:
    """Selects the single window a solver may act on at a given instant.

    A window is eligible at `now` iff its open time is <= now, it has no
    non-reverted fill, and now <= intent.deadline. Only the lowest-index
    unfilled window is ever considered.
    """

    def decompose(self, intent: Intent) -> list[ScheduleWindow]:
        return decompose_schedule(intent)

    def remaining_windows(self, intent: Intent) -> list[ScheduleWindow]:
        """Windows without a live fill, in period order."""
        if not intent.is_scheduled:
            if intent.amount_remaining == 0:
                return []
            return self.decompose(intent)

        filled = intent.filled_periods
        return [w for w in self.decompose(intent) if w.period_index not in filled]

    def is_schedule_complete(self, intent: Intent) -> bool:
        return not self.remaining_windows(intent)

    def next_eligible(self, intent: Intent, now: int) -> ScheduleWindow | None:
        """The window to act on now, or None if nothing is eligible.

        Strict FIFO: if the earliest unfilled window is not yet open, nothing
        is returned even when no later window could be open either.
        """
        if not intent.is_active or now > intent.deadline:
            return None

        remaining = self.remaining_windows(intent)
        if not remaining:
            return None

        window = remaining[0]
        if not window.is_open(now):
            logger.debug(
                "window_not_open",
                intent_id=intent.id,
                period_index=window.period_index,
                opens_in=window.earliest_start - now,
            )
            return None
        return window
