"""Ledger submission result types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RejectionReason(Enum):
    """Why the ledger refused a submission."""

    ALREADY_FILLED = "already_filled"
    EXPIRED = "expired"
    SLIPPAGE_EXCEEDED = "slippage_exceeded"
    INSUFFICIENT_BID = "insufficient_bid"
    NOT_WINNER = "not_winner"
    NOT_READY = "not_ready"
    UNKNOWN = "unknown"

    @property
    def is_retryable(self) -> bool:
        """True if the same window may be retried on a later poll."""
        return self in _RETRYABLE


_RETRYABLE = frozenset(
    {
        RejectionReason.SLIPPAGE_EXCEEDED,
        RejectionReason.INSUFFICIENT_BID,
        RejectionReason.NOT_READY,
        RejectionReason.UNKNOWN,
    }
)


@dataclass(frozen=True)
class SubmitResult:
    """Outcome of a ledger submission.

    Either the ledger accepted the transaction (tx_hash set) or it rejected
    it (rejection set). Transport failures are raised as SubmissionFailure
    instead of being returned.

    Examples:
        result = SubmitResult.ok("0xabc")
        assert result.accepted

        result = SubmitResult.rejected(RejectionReason.ALREADY_FILLED)
        assert not result.accepted
    """

    tx_hash: str | None = None
    rejection: RejectionReason | None = None
    detail: str | None = None

    @property
    def accepted(self) -> bool:
        return self.rejection is None and self.tx_hash is not None

    @classmethod
    def ok(cls, tx_hash: str) -> SubmitResult:
        return cls(tx_hash=tx_hash)

    @classmethod
    def rejected(cls, reason: RejectionReason, detail: str | None = None) -> SubmitResult:
        return cls(rejection=reason, detail=detail)
