"""Error taxonomy for the intent solver.

Every failure the engine distinguishes has its own class so the solver loop
can decide how far it propagates:

- PreconditionFailure: a required input is missing or malformed. Rejected
  before any network call.
- ArithmeticFailure: division by zero, underflow, invalid slippage. Aborts a
  single evaluation, never the loop.
- StaleStateFailure: the ledger shows the window already filled. Treated as
  success elsewhere and skipped silently.
- SubmissionFailure: network error or ledger rejection. Retried on the next
  poll until the intent deadline.
- ExpiredFailure: the intent deadline has passed. Terminal for that intent.
"""

from __future__ import annotations


class SolverError(Exception):
    """Base class for all intent solver errors."""

    pass


class PreconditionFailure(SolverError):
    """A required field is missing or invalid (e.g. unset slippage bound)."""

    pass


class InvariantViolation(SolverError, ValueError):
    """An intent or fill update would break a data model invariant."""

    pass


class ArithmeticFailure(SolverError, ArithmeticError):
    """Base class for integer arithmetic errors on token amounts."""

    pass


class DivisionByZero(ArithmeticFailure):
    """Division or modulo by zero."""

    pass


class Underflow(ArithmeticFailure):
    """Subtraction would produce a negative amount."""

    pass


class U64Overflow(ArithmeticFailure):
    """Value does not fit in the ledger's u64 amount type."""

    pass


class InvalidSlippage(ArithmeticFailure):
    """Slippage tolerance outside [0, 10000) basis points."""

    pass


class StaleStateFailure(SolverError):
    """Ledger snapshot shows the target window is no longer fillable."""

    pass


class LedgerError(SolverError):
    """Transport-level failure talking to the ledger."""

    pass


class SubmissionFailure(LedgerError):
    """A submission could not be delivered or was refused by the ledger.

    Attributes:
        reason: Optional machine-readable rejection reason
    """

    def __init__(self, message: str, reason: str | None = None) -> None:
        super().__init__(message)
        self.reason = reason


class ExpiredFailure(SolverError):
    """The intent deadline passed before the engine could act."""

    pass
