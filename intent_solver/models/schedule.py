"""Fill window model for scheduled (TWAP/DCA) and atomic intents."""

from pydantic import BaseModel, Field

from intent_solver.models.types import Amount, Timestamp


class ScheduleWindow(BaseModel):
    """One executable slice of an intent.

    Attributes:
        period_index: 0-based window index, None for the implicit window of an
            atomic (SWAP / LIMIT_ORDER) intent
        earliest_start: First instant the window may be filled
        latest_end: Last instant the window may be filled (the intent deadline)
        amount_for_period: Input amount this window consumes
    """

    period_index: int | None = Field(default=None, ge=0)
    earliest_start: Timestamp
    latest_end: Timestamp
    amount_for_period: Amount

    model_config = {"frozen": True}

    def is_open(self, now: int) -> bool:
        return self.earliest_start <= now <= self.latest_end
