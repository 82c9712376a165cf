"""Schedule decomposition for multi-period (TWAP/DCA) intents."""

from intent_solver.schedule.decomposer import (
    ScheduleDecomposer,
    decompose_dca,
    decompose_schedule,
    decompose_twap,
    window_min_output,
)

__all__ = [
    "ScheduleDecomposer",
    "decompose_dca",
    "decompose_schedule",
    "decompose_twap",
    "window_min_output",
]
