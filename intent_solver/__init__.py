"""Solver engine for intent-based trade settlement."""

__version__ = "0.1.0"

from intent_solver.config import SolverConfig  # noqa: E402
from intent_solver.loop import SolverLoop  # noqa: E402

__all__ = ["SolverConfig", "SolverLoop", "__version__"]
