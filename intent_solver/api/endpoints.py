"""API endpoints for inspecting a running solver."""

import structlog
from fastapi import APIRouter, Depends, HTTPException

from intent_solver.errors import (
    ArithmeticFailure,
    InvariantViolation,
    LedgerError,
    PreconditionFailure,
)
from intent_solver.loop import SolverLoop

logger = structlog.get_logger()

router = APIRouter()

_solver_loop: SolverLoop | None = None


def attach_solver_loop(loop: SolverLoop | None) -> None:
    """Register the loop the endpoints report on (None detaches it)."""
    global _solver_loop
    _solver_loop = loop


def get_solver_loop() -> SolverLoop:
    """Dependency provider for the solver loop.

    Override this in tests to inject a loop:
        app.dependency_overrides[get_solver_loop] = lambda: loop

    Raises:
        HTTPException: 503 if no loop is attached
    """
    if _solver_loop is None:
        raise HTTPException(status_code=503, detail="Solver loop not running")
    return _solver_loop


@router.get("/status")
async def status(loop: SolverLoop = Depends(get_solver_loop)) -> dict[str, object]:
    """Loop counters, strategy and configuration summary."""
    return {**loop.status(), "config": loop.config.summary()}


@router.post("/quote/{intent_id}")
async def quote(intent_id: int, loop: SolverLoop = Depends(get_solver_loop)) -> dict[str, object]:
    """Dry-run the decision pipeline for one intent. Never submits.

    Error Handling:
        - Unknown intent: 404
        - Ledger unreachable: 502
        - Intent cannot be evaluated (bad data, arithmetic): 422
    """
    try:
        plan = await loop.inspect(intent_id)
    except LedgerError as err:
        logger.warning("quote_ledger_error", intent_id=intent_id, error=str(err))
        raise HTTPException(status_code=502, detail=str(err)) from err
    except (ArithmeticFailure, InvariantViolation, PreconditionFailure) as err:
        logger.info("quote_rejected", intent_id=intent_id, error=str(err))
        raise HTTPException(status_code=422, detail=str(err)) from err

    if plan is None:
        raise HTTPException(status_code=404, detail=f"Intent {intent_id} not found")
    return plan.to_dict()
