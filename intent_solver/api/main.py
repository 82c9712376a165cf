"""FastAPI application exposing a running solver to operators.

The API never drives submissions itself; it only reports on and dry-runs
the SolverLoop that `intent-solver run --api` starts alongside it.
"""

import os

import uvicorn
from fastapi import FastAPI

from intent_solver import __version__
from intent_solver.api.endpoints import router

# Configuration from environment variables with sensible defaults
HOST = os.environ.get("SOLVER_HOST", "0.0.0.0")
PORT = int(os.environ.get("SOLVER_PORT", "8000"))

app = FastAPI(
    title="Intent Solver",
    description="Solver engine for intent-based trade settlement",
    version=__version__,
)

app.include_router(router)


@app.get("/health")
async def health() -> dict[str, object]:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


def server(host: str = HOST, port: int = PORT, log_level: str = "info") -> uvicorn.Server:
    """Build a uvicorn server to run inside an existing event loop."""
    config = uvicorn.Config(app, host=host, port=port, log_level=log_level)
    return uvicorn.Server(config)


def run() -> None:
    """Run the API server on its own, without a solver loop attached.

    Configuration via environment variables:
    - SOLVER_HOST: Host to bind to (default: 0.0.0.0)
    - SOLVER_PORT: Port to bind to (default: 8000)
    """
    uvicorn.run("intent_solver.api.main:app", host=HOST, port=PORT)


if __name__ == "__main__":
    run()
