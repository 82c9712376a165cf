"""structlog configuration for the solver process."""

from __future__ import annotations

import logging

import structlog


def configure_logging(level: str = "info", json_output: bool = False) -> None:
    """Configure structlog for console or JSON-lines output.

    Args:
        level: Minimum level name ("debug", "info", "warning", "error")
        json_output: Render one JSON object per line instead of console text
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=False,
    )
