"""
Structured logging setup for SDK diagnostics.

Only the ``sentrylite`` logger tree is touched; the host application's
root logger keeps its own handlers and level.
"""

from __future__ import annotations

import logging
import sys

import structlog

SDK_LOGGER = "sentrylite"


class _DiagnosticsHandler(logging.StreamHandler):
    """stderr handler installed once on the SDK logger."""


def setup_logging(log_level: str = "INFO", json_output: bool = True) -> logging.Logger:
    """
    Route SDK diagnostics to stderr through structlog.

    Args:
        log_level: Level name for the ``sentrylite`` loggers
        json_output: JSON lines (default) or a human-readable console format

    Returns:
        The configured ``sentrylite`` stdlib logger
    """
    sdk_logger = logging.getLogger(SDK_LOGGER)
    sdk_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    if not any(isinstance(h, _DiagnosticsHandler) for h in sdk_logger.handlers):
        handler = _DiagnosticsHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(message)s"))
        sdk_logger.addHandler(handler)
    sdk_logger.propagate = False

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )
    return sdk_logger


def ensure_debug_logging() -> None:
    """Make debug diagnostics visible unless the application configured structlog."""
    if not structlog.is_configured():
        setup_logging("DEBUG")
