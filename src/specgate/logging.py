"""Structured logging configuration using structlog."""

import logging
import sys

import structlog


def configure_logging(debug: bool = False, json_output: bool = True) -> None:
    """Configure structlog for the specgate host process.

    Dispatch and reload failures are reported as warnings through this
    pipeline rather than terminating the process.

    Args:
        debug: Enable debug-level logging when True.
        json_output: Render JSON lines when True, console output otherwise.
    """
    level = logging.DEBUG if debug else logging.INFO

    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=level,
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    # watchdog logs every inotify setup at DEBUG
    logging.getLogger("watchdog").setLevel(logging.WARNING)
