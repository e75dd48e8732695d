"""Structured logging configuration.

Levels used across opgraph:
- INFO: Graph build/validation summaries and traversal start/finish
- DEBUG: Every derived edge, override and completed action
- WARNING: Ignored unresolved prerequisites, halted concurrent runs
- ERROR: Cycles, unresolved prerequisites and failed actions

Context bound with ``structlog.contextvars.bound_contextvars`` is merged into
every event.
"""

import logging
import sys
from pathlib import Path

import structlog

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Used until the application configures structlog itself
LIBRARY_DEFAULT_LEVEL = logging.WARNING


def get_log_level(level: str) -> int:
    """
    Get numeric log level from string.

    Unknown names fall back to INFO.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Numeric log level
    """
    return LOG_LEVELS.get(level.upper(), logging.INFO)


def configure_logging(
    level: str = "INFO",
    json_logs: bool = False,
    log_file: str | Path | None = None,
) -> None:
    """
    Configure structlog on top of the standard logging module.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Whether to output logs in JSON format
        log_file: Optional path to also write logs to
    """
    log_level = get_log_level(level)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        file_path = Path(log_file)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(file_path))

    logging.basicConfig(
        format="%(message)s",
        level=log_level,
        handlers=handlers,
        force=True,
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]

    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def configure_library_default() -> None:
    """
    Quiet opgraph when it is imported as a library.

    structlog's out-of-the-box configuration prints every event, debug
    included, to stdout. Unless the application has already configured
    structlog, only warnings and above are emitted. Calling
    configure_logging() or structlog.configure() later replaces this.
    """
    if structlog.is_configured():
        return
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(LIBRARY_DEFAULT_LEVEL),
    )
