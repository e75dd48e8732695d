"""Observability - structured logging."""

from .logger import configure_library_default, configure_logging, get_log_level

__all__ = [
    "configure_logging",
    "configure_library_default",
    "get_log_level",
]
