"""Data models for opgraph."""

from .operation import Operation
from .results import TraversalOutcome

__all__ = [
    "Operation",
    "TraversalOutcome",
]
