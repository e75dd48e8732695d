"""Execution engine: ordering and action driving."""

from .traversal import Traversal

__all__ = [
    "Traversal",
]
