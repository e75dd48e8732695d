"""Dependency graph construction and validation."""

from .solver import Solver

__all__ = [
    "Solver",
]
