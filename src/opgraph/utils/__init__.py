"""Utility functions and exceptions."""

from .exceptions import (
    ActionFailure,
    ConstructionError,
    DefinitionError,
    DuplicateOperationError,
    GraphInvalid,
    OpGraphError,
    UnresolvedPrerequisiteError,
)

__all__ = [
    "OpGraphError",
    "ConstructionError",
    "DuplicateOperationError",
    "DefinitionError",
    "GraphInvalid",
    "UnresolvedPrerequisiteError",
    "ActionFailure",
]
