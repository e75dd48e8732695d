"""opgraph - execution ordering for interdependent operations."""

from .config import OpGraphConfig, TieBreak, UnknownPrerequisitePolicy
from .dependency import Solver
from .execution import Traversal
from .loader import load_operations, parse_operations
from .models import Operation, TraversalOutcome
from .observability import configure_library_default
from .utils.exceptions import (
    ActionFailure,
    ConstructionError,
    DefinitionError,
    DuplicateOperationError,
    GraphInvalid,
    OpGraphError,
    UnresolvedPrerequisiteError,
)

configure_library_default()

__version__ = "0.1.0"
__all__ = [
    "Operation",
    "Solver",
    "Traversal",
    "TraversalOutcome",
    "TieBreak",
    "UnknownPrerequisitePolicy",
    "OpGraphConfig",
    "load_operations",
    "parse_operations",
    "OpGraphError",
    "ConstructionError",
    "DuplicateOperationError",
    "DefinitionError",
    "GraphInvalid",
    "UnresolvedPrerequisiteError",
    "ActionFailure",
]
