"""Custom exceptions for opgraph.

Exception Hierarchy:
-------------------
OpGraphError (base)
├── ConstructionError               # Operation built without a usable id
│   └── DuplicateOperationError     # Two operations share an id
├── DefinitionError                 # Malformed operation definition file
├── GraphInvalid                    # Derived graph contains a cycle
│   └── UnresolvedPrerequisiteError # Prerequisite names an unknown operation
└── ActionFailure                   # Caller-supplied action raised for a node

Usage Guidelines:
----------------
1. Catch GraphInvalid to handle every "no valid order exists" condition.
   Nothing has been executed when it is raised.

2. Catch ActionFailure to handle a failed run. The failing operation, the
   original exception and the steps completed before it are attached.
   Earlier actions are never rolled back.

3. Use OpGraphError as catch-all for opgraph-specific errors.

4. ConstructionError and DefinitionError are also ValueErrors, so callers
   validating user input can treat them like any other bad value.
"""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..models.operation import Operation


class OpGraphError(Exception):
    """Base exception for all opgraph errors."""

    pass


class ConstructionError(OpGraphError, ValueError):
    """Raised when an Operation (or the node set) cannot be constructed."""

    pass


class DuplicateOperationError(ConstructionError):
    """Raised when the same operation id is passed to a Solver twice."""

    def __init__(self, op_ids: list[Any]) -> None:
        """
        Initialize DuplicateOperationError.

        Args:
            op_ids: Ids that occur more than once, in first-seen order.
        """
        joined = ", ".join(repr(op_id) for op_id in op_ids)
        super().__init__(f"Duplicate operation ids: {joined}")
        self.op_ids = op_ids


class DefinitionError(OpGraphError, ValueError):
    """Raised when an operation definition file cannot be loaded."""

    def __init__(
        self,
        message: str,
        index: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        """
        Initialize DefinitionError.

        Args:
            message: Error message.
            index: Optional position of the offending entry.
            original_error: Optional original exception that caused this error.
        """
        super().__init__(message)
        self.index = index
        self.original_error = original_error

    def __str__(self) -> str:
        if self.index is not None:
            return f"Operation #{self.index}: {self.args[0]}"
        return str(self.args[0]) if self.args else "Invalid operation definition"


class GraphInvalid(OpGraphError):
    """
    Raised when the derived graph admits no valid execution order.

    Example cycles:
    1. A depends on x and affects y, B depends on y and affects x
    2. A affects x, B depends on x and affects y, C depends on y and affects x
    3. A lists itself as a prerequisite

    Validation is global: the error is raised before any node is ordered,
    even if the cycle is unrelated to nodes that would otherwise be ready.
    """

    def __init__(self, message: str = "not a valid graph", cycle: list[Any] | None = None) -> None:
        """
        Initialize GraphInvalid.

        Args:
            message: Error message.
            cycle: Operation ids along the detected cycle, first id repeated last.
        """
        super().__init__(message)
        self.cycle = cycle or []


class UnresolvedPrerequisiteError(GraphInvalid):
    """Raised when a prerequisite names an operation id that is not in the graph."""

    def __init__(self, missing: dict[Any, list[Any]]) -> None:
        """
        Initialize UnresolvedPrerequisiteError.

        Args:
            missing: Mapping of operation id to the prerequisite ids it names
                that match no operation.
        """
        details = "; ".join(
            f"{op_id!r} requires {', '.join(repr(p) for p in prereqs)}"
            for op_id, prereqs in missing.items()
        )
        super().__init__(f"not a valid graph: unresolved prerequisites ({details})")
        self.missing = missing


class ActionFailure(OpGraphError):
    """
    Raised when the caller-supplied action fails for a node during a run.

    The traversal halts at the failing node. Actions already invoked for
    earlier nodes are not rolled back; ``completed`` lists their results so the
    caller can decide whether to resume, abort or rebuild.
    """

    def __init__(
        self,
        operation: "Operation",
        error: BaseException,
        completed: list[tuple["Operation", Any]] | None = None,
    ) -> None:
        """
        Initialize ActionFailure.

        Args:
            operation: The operation whose action failed.
            error: The exception raised by the action.
            completed: (operation, result) pairs finished before the failure.
        """
        super().__init__(f"Action failed for operation {operation.id!r}: {error}")
        self.operation = operation
        self.error = error
        self.completed = completed or []
