"""Result types for traversals."""

from dataclasses import dataclass, field
from typing import Any

from ..utils.exceptions import ActionFailure, GraphInvalid
from .operation import Operation


@dataclass(frozen=True)
class TraversalOutcome:
    """
    Tagged success/failure result of a traversal.

    Exactly one of the two shapes occurs:
    - success: ``ok`` is True, ``steps`` holds every (operation, result) pair
      in invocation order, ``error`` is None
    - failure: ``ok`` is False and ``error`` holds the GraphInvalid or
      ActionFailure; ``steps`` holds the pairs completed before the failure
      (always empty for GraphInvalid)

    Attributes:
        ok: Whether the traversal completed
        steps: (operation, action result) pairs in invocation order
        error: The failure, if any
    """

    ok: bool
    steps: list[tuple[Operation, Any]] = field(default_factory=list)
    error: GraphInvalid | ActionFailure | None = None

    @classmethod
    def success(cls, steps: list[tuple[Operation, Any]]) -> "TraversalOutcome":
        """Build a successful outcome."""
        return cls(ok=True, steps=steps)

    @classmethod
    def failure(cls, error: GraphInvalid | ActionFailure) -> "TraversalOutcome":
        """
        Build a failed outcome.

        Args:
            error: The error that stopped the traversal.

        Returns:
            TraversalOutcome: Outcome carrying the error and any completed steps.
        """
        steps = list(error.completed) if isinstance(error, ActionFailure) else []
        return cls(ok=False, steps=steps, error=error)

    @property
    def order(self) -> list[Operation]:
        """Operations in the order their actions were invoked."""
        return [op for op, _ in self.steps]

    @property
    def graph_invalid(self) -> bool:
        """True when no valid order exists."""
        return isinstance(self.error, GraphInvalid)

    @property
    def action_failed(self) -> bool:
        """True when the caller's action failed for some node."""
        return isinstance(self.error, ActionFailure)

    @property
    def failed_operation(self) -> Operation | None:
        """The operation whose action failed, if any."""
        if isinstance(self.error, ActionFailure):
            return self.error.operation
        return None
