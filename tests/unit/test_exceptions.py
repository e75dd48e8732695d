"""Unit tests for Custom Exceptions."""

import pytest

from opgraph.models.operation import Operation
from opgraph.utils.exceptions import (
    ActionFailure,
    ConstructionError,
    DefinitionError,
    DuplicateOperationError,
    GraphInvalid,
    OpGraphError,
    UnresolvedPrerequisiteError,
)


class TestConstructionErrors:
    """Test construction-time errors."""

    def test_duplicate_operation_error(self):
        """Test DuplicateOperationError message and ids."""
        error = DuplicateOperationError(["a", 2])

        assert str(error) == "Duplicate operation ids: 'a', 2"
        assert error.op_ids == ["a", 2]

    @pytest.mark.parametrize("cls", [ConstructionError, DuplicateOperationError, DefinitionError])
    def test_value_error_inheritance(self, cls):
        """Input errors are also ValueErrors."""
        assert issubclass(cls, ValueError)
        assert issubclass(cls, OpGraphError)


class TestDefinitionError:
    """Test DefinitionError exception."""

    def test_with_index(self):
        """The entry position prefixes the message."""
        cause = KeyError("id")
        error = DefinitionError("id: Field required", index=4, original_error=cause)

        assert str(error) == "Operation #4: id: Field required"
        assert error.index == 4
        assert error.original_error is cause

    def test_without_index(self):
        """Without an index the message is unchanged."""
        error = DefinitionError("Unsupported definition file type '.ini'")

        assert str(error) == "Unsupported definition file type '.ini'"
        assert error.index is None


class TestGraphInvalid:
    """Test GraphInvalid and its subclass."""

    def test_defaults(self):
        """Test GraphInvalid without optional parameters."""
        error = GraphInvalid()

        assert str(error) == "not a valid graph"
        assert error.cycle == []

    def test_cycle_attached(self):
        """Test the cycle path is kept."""
        error = GraphInvalid("not a valid graph: cycle 'A' -> 'B' -> 'A'", cycle=["A", "B", "A"])

        assert error.cycle == ["A", "B", "A"]
        assert isinstance(error, OpGraphError)
        assert not isinstance(error, ValueError)

    def test_unresolved_prerequisite_error(self):
        """Test the missing ids are listed per operation."""
        error = UnresolvedPrerequisiteError({"b": ["ghost", "phantom"]})

        assert str(error) == (
            "not a valid graph: unresolved prerequisites ('b' requires 'ghost', 'phantom')"
        )
        assert error.missing == {"b": ["ghost", "phantom"]}
        assert isinstance(error, GraphInvalid)


class TestActionFailure:
    """Test ActionFailure exception."""

    def test_creation(self):
        """Test the failing operation and cause are attached."""
        op = Operation("deploy")
        cause = RuntimeError("timeout")
        done = [(Operation("build"), 1)]

        error = ActionFailure(op, cause, completed=done)

        assert str(error) == "Action failed for operation 'deploy': timeout"
        assert error.operation is op
        assert error.error is cause
        assert error.completed == done

    def test_completed_defaults_empty(self):
        """Test ActionFailure without completed steps."""
        error = ActionFailure(Operation("a"), ValueError("x"))

        assert error.completed == []
        assert not isinstance(error, GraphInvalid)
