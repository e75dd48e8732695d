"""Tests for the Operation model."""

import dataclasses

import pytest

from opgraph.models.operation import Operation
from opgraph.utils.exceptions import ConstructionError


class TestOperationConstruction:
    """Test Operation construction and validation."""

    def test_defaults_are_empty(self):
        """Only id is required; collections default to empty."""
        op = Operation("compile")

        assert op.id == "compile"
        assert op.depends == frozenset()
        assert op.affects == frozenset()
        assert op.prerequisites == frozenset()

    def test_missing_id_fails(self):
        """Building without an id raises ConstructionError."""
        with pytest.raises(ConstructionError):
            Operation()

        with pytest.raises(ConstructionError):
            Operation(id=None, depends=["x"])

    @pytest.mark.parametrize("bad_id", ["", "   "])
    def test_empty_id_fails(self, bad_id):
        """Empty or whitespace-only ids are rejected."""
        with pytest.raises(ConstructionError, match="non-empty id"):
            Operation(bad_id)

    def test_unhashable_id_fails(self):
        """Ids must be hashable to be used as graph keys."""
        with pytest.raises(ConstructionError, match="hashable"):
            Operation(["a"])

    def test_non_string_id_allowed(self):
        """Any hashable, comparable token works as an id."""
        op = Operation(7, affects="x")

        assert op.id == 7

    def test_collections_normalized_to_frozensets(self):
        """Lists, tuples and sets all become frozensets, duplicates collapse."""
        op = Operation("a", depends=["x", "x", "y"], affects=("z",), prerequisites={"b"})

        assert op.depends == frozenset({"x", "y"})
        assert op.affects == frozenset({"z"})
        assert op.prerequisites == frozenset({"b"})

    def test_single_string_is_one_tag(self):
        """A bare string is one tag, not a sequence of characters."""
        op = Operation("a", depends="schema")

        assert op.depends == frozenset({"schema"})

    def test_invalid_collection_type(self):
        """Non-iterable collection values are rejected."""
        with pytest.raises(ConstructionError, match="depends"):
            Operation("a", depends=5)

    def test_construction_error_is_value_error(self):
        """Callers validating input can catch ValueError."""
        with pytest.raises(ValueError):
            Operation("")


class TestOperationValueSemantics:
    """Test immutability and identity."""

    def test_immutable(self):
        """Fields cannot be reassigned after construction."""
        op = Operation("a")

        with pytest.raises(dataclasses.FrozenInstanceError):
            op.id = "b"

    def test_equality_by_id(self):
        """Two operations with the same id are equal regardless of tags."""
        assert Operation("a", depends="x") == Operation("a", affects="y")
        assert Operation("a") != Operation("b")
        assert hash(Operation("a", depends="x")) == hash(Operation("a"))
        assert len({Operation("a"), Operation("a", affects="z")}) == 1

    def test_not_equal_to_raw_id(self):
        """An operation is not equal to its bare id."""
        assert Operation("a") != "a"

    def test_repr_lists_non_empty_fields(self):
        """repr shows the id and only populated collections."""
        text = repr(Operation("a", depends=["y", "x"]))

        assert text == "Operation(id='a', depends=['x', 'y'])"


class TestOperationFromMapping:
    """Test construction from loosely structured input."""

    def test_from_mapping(self):
        """All known keys are read."""
        op = Operation.from_mapping(
            {"id": "a", "depends": ["x"], "affects": "y", "prerequisites": ["b"]}
        )

        assert op == Operation("a")
        assert op.depends == frozenset({"x"})
        assert op.affects == frozenset({"y"})
        assert op.prerequisites == frozenset({"b"})

    def test_from_mapping_missing_id(self):
        """A mapping without id fails at construction."""
        with pytest.raises(ConstructionError, match="non-empty id"):
            Operation.from_mapping({"depends": ["x"]})

    def test_from_mapping_unknown_key(self):
        """Unknown keys are reported rather than silently dropped."""
        with pytest.raises(ConstructionError, match="Unknown operation fields"):
            Operation.from_mapping({"id": "a", "requires": ["x"]})
