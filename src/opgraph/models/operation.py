"""Operation model."""

from collections.abc import Hashable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..utils.exceptions import ConstructionError


def _to_frozenset(value: Any, field_name: str) -> frozenset:
    """
    Normalize a tag or id collection to a frozenset.

    A bare string is a single entry, not a sequence of characters.
    None means empty.

    Args:
        value: The value passed by the caller.
        field_name: Name of the field, used in error messages.

    Returns:
        frozenset: The normalized collection.

    Raises:
        ConstructionError: If the value is neither a string nor an iterable.
    """
    if value is None:
        return frozenset()
    if isinstance(value, str):
        return frozenset({value})
    if isinstance(value, Iterable):
        return frozenset(value)
    raise ConstructionError(
        f"{field_name} must be a string or a collection, got {type(value).__name__}"
    )


@dataclass(frozen=True, eq=False)
class Operation:
    """
    One unit of work to be ordered.

    Attributes:
        id: Unique, stable identifier (required, non-empty)
        depends: Resource tags this operation requires to be satisfied first
        affects: Resource tags this operation produces or mutates
        prerequisites: Ids of operations that must be ordered strictly before this one

    Equality and hashing use ``id`` only. Instances are immutable; collections
    are normalized to frozensets once, here.
    """

    id: Hashable = None
    depends: frozenset = field(default_factory=frozenset)
    affects: frozenset = field(default_factory=frozenset)
    prerequisites: frozenset = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if self.id is None or (isinstance(self.id, str) and not self.id.strip()):
            raise ConstructionError("Operation requires a non-empty id")
        if not isinstance(self.id, Hashable):
            raise ConstructionError(f"Operation id must be hashable, got {type(self.id).__name__}")

        # frozen dataclass: normalize through object.__setattr__
        for name in ("depends", "affects", "prerequisites"):
            object.__setattr__(self, name, _to_frozenset(getattr(self, name), name))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Operation):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        parts = [f"id={self.id!r}"]
        for name in ("depends", "affects", "prerequisites"):
            values = getattr(self, name)
            if values:
                parts.append(f"{name}={sorted(values, key=str)!r}")
        return f"Operation({', '.join(parts)})"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Operation":
        """
        Build an operation from a loosely structured mapping.

        Args:
            data: Mapping with an ``id`` key and optional ``depends``,
                ``affects`` and ``prerequisites`` keys

        Returns:
            Operation instance

        Raises:
            ConstructionError: If ``id`` is missing or empty, or a key is unknown
        """
        known = {"id", "depends", "affects", "prerequisites"}
        unknown = set(data) - known
        if unknown:
            raise ConstructionError(f"Unknown operation fields: {sorted(unknown)}")
        if "id" not in data:
            raise ConstructionError("Operation requires a non-empty id")
        return cls(
            id=data["id"],
            depends=data.get("depends"),
            affects=data.get("affects"),
            prerequisites=data.get("prerequisites"),
        )
