"""Solver - derived dependency graph with cycle detection.

Infers ordering edges between operations and validates that an order exists.

Edge Inference:
--------------
1. Resource edges: A -> B when A.affects and B.depends share a tag (A != B)
2. Prerequisite edges: P -> B for every id in B.prerequisites naming P

Parallel edges collapse into one constraint; every edge remembers the reasons
that produced it (the shared tags and/or "prerequisite").

Prerequisite Precedence:
-----------------------
An explicit declaration beats a conflicting inference. For a prerequisite
edge P -> N, a resource-only edge X -> P is overridden when X is reachable
from N without passing through P, because keeping it would close the cycle
P -> N -> ... -> X -> P around the declared edge. Overrides are computed
against the full derived graph in one pass, so the result does not depend on
input order. Cycles made only of resource edges or only of prerequisite edges
are left alone and fail validation.

Example:
    a: affects x, depends z, prerequisites c
    b: affects y, depends x
    c: affects z, depends y

    Derived: a -> b (x), b -> c (y), c -> a (z, prerequisite)
    Overridden: b -> c, since b is reachable from a
    Order: c, a, b

Storage:
-------
Operations live in a tuple; edges are pairs of tuple indices. Operations never
reference each other, so the graph is read-only after construction and safe to
share between threads.
"""

from collections import defaultdict, deque
from collections.abc import Hashable, Iterable
from enum import IntEnum
from typing import Any

import structlog

from ..config import UnknownPrerequisitePolicy
from ..constants import (
    DOT_ISOLATED_NODE_COLOR,
    DOT_NODE_COLOR,
    DOT_OVERRIDDEN_EDGE_STYLE,
    DOT_PREREQUISITE_EDGE_STYLE,
    DOT_RESOURCE_EDGE_STYLE,
    PREREQUISITE_REASON,
)
from ..models.operation import Operation
from ..utils.exceptions import (
    ConstructionError,
    DuplicateOperationError,
    GraphInvalid,
    UnresolvedPrerequisiteError,
)

logger = structlog.get_logger(__name__)

Edge = tuple[int, int]


class _Mark(IntEnum):
    """DFS colors used by cycle detection."""

    UNVISITED = 0
    IN_PROGRESS = 1
    DONE = 2


class Solver:
    """
    Directed graph over a fixed set of operations.

    Features:
    - Resource and prerequisite edge inference
    - Prerequisite precedence over conflicting resource edges
    - Iterative cycle detection (no recursion depth limit)
    - Graph queries and human-readable / DOT diagnostics

    Constructing a Solver over a cyclic graph succeeds; the cycle is reported
    by validate(), so the graph can still be described for debugging.
    """

    def __init__(
        self,
        nodes: Iterable[Operation],
        unknown_prerequisites: UnknownPrerequisitePolicy = UnknownPrerequisitePolicy.ERROR,
    ) -> None:
        """
        Build the derived graph.

        Args:
            nodes: Operations to order
            unknown_prerequisites: Policy for prerequisite ids matching no operation

        Raises:
            ConstructionError: If a node is not an Operation
            DuplicateOperationError: If two operations share an id
        """
        self._nodes: tuple[Operation, ...] = tuple(nodes)
        self._policy = UnknownPrerequisitePolicy(unknown_prerequisites)
        self._index: dict[Hashable, int] = {}

        duplicates: list[Hashable] = []
        for position, node in enumerate(self._nodes):
            if not isinstance(node, Operation):
                raise ConstructionError(
                    f"Solver nodes must be Operation instances, got {type(node).__name__}"
                )
            if node.id in self._index:
                if node.id not in duplicates:
                    duplicates.append(node.id)
                continue
            self._index[node.id] = position

        if duplicates:
            raise DuplicateOperationError(duplicates)

        self._reasons: dict[Edge, frozenset[str]] = {}
        self._overridden: dict[Edge, Edge] = {}  # overridden edge -> prerequisite edge
        self._overridden_reasons: dict[Edge, frozenset[str]] = {}
        self._unresolved: dict[Hashable, list[Hashable]] = {}
        self._successors: list[list[int]] = [[] for _ in self._nodes]
        self._predecessors: list[list[int]] = [[] for _ in self._nodes]
        self._validated = False

        self._build()

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    def _build(self) -> None:
        logger.info("Building dependency graph", operation_count=len(self._nodes))

        reasons: dict[Edge, set[str]] = defaultdict(set)

        # Index producers by tag so each consumer only meets relevant producers
        producers: dict[Hashable, list[int]] = defaultdict(list)
        for position, node in enumerate(self._nodes):
            for tag in node.affects:
                producers[tag].append(position)

        for target, node in enumerate(self._nodes):
            for tag in node.depends:
                for source in producers.get(tag, ()):
                    # Own depends/affects overlap never creates an edge
                    if source != target:
                        reasons[(source, target)].add(str(tag))

        for target, node in enumerate(self._nodes):
            missing = []
            for prereq_id in node.prerequisites:
                source = self._index.get(prereq_id)
                if source is None:
                    missing.append(prereq_id)
                    continue
                reasons[(source, target)].add(PREREQUISITE_REASON)
            if missing:
                self._unresolved[node.id] = sorted(missing, key=str)

        if self._unresolved and self._policy == UnknownPrerequisitePolicy.IGNORE:
            for op_id, missing in self._unresolved.items():
                logger.warning(
                    "Ignoring unresolved prerequisites",
                    operation=op_id,
                    missing=missing,
                )

        self._apply_prerequisite_precedence(reasons)

        for edge in sorted(reasons):
            if edge in self._overridden:
                self._overridden_reasons[edge] = frozenset(reasons[edge])
                continue
            source, target = edge
            self._reasons[edge] = frozenset(reasons[edge])
            self._successors[source].append(target)
            self._predecessors[target].append(source)
            logger.debug(
                "Added dependency edge",
                source=self._nodes[source].id,
                target=self._nodes[target].id,
                reasons=sorted(reasons[edge]),
            )

        logger.info(
            "Dependency graph built",
            nodes=len(self._nodes),
            edges=len(self._reasons),
            overridden=len(self._overridden),
            unresolved=sum(len(v) for v in self._unresolved.values()),
        )

    def _apply_prerequisite_precedence(self, reasons: dict[Edge, set[str]]) -> None:
        """
        Mark resource-only edges that contradict a declared prerequisite.

        Args:
            reasons: Full derived edge set with reasons, before overrides
        """
        successors: dict[int, list[int]] = defaultdict(list)
        predecessors: dict[int, list[int]] = defaultdict(list)
        for source, target in reasons:
            successors[source].append(target)
            predecessors[target].append(source)

        for (prereq, dependent), edge_reasons in sorted(reasons.items()):
            if PREREQUISITE_REASON not in edge_reasons or prereq == dependent:
                continue

            # Everything reachable from the dependent without passing through
            # the prerequisite itself
            reachable = {dependent}
            queue = deque([dependent])
            while queue:
                current = queue.popleft()
                for nxt in successors[current]:
                    if nxt != prereq and nxt not in reachable:
                        reachable.add(nxt)
                        queue.append(nxt)

            for source in predecessors[prereq]:
                edge = (source, prereq)
                if (
                    source in reachable
                    and PREREQUISITE_REASON not in reasons[edge]
                    and edge not in self._overridden
                ):
                    self._overridden[edge] = (prereq, dependent)
                    logger.debug(
                        "Resource edge overridden by prerequisite",
                        source=self._nodes[source].id,
                        target=self._nodes[prereq].id,
                        prerequisite_of=self._nodes[dependent].id,
                    )

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate(self) -> None:
        """
        Validate the whole graph.

        Checks:
        - Every prerequisite resolves (unless the policy is IGNORE)
        - No cycles, of any length, anywhere in the graph

        Raises:
            UnresolvedPrerequisiteError: If a prerequisite names no operation
            GraphInvalid: If a cycle is detected
        """
        if self._validated:
            return

        logger.info("Validating dependency graph", nodes=len(self._nodes), edges=len(self._reasons))

        if self._unresolved and self._policy == UnknownPrerequisitePolicy.ERROR:
            logger.error("Unresolved prerequisites", missing=self._unresolved)
            raise UnresolvedPrerequisiteError(dict(self._unresolved))

        cycle = self._find_cycle()
        if cycle:
            logger.error("Cyclic dependency detected", cycle=cycle)
            rendered = " -> ".join(repr(op_id) for op_id in cycle)
            raise GraphInvalid(f"not a valid graph: cycle {rendered}", cycle=cycle)

        self._validated = True
        logger.info("Dependency graph validation successful")

    def is_valid(self) -> bool:
        """Return True if validate() would succeed."""
        try:
            self.validate()
        except GraphInvalid:
            return False
        return True

    def _find_cycle(self) -> list[Hashable] | None:
        """
        Detect a cycle with an explicit-stack depth-first search.

        Algorithm:
        - Each node is UNVISITED, IN_PROGRESS (on the current path) or DONE
        - Descending into an IN_PROGRESS node means a back edge: a cycle
        - A node becomes DONE once all of its successors are DONE

        The stack holds (node, successor iterator) pairs instead of call
        frames, so graph depth is bounded only by memory.

        Returns:
            Ids along the cycle with the first id repeated last, or None
        """
        marks = [_Mark.UNVISITED] * len(self._nodes)

        for root in range(len(self._nodes)):
            if marks[root] != _Mark.UNVISITED:
                continue

            marks[root] = _Mark.IN_PROGRESS
            path = [root]
            stack = [iter(self._successors[root])]

            while stack:
                for child in stack[-1]:
                    if marks[child] == _Mark.IN_PROGRESS:
                        start = path.index(child)
                        return [self._nodes[i].id for i in path[start:]] + [self._nodes[child].id]
                    if marks[child] == _Mark.UNVISITED:
                        marks[child] = _Mark.IN_PROGRESS
                        path.append(child)
                        stack.append(iter(self._successors[child]))
                        break
                else:
                    # All successors explored: backtrack
                    marks[path.pop()] = _Mark.DONE
                    stack.pop()

        return None

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def nodes(self) -> tuple[Operation, ...]:
        """Operations in input order."""
        return self._nodes

    def edges(self) -> frozenset[tuple[Hashable, Hashable]]:
        """Derived edges as (source id, target id) pairs."""
        return frozenset(
            (self._nodes[source].id, self._nodes[target].id) for source, target in self._reasons
        )

    def index_edges(self) -> tuple[Edge, ...]:
        """Derived edges as (source index, target index) pairs into nodes()."""
        return tuple(self._reasons)

    def overridden_edges(self) -> frozenset[tuple[Hashable, Hashable]]:
        """Resource edges removed by prerequisite precedence."""
        return frozenset(
            (self._nodes[source].id, self._nodes[target].id) for source, target in self._overridden
        )

    def edge_reasons(self, source_id: Hashable, target_id: Hashable) -> frozenset[str]:
        """
        Reasons recorded for a derived edge.

        Args:
            source_id: Id of the operation ordered first
            target_id: Id of the operation ordered second

        Returns:
            Shared tags and/or "prerequisite"

        Raises:
            KeyError: If there is no such edge
        """
        edge = (self._position(source_id), self._position(target_id))
        if edge not in self._reasons:
            raise KeyError(f"No edge {source_id!r} -> {target_id!r}")
        return self._reasons[edge]

    def unresolved_prerequisites(self) -> dict[Hashable, list[Hashable]]:
        """Prerequisite ids that match no operation, keyed by the declaring operation."""
        return {op_id: list(missing) for op_id, missing in self._unresolved.items()}

    def predecessors(self, op_id: Hashable) -> tuple[Operation, ...]:
        """Operations with an edge into ``op_id``."""
        return tuple(self._nodes[i] for i in self._predecessors[self._position(op_id)])

    def successors(self, op_id: Hashable) -> tuple[Operation, ...]:
        """Operations with an edge out of ``op_id``."""
        return tuple(self._nodes[i] for i in self._successors[self._position(op_id)])

    def _position(self, op_id: Hashable) -> int:
        if isinstance(op_id, Operation):
            op_id = op_id.id
        try:
            return self._index[op_id]
        except KeyError:
            raise KeyError(f"Unknown operation: {op_id!r}") from None

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, item: Any) -> bool:
        if isinstance(item, Operation):
            item = item.id
        try:
            return item in self._index
        except TypeError:
            return False

    # -------------------------------------------------------------------------
    # Diagnostics
    # -------------------------------------------------------------------------

    def describe(self) -> str:
        """
        Render nodes and edges as readable text.

        Safe to call on an invalid graph; has no effect on graph state.

        Returns:
            Multi-line description
        """
        lines = [
            f"Solver: {len(self._nodes)} operations, {len(self._reasons)} edges"
            + (f" ({len(self._overridden)} overridden)" if self._overridden else "")
        ]

        lines.append("Operations:")
        if not self._nodes:
            lines.append("  (none)")
        for position, node in enumerate(self._nodes):
            fields = [f"  [{position}] {node.id!r}"]
            for name in ("depends", "affects", "prerequisites"):
                values = getattr(node, name)
                if values:
                    fields.append(f"{name}={_sorted_str(values)}")
            lines.append(" ".join(fields))

        lines.append("Edges:")
        if not self._reasons:
            lines.append("  (none)")
        for (source, target), reasons in self._reasons.items():
            lines.append(
                f"  {self._nodes[source].id!r} -> {self._nodes[target].id!r}"
                f" ({', '.join(_sorted_str(reasons))})"
            )

        if self._overridden:
            lines.append("Overridden:")
            for (source, target), (prereq, dependent) in sorted(self._overridden.items()):
                lines.append(
                    f"  {self._nodes[source].id!r} -> {self._nodes[target].id!r}"
                    f" ({', '.join(_sorted_str(self._overridden_reasons[(source, target)]))})"
                    f" by prerequisite {self._nodes[prereq].id!r} -> {self._nodes[dependent].id!r}"
                )

        if self._unresolved:
            lines.append(f"Unresolved prerequisites ({self._policy.value}):")
            for op_id, missing in self._unresolved.items():
                lines.append(f"  {op_id!r} requires {', '.join(repr(m) for m in missing)}")

        return "\n".join(lines)

    def to_dot(self) -> str:
        """
        Generate DOT format representation of the graph.

        Returns:
            String containing the Graphviz DOT definition
        """
        lines = ["digraph OperationGraph {"]
        lines.append("    rankdir=LR;")
        lines.append("    node [shape=box style=filled];")

        for position, node in enumerate(self._nodes):
            connected = self._successors[position] or self._predecessors[position]
            color = DOT_NODE_COLOR if connected else DOT_ISOLATED_NODE_COLOR
            lines.append(f'    "{_dot_escape(node.id)}" [fillcolor="{color}"];')

        for (source, target), reasons in self._reasons.items():
            style = (
                DOT_PREREQUISITE_EDGE_STYLE
                if PREREQUISITE_REASON in reasons
                else DOT_RESOURCE_EDGE_STYLE
            )
            label = ", ".join(_sorted_str(reasons))
            lines.append(
                f'    "{_dot_escape(self._nodes[source].id)}" -> '
                f'"{_dot_escape(self._nodes[target].id)}" '
                f'[label="{_dot_escape(label)}" style={style}];'
            )

        for source, target in sorted(self._overridden):
            lines.append(
                f'    "{_dot_escape(self._nodes[source].id)}" -> '
                f'"{_dot_escape(self._nodes[target].id)}" '
                f"[style={DOT_OVERRIDDEN_EDGE_STYLE} color=gray];"
            )

        lines.append("}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.describe()

    def __repr__(self) -> str:
        return f"Solver(nodes={len(self._nodes)}, edges={len(self._reasons)})"


def _sorted_str(values: Iterable[Any]) -> list[str]:
    return sorted(str(v) for v in values)


def _dot_escape(value: Any) -> str:
    return str(value).replace("\\", "\\\\").replace('"', '\\"')
