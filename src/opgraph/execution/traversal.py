"""Traversal - linearize a validated graph and drive actions over it.

Ordering:
--------
Kahn's algorithm over in-degree. A node becomes ready only when every
predecessor has been ordered. Validation is global and happens first: a cycle
anywhere raises GraphInvalid before any node is ordered or any action runs.

Tie-Breaking:
------------
Several nodes are often ready at once. Their relative order is not
constrained by the graph, and callers must not depend on it. The rule used is
explicit rather than accidental:
- INSERTION: input order among ready nodes (default)
- LEXICOGRAPHIC: str(id) order among ready nodes
- RANDOM: random pick, reproducible with a seed

Execution:
---------
- run(action): sequential, fail-fast, no retries, no rollback
- dry_run(): same ordering with a no-op action
- resolve(action): tagged TraversalOutcome instead of exceptions
- run_concurrent(action): asyncio, a node starts once all of its
  predecessors completed; disjoint branches overlap

The Traversal never builds graph structure and keeps no state between calls,
so repeated calls are independent and recompute the order.
"""

import asyncio
import heapq
import inspect
import random
import time
from collections.abc import Callable
from typing import Any

import structlog

from ..config import TieBreak, TraversalConfig
from ..dependency.solver import Solver
from ..models.operation import Operation
from ..models.results import TraversalOutcome
from ..utils.exceptions import ActionFailure, GraphInvalid

logger = structlog.get_logger(__name__)

Action = Callable[[Operation], Any]


def _noop(operation: Operation) -> None:
    return None


class _ReadyQueue:
    """Operations whose predecessors have all been ordered."""

    def __init__(self, nodes: tuple[Operation, ...], tie_break: TieBreak, rng: random.Random):
        self._nodes = nodes
        self._tie_break = tie_break
        self._rng = rng
        self._items: list[Any] = []

    def push(self, index: int) -> None:
        if self._tie_break == TieBreak.RANDOM:
            self._items.append(index)
        elif self._tie_break == TieBreak.LEXICOGRAPHIC:
            heapq.heappush(self._items, (str(self._nodes[index].id), index))
        else:
            heapq.heappush(self._items, (index, index))

    def pop(self) -> int:
        if self._tie_break == TieBreak.RANDOM:
            position = self._rng.randrange(len(self._items))
            # swap-remove keeps the pop O(1)
            self._items[position], self._items[-1] = self._items[-1], self._items[position]
            return self._items.pop()
        return heapq.heappop(self._items)[1]

    def __len__(self) -> int:
        return len(self._items)


class Traversal:
    """
    Produce one valid order over a Solver's graph and run actions along it.

    Execution Strategy:
    1. Validate the whole graph (GraphInvalid before anything runs)
    2. Linearize with Kahn's algorithm and the configured tie-break
    3. Invoke the action once per operation, in order
    """

    def __init__(
        self,
        solver: Solver,
        tie_break: TieBreak = TieBreak.INSERTION,
        seed: int | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        """
        Initialize Traversal.

        Args:
            solver: Solver whose graph to traverse (shared, not copied)
            tie_break: Rule for ordering simultaneously ready operations
            seed: Seed for TieBreak.RANDOM
            max_concurrency: Default bound for run_concurrent (None = unbounded)

        Raises:
            ValueError: If max_concurrency is below 1
        """
        _check_concurrency(max_concurrency)
        self.solver = solver
        self.tie_break = TieBreak(tie_break)
        self.seed = seed
        self.max_concurrency = max_concurrency
        self._rng = random.Random(seed)

    @classmethod
    def from_config(cls, solver: Solver, config: TraversalConfig) -> "Traversal":
        """Create a Traversal using the ordering and concurrency settings of a TraversalConfig."""
        return cls(
            solver,
            tie_break=config.tie_break,
            seed=config.seed,
            max_concurrency=config.max_concurrency,
        )

    # -------------------------------------------------------------------------
    # Ordering
    # -------------------------------------------------------------------------

    def _adjacency(self) -> tuple[list[list[int]], list[int]]:
        nodes = self.solver.nodes()
        successors: list[list[int]] = [[] for _ in nodes]
        in_degree = [0] * len(nodes)
        for source, target in self.solver.index_edges():
            successors[source].append(target)
            in_degree[target] += 1
        return successors, in_degree

    def _linearize(self) -> list[int]:
        """
        Topologically sort node indices.

        Returns:
            Node indices in execution order

        Raises:
            GraphInvalid: If the graph fails validation
        """
        self.solver.validate()

        nodes = self.solver.nodes()
        successors, in_degree = self._adjacency()

        ready = _ReadyQueue(nodes, self.tie_break, self._rng)
        for index, degree in enumerate(in_degree):
            if degree == 0:
                ready.push(index)

        ordered: list[int] = []
        while ready:
            index = ready.pop()
            ordered.append(index)
            for dependent in successors[index]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    ready.push(dependent)

        # Unreachable after validate(); guards against a Solver subclass
        # reporting edges it did not validate
        if len(ordered) != len(nodes):
            unordered = [nodes[i].id for i in range(len(nodes)) if in_degree[i] > 0]
            raise GraphInvalid(f"not a valid graph: could not order {unordered!r}")

        logger.debug(
            "Topological sort complete",
            node_count=len(ordered),
            tie_break=self.tie_break.value,
        )
        return ordered

    def order(self) -> list[Operation]:
        """
        Compute one valid order without running anything.

        Returns:
            Every operation exactly once, predecessors first

        Raises:
            GraphInvalid: If no valid order exists
        """
        nodes = self.solver.nodes()
        return [nodes[i] for i in self._linearize()]

    def batches(self) -> list[list[Operation]]:
        """
        Group operations into depth levels.

        DEPTH DEFINITION:
        - Operations with no predecessors: depth = 0
        - Otherwise depth = 1 + max(depth of all predecessors)
        - Operations at the same depth have no path between them

        Example:
            A → B → D
            A → C → D

            Batches: [[A], [B, C], [D]]

        Returns:
            Batches in depth order; within a batch, linearization order

        Raises:
            GraphInvalid: If no valid order exists
        """
        nodes = self.solver.nodes()
        ordered = self._linearize()
        successors, _ = self._adjacency()

        depth = [0] * len(nodes)
        for index in ordered:
            for dependent in successors[index]:
                depth[dependent] = max(depth[dependent], depth[index] + 1)

        grouped: dict[int, list[Operation]] = {}
        for index in ordered:
            grouped.setdefault(depth[index], []).append(nodes[index])

        result = [grouped[level] for level in sorted(grouped)]
        logger.info(
            "Created execution batches",
            batch_count=len(result),
            max_batch_size=max((len(batch) for batch in result), default=0),
        )
        return result

    # -------------------------------------------------------------------------
    # Sequential execution
    # -------------------------------------------------------------------------

    def run(self, action: Action) -> list[tuple[Operation, Any]]:
        """
        Invoke ``action`` once per operation in a valid order.

        Args:
            action: Callable taking an Operation; its return value is recorded

        Returns:
            (operation, result) pairs in invocation order

        Raises:
            GraphInvalid: If no valid order exists (nothing has run)
            ActionFailure: If the action raised; later operations were not run
        """
        ordered = self.order()

        logger.info(
            "Starting traversal",
            total_operations=len(ordered),
            tie_break=self.tie_break.value,
        )
        start = time.time()

        steps: list[tuple[Operation, Any]] = []
        for operation in ordered:
            try:
                result = action(operation)
            except Exception as e:
                logger.error(
                    "Action failed",
                    operation=operation.id,
                    error=str(e),
                    completed=len(steps),
                    remaining=len(ordered) - len(steps) - 1,
                )
                raise ActionFailure(operation, e, completed=steps) from e

            steps.append((operation, result))
            logger.debug("Action completed", operation=operation.id)

        logger.info(
            "Traversal complete",
            total_operations=len(steps),
            duration_seconds=f"{time.time() - start:.2f}",
        )
        return steps

    def dry_run(self) -> list[Operation]:
        """
        Compute the order exactly as run() would, with a no-op action.

        Returns:
            Operations in order

        Raises:
            GraphInvalid: If no valid order exists
        """
        return [operation for operation, _ in self.run(_noop)]

    def resolve(self, action: Action | None = None) -> TraversalOutcome:
        """
        Run (or dry-run) and report the result as a tagged outcome.

        GraphInvalid and ActionFailure become failed outcomes; any other
        exception propagates.

        Args:
            action: Callable taking an Operation; None for a dry run

        Returns:
            TraversalOutcome
        """
        try:
            steps = self.run(action or _noop)
        except (GraphInvalid, ActionFailure) as e:
            return TraversalOutcome.failure(e)
        return TraversalOutcome.success(steps)

    # -------------------------------------------------------------------------
    # Concurrent execution
    # -------------------------------------------------------------------------

    async def run_concurrent(
        self,
        action: Action,
        max_concurrency: int | None = None,
    ) -> list[tuple[Operation, Any]]:
        """
        Run actions concurrently while respecting every edge.

        Execution Guarantees:
        1. An operation starts only after all of its predecessors completed
        2. Independent branches run at the same time, at most
           ``max_concurrency`` actions at once
        3. After the first failure no further operation starts; actions
           already in flight are allowed to finish, then ActionFailure is
           raised for the first failed operation

        Plain callables run in a worker thread; coroutine functions are awaited.

        Args:
            action: Callable or coroutine function taking an Operation
            max_concurrency: Maximum actions in flight; None falls back to the
                Traversal's own setting (None there means unbounded)

        Returns:
            (operation, result) pairs in completion order

        Raises:
            GraphInvalid: If no valid order exists (nothing has run)
            ActionFailure: If an action raised
        """
        if max_concurrency is None:
            max_concurrency = self.max_concurrency
        _check_concurrency(max_concurrency)

        self.solver.validate()

        nodes = self.solver.nodes()
        successors, in_degree = self._adjacency()

        ready = _ReadyQueue(nodes, self.tie_break, self._rng)
        for index, degree in enumerate(in_degree):
            if degree == 0:
                ready.push(index)

        logger.info(
            "Starting concurrent traversal",
            total_operations=len(nodes),
            max_concurrency=max_concurrency,
        )

        steps: list[tuple[Operation, Any]] = []
        failures: list[tuple[Operation, Exception]] = []
        running: dict[asyncio.Task, int] = {}

        try:
            while running or (ready and not failures):
                while ready and not failures and (
                    max_concurrency is None or len(running) < max_concurrency
                ):
                    index = ready.pop()
                    task = asyncio.create_task(_invoke(action, nodes[index]))
                    running[task] = index

                done, _ = await asyncio.wait(running, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    index = running.pop(task)
                    operation = nodes[index]
                    try:
                        result = task.result()
                    except Exception as e:
                        logger.error(
                            "Action failed",
                            operation=operation.id,
                            error=str(e),
                            in_flight=len(running),
                        )
                        failures.append((operation, e))
                        continue

                    steps.append((operation, result))
                    for dependent in successors[index]:
                        in_degree[dependent] -= 1
                        if in_degree[dependent] == 0:
                            ready.push(dependent)
        finally:
            # Only non-empty when this coroutine itself was cancelled
            for task in running:
                task.cancel()

        if failures:
            operation, error = failures[0]
            logger.warning(
                "Concurrent traversal halted",
                failed=[op.id for op, _ in failures],
                completed=len(steps),
                not_started=len(nodes) - len(steps) - len(failures),
            )
            raise ActionFailure(operation, error, completed=steps) from error

        logger.info("Concurrent traversal complete", total_operations=len(steps))
        return steps


def _check_concurrency(max_concurrency: int | None) -> None:
    if max_concurrency is not None and max_concurrency < 1:
        raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")


async def _invoke(action: Action, operation: Operation) -> Any:
    if inspect.iscoroutinefunction(action):
        return await action(operation)
    result = await asyncio.to_thread(action, operation)
    if inspect.isawaitable(result):
        result = await result
    return result
