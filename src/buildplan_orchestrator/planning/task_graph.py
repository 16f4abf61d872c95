"""Dependency ordering for a batch of feature requests."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Sequence
from typing import Any, Final, Literal

import structlog

from buildplan_orchestrator.domain.models import FeatureRequest

CyclePolicy = Literal["raise", "append"]

CYCLE_POLICIES: Final[tuple[str, ...]] = ("raise", "append")


class CyclicDependencyError(ValueError):
    """Raised when requests remain unscheduled because their edges form a cycle."""

    request_ids: tuple[str, ...]

    def __init__(self, request_ids: Iterable[str]) -> None:
        normalized = tuple(request_ids)
        self.request_ids = normalized
        preview = ", ".join(normalized[:5])
        suffix = "..." if len(normalized) > 5 else ""
        super().__init__(f"Cyclic dependency between requests: {preview}{suffix}")


class RequestGraph:
    """``dependsOn`` graph over one batch, keyed by case-insensitive request id.

    Edges pointing outside the batch are ignored. Requests without an id are
    nodes with no edges.
    """

    __slots__ = ("_requests", "_index", "_parents", "_children")

    def __init__(self, requests: Sequence[FeatureRequest]) -> None:
        self._requests: tuple[FeatureRequest, ...] = tuple(requests)
        self._index: dict[str, int] = {}
        for position, request in enumerate(self._requests):
            key = request.id.casefold()
            if key and key not in self._index:
                self._index[key] = position

        self._parents: list[list[int]] = [[] for _ in self._requests]
        self._children: list[list[int]] = [[] for _ in self._requests]
        for position, request in enumerate(self._requests):
            seen: set[int] = set()
            for dep in request.depends_on:
                parent = self._index.get(dep.casefold())
                if parent is None or parent in seen:
                    continue
                seen.add(parent)
                self._parents[position].append(parent)
                self._children[parent].append(position)

    @property
    def requests(self) -> tuple[FeatureRequest, ...]:
        return self._requests

    def find(self, request_id: str) -> FeatureRequest | None:
        position = self._index.get(request_id.casefold())
        return None if position is None else self._requests[position]

    def topological_order(self) -> tuple[tuple[FeatureRequest, ...], tuple[FeatureRequest, ...]]:
        """Kahn ordering; returns ``(ordered, leftovers)``.

        Ready requests leave the queue in original batch order, so independent
        work is never reordered. ``leftovers`` holds requests on or behind a
        cycle, in original order.
        """
        indegree = [len(parents) for parents in self._parents]
        ready: deque[int] = deque(
            position for position, degree in enumerate(indegree) if degree == 0
        )

        emitted: list[int] = []
        visited = [False] * len(self._requests)
        while ready:
            position = ready.popleft()
            if visited[position]:
                continue
            visited[position] = True
            emitted.append(position)
            for child in self._children[position]:
                indegree[child] -= 1
                if indegree[child] == 0:
                    ready.append(child)

        ordered = tuple(self._requests[position] for position in emitted)
        leftovers = tuple(
            request for position, request in enumerate(self._requests) if not visited[position]
        )
        return ordered, leftovers

    def transitive_dependencies(self, request_id: str) -> tuple[FeatureRequest, ...]:
        """All requests ``request_id`` depends on, directly or not, in batch order."""
        start = self._index.get(request_id.casefold())
        if start is None:
            raise KeyError(f"Unknown request: {request_id}")

        visited: set[int] = set()
        pending = list(self._parents[start])
        while pending:
            position = pending.pop()
            if position in visited:
                continue
            visited.add(position)
            pending.extend(parent for parent in self._parents[position] if parent not in visited)
        visited.discard(start)
        return tuple(self._requests[position] for position in sorted(visited))


def order_requests(
    requests: Sequence[FeatureRequest],
    *,
    on_cycle: CyclePolicy = "raise",
    logger: Any | None = None,
) -> list[FeatureRequest]:
    """Order ``requests`` so each one follows everything it depends on.

    Cycles raise :class:`CyclicDependencyError` unless ``on_cycle="append"``, in
    which case the unscheduled requests are appended in original order and a
    warning is logged.
    """
    if on_cycle not in CYCLE_POLICIES:
        raise ValueError(f"on_cycle must be one of {CYCLE_POLICIES}, got {on_cycle!r}")

    graph = RequestGraph(requests)
    ordered, leftovers = graph.topological_order()
    if not leftovers:
        return list(ordered)

    leftover_ids = tuple(request.id or "<unnamed>" for request in leftovers)
    if on_cycle == "raise":
        raise CyclicDependencyError(leftover_ids)

    log = logger if logger is not None else structlog.get_logger(__name__)
    log.warning(
        "cyclic_dependencies_appended",
        request_ids=list(leftover_ids),
        unscheduled=len(leftover_ids),
    )
    return [*ordered, *leftovers]


def select_replay(requests: Sequence[FeatureRequest], request_id: str) -> list[FeatureRequest]:
    """Single-request schedule for replay; empty when the id is unknown."""
    target = RequestGraph(requests).find(request_id.strip())
    return [] if target is None else [target]


__all__ = [
    "CYCLE_POLICIES",
    "CyclePolicy",
    "CyclicDependencyError",
    "RequestGraph",
    "order_requests",
    "select_replay",
]
