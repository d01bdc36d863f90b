"""Graph algorithms shared by the builder and the planner.

Edges are given as a callable ``successors(node)``; nodes outside the node set
are ignored, so callers can pass unfiltered adjacency.
"""

from __future__ import annotations

import heapq
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable, Iterable, Sequence


class CycleError(ValueError):
    """Raised by ``topological_order`` when nodes remain on a cycle."""

    def __init__(self, cycle: Sequence[Any]) -> None:
        super().__init__(f"Dependency cycle through {len(cycle)} nodes")
        self.cycle = tuple(cycle)


def strongly_connected_components[N: Hashable](
    nodes: Iterable[N],
    successors: Callable[[N], Iterable[N]],
) -> list[tuple[N, ...]]:
    """Tarjan's algorithm, iterative. Components come out in reverse topological order."""

    universe = list(dict.fromkeys(nodes))
    members = set(universe)
    index_of: dict[N, int] = {}
    lowlink: dict[N, int] = {}
    on_stack: set[N] = set()
    stack: list[N] = []
    components: list[tuple[N, ...]] = []
    work: list[tuple[N, list[N]]] = []
    counter = 0

    def visit(node: N) -> None:
        nonlocal counter
        index_of[node] = lowlink[node] = counter
        counter += 1
        stack.append(node)
        on_stack.add(node)
        work.append((node, [succ for succ in successors(node) if succ in members]))

    for root in universe:
        if root in index_of:
            continue
        visit(root)
        while work:
            node, pending = work[-1]
            if pending:
                succ = pending.pop()
                if succ not in index_of:
                    visit(succ)
                elif succ in on_stack:
                    lowlink[node] = min(lowlink[node], index_of[succ])
                continue
            work.pop()
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[node])
            if lowlink[node] == index_of[node]:
                component: list[N] = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                components.append(tuple(component))
    return components


def is_cyclic[N: Hashable](component: Sequence[N], successors: Callable[[N], Iterable[N]]) -> bool:
    """True for components of two or more nodes and for self-loops."""

    if len(component) > 1:
        return True
    only = component[0]
    return any(succ == only for succ in successors(only))


def find_cycle[N: Hashable](
    start: N,
    successors: Callable[[N], Iterable[N]],
) -> list[N] | None:
    """Return a path ``start -> ... -> start`` if one exists."""

    parents: dict[N, N] = {}
    frontier = [start]
    seen: set[N] = set()
    while frontier:
        node = frontier.pop()
        for succ in successors(node):
            if succ == start:
                path = [node]
                while path[-1] != start:
                    path.append(parents[path[-1]])
                path.reverse()
                return [*path, start]
            if succ not in seen:
                seen.add(succ)
                parents[succ] = node
                frontier.append(succ)
    return None


def topological_order[N: Hashable](
    nodes: Iterable[N],
    prerequisites: Callable[[N], Iterable[N]],
    *,
    key: Callable[[N], Any],
) -> list[N]:
    """Kahn's algorithm; among ready nodes the smallest ``key`` goes first."""

    universe = list(dict.fromkeys(nodes))
    members = set(universe)
    remaining: dict[N, int] = {}
    dependents: dict[N, list[N]] = {node: [] for node in universe}
    for node in universe:
        required = {dep for dep in prerequisites(node) if dep in members and dep != node}
        remaining[node] = len(required)
        for dep in required:
            dependents[dep].append(node)

    ready = [
        (key(node), position, node)
        for position, node in enumerate(universe)
        if not remaining[node]
    ]
    heapq.heapify(ready)
    position_of = {node: position for position, node in enumerate(universe)}
    ordered: list[N] = []
    while ready:
        _, _, node = heapq.heappop(ready)
        ordered.append(node)
        for dependent in dependents[node]:
            remaining[dependent] -= 1
            if not remaining[dependent]:
                heapq.heappush(ready, (key(dependent), position_of[dependent], dependent))

    if len(ordered) != len(universe):
        stuck = [node for node in universe if remaining[node]]
        raise CycleError(_some_cycle(stuck, prerequisites))
    return ordered


def _some_cycle[N: Hashable](
    stuck: Sequence[N],
    prerequisites: Callable[[N], Iterable[N]],
) -> list[N]:
    members = set(stuck)

    def edges(node: N) -> Iterable[N]:
        return (dep for dep in prerequisites(node) if dep in members)

    for component in strongly_connected_components(stuck, edges):
        if is_cyclic(component, edges):
            cycle = find_cycle(component[0], edges)
            if cycle is not None:
                return cycle
    return list(stuck)
