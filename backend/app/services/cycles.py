"""
Cycle detection for dependency edits.

Adding "dependent depends on prerequisite" closes a cycle exactly when the
dependent is already reachable from the prerequisite by following existing
prerequisite edges. That is answered with a reachability search, so the
graph is never modified to test a candidate edge.
"""

from itertools import islice
from typing import Hashable, Iterable

import networkx as nx

from app.services.graph import AdjacencyMap, DependencyEdge, DependencyGraph

# Upper bound on cycles listed by the integrity scan
MAX_REPORTED_CYCLES = 50


def _search_path(
    adjacency: AdjacencyMap,
    start: Hashable,
    target: Hashable,
) -> list[Hashable] | None:
    """
    Iterative DFS from ``start``; returns the path to ``target`` or None.

    ``on_stack`` holds the nodes of the current path, ``explored`` the nodes
    whose whole reachable set has been searched. Children are visited in
    ascending id order so the returned path is deterministic.
    """
    if start == target:
        return [start]

    explored: set[Hashable] = set()
    on_stack: set[Hashable] = {start}
    stack = [(start, iter(sorted(adjacency.get(start, ()))))]

    while stack:
        node, children = stack[-1]
        for child in children:
            if child == target:
                return [entry for entry, _ in stack] + [target]
            if child in on_stack or child in explored:
                continue
            on_stack.add(child)
            stack.append((child, iter(sorted(adjacency.get(child, ())))))
            break
        else:
            stack.pop()
            on_stack.discard(node)
            explored.add(node)

    return None


def find_dependency_path(
    graph: DependencyGraph,
    from_id: Hashable,
    to_id: Hashable,
) -> list[Hashable]:
    """
    Chain of prerequisite edges leading from ``from_id`` to ``to_id``.

    Returns an empty list when ``to_id`` is not reachable.
    """
    if from_id not in graph or to_id not in graph:
        return []
    return _search_path(graph.prerequisite_map(), from_id, to_id) or []


def would_create_cycle(
    graph: DependencyGraph,
    dependent_id: Hashable,
    prerequisite_id: Hashable,
) -> bool:
    """Check if adding ``dependent_id -> prerequisite_id`` would create a cycle."""
    if dependent_id == prerequisite_id:
        return True
    if dependent_id not in graph or prerequisite_id not in graph:
        return False
    return _search_path(graph.prerequisite_map(), prerequisite_id, dependent_id) is not None


def find_cycles(edges: Iterable[DependencyEdge]) -> list[list[Hashable]]:
    """
    Enumerate cycles in a raw edge list, for diagnostics only.

    Each cycle is listed in depends-on order starting from its smallest id;
    at most MAX_REPORTED_CYCLES are returned.
    """
    graph = nx.DiGraph()
    graph.add_edges_from(edge.key for edge in edges)

    cycles = []
    for cycle in islice(nx.simple_cycles(graph), MAX_REPORTED_CYCLES):
        pivot = cycle.index(min(cycle))
        cycles.append(cycle[pivot:] + cycle[:pivot])
    return sorted(cycles)
