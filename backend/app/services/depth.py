"""
Longest dependency chains.

The search is an iterative DFS with memoization: once a node is finished
its best chain is known and reused. A per-call on-stack set skips edges
that lead back into the current path, so the search terminates on a cyclic
candidate state too (the cycle itself is reported by the cycle check).
"""

from dataclasses import dataclass, field
from typing import Hashable

from app.services.graph import AdjacencyMap, DependencyGraph

# node -> (chain length in edges, next node on the chain or None)
ChainMemo = dict[Hashable, tuple[int, Hashable | None]]


@dataclass
class ChainResult:
    """Longest chain starting at a node. ``length`` counts edges."""
    length: int
    path: list[Hashable] = field(default_factory=list)


def longest_chain(
    adjacency: AdjacencyMap,
    start: Hashable,
    memo: ChainMemo | None = None,
) -> ChainResult:
    """
    Longest chain reachable from ``start`` in ``adjacency``.

    Between equally long branches the one through the smallest id wins.
    ``memo`` can be shared between calls on the same adjacency map.
    """
    if memo is None:
        memo = {}

    if start not in memo:
        on_stack = {start}
        stack = [(start, iter(sorted(adjacency.get(start, ()))))]

        while stack:
            node, children = stack[-1]
            for child in children:
                if child in memo or child in on_stack:
                    continue
                on_stack.add(child)
                stack.append((child, iter(sorted(adjacency.get(child, ())))))
                break
            else:
                stack.pop()
                on_stack.discard(node)

                best_length, best_next = 0, None
                for child in sorted(adjacency.get(node, ())):
                    # Children still on the stack close a cycle and are skipped
                    if child in memo and memo[child][0] + 1 > best_length:
                        best_length, best_next = memo[child][0] + 1, child
                memo[node] = (best_length, best_next)

    path = [start]
    next_node = memo[start][1]
    while next_node is not None:
        path.append(next_node)
        next_node = memo[next_node][1]

    return ChainResult(length=memo[start][0], path=path)


def longest_chain_from(graph: DependencyGraph, node_id: Hashable) -> ChainResult:
    """
    Longest chain of prerequisites starting at ``node_id``.

    ``path`` begins with ``node_id`` and follows depends-on edges.
    """
    if node_id not in graph:
        return ChainResult(length=0, path=[])
    return longest_chain(graph.prerequisite_map(), node_id)


def longest_dependent_chain(graph: DependencyGraph, node_id: Hashable) -> ChainResult:
    """
    Longest chain of dependents above ``node_id``.

    ``path`` begins with ``node_id`` and walks towards the tasks that
    (transitively) wait on it.
    """
    if node_id not in graph:
        return ChainResult(length=0, path=[])
    return longest_chain(graph.dependent_map(), node_id)
