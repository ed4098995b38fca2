"""
Critical path of the dependency graph.

The critical path is the longest end-to-end chain of dependent tasks; any
delay on it delays the final task of the chain. Tasks are unweighted, so
"longest" means most tasks.

The path is reported dependent first: for "A depends on B, B depends on C"
the result is [A, B, C].
"""

from typing import Hashable, Iterable

from app.services.depth import ChainMemo, longest_chain
from app.services.graph import DependencyEdge, DependencyGraph, TaskNode


def find_critical_path(
    nodes: Iterable[TaskNode],
    edges: Iterable[DependencyEdge],
) -> list[Hashable]:
    """
    Longest chain in the graph, as an ordered list of task ids.

    Chains start at tasks nothing depends on (that have at least one
    prerequisite, so isolated tasks never qualify), tried in ascending id
    order; the first strictly longest chain is kept. Inside a search, ties
    go to the smallest prerequisite id. Edges that would lead back into the
    current chain are skipped, so cyclic input cannot hang the search.
    """
    graph = DependencyGraph(nodes, edges)
    prerequisites = graph.prerequisite_map()
    dependents = graph.dependent_map()

    memo: ChainMemo = {}
    critical_path: list[Hashable] = []

    for node_id in graph.node_ids:
        if dependents[node_id] or not prerequisites[node_id]:
            continue
        chain = longest_chain(prerequisites, node_id, memo)
        if len(chain.path) > len(critical_path):
            critical_path = chain.path

    return critical_path
