"""
Whole-project dependency audit.

Runs over raw task and dependency lists, which may come from imports or
migrations that bypassed the rule engine. It reports; it never blocks or
repairs anything, and it is not used on the interactive edit path.

Issues (make the report invalid):
- orphan_dependency: a dependency references a task that does not exist
- duplicate_dependency: the same pair is stored more than once
- circular_dependencies: the dependency graph contains cycles

Suggestions:
- isolated_tasks: tasks with no dependencies in either direction
- parallelize: tasks with no prerequisites, which can all start right away
- simplify_chains: chains longer than the policy's long_chain_threshold
- remove_redundant: dependencies already implied through other tasks
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Hashable, Iterable

import networkx as nx

from app.logging_config import get_logger
from app.services.cycles import find_cycles
from app.services.depth import ChainMemo, longest_chain
from app.services.graph import DependencyEdge, DependencyGraph, TaskNode
from app.services.rules import DependencyPolicy

logger = get_logger(__name__)


@dataclass
class IntegrityFinding:
    kind: str
    message: str
    task_ids: list[Hashable] = field(default_factory=list)
    dependencies: list[DependencyEdge] = field(default_factory=list)
    # Cycles or long chains, each a list of task ids in depends-on order
    chains: list[list[Hashable]] = field(default_factory=list)


@dataclass
class IntegrityReport:
    total_tasks: int = 0
    total_dependencies: int = 0
    issues: list[IntegrityFinding] = field(default_factory=list)
    suggestions: list[IntegrityFinding] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.issues


def scan_integrity(
    all_nodes: Iterable[TaskNode],
    all_edges: Iterable[DependencyEdge],
    policy: DependencyPolicy | None = None,
) -> IntegrityReport:
    policy = policy or DependencyPolicy()
    nodes = list(all_nodes)
    edges = list(all_edges)
    task_ids = {node.id for node in nodes}

    report = IntegrityReport(total_tasks=len(nodes), total_dependencies=len(edges))

    # Orphans
    for edge in edges:
        for endpoint in (edge.dependent_id, edge.prerequisite_id):
            if endpoint not in task_ids:
                report.issues.append(IntegrityFinding(
                    kind="orphan_dependency",
                    message=f"Dependency references a task that does not exist: {endpoint}",
                    task_ids=[endpoint],
                    dependencies=[edge],
                ))

    # Duplicates
    counts = Counter(edge.key for edge in edges)
    duplicates = sorted(key for key, count in counts.items() if count > 1)
    if duplicates:
        report.issues.append(IntegrityFinding(
            kind="duplicate_dependency",
            message=f"{len(duplicates)} dependencies are stored more than once",
            dependencies=[DependencyEdge(*key) for key in duplicates],
        ))

    # Cycles
    cycles = find_cycles(edges)
    if cycles:
        report.issues.append(IntegrityFinding(
            kind="circular_dependencies",
            message=f"Found {len(cycles)} circular dependency chains",
            chains=cycles,
        ))

    graph = DependencyGraph(nodes, edges)
    prerequisites = graph.prerequisite_map()
    dependents = graph.dependent_map()

    isolated = [node_id for node_id in graph.node_ids if not prerequisites[node_id] and not dependents[node_id]]
    if isolated:
        report.suggestions.append(IntegrityFinding(
            kind="isolated_tasks",
            message=f"{len(isolated)} tasks have no dependencies and could be grouped",
            task_ids=isolated,
        ))

    ready = [node_id for node_id in graph.node_ids if not prerequisites[node_id]]
    if len(ready) > 1:
        report.suggestions.append(IntegrityFinding(
            kind="parallelize",
            message=f"{len(ready)} tasks have no prerequisites and can run in parallel",
            task_ids=ready,
        ))

    memo: ChainMemo = {}
    long_chains = []
    for node_id in graph.node_ids:
        if dependents[node_id] or not prerequisites[node_id]:
            continue
        chain = longest_chain(prerequisites, node_id, memo)
        if chain.length > policy.long_chain_threshold:
            long_chains.append(chain.path)
    if long_chains:
        report.suggestions.append(IntegrityFinding(
            kind="simplify_chains",
            message=(
                f"{len(long_chains)} dependency chains are longer than "
                f"{policy.long_chain_threshold} levels and could be simplified"
            ),
            task_ids=[chain[0] for chain in long_chains],
            chains=long_chains,
        ))

    if not cycles:
        redundant = find_redundant_dependencies(graph)
        if redundant:
            report.suggestions.append(IntegrityFinding(
                kind="remove_redundant",
                message=f"{len(redundant)} dependencies are already implied by other dependencies",
                dependencies=redundant,
            ))

    logger.info(
        f"Integrity scan: {report.total_tasks} tasks, {report.total_dependencies} dependencies, "
        f"{len(report.issues)} issues, {len(report.suggestions)} suggestions"
    )
    return report


def find_redundant_dependencies(graph: DependencyGraph) -> list[DependencyEdge]:
    """
    Dependencies implied transitively by others.

    If A depends on B, B depends on C and A also depends on C directly, the
    direct A -> C edge adds nothing. The graph must be acyclic.
    """
    work_graph = graph.to_networkx()
    reduced = nx.transitive_reduction(work_graph)
    return sorted(
        DependencyEdge(dependent_id=dependent, prerequisite_id=prerequisite)
        for prerequisite, dependent in work_graph.edges
        if not reduced.has_edge(prerequisite, dependent)
    )
