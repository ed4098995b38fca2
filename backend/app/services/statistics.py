"""Aggregate numbers for the dependency summary panel."""

from dataclasses import dataclass
from typing import Iterable

from app.services.graph import DependencyEdge, TaskNode


@dataclass
class FlowStatistics:
    total_tasks: int = 0
    total_dependencies: int = 0
    tasks_with_dependencies: int = 0
    tasks_with_dependents: int = 0
    average_dependencies_per_task: float = 0.0
    independent_tasks: int = 0


def compute_statistics(
    nodes: Iterable[TaskNode],
    edges: Iterable[DependencyEdge],
) -> FlowStatistics:
    """
    Count tasks and dependencies.

    Dependencies referencing unknown tasks and repeated pairs are not
    counted. A task is independent when it has neither prerequisites nor
    dependents.
    """
    node_ids = {node.id for node in nodes}
    stats = FlowStatistics(total_tasks=len(node_ids))
    if not node_ids:
        return stats

    pairs = {
        edge.key
        for edge in edges
        if edge.dependent_id in node_ids and edge.prerequisite_id in node_ids
    }
    with_prerequisites = {dependent for dependent, _ in pairs}
    with_dependents = {prerequisite for _, prerequisite in pairs}

    stats.total_dependencies = len(pairs)
    stats.tasks_with_dependencies = len(with_prerequisites)
    stats.tasks_with_dependents = len(with_dependents)
    stats.average_dependencies_per_task = len(pairs) / len(node_ids)
    stats.independent_tasks = len(node_ids - with_prerequisites - with_dependents)
    return stats
