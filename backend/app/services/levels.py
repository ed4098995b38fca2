"""
Hierarchical levels for the dependency flow chart.

A task's level is the length of its longest prerequisite chain: tasks
without prerequisites sit on level 0 and every dependent sits at least one
level below each of its prerequisites.

Ordering is deterministic: the queue is seeded in ascending id order and
the dependents of a dequeued task are relaxed in ascending id order. Within
a level, tasks are listed in ascending id order (group_by_level); that is
the left-to-right slot order used by the layout.
"""

from collections import deque
from typing import Hashable, Iterable

from app.logging_config import get_logger
from app.services.graph import DependencyEdge, TaskNode

logger = get_logger(__name__)


def assign_levels(
    nodes: Iterable[TaskNode],
    edges: Iterable[DependencyEdge],
) -> dict[Hashable, int]:
    """
    Kahn-style topological layering.

    Edges pointing at unknown tasks are ignored. Tasks that can never be
    released (only possible when the input contains a cycle) are put one
    level below the deepest level reached instead of failing.
    """
    node_ids = sorted({node.id for node in nodes})
    dependents: dict[Hashable, set[Hashable]] = {node_id: set() for node_id in node_ids}
    in_degree: dict[Hashable, int] = {node_id: 0 for node_id in node_ids}

    seen = set()
    for edge in edges:
        if edge.dependent_id not in in_degree or edge.prerequisite_id not in in_degree:
            continue
        if edge.key in seen:
            continue
        seen.add(edge.key)
        dependents[edge.prerequisite_id].add(edge.dependent_id)
        in_degree[edge.dependent_id] += 1

    levels: dict[Hashable, int] = {}
    released: set[Hashable] = set()
    queue = deque()
    for node_id in node_ids:
        if in_degree[node_id] == 0:
            levels[node_id] = 0
            released.add(node_id)
            queue.append(node_id)

    while queue:
        current = queue.popleft()
        for dependent in sorted(dependents[current]):
            levels[dependent] = max(levels.get(dependent, 0), levels[current] + 1)
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                released.add(dependent)
                queue.append(dependent)

    unreached = [node_id for node_id in node_ids if node_id not in released]
    if unreached:
        fallback = max((levels[node_id] for node_id in released), default=-1) + 1
        logger.warning(
            f"{len(unreached)} tasks are part of a dependency cycle; placing them on level {fallback}"
        )
        for node_id in unreached:
            levels[node_id] = fallback

    return levels


def group_by_level(levels: dict[Hashable, int]) -> dict[int, list[Hashable]]:
    """level -> task ids on that level, ascending, for every occupied level."""
    grouped: dict[int, list[Hashable]] = {}
    for node_id in sorted(levels):
        grouped.setdefault(levels[node_id], []).append(node_id)
    return dict(sorted(grouped.items()))
