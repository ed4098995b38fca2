"""
In-memory dependency graph.

A graph is a node table (task id -> TaskNode) plus one canonical edge set of
``(dependent_id, prerequisite_id)`` pairs. Adjacency maps are derived from
the edge set whenever an algorithm needs them and are never stored, so there
is a single representation to keep consistent.

Node ids are opaque but must be hashable and mutually comparable; every
deterministic ordering in the engine (levels, layout slots, critical path)
is ascending id order.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Hashable, Iterable, Mapping

import networkx as nx
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import or_
from sqlmodel import select

from app.logging_config import get_logger
from app.models import Dependency, Task, TaskStatus

logger = get_logger(__name__)


@dataclass(frozen=True)
class TaskNode:
    """A task as the engine sees it. ``payload`` is carried but never read."""
    id: Hashable
    status: TaskStatus = TaskStatus.NOT_STARTED
    project_id: Any = None
    owner_id: Any = None
    payload: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True, order=True)
class DependencyEdge:
    """``dependent_id`` cannot proceed until ``prerequisite_id`` is done."""
    dependent_id: Hashable
    prerequisite_id: Hashable

    @property
    def key(self) -> tuple:
        return (self.dependent_id, self.prerequisite_id)


AdjacencyMap = dict[Hashable, set[Hashable]]


class DependencyGraph:
    """Node table plus canonical edge set."""

    def __init__(
        self,
        nodes: Iterable[TaskNode] = (),
        edges: Iterable[DependencyEdge] = (),
    ):
        self._nodes: dict[Hashable, TaskNode] = {}
        self._edges: set[tuple] = set()
        # Edges from the source data that reference unknown tasks
        self.dangling_edges: list[DependencyEdge] = []

        for node in nodes:
            self.add_node(node)

        for edge in edges:
            if edge.dependent_id not in self._nodes or edge.prerequisite_id not in self._nodes:
                logger.warning(
                    f"Skipping dangling dependency {edge.dependent_id} -> {edge.prerequisite_id}"
                )
                self.dangling_edges.append(edge)
                continue
            self._edges.add(edge.key)

    # -------------------------------------------------------------------------
    # Nodes
    # -------------------------------------------------------------------------

    def __contains__(self, node_id: Hashable) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def add_node(self, node: TaskNode) -> None:
        self._nodes[node.id] = node

    def get_node(self, node_id: Hashable) -> TaskNode | None:
        return self._nodes.get(node_id)

    @property
    def nodes(self) -> list[TaskNode]:
        return [self._nodes[node_id] for node_id in self.node_ids]

    @property
    def node_ids(self) -> list[Hashable]:
        return sorted(self._nodes)

    # -------------------------------------------------------------------------
    # Edges
    # -------------------------------------------------------------------------

    @property
    def edges(self) -> list[DependencyEdge]:
        return [DependencyEdge(dependent, prerequisite) for dependent, prerequisite in sorted(self._edges)]

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def has_edge(self, dependent_id: Hashable, prerequisite_id: Hashable) -> bool:
        return (dependent_id, prerequisite_id) in self._edges

    def add_edge(self, dependent_id: Hashable, prerequisite_id: Hashable) -> None:
        """
        Commit an edge.

        No rule checks happen here; callers validate with the rule engine
        first. Both endpoints must already be in the node table.
        """
        for node_id in (dependent_id, prerequisite_id):
            if node_id not in self._nodes:
                raise KeyError(node_id)
        self._edges.add((dependent_id, prerequisite_id))

    def remove_edge(self, dependent_id: Hashable, prerequisite_id: Hashable) -> None:
        self._edges.remove((dependent_id, prerequisite_id))

    def prerequisites_of(self, node_id: Hashable) -> set[Hashable]:
        return {prerequisite for dependent, prerequisite in self._edges if dependent == node_id}

    def dependents_of(self, node_id: Hashable) -> set[Hashable]:
        return {dependent for dependent, prerequisite in self._edges if prerequisite == node_id}

    def prerequisite_map(self) -> AdjacencyMap:
        """task id -> ids it depends on, with an entry for every node."""
        adjacency: AdjacencyMap = {node_id: set() for node_id in self._nodes}
        for dependent, prerequisite in self._edges:
            adjacency[dependent].add(prerequisite)
        return adjacency

    def dependent_map(self) -> AdjacencyMap:
        """task id -> ids that depend on it, with an entry for every node."""
        adjacency: AdjacencyMap = {node_id: set() for node_id in self._nodes}
        for dependent, prerequisite in self._edges:
            adjacency[prerequisite].add(dependent)
        return adjacency

    def to_networkx(self) -> nx.DiGraph:
        """
        NetworkX view of the graph.

        Edges point prerequisite -> dependent, i.e. in the order the work
        has to happen.
        """
        graph = nx.DiGraph()
        for node in self._nodes.values():
            graph.add_node(node.id, status=node.status, project_id=node.project_id)
        for dependent, prerequisite in self._edges:
            graph.add_edge(prerequisite, dependent)
        return graph

    # -------------------------------------------------------------------------
    # Readiness
    # -------------------------------------------------------------------------

    def blocking_prerequisites(self, node_id: Hashable) -> list[Hashable]:
        """Prerequisites of ``node_id`` that are not completed yet."""
        return sorted(
            prerequisite
            for prerequisite in self.prerequisites_of(node_id)
            if self._nodes[prerequisite].status != TaskStatus.COMPLETED
        )

    def unblocked_by(self, completed_id: Hashable) -> list[Hashable]:
        """
        Dependents of ``completed_id`` whose prerequisites are all completed.

        The status of ``completed_id`` itself is treated as completed, so this
        can be asked right before the status change is persisted.
        """
        unblocked = []
        for dependent in sorted(self.dependents_of(completed_id)):
            blockers = [b for b in self.blocking_prerequisites(dependent) if b != completed_id]
            if not blockers:
                unblocked.append(dependent)
        return unblocked


# =============================================================================
# Loading from the database
# =============================================================================

def node_from_task(task: Task) -> TaskNode:
    return TaskNode(
        id=task.id,
        status=task.status,
        project_id=task.project_id,
        owner_id=task.owner_id,
        payload={"title": task.title},
    )


async def load_project_records(
    session: AsyncSession,
    project_ids: Iterable[uuid.UUID],
) -> tuple[list[TaskNode], list[DependencyEdge]]:
    """
    Fetch the raw tasks and dependencies of one or more projects.

    Returns every task of the projects, every dependency touching one of
    those tasks, and the tasks on the far side of cross-project
    dependencies. Nothing is filtered, so callers see the data as stored.
    """
    project_ids = list(project_ids)
    tasks_result = await session.execute(select(Task).where(Task.project_id.in_(project_ids)))
    tasks = list(tasks_result.scalars().all())
    task_ids = [task.id for task in tasks]

    if not task_ids:
        return [], []

    deps_result = await session.execute(
        select(Dependency).where(
            or_(
                Dependency.dependent_id.in_(task_ids),
                Dependency.prerequisite_id.in_(task_ids),
            )
        )
    )
    dependencies = list(deps_result.scalars().all())

    known = set(task_ids)
    external_ids = {
        endpoint
        for dep in dependencies
        for endpoint in (dep.dependent_id, dep.prerequisite_id)
        if endpoint not in known
    }
    if external_ids:
        external_result = await session.execute(select(Task).where(Task.id.in_(external_ids)))
        tasks.extend(external_result.scalars().all())

    nodes = [node_from_task(task) for task in tasks]
    edges = [DependencyEdge(dep.dependent_id, dep.prerequisite_id) for dep in dependencies]
    return nodes, edges


async def neighbour_project_ids(
    session: AsyncSession,
    task_ids: Iterable[uuid.UUID],
) -> set[uuid.UUID]:
    """
    Projects of the tasks on the other end of a dependency touching ``task_ids``.

    These projects show the given tasks in their flow view (see
    load_project_records), so they have to be bumped when the tasks change.
    """
    task_ids = list(task_ids)
    if not task_ids:
        return set()

    deps_result = await session.execute(
        select(Dependency).where(
            or_(
                Dependency.dependent_id.in_(task_ids),
                Dependency.prerequisite_id.in_(task_ids),
            )
        )
    )
    known = set(task_ids)
    neighbour_ids = {
        endpoint
        for dep in deps_result.scalars().all()
        for endpoint in (dep.dependent_id, dep.prerequisite_id)
        if endpoint not in known
    }
    if not neighbour_ids:
        return set()

    projects_result = await session.execute(
        select(Task.project_id).where(Task.id.in_(neighbour_ids)).distinct()
    )
    return {row[0] for row in projects_result.all()}


async def load_project_graph(
    session: AsyncSession,
    *project_ids: uuid.UUID,
) -> DependencyGraph:
    """
    Build the dependency graph of one or more projects.

    Several project ids are passed when validating a cross-project
    dependency, so that chains running through both projects are seen.
    """
    nodes, edges = await load_project_records(session, project_ids)
    graph = DependencyGraph(nodes, edges)
    logger.debug(
        f"Loaded graph for projects={[str(pid) for pid in project_ids]}: "
        f"{len(graph)} tasks, {graph.edge_count} dependencies"
    )
    return graph
