"""
Flow view: everything the flow chart needs for one graph snapshot.

A view is derived data. It is tagged with the project's graph_revision and
is only served while that revision is current:

1. Every committed dependency edit bumps Project.graph_revision and
   enqueues refresh_flow(project_id, revision).
2. The job exits early if the revision already moved on (stale job),
   otherwise computes the view and checks the revision again before
   caching it.
3. FlowViewCache refuses to replace a newer cached view with an older one,
   and readers ignore a cached view whose revision is not the current one.

Views from superseded computations are therefore dropped, never mixed into
newer ones.
"""

import uuid
from datetime import datetime
from dataclasses import dataclass, field
from typing import Hashable

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.config import get_settings
from app.database import get_session_context
from app.logging_config import get_logger
from app.models import Project, TaskStatus
from app.schemas.flow import FlowRead
from app.services.critical_path import find_critical_path
from app.services.graph import DependencyEdge, DependencyGraph, load_project_graph
from app.services.layout import LayoutConfig, Position, compute_positions
from app.services.levels import assign_levels, group_by_level
from app.services.statistics import FlowStatistics, compute_statistics

logger = get_logger(__name__)


@dataclass
class FlowNode:
    id: Hashable
    level: int
    position: Position
    status: TaskStatus


@dataclass
class FlowView:
    revision: int
    nodes: list[FlowNode] = field(default_factory=list)
    edges: list[DependencyEdge] = field(default_factory=list)
    critical_path: list[Hashable] = field(default_factory=list)
    statistics: FlowStatistics = field(default_factory=FlowStatistics)


def build_flow_view(
    graph: DependencyGraph,
    revision: int = 0,
    layout_config: LayoutConfig | None = None,
) -> FlowView:
    """Levels, positions, critical path and statistics for ``graph``."""
    nodes = graph.nodes
    edges = graph.edges

    levels = assign_levels(nodes, edges)
    positions = compute_positions(levels, group_by_level(levels), layout_config)

    return FlowView(
        revision=revision,
        nodes=[
            FlowNode(id=node.id, level=levels[node.id], position=positions[node.id], status=node.status)
            for node in nodes
        ],
        edges=edges,
        critical_path=find_critical_path(nodes, edges),
        statistics=compute_statistics(nodes, edges),
    )


class FlowViewCache:
    """Latest flow view per project, kept in Redis."""

    KEY_PREFIX = "trellis:flow:"

    def __init__(self, redis, ttl_seconds: int | None = None):
        self.redis = redis
        self.ttl_seconds = ttl_seconds or get_settings().flow_cache_ttl_seconds

    def _key(self, project_id: uuid.UUID) -> str:
        return f"{self.KEY_PREFIX}{project_id}"

    async def load(self, project_id: uuid.UUID, revision: int) -> FlowRead | None:
        """The cached view, only if it was computed for ``revision``."""
        raw = await self.redis.get(self._key(project_id))
        if raw is None:
            return None
        view = FlowRead.model_validate_json(raw)
        if view.revision != revision:
            logger.debug(
                f"Ignoring cached flow for project={project_id}: "
                f"revision {view.revision}, current {revision}"
            )
            return None
        return view

    async def store(self, project_id: uuid.UUID, view: FlowRead) -> bool:
        """Cache ``view`` unless a view of the same or a newer revision is cached."""
        key = self._key(project_id)
        raw = await self.redis.get(key)
        if raw is not None:
            cached = FlowRead.model_validate_json(raw)
            if cached.revision >= view.revision:
                logger.debug(
                    f"Discarding flow for project={project_id} revision {view.revision}: "
                    f"revision {cached.revision} already cached"
                )
                return False
        await self.redis.set(key, view.model_dump_json(), ex=self.ttl_seconds)
        return True


async def lock_project(session: AsyncSession, project_id: uuid.UUID) -> Project | None:
    """
    Load a project and lock its row until the transaction ends.

    Dependency edits take this lock before validating, so edits to one
    project are applied one at a time against the committed graph.
    """
    result = await session.execute(
        select(Project).where(Project.id == project_id).with_for_update()
    )
    return result.scalars().first()


async def bump_graph_revision(session: AsyncSession, project: Project) -> int:
    """Mark the project's graph as changed; returns the new revision."""
    project.graph_revision += 1
    project.updated_at = datetime.utcnow()
    session.add(project)
    await session.flush()
    return project.graph_revision


async def compute_project_flow(
    session: AsyncSession,
    project: Project,
) -> FlowRead:
    graph = await load_project_graph(session, project.id)
    view = build_flow_view(graph, project.graph_revision)
    return FlowRead.model_validate(view, from_attributes=True)


async def refresh_flow(ctx: dict, project_id: str, revision: int) -> str:
    """
    ARQ job: recompute and cache the flow view of a project.

    Args:
        ctx: ARQ context (ctx["redis"] is the worker's Redis connection)
        project_id: The project whose dependencies changed
        revision: Project.graph_revision right after the change

    Returns:
        Status message
    """
    pid = uuid.UUID(project_id)

    async with get_session_context() as session:
        project = await session.get(Project, pid)
        if project is None:
            return f"Project {project_id} not found - may have been deleted"

        if project.graph_revision != revision:
            return f"Stale job: revision mismatch (expected {revision}, got {project.graph_revision})"

        view = await compute_project_flow(session, project)

    # The graph may have changed while the view was being computed
    async with get_session_context() as session:
        project = await session.get(Project, pid)
        if project is None or project.graph_revision != revision:
            return f"Discarded flow for revision {revision}: graph changed during computation"

    cache = FlowViewCache(ctx["redis"])
    if not await cache.store(pid, view):
        return f"Discarded flow for revision {revision}: newer view already cached"

    logger.info(f"Cached flow for project={project_id} revision={revision} ({len(view.nodes)} tasks)")
    return f"Cached flow for revision {revision}"
