"""
Project routes for the Trellis API.
"""

import uuid
from datetime import datetime
from fastapi import APIRouter, Depends, status
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import delete, or_
from sqlmodel import select

from app.database import get_session
from app.models import Project, Task, Dependency
from app.schemas import ProjectCreate, ProjectUpdate, ProjectRead, FlowRead, IntegrityReportRead
from app.services.flow import FlowViewCache, compute_project_flow
from app.services.graph import load_project_records, neighbour_project_ids
from app.services.integrity import scan_integrity
from app.services.rules import DependencyPolicy
from app.worker import get_arq_pool, publish_graph_change
from app.exceptions import NotFoundError
from app.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter()


async def _get_project_or_404(session: AsyncSession, project_id: uuid.UUID) -> Project:
    project = await session.get(Project, project_id)
    if not project:
        raise NotFoundError("Project", str(project_id))
    return project


@router.post("/", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_in: ProjectCreate,
    session: AsyncSession = Depends(get_session),
) -> Project:
    project = Project(**project_in.model_dump())
    session.add(project)
    await session.flush()
    await session.refresh(project)

    logger.info(f"Created project: id={project.id} name='{project.name}'")

    return project


@router.get("/", response_model=list[ProjectRead])
async def list_projects(
    session: AsyncSession = Depends(get_session),
) -> list[Project]:
    result = await session.execute(select(Project).order_by(Project.created_at))
    return list(result.scalars().all())


@router.get("/{project_id}", response_model=ProjectRead)
async def get_project(
    project_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
) -> Project:
    return await _get_project_or_404(session, project_id)


@router.patch("/{project_id}", response_model=ProjectRead)
async def update_project(
    project_id: uuid.UUID,
    project_in: ProjectUpdate,
    session: AsyncSession = Depends(get_session),
) -> Project:
    """Rename or re-describe a project. The graph revision is untouched."""
    project = await _get_project_or_404(session, project_id)

    update_data = project_in.model_dump(exclude_unset=True)
    logger.info(f"Updating project {project_id}: {update_data}")

    for field, value in update_data.items():
        setattr(project, field, value)

    project.updated_at = datetime.utcnow()
    await session.flush()
    await session.refresh(project)
    return project


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
) -> None:
    """
    Delete a project, its tasks and every dependency touching them.

    Cross-project dependencies pointing into this project are removed as
    well; the other project keeps its tasks and gets its graph revision
    bumped.
    """
    project = await _get_project_or_404(session, project_id)

    logger.info(f"Deleting project {project_id}: '{project.name}'")

    task_ids = select(Task.id).where(Task.project_id == project_id)
    task_ids_result = await session.execute(task_ids)
    affected_projects = await neighbour_project_ids(session, [row[0] for row in task_ids_result.all()])

    await session.execute(
        delete(Dependency).where(
            or_(
                Dependency.dependent_id.in_(task_ids),
                Dependency.prerequisite_id.in_(task_ids),
            )
        )
    )
    await session.execute(delete(Task).where(Task.project_id == project_id))
    await session.execute(delete(Project).where(Project.id == project_id))

    if affected_projects:
        await publish_graph_change(session, affected_projects)


@router.get("/{project_id}/flow", response_model=FlowRead)
async def get_project_flow(
    project_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
) -> FlowRead:
    """
    Flow chart of the project's current dependency graph.

    Served from the cache when the cached view was computed for the current
    graph revision, otherwise computed on the spot (and cached).
    """
    project = await _get_project_or_404(session, project_id)

    cache = None
    try:
        cache = FlowViewCache(await get_arq_pool())
        cached = await cache.load(project_id, project.graph_revision)
        if cached is not None:
            logger.debug(f"Flow cache hit: project={project_id} revision={project.graph_revision}")
            return cached
    except (RedisError, OSError) as e:
        logger.warning(f"Flow cache unavailable, computing directly: {e}")
        cache = None

    view = await compute_project_flow(session, project)

    if cache is not None:
        try:
            await cache.store(project_id, view)
        except (RedisError, OSError) as e:
            logger.warning(f"Could not cache flow for project={project_id}: {e}")

    return view


@router.get("/{project_id}/integrity", response_model=IntegrityReportRead)
async def get_project_integrity(
    project_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
) -> IntegrityReportRead:
    """
    Audit the stored dependencies of a project.

    Reports orphaned, duplicated and circular dependencies plus structural
    suggestions. Read-only; nothing is repaired.
    """
    await _get_project_or_404(session, project_id)

    nodes, edges = await load_project_records(session, [project_id])
    report = scan_integrity(nodes, edges, DependencyPolicy.from_settings())
    return IntegrityReportRead.model_validate(report, from_attributes=True)
