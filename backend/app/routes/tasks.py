"""
Task routes for the Trellis API.
"""

import uuid
from datetime import datetime
from fastapi import APIRouter, Depends, status
from sqlalchemy import delete, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.database import get_session
from app.models import Task, TaskStatus, Dependency
from app.schemas import TaskCreate, TaskUpdate, TaskRead, TaskBlockersRead, TaskUnblocksRead
from app.services.flow import lock_project
from app.services.graph import load_project_graph, neighbour_project_ids
from app.worker import publish_graph_change
from app.exceptions import NotFoundError
from app.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter()

# Fields the flow view or the dependency rules read
GRAPH_FIELDS = {"status", "owner_id"}


async def _get_task_or_404(session: AsyncSession, task_id: uuid.UUID) -> Task:
    task = await session.get(Task, task_id)
    if not task:
        raise NotFoundError("Task", str(task_id))
    return task


@router.post("/", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_in: TaskCreate,
    session: AsyncSession = Depends(get_session),
) -> Task:
    """Create a new task. A new task is a new node in the project's flow chart."""
    project = await lock_project(session, task_in.project_id)
    if not project:
        raise NotFoundError("Project", str(task_in.project_id))

    task = Task(**task_in.model_dump())
    session.add(task)
    await session.flush()
    await session.refresh(task)

    logger.info(f"Created task: id={task.id} title='{task.title}' project={task.project_id}")

    await publish_graph_change(session, {task.project_id})

    return task


@router.get("/", response_model=list[TaskRead])
async def list_tasks(
    project_id: uuid.UUID | None = None,
    task_status: TaskStatus | None = None,
    session: AsyncSession = Depends(get_session),
) -> list[Task]:
    """
    List tasks.

    Optionally filter by project_id and/or task_status.
    """
    query = select(Task)
    if project_id:
        query = query.where(Task.project_id == project_id)
    if task_status:
        query = query.where(Task.status == task_status)

    result = await session.execute(query)
    tasks = list(result.scalars().all())

    logger.debug(f"Listed {len(tasks)} tasks" + (f" for project={project_id}" if project_id else ""))

    return tasks


@router.get("/{task_id}", response_model=TaskRead)
async def get_task(
    task_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
) -> Task:
    return await _get_task_or_404(session, task_id)


@router.get("/{task_id}/blockers", response_model=TaskBlockersRead)
async def get_task_blockers(
    task_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
) -> TaskBlockersRead:
    """Prerequisites of the task that are not completed yet."""
    task = await _get_task_or_404(session, task_id)

    graph = await load_project_graph(session, task.project_id)
    blocked_by = graph.blocking_prerequisites(task_id)

    return TaskBlockersRead(
        task_id=task_id,
        is_blocked=bool(blocked_by),
        blocked_by=blocked_by,
        total_dependencies=len(graph.prerequisites_of(task_id)),
    )


@router.get("/{task_id}/unblocks", response_model=TaskUnblocksRead)
async def get_task_unblocks(
    task_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
) -> TaskUnblocksRead:
    """Dependents whose prerequisites would all be completed once this task is."""
    task = await _get_task_or_404(session, task_id)

    # Dependents in other projects need their own project's prerequisites loaded
    project_ids = {task.project_id} | await neighbour_project_ids(session, [task_id])
    graph = await load_project_graph(session, *sorted(project_ids))

    return TaskUnblocksRead(task_id=task_id, unblocks=graph.unblocked_by(task_id))


@router.patch("/{task_id}", response_model=TaskRead)
async def update_task(
    task_id: uuid.UUID,
    task_in: TaskUpdate,
    session: AsyncSession = Depends(get_session),
) -> Task:
    """
    Update a task.

    Changing status or owner changes what the flow chart shows and what the
    dependency rules see, so it bumps the graph revision of the task's project
    and of every project whose flow view shows the task through a
    cross-project dependency.
    """
    task = await _get_task_or_404(session, task_id)
    await lock_project(session, task.project_id)

    update_data = task_in.model_dump(exclude_unset=True)
    logger.info(f"Updating task {task_id}: {update_data}")

    for field, value in update_data.items():
        setattr(task, field, value)

    task.updated_at = datetime.utcnow()
    await session.flush()
    await session.refresh(task)

    if GRAPH_FIELDS & update_data.keys():
        affected_projects = {task.project_id} | await neighbour_project_ids(session, [task_id])
        await publish_graph_change(session, affected_projects)

    return task


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
) -> None:
    """
    Delete a task and every dependency involving it.

    Projects on the far side of a cross-project dependency get their graph
    revision bumped too.
    """
    task = await _get_task_or_404(session, task_id)
    await lock_project(session, task.project_id)

    logger.info(f"Deleting task {task_id}: '{task.title}'")

    affected_projects = {task.project_id} | await neighbour_project_ids(session, [task_id])
    logger.debug(f"Task {task_id} is shown in {len(affected_projects)} projects")

    touching = or_(Dependency.dependent_id == task_id, Dependency.prerequisite_id == task_id)
    await session.execute(delete(Dependency).where(touching))
    await session.execute(delete(Task).where(Task.id == task_id))

    await publish_graph_change(session, affected_projects)
