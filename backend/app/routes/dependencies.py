"""
Dependency routes for the Trellis API.

Every edit runs against the committed graph with the project row locked:
validate with the rule engine, then persist, bump the graph revision and
queue a flow refresh.
"""

import uuid
from fastapi import APIRouter, Depends, status
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.database import get_session
from app.models import Task, Dependency
from app.schemas import DependencyCreate, DependencyRead, ValidationResultRead
from app.services.flow import lock_project
from app.services.graph import DependencyGraph, load_project_graph
from app.services.rules import DependencyPolicy, DependencyRuleEngine
from app.worker import publish_graph_change
from app.exceptions import (
    NotFoundError,
    DependencyRejectedError,
    ConfirmationRequiredError,
)
from app.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter()


def get_rule_engine() -> DependencyRuleEngine:
    """Rule engine configured from settings (overridable in tests)."""
    return DependencyRuleEngine(DependencyPolicy.from_settings())


async def _load_validation_context(
    session: AsyncSession,
    dep_in: DependencyCreate,
) -> tuple[Task, Task, DependencyGraph]:
    """Fetch both tasks, lock their projects and load the committed graph."""
    dependent = await session.get(Task, dep_in.dependent_id)
    prerequisite = await session.get(Task, dep_in.prerequisite_id)

    if not dependent:
        raise NotFoundError("Dependent task", str(dep_in.dependent_id))

    if not prerequisite:
        raise NotFoundError("Prerequisite task", str(dep_in.prerequisite_id))

    # Lock in a fixed order so two cross-project edits cannot deadlock
    project_ids = sorted({dependent.project_id, prerequisite.project_id})
    for project_id in project_ids:
        await lock_project(session, project_id)

    graph = await load_project_graph(session, *project_ids)
    return dependent, prerequisite, graph


@router.post("/validate", response_model=ValidationResultRead)
async def validate_dependency(
    dep_in: DependencyCreate,
    session: AsyncSession = Depends(get_session),
    rule_engine: DependencyRuleEngine = Depends(get_rule_engine),
) -> ValidationResultRead:
    """
    Check a proposed dependency without creating it.

    Returns every hard error and warning at once so the UI can explain
    what is wrong with the edit.
    """
    _, _, graph = await _load_validation_context(session, dep_in)
    result = rule_engine.validate(dep_in.dependent_id, dep_in.prerequisite_id, graph)
    return ValidationResultRead.model_validate(result, from_attributes=True)


@router.post("/", response_model=DependencyRead, status_code=status.HTTP_201_CREATED)
async def create_dependency(
    dep_in: DependencyCreate,
    session: AsyncSession = Depends(get_session),
    rule_engine: DependencyRuleEngine = Depends(get_rule_engine),
) -> Dependency:
    """
    Create a new dependency (dependent depends on prerequisite).

    Returns 400 with every failed check when the edit is rejected, and 409
    when it only raised warnings that were not confirmed.
    """
    logger.info(f"Creating dependency: {dep_in.dependent_id} -> {dep_in.prerequisite_id}")

    dependent, prerequisite, graph = await _load_validation_context(session, dep_in)
    result = rule_engine.validate(dep_in.dependent_id, dep_in.prerequisite_id, graph)

    if not result.is_valid:
        logger.warning(
            f"Dependency rejected: {dep_in.dependent_id} -> {dep_in.prerequisite_id} "
            f"({', '.join(issue.kind.value for issue in result.errors)})"
        )
        raise DependencyRejectedError(result.errors)

    if result.warnings and not dep_in.confirm_warnings:
        logger.info(f"Dependency needs confirmation: {dep_in.dependent_id} -> {dep_in.prerequisite_id}")
        raise ConfirmationRequiredError(result.warnings)

    dependency = Dependency(
        dependent_id=dep_in.dependent_id,
        prerequisite_id=dep_in.prerequisite_id,
    )
    session.add(dependency)
    await session.flush()
    await session.refresh(dependency)

    logger.info(
        f"Created dependency: {dependent.title} -> {prerequisite.title} "
        f"(project={dependent.project_id})"
    )

    await publish_graph_change(session, {dependent.project_id, prerequisite.project_id})

    return dependency


@router.get("/", response_model=list[DependencyRead])
async def list_dependencies(
    project_id: uuid.UUID | None = None,
    task_id: uuid.UUID | None = None,
    session: AsyncSession = Depends(get_session),
) -> list[Dependency]:
    """
    List dependencies.

    Optionally filter by:
    - project_id: dependencies whose dependent task is in the project
    - task_id: dependencies where the task is dependent OR prerequisite
    """
    if project_id:
        task_ids_query = select(Task.id).where(Task.project_id == project_id)
        task_ids_result = await session.execute(task_ids_query)
        task_ids = [row[0] for row in task_ids_result.all()]

        query = select(Dependency).where(Dependency.dependent_id.in_(task_ids))
    elif task_id:
        query = select(Dependency).where(
            (Dependency.dependent_id == task_id) |
            (Dependency.prerequisite_id == task_id)
        )
    else:
        query = select(Dependency)

    result = await session.execute(query)
    dependencies = list(result.scalars().all())

    logger.debug(f"Listed {len(dependencies)} dependencies")

    return dependencies


@router.delete(
    "/{dependent_id}/{prerequisite_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_dependency(
    dependent_id: uuid.UUID,
    prerequisite_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
) -> None:
    """
    Delete a dependency.

    Removing an edge can never create a cycle or break a limit, so the only
    check is that the dependency exists.
    """
    dependent = await session.get(Task, dependent_id)
    prerequisite = await session.get(Task, prerequisite_id)
    project_ids = {task.project_id for task in (dependent, prerequisite) if task}
    for project_id in sorted(project_ids):
        await lock_project(session, project_id)

    dependency = await session.get(Dependency, (dependent_id, prerequisite_id))
    if not dependency:
        raise NotFoundError("Dependency", f"{dependent_id}/{prerequisite_id}")

    logger.info(f"Deleting dependency: {dependent_id} -> {prerequisite_id}")

    await session.execute(
        delete(Dependency).where(
            (Dependency.dependent_id == dependent_id) &
            (Dependency.prerequisite_id == prerequisite_id)
        )
    )

    await publish_graph_change(session, project_ids)

