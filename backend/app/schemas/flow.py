import uuid
from pydantic import BaseModel

from app.models import TaskStatus


class PositionRead(BaseModel):
    x: float
    y: float

    model_config = {"from_attributes": True}


class FlowNodeRead(BaseModel):
    id: uuid.UUID
    level: int
    position: PositionRead
    status: TaskStatus

    model_config = {"from_attributes": True}


class DependencyEdgeRead(BaseModel):
    dependent_id: uuid.UUID
    prerequisite_id: uuid.UUID

    model_config = {"from_attributes": True}


class FlowStatisticsRead(BaseModel):
    total_tasks: int
    total_dependencies: int
    tasks_with_dependencies: int
    tasks_with_dependents: int
    average_dependencies_per_task: float
    independent_tasks: int

    model_config = {"from_attributes": True}


class FlowRead(BaseModel):
    """Flow chart data for one revision of a project's dependency graph."""
    revision: int
    nodes: list[FlowNodeRead]
    edges: list[DependencyEdgeRead]
    critical_path: list[uuid.UUID]  # Dependent first
    statistics: FlowStatisticsRead

    model_config = {"from_attributes": True}


class IntegrityFindingRead(BaseModel):
    kind: str
    message: str
    task_ids: list[uuid.UUID] = []
    dependencies: list[DependencyEdgeRead] = []
    chains: list[list[uuid.UUID]] = []

    model_config = {"from_attributes": True}


class IntegrityReportRead(BaseModel):
    is_valid: bool
    total_tasks: int
    total_dependencies: int
    issues: list[IntegrityFindingRead]
    suggestions: list[IntegrityFindingRead]

    model_config = {"from_attributes": True}
