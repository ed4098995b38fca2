from app.schemas.project import ProjectCreate, ProjectUpdate, ProjectRead
from app.schemas.task import TaskCreate, TaskUpdate, TaskRead, TaskBlockersRead, TaskUnblocksRead
from app.schemas.dependency import (
    DependencyCreate,
    DependencyRead,
    ValidationIssueRead,
    ValidationResultRead,
)
from app.schemas.flow import FlowRead, IntegrityReportRead

__all__ = [
    "ProjectCreate",
    "ProjectUpdate",
    "ProjectRead",
    "TaskCreate",
    "TaskUpdate",
    "TaskRead",
    "TaskBlockersRead",
    "TaskUnblocksRead",
    "DependencyCreate",
    "DependencyRead",
    "ValidationIssueRead",
    "ValidationResultRead",
    "FlowRead",
    "IntegrityReportRead",
]
