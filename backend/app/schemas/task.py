import uuid
from datetime import datetime
from pydantic import BaseModel

from app.models import TaskStatus


class TaskCreate(BaseModel):
    """Schema for creating a new task."""
    title: str
    description: str | None = None
    status: TaskStatus = TaskStatus.NOT_STARTED
    owner_id: str | None = None
    project_id: uuid.UUID


class TaskUpdate(BaseModel):
    """Schema for updating a task."""
    title: str | None = None
    description: str | None = None
    status: TaskStatus | None = None
    owner_id: str | None = None


class TaskRead(BaseModel):
    """Schema for reading a task."""
    id: uuid.UUID
    title: str
    description: str | None
    status: TaskStatus
    owner_id: str | None
    project_id: uuid.UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TaskBlockersRead(BaseModel):
    """Which prerequisites still keep a task from proceeding."""
    task_id: uuid.UUID
    is_blocked: bool
    blocked_by: list[uuid.UUID]
    total_dependencies: int


class TaskUnblocksRead(BaseModel):
    """Tasks that become ready once this task is completed."""
    task_id: uuid.UUID
    unblocks: list[uuid.UUID]
