import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING
from sqlmodel import SQLModel, Field, Relationship

if TYPE_CHECKING:
    from app.models.project import Project
    from app.models.dependency import Dependency


class TaskStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"


class Task(SQLModel, table=True):
    """
    Task model.

    The dependency engine only reads id, status, project_id and owner_id;
    title and description are carried along for display.
    """

    __tablename__ = "tasks"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    title: str = Field(index=True)
    description: str | None = Field(default=None)
    status: TaskStatus = Field(default=TaskStatus.NOT_STARTED)
    owner_id: str | None = Field(default=None, index=True)

    # Foreign keys
    project_id: uuid.UUID = Field(foreign_key="projects.id", index=True)

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    project: "Project" = Relationship(back_populates="tasks")

    # Dependencies where this task waits on another task
    prerequisites: list["Dependency"] = Relationship(
        back_populates="dependent",
        sa_relationship_kwargs={"foreign_keys": "Dependency.dependent_id", "passive_deletes": "all"},
    )

    # Dependencies where another task waits on this one
    dependents: list["Dependency"] = Relationship(
        back_populates="prerequisite",
        sa_relationship_kwargs={"foreign_keys": "Dependency.prerequisite_id", "passive_deletes": "all"},
    )
