import uuid
from datetime import datetime
from typing import TYPE_CHECKING
from sqlmodel import SQLModel, Field, Relationship

if TYPE_CHECKING:
    from app.models.task import Task


class Project(SQLModel, table=True):
    """
    Project model - groups tasks together.

    graph_revision increases by one on every committed change to the
    project's dependency structure. Derived flow views are tagged with the
    revision they were computed from, so a stale view can be recognised.
    """

    __tablename__ = "projects"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(index=True)
    description: str | None = Field(default=None)
    graph_revision: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    # Rows are removed with explicit DELETE statements, never via the ORM
    tasks: list["Task"] = Relationship(
        back_populates="project",
        sa_relationship_kwargs={"passive_deletes": "all"},
    )
