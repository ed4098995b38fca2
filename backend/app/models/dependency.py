import uuid
from datetime import datetime
from typing import TYPE_CHECKING
from sqlmodel import SQLModel, Field, Relationship

if TYPE_CHECKING:
    from app.models.task import Task


class Dependency(SQLModel, table=True):
    """
    Dependency model representing a directed "depends-on" edge.

    dependent_id -> prerequisite_id means:
    "The dependent task cannot proceed until the prerequisite is done"

    The composite primary key rules out parallel edges.
    """

    __tablename__ = "dependencies"

    dependent_id: uuid.UUID = Field(
        foreign_key="tasks.id",
        primary_key=True,
    )
    prerequisite_id: uuid.UUID = Field(
        foreign_key="tasks.id",
        primary_key=True,
    )

    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    dependent: "Task" = Relationship(
        back_populates="prerequisites",
        sa_relationship_kwargs={"foreign_keys": "Dependency.dependent_id"},
    )
    prerequisite: "Task" = Relationship(
        back_populates="dependents",
        sa_relationship_kwargs={"foreign_keys": "Dependency.prerequisite_id"},
    )
