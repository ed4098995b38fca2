import uuid
from datetime import datetime
from pydantic import BaseModel


class DependencyCreate(BaseModel):
    """Schema for proposing a new dependency."""
    dependent_id: uuid.UUID     # The task that waits
    prerequisite_id: uuid.UUID  # The task it waits on
    confirm_warnings: bool = False  # Accept warnings such as a completed prerequisite


class DependencyRead(BaseModel):
    """Schema for reading a dependency."""
    dependent_id: uuid.UUID
    prerequisite_id: uuid.UUID
    created_at: datetime

    model_config = {"from_attributes": True}


class ValidationIssueRead(BaseModel):
    kind: str
    message: str
    path: list[uuid.UUID] = []

    model_config = {"from_attributes": True}


class ValidationResultRead(BaseModel):
    """Verdict on a proposed dependency."""
    is_valid: bool
    requires_confirmation: bool
    errors: list[ValidationIssueRead]
    warnings: list[ValidationIssueRead]

    model_config = {"from_attributes": True}
