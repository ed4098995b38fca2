from app.models.project import Project
from app.models.task import Task, TaskStatus
from app.models.dependency import Dependency

__all__ = ["Project", "Task", "TaskStatus", "Dependency"]
