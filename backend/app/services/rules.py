"""
Edit-time validation of proposed dependencies.

The rule engine answers one question: may "dependent depends on
prerequisite" be added to the committed graph? It never raises for a
rejected edit and never touches the graph; every problem found comes back
as a ValidationIssue so the caller can show them all at once.

Check order:
1. self reference            -> error, stops
2. unknown task id           -> error, stops
3. duplicate edge            -> error, stops
4. cross-project (policy)    -> error
5. different owner (policy)  -> error
6. fan-out limit             -> error
7. prerequisite completed    -> warning
8. cycle                     -> error
9. chain depth               -> error (skipped when 8 fails)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Hashable

from app.config import Settings, get_settings
from app.logging_config import get_logger
from app.models import TaskStatus
from app.services.cycles import find_dependency_path, would_create_cycle
from app.services.depth import longest_chain_from, longest_dependent_chain
from app.services.graph import DependencyGraph

logger = get_logger(__name__)


@dataclass(frozen=True)
class DependencyPolicy:
    """Structural limits and business rules for dependency edits."""
    max_dependency_depth: int = 10
    max_dependencies_per_task: int = 20
    allow_cross_project_dependency: bool = False
    require_same_owner: bool = False
    long_chain_threshold: int = 5

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "DependencyPolicy":
        settings = settings or get_settings()
        return cls(
            max_dependency_depth=settings.max_dependency_depth,
            max_dependencies_per_task=settings.max_dependencies_per_task,
            allow_cross_project_dependency=settings.allow_cross_project_dependency,
            require_same_owner=settings.require_same_owner,
            long_chain_threshold=settings.long_chain_threshold,
        )


class IssueKind(str, Enum):
    SELF_DEPENDENCY = "self_dependency"
    UNKNOWN_TASK = "unknown_task"
    DEPENDENCY_ALREADY_EXISTS = "dependency_already_exists"
    CROSS_PROJECT_NOT_ALLOWED = "cross_project_not_allowed"
    SAME_OWNER_REQUIRED = "same_owner_required"
    TOO_MANY_DEPENDENCIES = "too_many_dependencies"
    PREREQUISITE_COMPLETED = "prerequisite_completed"
    CIRCULAR_DEPENDENCY = "circular_dependency"
    MAX_DEPTH_EXCEEDED = "max_depth_exceeded"


@dataclass
class ValidationIssue:
    kind: IssueKind
    message: str
    # Chain of task ids that explains the issue, when there is one
    path: list[Hashable] = field(default_factory=list)


@dataclass
class ValidationResult:
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def requires_confirmation(self) -> bool:
        """Valid, but the user has to acknowledge the warnings first."""
        return self.is_valid and bool(self.warnings)

    def has_error(self, kind: IssueKind) -> bool:
        return any(issue.kind == kind for issue in self.errors)

    def add_error(self, kind: IssueKind, message: str, path: list[Hashable] | None = None) -> None:
        self.errors.append(ValidationIssue(kind, message, path or []))

    def add_warning(self, kind: IssueKind, message: str) -> None:
        self.warnings.append(ValidationIssue(kind, message))


class DependencyRuleEngine:
    """Validates proposed dependency edges against a DependencyPolicy."""

    def __init__(self, policy: DependencyPolicy | None = None):
        self.policy = policy or DependencyPolicy()

    def validate(
        self,
        dependent_id: Hashable,
        prerequisite_id: Hashable,
        graph: DependencyGraph,
    ) -> ValidationResult:
        """
        Check whether ``dependent_id`` may start depending on ``prerequisite_id``.

        ``graph`` is the committed state: its edge set and the metadata of
        both tasks are the whole validation context.
        """
        result = ValidationResult()
        policy = self.policy

        if dependent_id == prerequisite_id:
            result.add_error(IssueKind.SELF_DEPENDENCY, "A task cannot depend on itself")
            return result

        missing = [node_id for node_id in (dependent_id, prerequisite_id) if node_id not in graph]
        if missing:
            result.add_error(
                IssueKind.UNKNOWN_TASK,
                f"Unknown task: {', '.join(str(node_id) for node_id in missing)}",
            )
            return result

        if graph.has_edge(dependent_id, prerequisite_id):
            result.add_error(IssueKind.DEPENDENCY_ALREADY_EXISTS, "This dependency already exists")
            return result

        dependent = graph.get_node(dependent_id)
        prerequisite = graph.get_node(prerequisite_id)

        if not policy.allow_cross_project_dependency and dependent.project_id != prerequisite.project_id:
            result.add_error(
                IssueKind.CROSS_PROJECT_NOT_ALLOWED,
                "Dependencies between tasks of different projects are not allowed",
            )

        if policy.require_same_owner and dependent.owner_id != prerequisite.owner_id:
            result.add_error(IssueKind.SAME_OWNER_REQUIRED, "Both tasks must have the same owner")

        if len(graph.prerequisites_of(dependent_id)) >= policy.max_dependencies_per_task:
            result.add_error(
                IssueKind.TOO_MANY_DEPENDENCIES,
                f"A task can depend on at most {policy.max_dependencies_per_task} other tasks",
            )

        if prerequisite.status == TaskStatus.COMPLETED:
            result.add_warning(
                IssueKind.PREREQUISITE_COMPLETED,
                "The prerequisite task is already completed",
            )

        if would_create_cycle(graph, dependent_id, prerequisite_id):
            cycle_path = find_dependency_path(graph, prerequisite_id, dependent_id)
            chain = " -> ".join(str(node_id) for node_id in cycle_path)
            result.add_error(
                IssueKind.CIRCULAR_DEPENDENCY,
                f"This dependency would create a circular dependency: {chain} already exists",
                path=cycle_path,
            )
        else:
            above = longest_dependent_chain(graph, dependent_id)
            below = longest_chain_from(graph, prerequisite_id)
            chain_length = above.length + 1 + below.length
            if chain_length > policy.max_dependency_depth:
                result.add_error(
                    IssueKind.MAX_DEPTH_EXCEEDED,
                    f"This dependency would create a chain of {chain_length} levels; "
                    f"the maximum is {policy.max_dependency_depth}",
                    path=list(reversed(above.path)) + below.path,
                )

        logger.debug(
            f"Validated {dependent_id} -> {prerequisite_id}: "
            f"errors={[issue.kind.value for issue in result.errors]} "
            f"warnings={[issue.kind.value for issue in result.warnings]}"
        )
        return result
