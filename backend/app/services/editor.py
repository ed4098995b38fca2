"""
In-memory edit surface for a dependency graph.

Edits are serialized through one GraphEditor: every addition is validated
against the committed graph before it is applied, so the graph never holds
a cycle or breaks a policy limit. The HTTP routes follow the same sequence
against the database; the editor is what the seed script and tests drive.
"""

from typing import Hashable

from app.exceptions import ConfirmationRequiredError, DependencyRejectedError, NotFoundError
from app.logging_config import get_logger
from app.services.flow import FlowView, build_flow_view
from app.services.graph import DependencyGraph
from app.services.rules import DependencyPolicy, DependencyRuleEngine, ValidationResult

logger = get_logger(__name__)


class GraphEditor:
    def __init__(self, graph: DependencyGraph, policy: DependencyPolicy | None = None):
        self.graph = graph
        self.rule_engine = DependencyRuleEngine(policy)
        # Bumped on every committed structural change
        self.revision = 0

    def request_add_dependency(self, dependent_id: Hashable, prerequisite_id: Hashable) -> ValidationResult:
        """Validate a proposed dependency without committing it."""
        return self.rule_engine.validate(dependent_id, prerequisite_id, self.graph)

    def commit_dependency(
        self,
        dependent_id: Hashable,
        prerequisite_id: Hashable,
        confirmed: bool = False,
    ) -> ValidationResult:
        """
        Validate and commit a dependency.

        Raises:
            DependencyRejectedError: a hard check failed.
            ConfirmationRequiredError: only warnings were raised and
                ``confirmed`` is False.
        """
        result = self.request_add_dependency(dependent_id, prerequisite_id)

        if not result.is_valid:
            logger.warning(
                f"Dependency rejected: {dependent_id} -> {prerequisite_id} "
                f"({', '.join(issue.kind.value for issue in result.errors)})"
            )
            raise DependencyRejectedError(result.errors)

        if result.warnings and not confirmed:
            raise ConfirmationRequiredError(result.warnings)

        self.graph.add_edge(dependent_id, prerequisite_id)
        self.revision += 1
        logger.debug(f"Committed dependency {dependent_id} -> {prerequisite_id} (revision {self.revision})")
        return result

    def request_remove_dependency(self, dependent_id: Hashable, prerequisite_id: Hashable) -> None:
        """Remove a dependency. Removal can never break a structural rule."""
        if not self.graph.has_edge(dependent_id, prerequisite_id):
            raise NotFoundError("Dependency", f"{dependent_id}/{prerequisite_id}")

        self.graph.remove_edge(dependent_id, prerequisite_id)
        self.revision += 1
        logger.debug(f"Removed dependency {dependent_id} -> {prerequisite_id} (revision {self.revision})")

    def flow_view(self) -> FlowView:
        """Flow chart data for the current revision."""
        return build_flow_view(self.graph, self.revision)
