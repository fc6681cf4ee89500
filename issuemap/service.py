"""Dependency service: store mutations with audit, and graph queries rebuilt per call."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from issuemap.config import IssueMapConfig
from issuemap.errors import DependencyNotFoundError, DependencyValidationError
from issuemap.models import (
    Dependency,
    DependencyStatus,
    DependencyType,
)
from issuemap.storage.base import BaseDependencyStore, BaseHistoryRecorder
from issuemap.analysis.blocking import find_blocked_issues, resolve_blocking
from issuemap.analysis.dependency_graph import DependencyGraphBuilder
from issuemap.analysis.graph_models import (
    BlockingInfo,
    DependencyGraph,
    DependencyStats,
    ImpactAnalysis,
    ValidationResult,
)
from issuemap.analysis.impact import EstimateSource, analyze_impact
from issuemap.analysis.stats import aggregate_stats
from issuemap.analysis.validation import validate_graph

logger = logging.getLogger(__name__)


class DependencyService:
    """High-level dependency operations.

    Every read rebuilds the graph from the store. Audit failures never fail
    a mutation; they are logged and collected in ``last_warnings``.
    """

    def __init__(
        self,
        store: BaseDependencyStore,
        history: BaseHistoryRecorder | None = None,
        config: IssueMapConfig | None = None,
        estimates: EstimateSource | None = None,
    ):
        self.store = store
        self.history = history
        self.config = config or IssueMapConfig()
        self.estimates = estimates
        self.last_warnings: list[str] = []
        self._builder = DependencyGraphBuilder()

    # ── Mutations ───────────────────────────────────────────

    def create_dependency(
        self,
        source_id: str,
        target_id: str,
        dep_type: DependencyType | str,
        description: str = "",
        author: str = "",
    ) -> Dependency:
        self.last_warnings = []
        source_id = (source_id or "").strip()
        target_id = (target_id or "").strip()
        if not source_id or not target_id:
            raise DependencyValidationError("source and target issue IDs are required")
        if source_id == target_id:
            raise DependencyValidationError(f"an issue cannot depend on itself: {source_id}")

        dep_type = DependencyType.parse(dep_type)
        dependency = Dependency.new(
            source_id, target_id, dep_type,
            description=description or "",
            created_by=self._actor(author),
        )
        dependency.validate()

        if self.store.exists(dependency.id):
            raise DependencyValidationError(f"dependency already exists: {dependency.id}")

        graph = self._builder.build(self.store.list_all(), include_requires=True)
        if self._builder.would_create_cycle(graph, dependency.blocker, dependency.blocked):
            self._warn(f"{dependency.describe()} creates a circular dependency")

        self.store.save(dependency)
        logger.info("Created dependency %s", dependency.id)

        self._audit("dependency_created", dependency, dependency.created_by,
                    f"Added dependency: {dependency.describe()}")
        return dependency

    def remove_dependency(self, dependency_id: str, actor: str = "") -> Dependency:
        self.last_warnings = []
        actor = self._actor(actor)
        dependency = self.store.get(dependency_id)
        self.store.delete(dependency_id)
        logger.info("Removed dependency %s", dependency_id)

        self._audit("dependency_removed", dependency, actor,
                    f"Removed dependency: {dependency.describe()}")
        return dependency

    def resolve_dependency(self, dependency_id: str, actor: str = "") -> Dependency:
        self.last_warnings = []
        actor = self._actor(actor)
        dependency = self.store.get(dependency_id)
        if dependency.is_resolved:
            logger.info("Dependency %s is already resolved", dependency_id)
            return dependency

        dependency = self.store.update_status(
            dependency_id, DependencyStatus.RESOLVED, actor, datetime.now().replace(microsecond=0),
        )
        logger.info("Resolved dependency %s", dependency_id)

        self._audit("dependency_resolved", dependency, actor,
                    f"Resolved dependency: {dependency.describe()}")
        return dependency

    def reactivate_dependency(self, dependency_id: str, actor: str = "") -> Dependency:
        self.last_warnings = []
        actor = self._actor(actor)
        dependency = self.store.get(dependency_id)
        if dependency.is_active:
            logger.info("Dependency %s is already active", dependency_id)
            return dependency

        dependency = self.store.update_status(
            dependency_id, DependencyStatus.ACTIVE, actor, datetime.now().replace(microsecond=0),
        )
        logger.info("Reactivated dependency %s", dependency_id)

        self._audit("dependency_reactivated", dependency, actor,
                    f"Reactivated dependency: {dependency.describe()}")
        return dependency

    # ── Lookups ─────────────────────────────────────────────

    def find_dependency(
        self,
        issue_a: str,
        issue_b: str,
        dep_type: DependencyType | str | None = None,
    ) -> Dependency:
        """Find the record linking two issues, preferring ``issue_a`` as source."""
        wanted = DependencyType.parse(dep_type) if dep_type is not None else None
        candidates = [
            d for d in self.store.list_by_issue(issue_a)
            if {d.source_id, d.target_id} == {issue_a, issue_b}
            and (wanted is None or d.type is wanted)
        ]
        if not candidates:
            raise DependencyNotFoundError(f"{issue_a} <-> {issue_b}")
        candidates.sort(key=lambda d: (d.source_id != issue_a, d.id))
        return candidates[0]

    def get_issue_dependencies(self, issue_id: str) -> list[Dependency]:
        """All records touching an issue, resolved ones included."""
        return self.store.list_by_issue(issue_id)

    def get_dependencies(self, predicate: Callable[[Dependency], bool] | None = None) -> list[Dependency]:
        return [d for d in self.store.list_all() if predicate is None or predicate(d)]

    # ── Analysis ────────────────────────────────────────────

    def get_dependency_graph(self, include_requires: bool = False) -> DependencyGraph:
        return self._builder.build(self.store.list_all(), include_requires=include_requires)

    def get_blocking_info(self, issue_id: str, include_requires: bool = False) -> BlockingInfo:
        return resolve_blocking(self.get_dependency_graph(include_requires), issue_id)

    def get_blocked_issues(self, include_requires: bool = False) -> list[str]:
        return find_blocked_issues(self.get_dependency_graph(include_requires))

    def validate_dependency_graph(self, include_requires: bool = False) -> ValidationResult:
        return validate_graph(
            self.get_dependency_graph(include_requires),
            fanout_threshold=self.config.fanout_threshold,
        )

    def analyze_dependency_impact(
        self,
        issue_id: str,
        estimates: EstimateSource | None = None,
        include_requires: bool = False,
    ) -> ImpactAnalysis:
        return analyze_impact(
            self.get_dependency_graph(include_requires),
            issue_id,
            estimates if estimates is not None else self.estimates,
        )

    def get_dependency_stats(
        self,
        predicate: Callable[[Dependency], bool] | None = None,
    ) -> DependencyStats:
        return aggregate_stats(self.store.list_all(), predicate, top_n=self.config.top_n)

    # ── Helpers ─────────────────────────────────────────────

    def _actor(self, actor: str) -> str:
        actor = (actor or "").strip() or self.config.default_author
        if not actor:
            raise DependencyValidationError("an author is required")
        return actor

    def _warn(self, message: str) -> None:
        logger.warning("%s", message)
        self.last_warnings.append(message)

    def _audit(self, event_type: str, dependency: Dependency, actor: str, message: str) -> None:
        if self.history is None:
            return

        for issue_id, other_id in (
            (dependency.source_id, dependency.target_id),
            (dependency.target_id, dependency.source_id),
        ):
            try:
                self.history.record(
                    event_type, issue_id, message, actor,
                    metadata={
                        "dependency_id": dependency.id,
                        "other_issue": other_id,
                        "dependency_type": dependency.type.value,
                    },
                )
            except Exception as e:
                self._warn(f"Failed to record history for {issue_id}: {e}")
