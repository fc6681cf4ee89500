"""Base classes for dependency record stores and audit recorders."""

from __future__ import annotations

import abc
from datetime import datetime

from issuemap.models import Dependency, DependencyStatus


class BaseDependencyStore(abc.ABC):
    """Durable storage of dependency records keyed by ID."""

    @abc.abstractmethod
    def save(self, dependency: Dependency) -> None:
        """Create or overwrite a record."""

    @abc.abstractmethod
    def get(self, dependency_id: str) -> Dependency:
        """Return a record, or raise DependencyNotFoundError."""

    @abc.abstractmethod
    def list_all(self) -> list[Dependency]:
        """All records, oldest first."""

    @abc.abstractmethod
    def delete(self, dependency_id: str) -> None:
        """Remove a record, or raise DependencyNotFoundError."""

    def exists(self, dependency_id: str) -> bool:
        return any(d.id == dependency_id for d in self.list_all())

    def list_by_issue(self, issue_id: str) -> list[Dependency]:
        """Records where the issue is the source or the target."""
        return [d for d in self.list_all() if d.involves(issue_id)]

    def update_status(
        self,
        dependency_id: str,
        status: DependencyStatus,
        actor: str,
        when: datetime | None = None,
    ) -> Dependency:
        dependency = self.get(dependency_id)
        if status is DependencyStatus.RESOLVED:
            dependency.resolve(actor, when)
        else:
            dependency.reactivate(when)
        self.save(dependency)
        return dependency


class BaseHistoryRecorder(abc.ABC):
    """Receives audit events after dependency mutations."""

    @abc.abstractmethod
    def record(
        self,
        event_type: str,
        issue_id: str,
        message: str,
        actor: str,
        metadata: dict[str, str] | None = None,
    ) -> None:
        ...
