"""Data models for issue dependencies."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from issuemap.errors import DependencyValidationError


class DependencyType(enum.Enum):
    BLOCKS = "blocks"      # source must complete before target can start
    REQUIRES = "requires"  # source cannot complete until target completes

    @classmethod
    def parse(cls, value: str | DependencyType) -> DependencyType:
        """Parse a type name case-insensitively."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise DependencyValidationError(
                f"invalid dependency type: {value!r} (use 'blocks' or 'requires')"
            ) from None

    @property
    def opposite(self) -> DependencyType:
        if self is DependencyType.BLOCKS:
            return DependencyType.REQUIRES
        return DependencyType.BLOCKS


class DependencyStatus(enum.Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"


_TYPE_WORDS = frozenset(t.value for t in DependencyType)


def _id_part(issue_id: str) -> str:
    escaped = issue_id.replace("%", "%25")
    if _TYPE_WORDS.isdisjoint(issue_id.split("-")):
        return escaped
    # A "blocks"/"requires" segment would make the type separator ambiguous
    return "%" + escaped.replace("-", "%2D")


def dependency_id(source_id: str, dep_type: DependencyType, target_id: str) -> str:
    """``{source}-{type}-{target}``; issue IDs that read like a type are escaped.

    Exactly one hyphen-separated segment of the result names the type, so
    distinct edges never share an ID.
    """
    return f"{_id_part(source_id)}-{dep_type.value}-{_id_part(target_id)}"


def _now() -> datetime:
    return datetime.now().replace(microsecond=0)


def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


@dataclass
class Dependency:
    """A directed, typed edge between two issues."""
    id: str
    source_id: str
    target_id: str
    type: DependencyType
    status: DependencyStatus = DependencyStatus.ACTIVE
    description: str = ""
    created_by: str = ""
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    resolved_by: str | None = None
    resolved_at: datetime | None = None

    @classmethod
    def new(
        cls,
        source_id: str,
        target_id: str,
        dep_type: DependencyType,
        description: str = "",
        created_by: str = "",
    ) -> Dependency:
        now = _now()
        return cls(
            id=dependency_id(source_id, dep_type, target_id),
            source_id=source_id,
            target_id=target_id,
            type=dep_type,
            description=description,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_active(self) -> bool:
        return self.status is DependencyStatus.ACTIVE

    @property
    def is_resolved(self) -> bool:
        return self.status is DependencyStatus.RESOLVED

    @property
    def blocker(self) -> str:
        """The issue that has to finish first."""
        if self.type is DependencyType.BLOCKS:
            return self.source_id
        return self.target_id

    @property
    def blocked(self) -> str:
        """The issue that waits on the blocker."""
        if self.type is DependencyType.BLOCKS:
            return self.target_id
        return self.source_id

    def involves(self, issue_id: str) -> bool:
        return issue_id in (self.source_id, self.target_id)

    def validate(self) -> None:
        """Raise DependencyValidationError on the first broken invariant."""
        if not self.id:
            raise DependencyValidationError("dependency ID cannot be empty")
        if not self.source_id:
            raise DependencyValidationError("source issue ID cannot be empty")
        if not self.target_id:
            raise DependencyValidationError("target issue ID cannot be empty")
        if self.source_id == self.target_id:
            raise DependencyValidationError("an issue cannot depend on itself")
        if not self.created_by:
            raise DependencyValidationError("created by cannot be empty")
        has_resolution = self.resolved_at is not None or bool(self.resolved_by)
        if self.is_resolved != has_resolution:
            raise DependencyValidationError(
                "resolved_at/resolved_by must be set exactly when the dependency is resolved"
            )

    def resolve(self, actor: str, when: datetime | None = None) -> None:
        when = when or _now()
        self.status = DependencyStatus.RESOLVED
        self.resolved_by = actor
        self.resolved_at = when
        self.updated_at = when

    def reactivate(self, when: datetime | None = None) -> None:
        self.status = DependencyStatus.ACTIVE
        self.resolved_by = None
        self.resolved_at = None
        self.updated_at = when or _now()

    def describe(self) -> str:
        return f"{self.source_id} {self.type.value} {self.target_id}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source_id": self.source_id,
            "target_id": self.target_id,
            "type": self.type.value,
            "status": self.status.value,
            "description": self.description,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "resolved_by": self.resolved_by,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Dependency:
        created_at = _parse_time(data.get("created_at")) or _now()
        return cls(
            id=data["id"],
            source_id=data["source_id"],
            target_id=data["target_id"],
            type=DependencyType.parse(data["type"]),
            status=DependencyStatus(data.get("status", "active")),
            description=data.get("description") or "",
            created_by=data.get("created_by") or "",
            created_at=created_at,
            updated_at=_parse_time(data.get("updated_at")) or created_at,
            resolved_by=data.get("resolved_by") or None,
            resolved_at=_parse_time(data.get("resolved_at")),
        )


@dataclass
class DependencyFilter:
    """Field filter over dependency records; usable as a stats predicate."""
    source_id: str | None = None
    target_id: str | None = None
    type: DependencyType | None = None
    status: DependencyStatus | None = None
    created_by: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None

    def matches(self, dep: Dependency) -> bool:
        if self.source_id is not None and dep.source_id != self.source_id:
            return False
        if self.target_id is not None and dep.target_id != self.target_id:
            return False
        if self.type is not None and dep.type is not self.type:
            return False
        if self.status is not None and dep.status is not self.status:
            return False
        if self.created_by is not None and dep.created_by != self.created_by:
            return False
        if self.date_from is not None and dep.created_at < self.date_from:
            return False
        if self.date_to is not None and dep.created_at > self.date_to:
            return False
        return True

    __call__ = matches


@dataclass
class HistoryEntry:
    """One audit log line for an issue."""
    issue_id: str
    event_type: str
    message: str
    actor: str
    timestamp: datetime = field(default_factory=_now)
    metadata: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "issue_id": self.issue_id,
            "event_type": self.event_type,
            "message": self.message,
            "actor": self.actor,
            "timestamp": self.timestamp.isoformat(),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HistoryEntry:
        return cls(
            issue_id=data["issue_id"],
            event_type=data["event_type"],
            message=data.get("message", ""),
            actor=data.get("actor", ""),
            timestamp=_parse_time(data.get("timestamp")) or _now(),
            metadata=dict(data.get("metadata") or {}),
        )
