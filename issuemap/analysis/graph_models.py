"""Data models for the dependency graph and its analysis results."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from issuemap.models import Dependency


class RiskLevel(enum.Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class DependencyGraph:
    dependencies: list[Dependency] = field(default_factory=list)
    forward: dict[str, list[str]] = field(default_factory=dict)   # blocker -> [blocked]
    reverse: dict[str, list[str]] = field(default_factory=dict)   # blocked -> [blockers]
    requires_forward: dict[str, list[str]] = field(default_factory=dict)  # source -> [required targets]
    requires_reverse: dict[str, list[str]] = field(default_factory=dict)  # target -> [requiring sources]

    @property
    def nodes(self) -> list[str]:
        """Issues touched by at least one active edge, sorted."""
        ids: set[str] = set()
        for dep in self.dependencies:
            if dep.is_active:
                ids.add(dep.source_id)
                ids.add(dep.target_id)
        return sorted(ids)

    @property
    def active_dependencies(self) -> list[Dependency]:
        return [d for d in self.dependencies if d.is_active]

    def get_blocked_issues(self, issue_id: str) -> list[str]:
        """Issues that ``issue_id`` blocks directly."""
        return list(self.forward.get(issue_id, []))

    def get_blocking_issues(self, issue_id: str) -> list[str]:
        """Issues that directly block ``issue_id``."""
        return list(self.reverse.get(issue_id, []))

    def dependencies_for(self, issue_id: str) -> list[Dependency]:
        return [d for d in self.dependencies if d.involves(issue_id)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": self.nodes,
            "dependencies": [d.to_dict() for d in self.dependencies],
            "blocking": {k: list(v) for k, v in sorted(self.forward.items())},
        }


@dataclass
class BlockingInfo:
    issue_id: str
    is_blocked: bool = False
    blocked_by: list[str] = field(default_factory=list)
    blocking: list[str] = field(default_factory=list)
    blocking_count: int = 0
    critical_path: bool = False  # blocked and blocking: a local bottleneck
    unresolved_deps: list[Dependency] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "issue_id": self.issue_id,
            "is_blocked": self.is_blocked,
            "blocked_by": list(self.blocked_by),
            "blocking": list(self.blocking),
            "blocking_count": self.blocking_count,
            "critical_path": self.critical_path,
            "unresolved_deps": [d.to_dict() for d in self.unresolved_deps],
        }


@dataclass
class ValidationResult:
    is_valid: bool = True
    circular_paths: list[list[str]] = field(default_factory=list)
    conflicting_deps: list[tuple[Dependency, Dependency]] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "circular_paths": [list(c) for c in self.circular_paths],
            "conflicting_deps": [
                [a.to_dict(), b.to_dict()] for a, b in self.conflicting_deps
            ],
            "warnings": list(self.warnings),
        }


@dataclass
class ImpactAnalysis:
    origin_id: str
    risk_level: RiskLevel = RiskLevel.NONE
    affected_issues: list[str] = field(default_factory=list)
    blocking_chain: dict[str, list[str]] = field(default_factory=dict)  # affected -> path from origin
    critical_path: list[str] = field(default_factory=list)  # longest chain from origin
    delay_estimate: timedelta | None = None
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "origin_id": self.origin_id,
            "risk_level": self.risk_level.value,
            "affected_issues": list(self.affected_issues),
            "blocking_chain": {k: list(v) for k, v in self.blocking_chain.items()},
            "critical_path": list(self.critical_path),
            "delay_estimate_hours": (
                self.delay_estimate.total_seconds() / 3600
                if self.delay_estimate is not None else None
            ),
            "recommendations": list(self.recommendations),
        }


@dataclass
class DependencyStats:
    total_dependencies: int = 0
    active_dependencies: int = 0
    resolved_dependencies: int = 0
    issues_with_deps: int = 0
    average_deps_per_issue: float = 0.0
    circular_dependencies: int = 0
    dependencies_by_type: dict[str, int] = field(default_factory=dict)
    dependencies_by_status: dict[str, int] = field(default_factory=dict)
    most_blocked_issues: list[str] = field(default_factory=list)
    most_blocking_issues: list[str] = field(default_factory=list)
    dependency_creators: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_dependencies": self.total_dependencies,
            "active_dependencies": self.active_dependencies,
            "resolved_dependencies": self.resolved_dependencies,
            "issues_with_deps": self.issues_with_deps,
            "average_deps_per_issue": round(self.average_deps_per_issue, 3),
            "circular_dependencies": self.circular_dependencies,
            "dependencies_by_type": dict(self.dependencies_by_type),
            "dependencies_by_status": dict(self.dependencies_by_status),
            "most_blocked_issues": list(self.most_blocked_issues),
            "most_blocking_issues": list(self.most_blocking_issues),
            "dependency_creators": dict(self.dependency_creators),
        }
