"""Dependency statistics: counts per type and status, plus top blocker rankings."""

from __future__ import annotations

from collections import Counter
from typing import Callable, Iterable

from issuemap.models import Dependency, DependencyStatus, DependencyType
from issuemap.analysis.dependency_graph import DependencyGraphBuilder
from issuemap.analysis.graph_models import DependencyStats

DEFAULT_TOP_N = 5


def aggregate_stats(
    records: Iterable[Dependency],
    predicate: Callable[[Dependency], bool] | None = None,
    top_n: int = DEFAULT_TOP_N,
) -> DependencyStats:
    """Aggregate statistics over the records accepted by ``predicate``."""
    deps = [d for d in records if predicate is None or predicate(d)]
    stats = DependencyStats()
    if not deps:
        return stats

    by_type: Counter[str] = Counter()
    by_status: Counter[str] = Counter()
    creators: Counter[str] = Counter()
    blocked_count: Counter[str] = Counter()
    blocking_count: Counter[str] = Counter()
    issues: set[str] = set()

    for dep in deps:
        by_type[dep.type.value] += 1
        by_status[dep.status.value] += 1
        creators[dep.created_by] += 1
        issues.update((dep.source_id, dep.target_id))

        if dep.is_active and dep.type is DependencyType.BLOCKS:
            blocking_count[dep.source_id] += 1
            blocked_count[dep.target_id] += 1

    stats.total_dependencies = len(deps)
    stats.active_dependencies = by_status[DependencyStatus.ACTIVE.value]
    stats.resolved_dependencies = by_status[DependencyStatus.RESOLVED.value]
    stats.issues_with_deps = len(issues)
    stats.average_deps_per_issue = stats.total_dependencies / stats.issues_with_deps
    stats.dependencies_by_type = dict(by_type)
    stats.dependencies_by_status = dict(by_status)
    stats.dependency_creators = dict(creators)
    stats.most_blocked_issues = _top_issues(blocked_count, top_n)
    stats.most_blocking_issues = _top_issues(blocking_count, top_n)

    builder = DependencyGraphBuilder()
    stats.circular_dependencies = len(builder.detect_cycles(builder.build(deps)))
    return stats


def _top_issues(counts: Counter[str], limit: int) -> list[str]:
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return [issue_id for issue_id, _ in ranked[:limit]]
