"""Per-issue blocking information."""

from __future__ import annotations

from issuemap.analysis.graph_models import BlockingInfo, DependencyGraph


def resolve_blocking(graph: DependencyGraph, issue_id: str) -> BlockingInfo:
    """Compute blocking information for one issue.

    Only the presence of an active edge counts; the status of the blocker issue
    itself is not consulted. ``critical_path`` here is the local bottleneck
    heuristic (blocked and blocking at once), not the chain computed by
    :func:`issuemap.analysis.impact.analyze_impact`.
    """
    blocked_by = graph.get_blocking_issues(issue_id)
    blocking = graph.get_blocked_issues(issue_id)
    is_blocked = len(blocked_by) > 0

    return BlockingInfo(
        issue_id=issue_id,
        is_blocked=is_blocked,
        blocked_by=blocked_by,
        blocking=blocking,
        blocking_count=len(blocking),
        critical_path=is_blocked and len(blocking) > 0,
        unresolved_deps=[d for d in graph.dependencies_for(issue_id) if d.is_active],
    )


def find_blocked_issues(graph: DependencyGraph) -> list[str]:
    """All issues with at least one active blocker, sorted."""
    return sorted(issue_id for issue_id, blockers in graph.reverse.items() if blockers)
