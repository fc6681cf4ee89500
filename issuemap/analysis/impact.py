"""Impact analysis: forward BFS over blocking edges from a changed issue."""

from __future__ import annotations

from collections import deque
from datetime import timedelta
from typing import Callable, Mapping, Union

from issuemap.analysis.graph_models import DependencyGraph, ImpactAnalysis, RiskLevel

EstimateSource = Union[Mapping[str, float], Callable[[str], Union[float, None]]]

_LOW_MAX = 2
_MEDIUM_MAX = 5
_MANY_BLOCKERS = 3
_LONG_CHAIN = 4


def analyze_impact(
    graph: DependencyGraph,
    origin_id: str,
    estimates: EstimateSource | None = None,
) -> ImpactAnalysis:
    """Analyze the impact of a change to ``origin_id``.

    Every issue the origin blocks directly or transitively is affected. BFS
    gives each one its shortest chain from the origin, so results do not
    depend on edge insertion order.

    Args:
        graph: A freshly built dependency graph.
        origin_id: The issue being changed.
        estimates: Optional estimated hours per issue, as a mapping or a
            lookup callable. A delay estimate is only produced when every
            chain member has one.
    """
    chains, on_cycle = _bfs_chains(graph, origin_id)
    affected = [issue_id for issue_id in chains if issue_id != origin_id]

    result = ImpactAnalysis(origin_id=origin_id)
    if not affected:
        return result

    result.affected_issues = affected
    result.blocking_chain = {issue_id: chains[issue_id] for issue_id in affected}
    result.critical_path = _longest_chain(result.blocking_chain)
    result.risk_level = _risk_level(len(affected), on_cycle)
    result.delay_estimate = _delay_estimate(
        [origin_id, *affected], result.critical_path, estimates,
    )
    result.recommendations = _recommendations(graph, origin_id, result, on_cycle)
    return result


def _bfs_chains(graph: DependencyGraph, origin_id: str) -> tuple[dict[str, list[str]], bool]:
    """Shortest chain from the origin to every reachable issue, plus whether the origin is on a cycle."""
    chains: dict[str, list[str]] = {origin_id: [origin_id]}
    on_cycle = False
    queue = deque([origin_id])

    while queue:
        current = queue.popleft()
        for neighbor in graph.forward.get(current, []):
            if neighbor == origin_id:
                on_cycle = True
                continue
            if neighbor not in chains:
                chains[neighbor] = chains[current] + [neighbor]
                queue.append(neighbor)

    return chains, on_cycle


def _longest_chain(chains: dict[str, list[str]]) -> list[str]:
    # Longest first, then smallest terminal ID
    terminal = min(chains, key=lambda issue_id: (-len(chains[issue_id]), issue_id))
    return list(chains[terminal])


def _risk_level(affected_count: int, on_cycle: bool) -> RiskLevel:
    if on_cycle or affected_count > _MEDIUM_MAX:
        return RiskLevel.HIGH
    if affected_count == 0:
        return RiskLevel.NONE
    if affected_count <= _LOW_MAX:
        return RiskLevel.LOW
    return RiskLevel.MEDIUM


def _lookup_hours(estimates: EstimateSource, issue_id: str) -> float | None:
    if callable(estimates):
        return estimates(issue_id)
    return estimates.get(issue_id)


def _delay_estimate(
    members: list[str],
    critical_path: list[str],
    estimates: EstimateSource | None,
) -> timedelta | None:
    """Hours of work that must finish before the last issue on the critical path can start."""
    if estimates is None:
        return None

    hours: dict[str, float] = {}
    for issue_id in members:
        value = _lookup_hours(estimates, issue_id)
        if value is None:
            return None
        hours[issue_id] = float(value)

    return timedelta(hours=sum(hours[issue_id] for issue_id in critical_path[:-1]))


def _independent_chains(graph: DependencyGraph, origin_id: str) -> int:
    """Count groups of direct successors whose downstream sets never meet."""
    groups: list[set[str]] = []
    for start in graph.get_blocked_issues(origin_id):
        reach = {start}
        queue = deque([start])
        while queue:
            current = queue.popleft()
            for neighbor in graph.forward.get(current, []):
                if neighbor != origin_id and neighbor not in reach:
                    reach.add(neighbor)
                    queue.append(neighbor)

        overlapping = [g for g in groups if g & reach]
        for g in overlapping:
            groups.remove(g)
            reach |= g
        groups.append(reach)
    return len(groups)


def _recommendations(
    graph: DependencyGraph,
    origin_id: str,
    result: ImpactAnalysis,
    on_cycle: bool,
) -> list[str]:
    recommendations: list[str] = []
    direct = graph.get_blocked_issues(origin_id)

    if on_cycle:
        recommendations.append(
            f"Break the circular dependency through {origin_id} before scheduling work"
        )

    if result.risk_level is RiskLevel.HIGH:
        recommendations.append(
            f"Consider breaking {origin_id} down into smaller, independent tasks"
        )
        recommendations.append(
            f"Review whether all {len(result.affected_issues)} downstream dependencies are necessary"
        )

    recommendations.append(f"Resolve {origin_id} before {', '.join(direct)}")

    chains = _independent_chains(graph, origin_id)
    if chains > 1:
        recommendations.append(
            f"Parallelize: {chains} independent chains detected downstream of {origin_id}"
        )

    if len(result.critical_path) >= _LONG_CHAIN:
        recommendations.append(
            f"Critical chain {' -> '.join(result.critical_path)} has "
            f"{len(result.critical_path) - 1} steps; prioritise {result.critical_path[1]}"
        )

    if len(graph.get_blocking_issues(origin_id)) > _MANY_BLOCKERS:
        recommendations.append(
            f"{origin_id} has many blockers; consider parallel work where possible"
        )

    if result.risk_level is not RiskLevel.LOW:
        recommendations.append("Communicate delays early to owners of affected issues")

    return recommendations
