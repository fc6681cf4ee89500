"""Graph validation: circular blocking paths and contradictory edges."""

from __future__ import annotations

from issuemap.models import Dependency, DependencyType
from issuemap.analysis.dependency_graph import DependencyGraphBuilder
from issuemap.analysis.graph_models import DependencyGraph, ValidationResult

DEFAULT_FANOUT_THRESHOLD = 5


def validate_graph(
    graph: DependencyGraph,
    fanout_threshold: int = DEFAULT_FANOUT_THRESHOLD,
) -> ValidationResult:
    """Validate a dependency graph.

    ``is_valid`` only reflects cycles and conflicts; warnings are advisory.
    """
    cycles = DependencyGraphBuilder().detect_cycles(graph)
    conflicts = find_conflicts(graph)

    warnings: list[str] = []
    if cycles:
        warnings.append(f"Found {len(cycles)} circular dependency path(s)")
    if conflicts:
        warnings.append(f"Found {len(conflicts)} conflicting dependency pair(s)")
    warnings.extend(_fanout_warnings(graph, fanout_threshold))
    warnings.extend(_redundancy_warnings(graph))

    return ValidationResult(
        is_valid=not cycles and not conflicts,
        circular_paths=cycles,
        conflicting_deps=conflicts,
        warnings=warnings,
    )


def find_conflicts(graph: DependencyGraph) -> list[tuple[Dependency, Dependency]]:
    """Pairs of active dependencies on the same two issues that contradict each other.

    Two cases: ``Blocks(A,B)`` with ``Blocks(B,A)``, and ``Blocks(A,B)`` with
    ``Requires(A,B)``. Each pair is reported once, ordered by dependency ID.
    """
    by_edge: dict[tuple[str, str, DependencyType], Dependency] = {}
    for dep in graph.active_dependencies:
        by_edge.setdefault((dep.source_id, dep.target_id, dep.type), dep)

    pairs: dict[tuple[str, str], tuple[Dependency, Dependency]] = {}
    for (source, target, dep_type), dep in by_edge.items():
        if dep_type is not DependencyType.BLOCKS:
            continue
        for other in (
            by_edge.get((target, source, DependencyType.BLOCKS)),
            by_edge.get((source, target, DependencyType.REQUIRES)),
        ):
            if other is None:
                continue
            first, second = sorted((dep, other), key=lambda d: d.id)
            pairs.setdefault((first.id, second.id), (first, second))

    return [pairs[key] for key in sorted(pairs)]


def _fanout_warnings(graph: DependencyGraph, threshold: int) -> list[str]:
    warnings: list[str] = []
    for issue_id in sorted(graph.forward):
        count = len(graph.forward[issue_id])
        if count > threshold:
            warnings.append(
                f"{issue_id} blocks {count} issues (more than {threshold}); "
                f"consider splitting it"
            )
    return warnings


def _redundancy_warnings(graph: DependencyGraph) -> list[str]:
    # Requires(A,B) says the same thing as Blocks(B,A)
    edges = {(d.source_id, d.target_id, d.type) for d in graph.active_dependencies}
    warnings: list[str] = []
    for dep in sorted(graph.active_dependencies, key=lambda d: d.id):
        mirror = dep.type.opposite
        if dep.type is DependencyType.REQUIRES and (dep.target_id, dep.source_id, mirror) in edges:
            warnings.append(
                f"{dep.describe()} duplicates {dep.target_id} {mirror.value} {dep.source_id}"
            )
    return warnings
