"""Builds the blocking adjacency from dependency records and finds cycles."""

from __future__ import annotations

from collections import deque
from typing import Iterable

from issuemap.models import Dependency, DependencyType
from issuemap.analysis.graph_models import DependencyGraph


class DependencyGraphBuilder:
    """Build an in-memory dependency graph from a flat list of records.

    The graph is never cached: callers build a fresh one per query.
    """

    def build(
        self,
        records: Iterable[Dependency],
        include_requires: bool = False,
    ) -> DependencyGraph:
        graph = DependencyGraph(dependencies=list(records))

        for dep in graph.dependencies:
            if not dep.is_active:
                continue

            if dep.type is DependencyType.BLOCKS:
                self._add_edge(graph.forward, graph.reverse, dep.source_id, dep.target_id)
            else:
                self._add_edge(
                    graph.requires_forward, graph.requires_reverse,
                    dep.source_id, dep.target_id,
                )
                # Requires(A, B) is read as Blocks(B, A) only on request
                if include_requires:
                    self._add_edge(graph.forward, graph.reverse, dep.target_id, dep.source_id)

        for adjacency in (graph.forward, graph.reverse,
                          graph.requires_forward, graph.requires_reverse):
            for key in adjacency:
                adjacency[key].sort()

        return graph

    def detect_cycles(self, graph: DependencyGraph) -> list[list[str]]:
        """Detect cycles in the blocking adjacency using DFS.

        Each cycle is returned once, rotated so it starts at its smallest ID.
        """
        cycles: list[list[str]] = []
        seen: set[tuple[str, ...]] = set()
        visited: set[str] = set()
        on_stack: set[str] = set()
        path: list[str] = []

        def dfs(node_id: str) -> None:
            visited.add(node_id)
            on_stack.add(node_id)
            path.append(node_id)

            for neighbor in graph.forward.get(node_id, []):
                if neighbor not in visited:
                    dfs(neighbor)
                elif neighbor in on_stack:
                    idx = path.index(neighbor)
                    cycle = canonical_cycle(path[idx:])
                    key = tuple(cycle)
                    if key not in seen:
                        seen.add(key)
                        cycles.append(cycle)

            path.pop()
            on_stack.discard(node_id)

        for node_id in sorted(graph.forward):
            if node_id not in visited:
                dfs(node_id)

        return cycles

    def would_create_cycle(self, graph: DependencyGraph, blocker: str, blocked: str) -> bool:
        """True if a new ``blocker -> blocked`` edge would close a cycle."""
        if blocker == blocked:
            return True

        visited = {blocked}
        queue = deque([blocked])
        while queue:
            current = queue.popleft()
            for neighbor in graph.forward.get(current, []):
                if neighbor == blocker:
                    return True
                if neighbor not in visited:
                    visited.add(neighbor)
                    queue.append(neighbor)
        return False

    @staticmethod
    def _add_edge(
        forward: dict[str, list[str]],
        reverse: dict[str, list[str]],
        source_id: str,
        target_id: str,
    ) -> None:
        # Avoid duplicate edges
        if target_id in forward.get(source_id, []):
            return
        forward.setdefault(source_id, []).append(target_id)
        reverse.setdefault(target_id, []).append(source_id)


def canonical_cycle(cycle: list[str]) -> list[str]:
    """Rotate a cycle so it starts at its lexicographically smallest member."""
    if not cycle:
        return []
    start = cycle.index(min(cycle))
    return cycle[start:] + cycle[:start]
