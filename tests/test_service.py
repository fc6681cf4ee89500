"""Tests for DependencyService mutations, lookups and analysis."""

from unittest.mock import MagicMock

import pytest

from issuemap.config import IssueMapConfig
from issuemap.errors import DependencyNotFoundError, DependencyValidationError, StoreError
from issuemap.models import DependencyFilter, DependencyStatus, DependencyType
from issuemap.service import DependencyService
from issuemap.storage import FileDependencyStore, HistoryService
from issuemap.analysis.graph_models import RiskLevel


# ── Helpers ───────────────────────────────────────────────────

def _make_service(tmp_path, history=True, **config):
    root = tmp_path / ".issuemap"
    return DependencyService(
        FileDependencyStore(root),
        HistoryService(root) if history else None,
        IssueMapConfig(root_dir=root, **config),
    )


@pytest.fixture
def service(tmp_path):
    return _make_service(tmp_path)


# ── Create ────────────────────────────────────────────────────

class TestCreate:
    def test_create(self, service):
        dep = service.create_dependency("A", "B", "blocks", "API first", "alice")
        assert dep.id == "A-blocks-B"
        assert dep.status is DependencyStatus.ACTIVE
        assert service.store.get(dep.id) == dep
        assert service.last_warnings == []

    def test_type_is_case_insensitive(self, service):
        assert service.create_dependency("A", "B", "REQUIRES", author="alice").type is DependencyType.REQUIRES

    def test_self_dependency_writes_nothing(self):
        store = MagicMock()
        history = MagicMock()
        svc = DependencyService(store, history)
        with pytest.raises(DependencyValidationError):
            svc.create_dependency("A", "A", "blocks", author="alice")
        store.save.assert_not_called()
        history.record.assert_not_called()

    def test_invalid_type(self, service):
        with pytest.raises(DependencyValidationError, match="invalid dependency type"):
            service.create_dependency("A", "B", "relates", author="alice")
        assert service.store.list_all() == []

    def test_missing_author(self, service):
        with pytest.raises(DependencyValidationError, match="author"):
            service.create_dependency("A", "B", "blocks")

    def test_default_author_from_config(self, tmp_path):
        svc = _make_service(tmp_path, default_author="ci-bot")
        assert svc.create_dependency("A", "B", "blocks").created_by == "ci-bot"

    def test_duplicate_rejected(self, service):
        service.create_dependency("A", "B", "blocks", author="alice")
        with pytest.raises(DependencyValidationError, match="already exists"):
            service.create_dependency("A", "B", "blocks", author="bob")
        assert service.store.get("A-blocks-B").created_by == "alice"

    def test_cycle_is_warned_not_rejected(self, service):
        service.create_dependency("A", "B", "blocks", author="alice")
        dep = service.create_dependency("B", "A", "blocks", author="alice")
        assert service.store.exists(dep.id)
        assert any("circular" in w for w in service.last_warnings)

    def test_requires_cycle_is_warned(self, service):
        service.create_dependency("A", "B", "blocks", author="alice")
        service.create_dependency("A", "B", "requires", author="alice")
        assert any("circular" in w for w in service.last_warnings)

    def test_audit_written_for_both_issues(self, service):
        service.create_dependency("A", "B", "blocks", author="alice")
        for issue_id, other in (("A", "B"), ("B", "A")):
            entries = service.history.entries(issue_id)
            assert [e.event_type for e in entries] == ["dependency_created"]
            assert entries[0].metadata["other_issue"] == other
            assert entries[0].metadata["dependency_id"] == "A-blocks-B"

    def test_audit_failure_is_a_warning(self, tmp_path):
        history = MagicMock()
        history.record.side_effect = OSError("disk full")
        svc = DependencyService(FileDependencyStore(tmp_path), history)

        dep = svc.create_dependency("A", "B", "blocks", author="alice")
        assert svc.store.exists(dep.id)
        assert len(svc.last_warnings) == 2
        assert all("disk full" in w for w in svc.last_warnings)

    def test_issue_ids_are_opaque(self, service):
        dep = service.create_dependency("team/1", ".B", "blocks", author="alice")
        assert service.store.get(dep.id) == dep
        assert service.get_blocking_info(".B").blocked_by == ["team/1"]
        assert [e.event_type for e in service.history.entries("team/1")] == ["dependency_created"]

    def test_ids_containing_type_words_do_not_collide(self, service):
        service.create_dependency("A", "B-blocks-C", "blocks", author="alice")
        service.create_dependency("A-blocks-B", "C", "blocks", author="alice")
        assert len(service.get_dependencies()) == 2
        assert service.get_blocked_issues() == ["B-blocks-C", "C"]

    def test_corrupt_record_does_not_break_queries(self, service):
        service.create_dependency("A", "B", "blocks", author="alice")
        (service.store.directory / "x.json").write_text("[]")
        assert service.get_blocking_info("B").blocked_by == ["A"]
        assert service.validate_dependency_graph().is_valid

    def test_store_failure_propagates(self):
        store = MagicMock()
        store.exists.return_value = False
        store.list_all.return_value = []
        store.save.side_effect = StoreError("read-only filesystem")
        history = MagicMock()
        svc = DependencyService(store, history)

        with pytest.raises(StoreError):
            svc.create_dependency("A", "B", "blocks", author="alice")
        history.record.assert_not_called()


# ── Status changes ────────────────────────────────────────────

class TestStatus:
    def test_resolve_keeps_record_but_leaves_graph(self, service):
        dep = service.create_dependency("A", "B", "blocks", author="alice")
        service.resolve_dependency(dep.id, "bob")

        graph = service.get_dependency_graph()
        assert graph.get_blocked_issues("A") == []
        assert not service.get_blocking_info("B").is_blocked
        assert [d.id for d in service.get_issue_dependencies("B")] == [dep.id]

    def test_resolve_is_idempotent_and_reactivate_restores(self, service):
        dep = service.create_dependency("A", "B", "blocks", author="alice")
        service.resolve_dependency(dep.id, "bob")
        first = service.store.get(dep.id)

        again = service.resolve_dependency(dep.id, "carol")
        assert again.resolved_by == "bob"
        assert service.store.get(dep.id) == first

        service.reactivate_dependency(dep.id, "dave")
        restored = service.store.get(dep.id)
        assert restored.is_active
        assert restored.resolved_by is None and restored.resolved_at is None
        assert restored.created_by == dep.created_by
        assert restored.created_at == dep.created_at

    def test_reactivate_active_is_noop(self, service):
        dep = service.create_dependency("A", "B", "blocks", author="alice")
        service.reactivate_dependency(dep.id, "bob")
        events = [e.event_type for e in service.history.entries("A")]
        assert events == ["dependency_created"]

    def test_status_change_audited(self, service):
        dep = service.create_dependency("A", "B", "blocks", author="alice")
        service.resolve_dependency(dep.id, "bob")
        service.reactivate_dependency(dep.id, "bob")
        events = [e.event_type for e in service.history.entries("B")]
        assert events == ["dependency_created", "dependency_resolved", "dependency_reactivated"]

    def test_unknown_id(self, service):
        with pytest.raises(DependencyNotFoundError):
            service.resolve_dependency("A-blocks-B", "bob")
        with pytest.raises(DependencyNotFoundError):
            service.remove_dependency("A-blocks-B", "bob")

    def test_remove(self, service):
        dep = service.create_dependency("A", "B", "blocks", author="alice")
        removed = service.remove_dependency(dep.id, "bob")
        assert removed.id == dep.id
        assert service.get_issue_dependencies("A") == []
        assert service.history.entries("A")[-1].event_type == "dependency_removed"


# ── Lookups and analysis ─────────────────────────────────────

class TestQueries:
    def test_find_dependency(self, service):
        service.create_dependency("A", "B", "blocks", author="alice")
        assert service.find_dependency("A", "B").id == "A-blocks-B"
        assert service.find_dependency("B", "A").id == "A-blocks-B"
        with pytest.raises(DependencyNotFoundError):
            service.find_dependency("A", "B", "requires")

    def test_find_dependency_prefers_first_issue_as_source(self, service):
        service.create_dependency("A", "B", "blocks", author="alice")
        service.create_dependency("B", "A", "requires", author="alice")
        assert service.find_dependency("B", "A").id == "B-requires-A"

    def test_blocking_and_impact(self, service):
        for source, target in (("A", "B"), ("B", "C"), ("C", "D")):
            service.create_dependency(source, target, "blocks", author="alice")

        info = service.get_blocking_info("B")
        assert info.blocked_by == ["A"] and info.critical_path
        assert service.get_blocked_issues() == ["B", "C", "D"]

        impact = service.analyze_dependency_impact("A")
        assert impact.blocking_chain["D"] == ["A", "B", "C", "D"]
        assert impact.risk_level is RiskLevel.MEDIUM

    def test_requires_only_counts_on_request(self, service):
        service.create_dependency("A", "B", "requires", author="alice")
        assert not service.get_blocking_info("A").is_blocked
        assert service.get_blocking_info("A", include_requires=True).blocked_by == ["B"]

    def test_validate_uses_configured_fanout(self, tmp_path):
        svc = _make_service(tmp_path, fanout_threshold=1)
        svc.create_dependency("A", "B", "blocks", author="alice")
        svc.create_dependency("A", "C", "blocks", author="alice")
        result = svc.validate_dependency_graph()
        assert result.is_valid
        assert any("A blocks 2 issues" in w for w in result.warnings)

    def test_service_estimates_are_default(self, tmp_path):
        root = tmp_path / ".issuemap"
        svc = DependencyService(FileDependencyStore(root), estimates={"A": 3, "B": 1})
        svc.create_dependency("A", "B", "blocks", author="alice")
        assert svc.analyze_dependency_impact("A").delay_estimate.total_seconds() == 3 * 3600

    def test_stats_with_filter(self, service):
        service.create_dependency("A", "B", "blocks", author="alice")
        service.create_dependency("B", "C", "blocks", author="bob")
        stats = service.get_dependency_stats(DependencyFilter(created_by="bob"))
        assert stats.total_dependencies == 1
        assert stats.most_blocking_issues == ["B"]
        assert len(service.get_dependencies(DependencyFilter(created_by="alice"))) == 1
