"""Tests for the file-backed dependency store and history log."""

import json
from datetime import datetime

import pytest

from issuemap.errors import DependencyNotFoundError, StoreError
from issuemap.models import Dependency, DependencyStatus, DependencyType
from issuemap.storage import FileDependencyStore, HistoryService


def _dep(source, target, dep_type=DependencyType.BLOCKS):
    return Dependency.new(source, target, dep_type, created_by="alice")


@pytest.fixture
def store(tmp_path):
    return FileDependencyStore(tmp_path / ".issuemap")


class TestFileDependencyStore:
    def test_empty_store(self, store):
        assert store.list_all() == []
        assert not store.exists("A-blocks-B")

    def test_save_and_get(self, store):
        dep = _dep("A", "B")
        store.save(dep)
        assert store.exists(dep.id)
        assert store.get(dep.id) == dep
        assert (store.directory / "A-blocks-B.json").exists()

    def test_record_is_plain_json(self, store):
        store.save(_dep("A", "B"))
        data = json.loads((store.directory / "A-blocks-B.json").read_text())
        assert data["type"] == "blocks"
        assert data["status"] == "active"
        assert data["created_by"] == "alice"

    def test_get_missing(self, store):
        with pytest.raises(DependencyNotFoundError):
            store.get("A-blocks-B")

    def test_delete(self, store):
        dep = _dep("A", "B")
        store.save(dep)
        store.delete(dep.id)
        assert not store.exists(dep.id)
        with pytest.raises(DependencyNotFoundError):
            store.delete(dep.id)

    def test_path_like_ids_stay_inside_directory(self, store):
        with pytest.raises(DependencyNotFoundError):
            store.get("../escape")

        dep = _dep("team/1", ".hidden")
        store.save(dep)
        assert store.exists(dep.id)
        assert store.get(dep.id) == dep
        assert [p.name for p in store.directory.iterdir()] == ["team%2F1-blocks-.hidden.json"]
        assert [d.id for d in store.list_all()] == ["team/1-blocks-.hidden"]

    def test_list_by_issue(self, store):
        store.save(_dep("A", "B"))
        store.save(_dep("B", "C"))
        store.save(_dep("X", "Y"))
        assert sorted(d.id for d in store.list_by_issue("B")) == ["A-blocks-B", "B-blocks-C"]

    def test_list_all_oldest_first(self, store):
        newer = _dep("A", "B")
        older = _dep("C", "D")
        older.created_at = datetime(2020, 1, 1)
        store.save(newer)
        store.save(older)
        assert [d.id for d in store.list_all()] == ["C-blocks-D", "A-blocks-B"]

    def test_corrupt_record_is_skipped(self, store):
        store.save(_dep("A", "B"))
        (store.directory / "broken.json").write_text("{not json")
        assert [d.id for d in store.list_all()] == ["A-blocks-B"]

    @pytest.mark.parametrize("content", [
        "[]",
        "\"text\"",
        json.dumps({"id": "X-blocks-Y", "source_id": "X", "target_id": "Y",
                    "type": "blocks", "created_at": 12345}),
    ])
    def test_wrong_shape_record_is_skipped(self, store, content):
        store.save(_dep("A", "B"))
        (store.directory / "X-blocks-Y.json").write_text(content)
        assert [d.id for d in store.list_all()] == ["A-blocks-B"]

        with pytest.raises(StoreError, match="corrupt"):
            store.get("X-blocks-Y")

    def test_update_status(self, store):
        dep = _dep("A", "B")
        store.save(dep)
        when = datetime(2026, 2, 1, 9, 30)

        resolved = store.update_status(dep.id, DependencyStatus.RESOLVED, "bob", when)
        assert resolved.is_resolved
        assert store.get(dep.id).resolved_by == "bob"
        assert store.get(dep.id).resolved_at == when

        store.update_status(dep.id, DependencyStatus.ACTIVE, "bob")
        reloaded = store.get(dep.id)
        assert reloaded.is_active
        assert reloaded.resolved_by is None
        assert reloaded.created_at == dep.created_at


class TestHistoryService:
    def test_no_entries(self, tmp_path):
        assert HistoryService(tmp_path).entries("A") == []

    def test_append(self, tmp_path):
        history = HistoryService(tmp_path)
        history.record("dependency_created", "A", "Added dependency: A blocks B", "alice",
                       metadata={"dependency_id": "A-blocks-B"})
        history.record("dependency_resolved", "A", "Resolved dependency: A blocks B", "bob")

        entries = history.entries("A")
        assert [e.event_type for e in entries] == ["dependency_created", "dependency_resolved"]
        assert entries[0].metadata == {"dependency_id": "A-blocks-B"}
        assert entries[1].actor == "bob"
        assert (tmp_path / "history" / "A.jsonl").exists()

    def test_issue_ids_with_slashes(self, tmp_path):
        history = HistoryService(tmp_path)
        history.record("dependency_created", "team/1", "Added", "alice")
        history.record("dependency_created", "team_1", "Added", "alice")
        assert len(history.entries("team/1")) == 1
        assert len(history.entries("team_1")) == 1
