"""Append-only audit log, one JSON-lines file per issue."""

from __future__ import annotations

import json
from pathlib import Path

from issuemap.errors import StoreError
from issuemap.models import HistoryEntry
from issuemap.storage.base import BaseHistoryRecorder
from issuemap.storage.file_store import record_filename

HISTORY_DIR = "history"


class HistoryService(BaseHistoryRecorder):
    """Writes audit entries under ``<root>/history/<issue_id>.jsonl``."""

    def __init__(self, root: Path):
        self.root = Path(root)
        self.directory = self.root / HISTORY_DIR

    def _path(self, issue_id: str) -> Path:
        return self.directory / record_filename(issue_id, ".jsonl")

    def record(
        self,
        event_type: str,
        issue_id: str,
        message: str,
        actor: str,
        metadata: dict[str, str] | None = None,
    ) -> None:
        entry = HistoryEntry(
            issue_id=issue_id,
            event_type=event_type,
            message=message,
            actor=actor,
            metadata=dict(metadata or {}),
        )
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with self._path(issue_id).open("a", encoding="utf-8") as fh:
                fh.write(json.dumps(entry.to_dict()) + "\n")
        except OSError as e:
            raise StoreError(f"failed to write history for {issue_id}: {e}") from e

    def entries(self, issue_id: str) -> list[HistoryEntry]:
        path = self._path(issue_id)
        if not path.exists():
            return []
        lines = path.read_text(encoding="utf-8").splitlines()
        return [HistoryEntry.from_dict(json.loads(line)) for line in lines if line.strip()]
