"""File-backed dependency store: one JSON document per record."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from urllib.parse import quote

from issuemap.errors import DependencyNotFoundError, StoreError
from issuemap.models import Dependency
from issuemap.storage.base import BaseDependencyStore

logger = logging.getLogger(__name__)

DEPENDENCIES_DIR = "dependencies"

# Anything json.loads accepts but Dependency.from_dict cannot read
_CORRUPT = (ValueError, KeyError, TypeError, AttributeError)


def record_filename(key: str, suffix: str) -> str:
    """Filename for an arbitrary record key, kept inside its directory."""
    name = quote(key, safe="")
    if name.startswith("."):
        name = "%2E" + name[1:]
    return name + suffix


def _read_record(path: Path) -> Dependency:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return Dependency.from_dict(data)


class FileDependencyStore(BaseDependencyStore):
    """Stores records under ``<root>/dependencies/<id>.json``."""

    def __init__(self, root: Path):
        self.root = Path(root)
        self.directory = self.root / DEPENDENCIES_DIR

    def _path(self, dependency_id: str) -> Path:
        if not dependency_id:
            raise DependencyNotFoundError(dependency_id)
        return self.directory / record_filename(dependency_id, ".json")

    def save(self, dependency: Dependency) -> None:
        path = self._path(dependency.id)
        tmp = path.with_suffix(".json.tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(dependency.to_dict(), indent=2) + "\n", encoding="utf-8")
            tmp.replace(path)
        except OSError as e:
            raise StoreError(f"failed to write dependency {dependency.id}: {e}") from e

    def get(self, dependency_id: str) -> Dependency:
        path = self._path(dependency_id)
        if not path.exists():
            raise DependencyNotFoundError(dependency_id)
        try:
            return _read_record(path)
        except OSError as e:
            raise StoreError(f"failed to read dependency {dependency_id}: {e}") from e
        except _CORRUPT as e:
            raise StoreError(f"corrupt dependency record {path}: {e}") from e

    def exists(self, dependency_id: str) -> bool:
        try:
            return self._path(dependency_id).exists()
        except DependencyNotFoundError:
            return False

    def list_all(self) -> list[Dependency]:
        if not self.directory.exists():
            return []

        try:
            paths = sorted(self.directory.glob("*.json"))
        except OSError as e:
            raise StoreError(f"failed to list {self.directory}: {e}") from e

        records: list[Dependency] = []
        for path in paths:
            try:
                records.append(_read_record(path))
            except OSError as e:
                raise StoreError(f"failed to read {path}: {e}") from e
            except _CORRUPT as e:
                logger.warning("Skipping unreadable dependency record %s: %s", path, e)

        records.sort(key=lambda d: (d.created_at, d.id))
        return records

    def delete(self, dependency_id: str) -> None:
        path = self._path(dependency_id)
        if not path.exists():
            raise DependencyNotFoundError(dependency_id)
        try:
            path.unlink()
        except OSError as e:
            raise StoreError(f"failed to delete dependency {dependency_id}: {e}") from e
