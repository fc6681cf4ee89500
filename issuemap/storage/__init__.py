"""Record stores for dependencies and their audit history."""

from __future__ import annotations

from issuemap.storage.base import BaseDependencyStore, BaseHistoryRecorder
from issuemap.storage.file_store import FileDependencyStore
from issuemap.storage.history import HistoryService

__all__ = [
    "BaseDependencyStore",
    "BaseHistoryRecorder",
    "FileDependencyStore",
    "HistoryService",
]
