"""Exception hierarchy for issuemap."""

from __future__ import annotations


class IssueMapError(Exception):
    """Base class for all issuemap errors."""
    pass


class DependencyValidationError(IssueMapError, ValueError):
    """Input rejected before anything was written."""
    pass


class DependencyNotFoundError(IssueMapError, LookupError):
    """No dependency matches the given ID or issue pair."""

    def __init__(self, key: str):
        super().__init__(f"dependency not found: {key}")
        self.key = key


class StoreError(IssueMapError):
    """The record store failed to read or write."""
    pass
