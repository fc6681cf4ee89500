"""issuemap: file-based issue dependency tracking with blocking analysis."""

__version__ = "0.3.0"
