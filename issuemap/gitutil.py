"""Git helpers: repository root and current user."""

from __future__ import annotations

import getpass
import os
import subprocess
from pathlib import Path


def _git(*args: str, cwd: Path | None = None) -> str | None:
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError):
        return None
    return result.stdout.strip() or None


def find_repo_root(start: Path | None = None) -> Path | None:
    """Top-level directory of the enclosing Git repository, if any."""
    start = Path(start or Path.cwd()).resolve()
    top = _git("rev-parse", "--show-toplevel", cwd=start)
    if top:
        return Path(top)

    for candidate in (start, *start.parents):
        if (candidate / ".git").exists():
            return candidate
    return None


def current_user(repo: Path | None = None) -> str:
    """``git config user.name``, then $USER, then the login name."""
    name = _git("config", "user.name", cwd=repo)
    if name:
        return name
    env_user = os.getenv("USER") or os.getenv("USERNAME")
    if env_user:
        return env_user
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"
