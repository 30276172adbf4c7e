"""Worktree data models."""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional


@dataclass
class WorktreeInfo:
    """Information about a git worktree."""

    path: str
    branch_name: str  # Empty for detached HEAD
    commit_sha: str
    is_main: bool  # Is this the main working tree?
    is_orphaned: bool  # Directory missing?
    is_detached: bool = False
    created_at: Optional[datetime] = None  # None when filesystem metadata is unavailable

    @property
    def dir_name(self) -> str:
        """Final path component, used as the worktree's identity."""
        return Path(self.path).name

    def __str__(self) -> str:
        """String representation of worktree."""
        status = "orphaned" if self.is_orphaned else "active"
        main_marker = " (main)" if self.is_main else ""
        branch = self.branch_name or "(detached)"
        return f"{branch} @ {self.path}{main_marker} [{status}]"
