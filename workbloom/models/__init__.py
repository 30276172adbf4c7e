"""Data models for workbloom."""

from .branch import Branch, UpstreamKind
from .worktree import WorktreeInfo
from .decision import (
    CleanupKind,
    CleanupMode,
    CleanupOutcome,
    MergeVerdict,
    PortTriple,
    RemovalDecision,
    RemovalReason,
)

__all__ = [
    "Branch",
    "UpstreamKind",
    "WorktreeInfo",
    "CleanupKind",
    "CleanupMode",
    "CleanupOutcome",
    "MergeVerdict",
    "PortTriple",
    "RemovalDecision",
    "RemovalReason",
]
