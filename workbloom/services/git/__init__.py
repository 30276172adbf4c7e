"""Git-related services for workbloom."""

from .merge_classifier import MergeClassifier
from .repository import GitRepository, MergeCommit, parse_worktree_porcelain, translate_git_error

__all__ = [
    "GitRepository",
    "MergeClassifier",
    "MergeCommit",
    "parse_worktree_porcelain",
    "translate_git_error",
]
