"""Formatting utilities for workbloom.

- date: worktree age formatting
- status: verdict, reason and outcome formatting
"""

from .date import format_age, format_created_at
from .status import (
    format_decision_summary,
    format_outcome,
    format_reason,
    format_verdict,
    get_decision_style_type,
)

__all__ = [
    # Date
    "format_age",
    "format_created_at",
    # Status
    "format_verdict",
    "format_reason",
    "format_outcome",
    "format_decision_summary",
    "get_decision_style_type",
]
