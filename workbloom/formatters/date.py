"""Date and time formatting utilities."""

from datetime import datetime
from typing import Optional


def format_created_at(created_at: Optional[datetime]) -> str:
    """
    Format a worktree creation time as YYYY-MM-DD HH:MM.

    Args:
        created_at: Creation time, or None if unknown

    Returns:
        Formatted date string, "unknown" when missing
    """
    if created_at is None:
        return "unknown"
    return created_at.strftime("%Y-%m-%d %H:%M")


def format_age(created_at: Optional[datetime], now: datetime) -> str:
    """
    Format the age of a worktree in the largest whole unit.

    Args:
        created_at: Creation time, or None if unknown
        now: Current time, same awareness as created_at

    Returns:
        Age such as "3d", "5h" or "12m"; "?" when unknown
    """
    if created_at is None:
        return "?"
    seconds = max(0, int((now - created_at).total_seconds()))
    if seconds >= 86400:
        return f"{seconds // 86400}d"
    if seconds >= 3600:
        return f"{seconds // 3600}h"
    return f"{seconds // 60}m"
