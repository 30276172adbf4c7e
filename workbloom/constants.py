"""Shared constants for workbloom."""

from typing import Dict, List


# Port allocation: port = base + (digest(branch) % PORT_SPAN) + 1
FRONTEND_BASE_PORT = 5173
BACKEND_BASE_PORT = 8080
DATABASE_BASE_PORT = 5432
PORT_SPAN = 1000

# Environment variable names written into the worktree's .env
PORT_ENV_KEYS: Dict[str, str] = {
    "frontend": "FRONTEND_PORT",
    "backend": "BACKEND_PORT",
    "database": "DATABASE_PORT",
}

# Worktree layout
WORKTREE_DIR_PREFIX = "worktree-"
MANIFEST_FILE = ".workbloom"
SETUP_SCRIPT = ".workbloom-setup.sh"

# Files copied from the main checkout into every new worktree
DEFAULT_FILES_TO_COPY: List[str] = [".envrc", ".env"]
DEFAULT_CLAUDE_FILES: List[str] = ["settings.json", "settings.local.json"]
CLAUDE_DIR = ".claude"

# Safety
MIN_WORKTREE_AGE_HOURS = 24
MERGE_SCAN_LIMIT = 500

# Tmux session naming
SESSION_PREFIX = "wb"
SESSION_FALLBACK_SLUG = "worktree"


class DecisionStyleType:
    """Style types for cleanup decisions."""

    REMOVABLE = "removable"
    FORCED = "forced"
    BLOCKED = "blocked"
    PROTECTED = "protected"
    FAILED = "failed"


# CLI colors (Rich color names)
CLI_COLORS = {
    DecisionStyleType.REMOVABLE: "green",
    DecisionStyleType.FORCED: "magenta",  # Unmerged work removed on request
    DecisionStyleType.BLOCKED: "yellow",  # Can't remove (would lose work)
    DecisionStyleType.PROTECTED: "cyan",
    DecisionStyleType.FAILED: "red",
}


LEGEND_TEXT = """
Reasons:
merged          = branch work is in main, safe to remove
nothing-to-merge = branch has no commits of its own (left for you to decide)
unmerged        = branch has work not in main (use --force to remove anyway)
forced-unmerged = branch has work not in main, removed because of --force (branch kept)
detached        = worktree has no branch checked out (never removed)
too-recent      = worktree is younger than 24h (never removed)
active-setup    = branch is being set up right now (never removed)
"""
