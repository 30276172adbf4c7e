"""Cleanup decision models: merge verdicts, removal decisions and modes."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from workbloom.constants import PORT_ENV_KEYS
from workbloom.models.worktree import WorktreeInfo


class MergeVerdict(Enum):
    """How (or whether) a branch's work reached main."""
    MERGED_VIA_MERGE_COMMIT = "merged-via-merge-commit"
    MERGED_FAST_FORWARD = "merged-fast-forward"
    NOT_MERGED = "not-merged"
    NO_UNIQUE_COMMITS = "no-unique-commits"

    @property
    def is_merged(self) -> bool:
        return self in (MergeVerdict.MERGED_VIA_MERGE_COMMIT, MergeVerdict.MERGED_FAST_FORWARD)


class RemovalReason(Enum):
    """Why a worktree is (or is not) eligible for removal."""
    ACTIVE_SETUP = "active-setup"
    TOO_RECENT = "too-recent"
    NOTHING_TO_MERGE = "nothing-to-merge"
    MERGED = "merged"
    UNMERGED = "unmerged"
    FORCED_UNMERGED = "forced-unmerged"
    DETACHED = "detached"


class CleanupOutcome(Enum):
    """What the orchestrator did with a decision."""
    REPORTED = "reported"  # status-only, nothing attempted
    KEPT = "kept"  # ineligible
    DECLINED = "declined"  # eligible but refused at the prompt
    REMOVED = "removed"
    FAILED = "failed"


@dataclass
class RemovalDecision:
    """The safety gate's answer for one worktree."""
    worktree: WorktreeInfo
    verdict: MergeVerdict
    eligible: bool
    reason: RemovalReason
    protected: bool = False
    outcome: CleanupOutcome = CleanupOutcome.REPORTED
    error: Optional[str] = None
    branch_deleted: bool = False

    @property
    def branch_name(self) -> str:
        return self.worktree.branch_name

    def key(self) -> tuple:
        """Comparable identity of the decision, ignoring what was done with it."""
        return (self.worktree.path, self.verdict, self.eligible, self.reason, self.protected)


class CleanupKind(Enum):
    """Cleanup mode tags."""
    DEFAULT = "default"
    FORCE = "force"
    PATTERN = "pattern"
    INTERACTIVE = "interactive"
    STATUS_ONLY = "status"


@dataclass(frozen=True)
class CleanupMode:
    """Tagged cleanup mode: Default | Force | Pattern(text) | Interactive | StatusOnly."""
    kind: CleanupKind = CleanupKind.DEFAULT
    pattern: Optional[str] = None

    def __post_init__(self):
        if (self.kind == CleanupKind.PATTERN) != (self.pattern is not None):
            raise ValueError("pattern is required for, and only allowed with, pattern mode")

    @classmethod
    def default(cls) -> "CleanupMode":
        return cls(CleanupKind.DEFAULT)

    @classmethod
    def force(cls) -> "CleanupMode":
        return cls(CleanupKind.FORCE)

    @classmethod
    def matching(cls, pattern: str) -> "CleanupMode":
        return cls(CleanupKind.PATTERN, pattern)

    @classmethod
    def interactive(cls) -> "CleanupMode":
        return cls(CleanupKind.INTERACTIVE)

    @classmethod
    def status_only(cls) -> "CleanupMode":
        return cls(CleanupKind.STATUS_ONLY)

    @property
    def force_unmerged(self) -> bool:
        return self.kind == CleanupKind.FORCE

    @property
    def removes(self) -> bool:
        return self.kind != CleanupKind.STATUS_ONLY

    def __str__(self) -> str:
        if self.kind == CleanupKind.PATTERN:
            return f"pattern({self.pattern})"
        return self.kind.value


@dataclass(frozen=True)
class PortTriple:
    """Deterministic ports for one branch."""
    frontend: int
    backend: int
    database: int

    def as_env(self) -> dict:
        """Environment variable mapping for the worktree's .env file."""
        return {
            PORT_ENV_KEYS["frontend"]: self.frontend,
            PORT_ENV_KEYS["backend"]: self.backend,
            PORT_ENV_KEYS["database"]: self.database,
        }
