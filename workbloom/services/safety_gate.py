"""Removal safety rules for worktrees."""

from datetime import datetime, timedelta
from typing import Collection

from workbloom.constants import MIN_WORKTREE_AGE_HOURS
from workbloom.logging_config import get_logger
from workbloom.models.decision import MergeVerdict, RemovalDecision, RemovalReason
from workbloom.models.worktree import WorktreeInfo
from workbloom.services.branch_validation_service import BranchValidationService

logger = get_logger(__name__)


class SafetyGate:
    """Turn a merge verdict into a removal decision.

    Rules, highest priority first:

    1. branch is protected (being set up)       -> ineligible, ACTIVE_SETUP
    2. worktree younger than ``min_age``         -> ineligible, TOO_RECENT
    3. NO_UNIQUE_COMMITS                         -> ineligible, NOTHING_TO_MERGE
    4. merged (merge commit or fast-forward)     -> eligible, MERGED
    5. NOT_MERGED                                -> ineligible UNMERGED, or
                                                    eligible FORCED_UNMERGED with force

    Force only ever overrides rule 5. Rules 1 and 2 cannot be bypassed.
    """

    def __init__(self, min_age: timedelta = timedelta(hours=MIN_WORKTREE_AGE_HOURS)):
        self.min_age = min_age

    def is_too_recent(self, worktree: WorktreeInfo, now: datetime) -> bool:
        """
        Check if a worktree is inside the minimum-age window.

        A worktree whose creation time is unknown counts as recent.

        Args:
            worktree: Worktree to check
            now: Timezone-aware current time

        Returns:
            True if the worktree must not be removed yet
        """
        if worktree.created_at is None:
            return True
        return now - worktree.created_at < self.min_age

    def evaluate(
        self,
        worktree: WorktreeInfo,
        verdict: MergeVerdict,
        now: datetime,
        protected_branches: Collection[str] = (),
        force: bool = False,
    ) -> RemovalDecision:
        """
        Decide whether a worktree may be removed.

        Args:
            worktree: Worktree under evaluation
            verdict: Merge verdict for the worktree's branch
            now: Timezone-aware current time
            protected_branches: Branches that must never be touched
            force: Allow removing worktrees whose branch is not merged

        Returns:
            RemovalDecision carrying the reason for the outcome
        """
        if BranchValidationService.is_protected(worktree.branch_name, protected_branches):
            return RemovalDecision(worktree, verdict, False, RemovalReason.ACTIVE_SETUP, protected=True)

        if self.is_too_recent(worktree, now):
            return RemovalDecision(worktree, verdict, False, RemovalReason.TOO_RECENT, protected=True)

        if verdict == MergeVerdict.NO_UNIQUE_COMMITS:
            return RemovalDecision(worktree, verdict, False, RemovalReason.NOTHING_TO_MERGE)

        if verdict.is_merged:
            return RemovalDecision(worktree, verdict, True, RemovalReason.MERGED)

        if force:
            logger.debug(f"Force requested for unmerged branch {worktree.branch_name}")
            return RemovalDecision(worktree, verdict, True, RemovalReason.FORCED_UNMERGED)

        return RemovalDecision(worktree, verdict, False, RemovalReason.UNMERGED)

    @staticmethod
    def detached(worktree: WorktreeInfo) -> RemovalDecision:
        """Decision for a detached-HEAD worktree, which is never removed."""
        return RemovalDecision(worktree, MergeVerdict.NOT_MERGED, False, RemovalReason.DETACHED)
