"""Worktree cleanup for workbloom"""

import fnmatch
from datetime import datetime, timedelta, timezone
from typing import Callable, Collection, List, Optional, Tuple

from workbloom.config import Config
from workbloom.exceptions import WorkbloomError
from workbloom.logging_config import get_logger
from workbloom.models.decision import (
    CleanupKind,
    CleanupMode,
    CleanupOutcome,
    RemovalDecision,
    RemovalReason,
)
from workbloom.models.worktree import WorktreeInfo
from workbloom.services.branch_validation_service import BranchValidationService
from workbloom.services.git.merge_classifier import MergeClassifier
from workbloom.services.git.repository import GitRepository
from workbloom.services.safety_gate import SafetyGate
from workbloom.services.session_service import SessionService, session_name

logger = get_logger(__name__)

ConfirmCallback = Callable[[RemovalDecision], bool]

GLOB_CHARS = set("*?[")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def matches_pattern(worktree: WorktreeInfo, pattern: str) -> bool:
    """Whether a worktree's branch or directory name matches a cleanup pattern.

    Patterns with glob characters use fnmatch, anything else is a substring match.
    """
    candidates = [worktree.branch_name, worktree.dir_name]
    if GLOB_CHARS & set(pattern):
        return any(name and fnmatch.fnmatchcase(name, pattern) for name in candidates)
    return any(name and pattern in name for name in candidates)


class CleanupOrchestrator:
    """Sweep worktrees, decide which may go and remove the approved ones."""

    def __init__(
        self,
        repository: GitRepository,
        config: Optional[Config] = None,
        classifier: Optional[MergeClassifier] = None,
        gate: Optional[SafetyGate] = None,
        sessions: Optional[SessionService] = None,
        confirm: Optional[ConfirmCallback] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        """Initialize the orchestrator.

        Args:
            repository: Repository facade
            config: Configuration; defaults are used when omitted
            classifier: Merge classifier, built from the repository when omitted
            gate: Safety gate, built from ``config.min_age_hours`` when omitted
            sessions: Session collaborator used to tear down tmux sessions
            confirm: Callback asked before each removal in interactive mode
            clock: Returns the current timezone-aware time
        """
        self.repository = repository
        self.config = config or Config()
        self.classifier = classifier or MergeClassifier(repository, self.config.merge_scan_limit)
        self.gate = gate or SafetyGate(timedelta(hours=self.config.min_age_hours))
        self.sessions = sessions or SessionService()
        self.confirm = confirm
        self.clock = clock

    def evaluate(
        self, mode: CleanupMode, protected_branches: Collection[str] = ()
    ) -> List[RemovalDecision]:
        """Decide for every candidate worktree without touching anything.

        Args:
            mode: Cleanup mode; pattern mode narrows the candidates first
            protected_branches: Branches that must never be removed

        Returns:
            One decision per candidate, in ``git worktree list`` order

        Raises:
            InvalidPatternError: the pattern of a pattern-mode run is unusable
        """
        pattern = None
        if mode.kind == CleanupKind.PATTERN:
            pattern = BranchValidationService.validate_pattern(mode.pattern)

        now = self.clock()
        main_branch = self.config.main_branch
        decisions: List[RemovalDecision] = []

        for worktree in self.repository.list_worktrees():
            if worktree.is_main or (worktree.branch_name and worktree.branch_name == main_branch):
                logger.debug(f"Skipping {worktree.path}: main checkout")
                continue

            if pattern is not None and not matches_pattern(worktree, pattern):
                logger.debug(f"Skipping {worktree.dir_name}: does not match {pattern!r}")
                continue

            if worktree.is_detached or not worktree.branch_name:
                decisions.append(self.gate.detached(worktree))
                continue

            verdict = self.classifier.classify(worktree.branch_name, main_branch)
            decision = self.gate.evaluate(
                worktree,
                verdict,
                now,
                protected_branches=protected_branches,
                force=mode.force_unmerged,
            )
            logger.debug(
                f"{worktree.branch_name}: verdict={verdict.value} "
                f"eligible={decision.eligible} reason={decision.reason.value}"
            )
            decisions.append(decision)

        if self.config.debug:
            logger.debug(self.classifier.get_classification_stats())

        return decisions

    def run(
        self, mode: Optional[CleanupMode] = None, protected_branches: Collection[str] = ()
    ) -> List[RemovalDecision]:
        """Evaluate all candidates and apply ``mode`` to them.

        A failing removal is marked FAILED and the sweep continues.

        Returns:
            Every decision, each carrying what was done with it
        """
        mode = mode or CleanupMode.default()
        logger.info(f"Running cleanup in {mode} mode")
        decisions = self.evaluate(mode, protected_branches)

        if not mode.removes:
            return decisions

        removed_any = False
        for decision in decisions:
            if not decision.eligible:
                decision.outcome = CleanupOutcome.KEPT
                continue

            if mode.kind == CleanupKind.INTERACTIVE and not self._confirmed(decision):
                decision.outcome = CleanupOutcome.DECLINED
                continue

            success, error = self._remove_one(decision)
            if success:
                decision.outcome = CleanupOutcome.REMOVED
                removed_any = True
            else:
                decision.outcome = CleanupOutcome.FAILED
                decision.error = error

        if removed_any:
            try:
                self.repository.prune_worktrees()
            except WorkbloomError as e:
                logger.warning(f"Could not prune worktree metadata: {e}")

        return decisions

    def _confirmed(self, decision: RemovalDecision) -> bool:
        if self.confirm is None:
            logger.warning("Interactive cleanup without a confirmation callback, skipping")
            return False
        return bool(self.confirm(decision))

    def _remove_one(self, decision: RemovalDecision) -> Tuple[bool, Optional[str]]:
        """Remove one approved worktree, its merged branch and its session.

        Returns:
            Tuple of (success, error_message). error_message is None on success.
        """
        worktree = decision.worktree
        forced = decision.reason == RemovalReason.FORCED_UNMERGED

        try:
            if worktree.is_orphaned:
                # Directory is already gone; dropping the metadata frees the branch
                logger.info(f"Pruning orphaned worktree {worktree.path}")
                self.repository.prune_worktrees()
            else:
                if not forced and self.repository.has_tracked_changes(worktree.path):
                    logger.warning(f"Keeping {worktree.dir_name}: uncommitted changes to tracked files")
                    return False, "uncommitted changes to tracked files"
                # Untracked files copied in at setup would make a plain remove refuse
                self.repository.remove_worktree(worktree.path, force=True)
        except WorkbloomError as e:
            logger.error(f"Failed to remove {worktree.dir_name}: {e}")
            return False, str(e)

        logger.info(f"Removed worktree {worktree.dir_name} ({decision.reason.value})")
        self.sessions.teardown(session_name(self.repository.root_dir, worktree.dir_name))

        if decision.reason == RemovalReason.MERGED:
            try:
                self.repository.delete_branch(worktree.branch_name, force=True)
            except WorkbloomError as e:
                logger.error(f"Worktree removed but branch {worktree.branch_name} was kept: {e}")
                return False, f"branch deletion failed: {e}"
            decision.branch_deleted = True

        return True, None
