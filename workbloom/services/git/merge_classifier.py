"""Merge classification service for workbloom."""

from typing import Dict, Optional, TYPE_CHECKING

from workbloom.constants import MERGE_SCAN_LIMIT
from workbloom.exceptions import GitOperationError
from workbloom.logging_config import get_logger
from workbloom.models.decision import MergeVerdict

if TYPE_CHECKING:
    from workbloom.services.git.repository import GitRepository

logger = get_logger(__name__)


class MergeClassifier:
    """Decide whether a branch's work is preserved in main.

    The checks run in a fixed order. "No unique commits" is decided before any
    "merged" check because an untouched branch is trivially an ancestor of
    main and would otherwise look fast-forward merged.
    """

    def __init__(self, repository: "GitRepository", merge_scan_limit: int = MERGE_SCAN_LIMIT):
        """Initialize the classifier.

        Args:
            repository: Repository facade (real or in-memory)
            merge_scan_limit: Maximum merge commits on main to inspect per branch
        """
        self.repository = repository
        self.merge_scan_limit = merge_scan_limit
        self.classification_stats: Dict[MergeVerdict, int] = {verdict: 0 for verdict in MergeVerdict}

    def get_classification_stats(self) -> str:
        """Summary of how many branches received each verdict."""
        total = sum(self.classification_stats.values())
        if total == 0:
            return "No branches classified"

        parts = [
            f"{verdict.value}: {count}"
            for verdict, count in self.classification_stats.items()
            if count > 0
        ]
        return f"Classified {total} branches ({', '.join(parts)})"

    def _record(self, verdict: MergeVerdict) -> MergeVerdict:
        self.classification_stats[verdict] += 1
        return verdict

    def classify(self, branch_name: str, main_branch: str) -> MergeVerdict:
        """Classify the merge state of ``branch_name`` relative to ``main_branch``.

        Any Git failure yields NOT_MERGED so nothing is deleted on uncertainty.
        """
        if branch_name == main_branch:
            logger.debug(f"Skipping merge check: {branch_name} is the main branch")
            return self._record(MergeVerdict.NOT_MERGED)

        try:
            return self._record(self._classify(branch_name, main_branch))
        except GitOperationError as e:
            logger.warning(f"Could not classify {branch_name}, treating as not merged: {e}")
            return self._record(MergeVerdict.NOT_MERGED)

    def _classify(self, branch_name: str, main_branch: str) -> MergeVerdict:
        branch_head = self.repository.resolve_commit(f"refs/heads/{branch_name}")
        main_head = self.repository.resolve_commit(main_branch)

        logger.debug(f"[Step 1] Checking {branch_name} for commits of its own...")
        is_ancestor = branch_head == main_head or self.repository.is_ancestor(branch_head, main_head)
        if is_ancestor and not self._has_own_commits(branch_name, branch_head):
            # A tracking branch, or one whose reflog expired, can still have been merged
            merge_sha = self._find_merge_commit(branch_head, main_head, exact=True)
            if merge_sha:
                logger.debug(f"[Step 1] {branch_name} head was brought in by {merge_sha[:7]}")
                return MergeVerdict.MERGED_VIA_MERGE_COMMIT
            logger.debug(f"[Step 1] {branch_name} never moved past its creation point")
            return MergeVerdict.NO_UNIQUE_COMMITS

        if not is_ancestor:
            # Work not reachable from main cannot have been merged into it
            logger.debug(f"{branch_name} has commits not in {main_branch}")
            return MergeVerdict.NOT_MERGED

        logger.debug(f"[Step 2] Looking for a merge commit of {branch_name}...")
        merge_sha = self._find_merge_commit(branch_head, main_head)
        if merge_sha:
            logger.debug(f"[Step 2] {branch_name} merged by {merge_sha[:7]}")
            return MergeVerdict.MERGED_VIA_MERGE_COMMIT

        logger.debug(f"[Step 3] {branch_name} is an ancestor of {main_branch} without a merge commit")
        return MergeVerdict.MERGED_FAST_FORWARD

    def _has_own_commits(self, branch_name: str, branch_head: str) -> bool:
        """Whether the branch ever advanced beyond the commit it was created at.

        Without a reflog there is no evidence of own work, which keeps the
        branch on the ineligible NO_UNIQUE_COMMITS side.
        """
        creation_point: Optional[str] = self.repository.branch_creation_point(branch_name)
        if creation_point is None:
            logger.debug(f"No creation point recorded for {branch_name}")
            return False
        return creation_point != branch_head

    def _find_merge_commit(
        self, branch_head: str, main_head: str, exact: bool = False
    ) -> Optional[str]:
        """Find a merge commit on main that brought ``branch_head`` in through a side parent.

        A side parent qualifies when it is the branch head (or, unless ``exact``,
        a descendant of it), and the merge's first parent did not already
        contain the branch.
        """
        merges = self.repository.list_merge_commits(main_head, branch_head, self.merge_scan_limit)
        for merge in merges:
            first_parent, side_parents = merge.parents[0], merge.parents[1:]
            for parent in side_parents:
                if parent != branch_head:
                    if exact or not self.repository.is_ancestor(branch_head, parent):
                        continue
                if self.repository.is_ancestor(branch_head, first_parent):
                    continue
                return merge.sha
        return None
