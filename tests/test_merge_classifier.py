"""Tests for merge classification."""

from pathlib import Path
from unittest.mock import Mock

import git
import pytest

from conftest import commit_file
from workbloom.exceptions import AmbiguousGitStateError, GitIOError
from workbloom.models.decision import MergeVerdict
from workbloom.services.git.merge_classifier import MergeClassifier
from workbloom.services.git.repository import GitRepository


class TestClassifierWithFakeRepository:
    """Commit-graph cases, main at C2 (C1 <- C2)."""

    def test_branch_at_main_is_no_unique_commits(self, fake_repo):
        fake_repo.set_branch("fresh", "c2", created_at="c2")
        assert MergeClassifier(fake_repo).classify("fresh", "main") == MergeVerdict.NO_UNIQUE_COMMITS

    def test_fresh_branch_behind_main_is_no_unique_commits(self, fake_repo):
        fake_repo.commit("c3", "c2")
        fake_repo.set_branch("main", "c3")
        fake_repo.set_branch("fresh", "c2", created_at="c2")

        assert MergeClassifier(fake_repo).classify("fresh", "main") == MergeVerdict.NO_UNIQUE_COMMITS

    def test_ancestor_without_reflog_stays_no_unique_commits(self, fake_repo):
        fake_repo.commit("b1", "c2")
        fake_repo.commit("c3", "b1")
        fake_repo.set_branch("main", "c3")
        fake_repo.set_branch("feat", "b1", created_at=None)

        assert MergeClassifier(fake_repo).classify("feat", "main") == MergeVerdict.NO_UNIQUE_COMMITS

    def test_merge_commit_with_branch_head_as_side_parent(self, fake_repo):
        fake_repo.commit("b1", "c2")
        fake_repo.commit("m1", "c2", "b1")
        fake_repo.set_branch("main", "m1")
        fake_repo.set_branch("feat", "b1", created_at="c2")

        assert (
            MergeClassifier(fake_repo).classify("feat", "main")
            == MergeVerdict.MERGED_VIA_MERGE_COMMIT
        )

    def test_merge_of_descendant_counts_as_merge_commit(self, fake_repo):
        fake_repo.commit("b1", "c2")
        fake_repo.commit("b2", "b1")
        fake_repo.commit("c3", "c2")
        fake_repo.commit("m1", "c3", "b2")
        fake_repo.set_branch("main", "m1")
        fake_repo.set_branch("feat", "b1", created_at="c2")

        assert (
            MergeClassifier(fake_repo).classify("feat", "main")
            == MergeVerdict.MERGED_VIA_MERGE_COMMIT
        )

    def test_fast_forward_after_main_moved_on(self, fake_repo):
        fake_repo.commit("b1", "c2")
        fake_repo.commit("c3", "b1")
        fake_repo.set_branch("main", "c3")
        fake_repo.set_branch("feat", "b1", created_at="c2")

        assert MergeClassifier(fake_repo).classify("feat", "main") == MergeVerdict.MERGED_FAST_FORWARD

    def test_fast_forward_with_main_still_at_branch_head(self, fake_repo):
        fake_repo.commit("b1", "c2")
        fake_repo.set_branch("main", "b1")
        fake_repo.set_branch("feat", "b1", created_at="c2")

        assert MergeClassifier(fake_repo).classify("feat", "main") == MergeVerdict.MERGED_FAST_FORWARD

    def test_later_merge_whose_first_parent_already_had_branch_is_fast_forward(self, fake_repo):
        fake_repo.commit("b1", "c2")
        fake_repo.commit("x1", "b1")
        fake_repo.commit("m1", "b1", "x1")
        fake_repo.set_branch("main", "m1")
        fake_repo.set_branch("feat", "b1", created_at="c2")

        assert MergeClassifier(fake_repo).classify("feat", "main") == MergeVerdict.MERGED_FAST_FORWARD

    def test_branch_without_own_commits_merged_by_merge_commit(self, fake_repo):
        # Tracking branch created at the remote head B1, merged upstream by M1
        fake_repo.commit("b1", "c2")
        fake_repo.commit("m1", "c2", "b1")
        fake_repo.set_branch("main", "m1")
        fake_repo.set_branch("feat", "b1", created_at="b1")

        assert (
            MergeClassifier(fake_repo).classify("feat", "main")
            == MergeVerdict.MERGED_VIA_MERGE_COMMIT
        )

    def test_expired_reflog_merged_by_merge_commit(self, fake_repo):
        fake_repo.commit("b1", "c2")
        fake_repo.commit("m1", "c2", "b1")
        fake_repo.set_branch("main", "m1")
        fake_repo.set_branch("feat", "b1", created_at=None)

        assert (
            MergeClassifier(fake_repo).classify("feat", "main")
            == MergeVerdict.MERGED_VIA_MERGE_COMMIT
        )

    def test_fresh_branch_is_not_claimed_by_later_merges(self, fake_repo):
        fake_repo.commit("x1", "c2")
        fake_repo.commit("m1", "c2", "x1")
        fake_repo.set_branch("main", "m1")
        fake_repo.set_branch("fresh", "c2", created_at="c2")

        assert MergeClassifier(fake_repo).classify("fresh", "main") == MergeVerdict.NO_UNIQUE_COMMITS

    def test_diverged_branch_is_not_merged(self, fake_repo):
        fake_repo.commit("b1", "c2")
        fake_repo.commit("c3", "c2")
        fake_repo.set_branch("main", "c3")
        fake_repo.set_branch("feat", "b1", created_at="c2")

        assert MergeClassifier(fake_repo).classify("feat", "main") == MergeVerdict.NOT_MERGED

    def test_main_branch_is_never_merged(self, fake_repo):
        assert MergeClassifier(fake_repo).classify("main", "main") == MergeVerdict.NOT_MERGED

    def test_missing_branch_fails_closed(self, fake_repo):
        assert MergeClassifier(fake_repo).classify("ghost", "main") == MergeVerdict.NOT_MERGED

    @pytest.mark.parametrize(
        "error",
        [
            GitIOError("merge-base", "feat", "Permission denied"),
            AmbiguousGitStateError("merge-base", "feat", "exit 128"),
        ],
    )
    def test_git_failure_fails_closed(self, error):
        repository = Mock()
        repository.resolve_commit.side_effect = ["b1", "c2"]
        repository.is_ancestor.side_effect = error

        assert MergeClassifier(repository).classify("feat", "main") == MergeVerdict.NOT_MERGED

    def test_merge_scan_limit_is_passed_through(self, fake_repo):
        fake_repo.commit("b1", "c2")
        fake_repo.commit("m1", "c2", "b1")
        fake_repo.set_branch("main", "m1")
        fake_repo.set_branch("feat", "b1", created_at="c2")
        fake_repo.list_merge_commits = Mock(return_value=[])

        verdict = MergeClassifier(fake_repo, merge_scan_limit=7).classify("feat", "main")

        fake_repo.list_merge_commits.assert_called_once_with("m1", "b1", 7)
        assert verdict == MergeVerdict.MERGED_FAST_FORWARD

    def test_classification_stats(self, fake_repo):
        classifier = MergeClassifier(fake_repo)
        assert classifier.get_classification_stats() == "No branches classified"

        fake_repo.set_branch("fresh", "c2", created_at="c2")
        classifier.classify("fresh", "main")
        classifier.classify("ghost", "main")

        stats = classifier.get_classification_stats()
        assert "Classified 2 branches" in stats
        assert "no-unique-commits: 1" in stats
        assert "not-merged: 1" in stats


class TestClassifierWithRealRepository:
    """The same cases against a real Git repository."""

    def _classify(self, repo, branch):
        return MergeClassifier(GitRepository(repo.working_dir)).classify(branch, "main")

    def test_fresh_branch(self, git_repo):
        git_repo.git.branch("fresh", "main")
        assert self._classify(git_repo, "fresh") == MergeVerdict.NO_UNIQUE_COMMITS

        commit_file(git_repo, "more.txt", "more\n", "Main moves on")
        assert self._classify(git_repo, "fresh") == MergeVerdict.NO_UNIQUE_COMMITS

    def test_no_ff_merge(self, git_repo):
        git_repo.git.checkout("-b", "feature/merged")
        commit_file(git_repo, "feature.txt", "feature\n", "Add feature")
        git_repo.git.checkout("main")
        git_repo.git.merge("feature/merged", "--no-ff", "-m", "Merge feature/merged")

        assert self._classify(git_repo, "feature/merged") == MergeVerdict.MERGED_VIA_MERGE_COMMIT

    def test_fast_forward_merge(self, git_repo):
        git_repo.git.checkout("-b", "feature/ff")
        commit_file(git_repo, "ff.txt", "ff\n", "Add ff")
        git_repo.git.checkout("main")
        git_repo.git.merge("feature/ff", "--ff-only")

        assert self._classify(git_repo, "feature/ff") == MergeVerdict.MERGED_FAST_FORWARD

        commit_file(git_repo, "after.txt", "after\n", "Main moves on")
        assert self._classify(git_repo, "feature/ff") == MergeVerdict.MERGED_FAST_FORWARD

    def test_unmerged_branch(self, git_repo):
        git_repo.git.checkout("-b", "feature/wip")
        commit_file(git_repo, "wip.txt", "wip\n", "WIP")
        git_repo.git.checkout("main")

        assert self._classify(git_repo, "feature/wip") == MergeVerdict.NOT_MERGED

    def test_missing_branch(self, git_repo):
        assert self._classify(git_repo, "does-not-exist") == MergeVerdict.NOT_MERGED

    def test_missing_main(self, git_repo):
        git_repo.git.branch("feat", "main")
        classifier = MergeClassifier(GitRepository(Path(git_repo.working_dir)))
        assert classifier.classify("feat", "trunk") == MergeVerdict.NOT_MERGED

    def test_tracking_branch_merged_upstream(self, git_repo, temp_dir):
        origin = temp_dir / "origin.git"
        git.Repo.init(origin, bare=True)
        git_repo.create_remote("origin", str(origin))
        git_repo.git.push("origin", "main")
        git_repo.git.checkout("-b", "feat")
        commit_file(git_repo, "feat.txt", "feat\n", "Feature")
        git_repo.git.push("origin", "feat")
        git_repo.git.checkout("main")
        git_repo.git.branch("-D", "feat")

        repository = GitRepository(git_repo.working_dir)
        repository.fetch_remote_branch("feat")
        repository.create_tracking_branch("feat")
        assert self._classify(git_repo, "feat") == MergeVerdict.NOT_MERGED

        upstream = git.Repo.clone_from(str(origin), temp_dir / "upstream", branch="main")
        upstream.config_writer().set_value("user", "name", "Upstream User").release()
        upstream.config_writer().set_value("user", "email", "upstream@example.com").release()
        upstream.git.merge("origin/feat", "--no-ff", "-m", "Merge feat")
        upstream.git.push("origin", "main")
        upstream.close()
        git_repo.git.pull("--ff-only", "origin", "main")

        assert self._classify(git_repo, "feat") == MergeVerdict.MERGED_VIA_MERGE_COMMIT
