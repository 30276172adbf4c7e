"""Tests for the Git repository facade."""

import os
import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path

import git
import pytest

from conftest import commit_file
from workbloom.exceptions import (
    AmbiguousGitStateError,
    GitIOError,
    RefNotFoundError,
    WorktreeNotFoundError,
)
from workbloom.models.branch import UpstreamKind
from workbloom.services.git.repository import (
    GitRepository,
    parse_worktree_porcelain,
    translate_git_error,
    worktree_admin_dirs,
)


class TestParseWorktreePorcelain:
    def test_parses_main_branch_and_detached_entries(self, temp_dir):
        main_path = temp_dir / "repo"
        main_path.mkdir()
        output = (
            f"worktree {main_path}\n"
            "HEAD aaaa\n"
            "branch refs/heads/main\n"
            "\n"
            f"worktree {temp_dir / 'gone'}\n"
            "HEAD bbbb\n"
            "branch refs/heads/feature/x\n"
            "\n"
            f"worktree {temp_dir / 'detached'}\n"
            "HEAD cccc\n"
            "detached\n"
        )

        worktrees = parse_worktree_porcelain(output)

        assert [wt.branch_name for wt in worktrees] == ["main", "feature/x", ""]
        assert [wt.is_main for wt in worktrees] == [True, False, False]
        assert worktrees[0].commit_sha == "aaaa"
        assert not worktrees[0].is_orphaned
        assert worktrees[0].created_at is not None
        assert worktrees[1].is_orphaned
        assert worktrees[1].created_at is None
        assert worktrees[2].is_detached

    def test_entries_without_blank_separator(self):
        output = "worktree /a\nHEAD 1\nbranch refs/heads/main\nworktree /b\nHEAD 2\nbranch refs/heads/x"
        worktrees = parse_worktree_porcelain(output)
        assert [wt.path for wt in worktrees] == ["/a", "/b"]
        assert worktrees[1].branch_name == "x"

    def test_empty_output(self):
        assert parse_worktree_porcelain("") == []


class TestTranslateGitError:
    @pytest.mark.parametrize(
        "stderr, expected",
        [
            ("fatal: bad revision 'nope'", RefNotFoundError),
            ("fatal: 'wt' is not a working tree", RefNotFoundError),
            ("fatal: Unable to create '/r/.git/index.lock': File exists.", GitIOError),
            ("error: cannot open .git/FETCH_HEAD: Permission denied", GitIOError),
            ("fatal: could not read from remote repository.", GitIOError),
            ("fatal: something unexpected", AmbiguousGitStateError),
            ("", AmbiguousGitStateError),
        ],
    )
    def test_classifies_by_stderr(self, stderr, expected):
        error = git.exc.GitCommandError(["git", "op"], 128, stderr)
        translated = translate_git_error("op", error, "ref")
        assert type(translated) is expected
        assert translated.operation == "op"
        assert translated.ref == "ref"

    def test_missing_git_executable(self):
        error = git.exc.GitCommandNotFound("git", "not found")
        assert isinstance(translate_git_error("op", error), GitIOError)

    def test_os_error(self):
        assert isinstance(translate_git_error("op", PermissionError("denied")), GitIOError)

    def test_not_a_repository(self, temp_dir):
        error = git.exc.InvalidGitRepositoryError(str(temp_dir))
        assert isinstance(translate_git_error("open", error), RefNotFoundError)


class TestGitRepositoryQueries:
    def test_branch_exists(self, git_repo):
        repository = GitRepository(git_repo.working_dir)
        assert repository.branch_exists("main")
        assert not repository.branch_exists("nope")

    def test_resolve_commit(self, git_repo):
        repository = GitRepository(git_repo.working_dir)
        assert repository.resolve_commit("main") == git_repo.head.commit.hexsha
        with pytest.raises(RefNotFoundError):
            repository.resolve_commit("refs/heads/nope")

    def test_ancestry_and_unique_commits(self, git_repo):
        repository = GitRepository(git_repo.working_dir)
        base = git_repo.head.commit.hexsha
        git_repo.git.checkout("-b", "feat")
        tip = commit_file(git_repo, "f.txt", "f\n", "Feature")
        git_repo.git.checkout("main")

        assert repository.is_ancestor(base, tip)
        assert not repository.is_ancestor(tip, base)
        assert repository.is_ancestor(base, base)
        assert repository.merge_base("main", "feat") == base
        assert repository.unique_commits("feat", "main") == [tip]
        assert repository.unique_commits("main", "feat") == []

    def test_branch_creation_point(self, git_repo):
        repository = GitRepository(git_repo.working_dir)
        base = git_repo.head.commit.hexsha
        repository.create_branch("feat", "main")
        assert repository.branch_creation_point("feat") == base
        assert repository.branch_creation_point("nope") is None

    def test_list_merge_commits(self, git_repo):
        repository = GitRepository(git_repo.working_dir)
        git_repo.git.checkout("-b", "feat")
        tip = commit_file(git_repo, "f.txt", "f\n", "Feature")
        git_repo.git.checkout("main")
        git_repo.git.merge("feat", "--no-ff", "-m", "Merge feat")

        merges = repository.list_merge_commits("main", tip, 10)

        assert len(merges) == 1
        assert merges[0].sha == git_repo.head.commit.hexsha
        assert merges[0].parents[1] == tip

    def test_get_branch_without_upstream(self, git_repo):
        branch = GitRepository(git_repo.working_dir).get_branch("main")
        assert branch.name == "main"
        assert branch.head == git_repo.head.commit.hexsha
        assert branch.upstream == UpstreamKind.NONE
        assert branch.upstream_ref is None

    def test_no_remote(self, git_repo):
        repository = GitRepository(git_repo.working_dir)
        assert not repository.has_remote()
        assert not repository.remote_branch_exists("anything")


class TestGitRepositoryRemote:
    @pytest.fixture
    def repo_with_origin(self, git_repo, temp_dir):
        git.Repo.init(temp_dir / "origin.git", bare=True)
        git_repo.create_remote("origin", str(temp_dir / "origin.git"))
        git_repo.git.push("origin", "main:refs/heads/main")
        git_repo.git.push("origin", "main:refs/heads/remote-only")
        return git_repo

    def test_remote_branch_exists(self, repo_with_origin):
        repository = GitRepository(repo_with_origin.working_dir)
        assert repository.has_remote()
        assert repository.remote_branch_exists("remote-only")
        assert not repository.remote_branch_exists("nope")

    def test_fetch_and_track(self, repo_with_origin):
        repository = GitRepository(repo_with_origin.working_dir)
        repository.fetch_remote_branch("remote-only")
        assert "remote-only" in repository.list_remote_branches()

        repository.create_tracking_branch("remote-only")

        branch = repository.get_branch("remote-only")
        assert branch.upstream == UpstreamKind.REMOTE
        assert branch.upstream_ref == "origin/remote-only"
        assert "remote-only" in repository.list_local_branches()


class TestGitRepositoryWorktrees:
    def test_add_list_find_remove(self, git_repo, temp_dir):
        repository = GitRepository(git_repo.working_dir)
        wt_path = temp_dir / "wt-feat"
        repository.create_branch("feat/x", "main")
        repository.add_worktree(wt_path, "feat/x")

        worktrees = repository.list_worktrees()
        assert worktrees[0].is_main
        assert Path(worktrees[0].path) == Path(git_repo.working_dir)

        found = repository.find_worktree("feat/x")
        assert found is not None
        assert Path(found.path) == wt_path
        assert not found.is_orphaned
        assert datetime.now(timezone.utc) - found.created_at < timedelta(minutes=5)

        repository.remove_worktree(wt_path)
        assert repository.find_worktree("feat/x") is None
        assert not wt_path.exists()

        with pytest.raises(WorktreeNotFoundError):
            repository.remove_worktree(wt_path)

    def test_has_tracked_changes_ignores_untracked(self, git_repo, temp_dir):
        repository = GitRepository(git_repo.working_dir)
        wt_path = temp_dir / "wt-dirty"
        repository.create_branch("dirty", "main")
        repository.add_worktree(wt_path, "dirty")

        (wt_path / ".env").write_text("FRONTEND_PORT=1\n")
        assert not repository.has_tracked_changes(wt_path)

        (wt_path / "README.md").write_text("changed\n")
        assert repository.has_tracked_changes(wt_path)

    def test_delete_branch(self, git_repo):
        repository = GitRepository(git_repo.working_dir)
        repository.create_branch("gone", "main")
        repository.delete_branch("gone", force=True)
        assert not repository.branch_exists("gone")

    def test_discover_from_worktree_finds_main_checkout(self, git_repo, temp_dir):
        repository = GitRepository(git_repo.working_dir)
        wt_path = temp_dir / "wt-discover"
        repository.create_branch("discover", "main")
        repository.add_worktree(wt_path, "discover")

        discovered = GitRepository.discover(wt_path)

        assert discovered.root_dir == Path(git_repo.working_dir)

    def test_discover_outside_repository(self, temp_dir):
        with pytest.raises(RefNotFoundError):
            GitRepository.discover(temp_dir)

    def test_prune_removes_orphaned_metadata(self, git_repo, temp_dir):
        repository = GitRepository(git_repo.working_dir)
        wt_path = temp_dir / "wt-orphan"
        repository.create_branch("orphan", "main")
        repository.add_worktree(wt_path, "orphan")
        shutil.rmtree(wt_path)

        orphan = repository.find_worktree("orphan")
        assert orphan.is_orphaned
        assert datetime.now(timezone.utc) - orphan.created_at < timedelta(minutes=5)
        repository.prune_worktrees()
        assert repository.find_worktree("orphan") is None

    def test_admin_dirs_map_worktree_paths(self, git_repo, temp_dir):
        repository = GitRepository(git_repo.working_dir)
        wt_path = temp_dir / "wt-admin"
        repository.create_branch("admin", "main")
        repository.add_worktree(wt_path, "admin")

        admin_dirs = worktree_admin_dirs(git_repo.common_dir)

        admin_dir = admin_dirs[os.path.normpath(str(wt_path))]
        assert (admin_dir / "gitdir").is_file()
        assert admin_dir.parent == Path(git_repo.common_dir) / "worktrees"

    def test_admin_dirs_without_linked_worktrees(self, git_repo):
        assert worktree_admin_dirs(git_repo.common_dir) == {}
