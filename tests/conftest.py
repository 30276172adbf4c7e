"""Pytest fixtures for workbloom tests"""
import tempfile
from collections import deque
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import Mock

import git
import pytest

from workbloom.config import Config
from workbloom.exceptions import GitIOError, RefNotFoundError, WorktreeNotFoundError
from workbloom.models.worktree import WorktreeInfo
from workbloom.services.git.repository import MergeCommit
from workbloom.services.session_service import SessionService

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def commit_file(repo: git.Repo, name: str, content: str, message: str) -> str:
    """Write a file in ``repo``'s working tree and commit it. Returns the new SHA."""
    path = Path(repo.working_tree_dir) / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    repo.index.add([name])
    return repo.index.commit(message).hexsha


class FakeRepository:
    """In-memory stand-in for GitRepository.

    Commits form a DAG given by ``parents``; branches map to SHAs and
    optionally to the SHA they were created at (their reflog creation point).
    """

    def __init__(self, root: str = "/fake/repo"):
        self.root_dir = Path(root)
        self.parents = {}
        self.refs = {}
        self.creation_points = {}
        self.worktrees = []
        self.dirty = set()
        self.fail_remove = set()
        self.removed = []
        self.deleted_branches = []
        self.prune_count = 0

    # -- building the graph --------------------------------------------

    def commit(self, sha: str, *parents: str) -> str:
        self.parents[sha] = tuple(parents)
        return sha

    def set_branch(self, name: str, head: str, created_at=None):
        self.refs[name] = head
        self.creation_points[name] = created_at

    def add_worktree_for(self, branch: str, hours_old: float = 48, **kwargs) -> WorktreeInfo:
        created_at = None if hours_old is None else NOW - timedelta(hours=hours_old)
        info = WorktreeInfo(
            path=str(self.root_dir / f"worktree-{branch.replace('/', '-')}"),
            branch_name=branch,
            commit_sha=self.refs.get(branch, ""),
            is_main=False,
            is_orphaned=kwargs.get("is_orphaned", False),
            is_detached=kwargs.get("is_detached", False),
            created_at=created_at,
        )
        self.worktrees.append(info)
        return info

    # -- facade ---------------------------------------------------------

    def _ancestors(self, sha: str) -> list:
        seen = []
        queue = deque([sha])
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.append(current)
            queue.extend(self.parents.get(current, ()))
        return seen

    def resolve_commit(self, ref: str) -> str:
        name = ref[len("refs/heads/"):] if ref.startswith("refs/heads/") else ref
        if name not in self.refs:
            raise RefNotFoundError("rev-parse", ref, "Ref not found")
        return self.refs[name]

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        return ancestor in self._ancestors(descendant)

    def branch_creation_point(self, name: str):
        return self.creation_points.get(name)

    def list_merge_commits(self, tip: str, exclude: str, limit: int):
        excluded = set(self._ancestors(exclude))
        merges = [
            MergeCommit(sha, self.parents[sha])
            for sha in self._ancestors(tip)
            if sha not in excluded and len(self.parents.get(sha, ())) > 1
        ]
        return merges[:limit]

    def list_worktrees(self):
        main = WorktreeInfo(
            path=str(self.root_dir),
            branch_name="main",
            commit_sha=self.refs.get("main", ""),
            is_main=True,
            is_orphaned=False,
            created_at=NOW - timedelta(days=365),
        )
        return [main] + list(self.worktrees)

    def find_worktree(self, branch_name: str):
        return next((wt for wt in self.worktrees if wt.branch_name == branch_name), None)

    def has_tracked_changes(self, path) -> bool:
        return str(path) in self.dirty

    def remove_worktree(self, path, force=False):
        path = str(path)
        if path in self.fail_remove:
            raise GitIOError("worktree remove", path, "Permission denied")
        if not any(wt.path == path for wt in self.worktrees):
            raise WorktreeNotFoundError(path)
        self.removed.append((path, force))
        self.worktrees = [wt for wt in self.worktrees if wt.path != path]

    def delete_branch(self, name: str, force: bool = False):
        self.deleted_branches.append(name)
        self.refs.pop(name, None)

    def prune_worktrees(self):
        self.prune_count += 1


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def mock_config():
    """Configuration used by orchestrator tests."""
    return Config(use_tmux=False, cleanup_before_setup=False)


@pytest.fixture
def git_repo(temp_dir):
    """Create a real Git repository with one commit on main."""
    repo_path = temp_dir / "test_repo"
    repo_path.mkdir()

    repo = git.Repo.init(repo_path)

    # Configure git user for commits
    repo.config_writer().set_value("user", "name", "Test User").release()
    repo.config_writer().set_value("user", "email", "test@example.com").release()

    commit_file(repo, "README.md", "# Test Repository\n", "Initial commit")

    # Rename master to main if needed
    repo.git.branch("-M", "main")

    yield repo

    repo.close()


@pytest.fixture
def fake_repo():
    """Fake repository with main at C2 (C1 <- C2)."""
    repo = FakeRepository()
    repo.commit("c1")
    repo.commit("c2", "c1")
    repo.set_branch("main", "c2")
    return repo


@pytest.fixture
def mock_sessions():
    """Session collaborator that never touches tmux."""
    sessions = Mock(spec=SessionService)
    sessions.teardown.return_value = False
    return sessions
