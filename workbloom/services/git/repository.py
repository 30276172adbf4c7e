"""Git repository facade for workbloom.

Every read and mutation the decision engine needs goes through
:class:`GitRepository`. GitPython errors are translated into the typed
exceptions in :mod:`workbloom.exceptions` so callers can tell "not found"
from "I/O or permission" from "ambiguous state".
"""

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional, Union

import git

from workbloom.exceptions import (
    AmbiguousGitStateError,
    GitIOError,
    GitOperationError,
    RefNotFoundError,
    WorktreeNotFoundError,
)
from workbloom.logging_config import get_logger
from workbloom.models.branch import Branch, UpstreamKind
from workbloom.models.worktree import WorktreeInfo

logger = get_logger(__name__)

NOT_FOUND_MARKERS = (
    "not a valid object name",
    "not a valid ref",
    "unknown revision",
    "bad revision",
    "invalid reference",
    "needed a single revision",
    "no such ref",
    "couldn't find remote ref",
    "is not a working tree",
    "does not exist",
    "not found",
)

IO_MARKERS = (
    "permission denied",
    "read-only file system",
    "unable to create",
    "unable to write",
    "cannot lock ref",
    "could not lock",
    "input/output error",
    "no space left",
    "could not read from remote",
    "could not resolve host",
    "connection refused",
    "connection timed out",
)


class MergeCommit(NamedTuple):
    """A merge commit and its parents, first parent first."""

    sha: str
    parents: tuple


def _stderr_of(error: git.exc.GitCommandError) -> str:
    stderr = error.stderr if hasattr(error, "stderr") else str(error)
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf-8", errors="ignore")
    stderr = (stderr or "").strip()
    # GitPython wraps stderr as "  stderr: 'fatal: ...'"
    if stderr.startswith("stderr:"):
        stderr = stderr[len("stderr:"):].strip()
    return stderr.strip("'").strip()


def translate_git_error(
    operation: str, error: Exception, ref: Optional[str] = None
) -> GitOperationError:
    """Map a GitPython/OS error onto the workbloom error taxonomy.

    Args:
        operation: Git operation that failed (used in the message)
        error: The caught exception
        ref: Branch, commit or path the operation was about

    Returns:
        A RefNotFoundError, GitIOError or AmbiguousGitStateError
    """
    if isinstance(error, git.exc.GitCommandNotFound):
        return GitIOError(operation, ref, "git executable not found")
    if isinstance(error, (git.exc.NoSuchPathError, git.exc.InvalidGitRepositoryError)):
        return RefNotFoundError(operation, ref, f"not a git repository: {error}")
    if isinstance(error, OSError):
        return GitIOError(operation, ref, str(error))
    if not isinstance(error, git.exc.GitCommandError):
        return AmbiguousGitStateError(operation, ref, str(error))

    stderr = _stderr_of(error)
    status = error.status if hasattr(error, "status") else "unknown"
    lowered = stderr.lower()

    if stderr:
        message = f"exit {status}: {stderr}"
    else:
        message = f"exit code {status}"

    if any(marker in lowered for marker in IO_MARKERS):
        return GitIOError(operation, ref, message)
    if any(marker in lowered for marker in NOT_FOUND_MARKERS):
        return RefNotFoundError(operation, ref, message)
    return AmbiguousGitStateError(operation, ref, message)


def worktree_created_at(
    path: Union[str, Path], admin_dir: Optional[Path] = None
) -> Optional[datetime]:
    """Creation time of a worktree derived from filesystem metadata.

    The ``.git`` pointer file is written once by ``git worktree add`` and never
    touched again, so its timestamp is the best durable signal. The directory
    itself is the next fallback; its mtime only ever makes a worktree look
    younger. When the directory is gone, the worktree's administrative
    directory under ``<common-dir>/worktrees/`` still dates it.

    Returns:
        Timezone-aware UTC datetime, or None if nothing can be stat'ed
    """
    root = Path(path)
    candidates = [root / ".git", root]
    if admin_dir is not None:
        candidates.extend([admin_dir / "commondir", admin_dir / "gitdir", admin_dir])
    for candidate in candidates:
        try:
            stat = candidate.stat()
        except OSError:
            continue
        timestamp = getattr(stat, "st_birthtime", None) or stat.st_mtime
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return None


def worktree_admin_dirs(common_dir: Union[str, Path]) -> Dict[str, Path]:
    """Map each linked worktree path to its ``<common-dir>/worktrees/<id>`` directory.

    The ``gitdir`` file of each entry holds the path of the worktree's ``.git``
    file, which stays readable after the worktree directory is deleted.
    """
    admin_root = Path(common_dir) / "worktrees"
    if not admin_root.is_dir():
        return {}

    admin_dirs: Dict[str, Path] = {}
    for entry in admin_root.iterdir():
        try:
            gitdir = (entry / "gitdir").read_text(encoding="utf-8").strip()
        except OSError:
            continue
        if gitdir:
            admin_dirs[os.path.normpath(os.path.dirname(gitdir))] = entry
    return admin_dirs


def parse_worktree_porcelain(
    output: str, admin_dirs: Optional[Dict[str, Path]] = None
) -> List[WorktreeInfo]:
    """Parse ``git worktree list --porcelain`` output.

    Format::

        worktree /path/to/worktree
        HEAD commit_sha
        branch refs/heads/branch-name
        (blank line between worktrees)

    The first entry is always the main working tree. ``admin_dirs`` (see
    :func:`worktree_admin_dirs`) dates worktrees whose directory is gone.
    """
    admin_dirs = admin_dirs or {}
    worktree_list: List[WorktreeInfo] = []
    current: Dict[str, Any] = {}

    def flush():
        path = current.get("path", "")
        if not path:
            return
        worktree_list.append(
            WorktreeInfo(
                path=path,
                branch_name=current.get("branch", ""),
                commit_sha=current.get("HEAD", ""),
                is_main=not worktree_list,
                is_orphaned=not os.path.exists(path),
                is_detached=current.get("detached", False),
                created_at=worktree_created_at(path, admin_dirs.get(os.path.normpath(path))),
            )
        )

    for line in output.split("\n"):
        line = line.strip()

        if not line:
            flush()
            current = {}
            continue

        if line.startswith("worktree "):
            # A new entry without a blank separator still starts a new worktree
            if current.get("path"):
                flush()
                current = {}
            current["path"] = line.split(" ", 1)[1]
        elif line.startswith("HEAD "):
            current["HEAD"] = line.split(" ", 1)[1]
        elif line.startswith("branch "):
            branch_ref = line.split(" ", 1)[1]
            if branch_ref.startswith("refs/heads/"):
                current["branch"] = branch_ref[len("refs/heads/"):]
            else:
                current["branch"] = ""
        elif line == "detached":
            current["branch"] = ""
            current["detached"] = True

    # Handle last entry if no trailing blank line
    flush()
    return worktree_list


class GitRepository:
    """Narrow read/mutate interface over a Git repository."""

    def __init__(self, repo_path: Union[str, Path], remote_name: str = "origin"):
        """Initialize the facade.

        Args:
            repo_path: Path to the main checkout of the repository
            remote_name: Remote used for remote-only branches
        """
        self.repo_path = str(repo_path)
        self.remote_name = remote_name

    @classmethod
    def discover(
        cls, start_path: Optional[Union[str, Path]] = None, remote_name: str = "origin"
    ) -> "GitRepository":
        """Locate the main checkout from anywhere inside the repository or its worktrees."""
        start = str(start_path or os.getcwd())
        try:
            repo = git.Repo(start, search_parent_directories=True)
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError) as e:
            raise translate_git_error("discover", e, start) from e

        try:
            output = repo.git.worktree("list", "--porcelain")
            for line in output.split("\n"):
                if line.startswith("worktree "):
                    return cls(line.split(" ", 1)[1], remote_name)
        except git.exc.GitCommandError as e:
            logger.debug(f"worktree list failed during discovery, using toplevel: {e}")

        toplevel = repo.git.rev_parse("--show-toplevel")
        return cls(toplevel, remote_name)

    @property
    def root_dir(self) -> Path:
        return Path(self.repo_path)

    def _get_repo(self) -> git.Repo:
        """Get a fresh git.Repo instance.

        GitPython repos are lightweight - they don't clone, just open the existing repo.
        """
        try:
            return git.Repo(self.repo_path)
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError) as e:
            raise translate_git_error("open_repository", e, self.repo_path) from e

    def _run(self, command: str, *args: str, ref: Optional[str] = None) -> str:
        """Run ``git <command> <args>`` and translate failures."""
        try:
            return getattr(self._get_repo().git, command)(*args)
        except (git.exc.GitCommandError, git.exc.GitCommandNotFound, OSError) as e:
            raise translate_git_error(command, e, ref) from e

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def branch_exists(self, branch_name: str) -> bool:
        """Check if a local branch exists."""
        try:
            self._get_repo().git.show_ref("--verify", "--quiet", f"refs/heads/{branch_name}")
            return True
        except git.exc.GitCommandError as e:
            if e.status == 1:
                return False
            raise translate_git_error("show-ref", e, branch_name) from e

    def has_remote(self) -> bool:
        return self.remote_name in [remote.name for remote in self._get_repo().remotes]

    def remote_branch_exists(self, branch_name: str) -> bool:
        """Check whether the branch exists on the remote.

        Known remote-tracking refs are checked first; otherwise the remote is
        asked with ``ls-remote``. A repository without the remote has no
        remote branches.
        """
        if not self.has_remote():
            logger.debug(f"No remote named {self.remote_name}")
            return False

        if branch_name in self.list_remote_branches():
            return True

        try:
            self._get_repo().git.ls_remote(
                "--exit-code", "--heads", self.remote_name, f"refs/heads/{branch_name}"
            )
            return True
        except git.exc.GitCommandError as e:
            # --exit-code returns 2 when nothing matched
            if e.status == 2:
                return False
            raise translate_git_error("ls-remote", e, branch_name) from e

    def list_local_branches(self) -> List[str]:
        output = self._run("for_each_ref", "--format=%(refname:short)", "refs/heads")
        return [line.strip() for line in output.splitlines() if line.strip()]

    def list_remote_branches(self) -> List[str]:
        """Branch names known under refs/remotes/<remote>, without the remote prefix."""
        prefix = f"refs/remotes/{self.remote_name}/"
        output = self._run("for_each_ref", "--format=%(refname)", prefix)
        names = []
        for line in output.splitlines():
            line = line.strip()
            if line.startswith(prefix) and line != f"{prefix}HEAD":
                names.append(line[len(prefix):])
        return names

    def resolve_commit(self, ref: str) -> str:
        """Resolve a ref to a full commit SHA.

        Raises:
            RefNotFoundError: the ref does not name a commit
        """
        try:
            return self._get_repo().git.rev_parse("--verify", "--quiet", f"{ref}^{{commit}}").strip()
        except git.exc.GitCommandError as e:
            # --quiet exits 1 with no stderr when the ref is missing
            if e.status == 1 and not _stderr_of(e):
                raise RefNotFoundError("rev-parse", ref, "Ref not found") from e
            raise translate_git_error("rev-parse", e, ref) from e

    def get_branch(self, branch_name: str) -> Branch:
        """Observe a local branch: head commit and upstream."""
        head = self.resolve_commit(f"refs/heads/{branch_name}")
        upstream = self._run(
            "for_each_ref", "--format=%(upstream:short)", f"refs/heads/{branch_name}", ref=branch_name
        ).strip()

        if not upstream:
            kind = UpstreamKind.NONE
        elif upstream.startswith(f"{self.remote_name}/"):
            kind = UpstreamKind.REMOTE
        else:
            kind = UpstreamKind.LOCAL_ONLY

        return Branch(name=branch_name, head=head, upstream=kind, upstream_ref=upstream or None)

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        """True if ``ancestor`` is reachable from ``descendant`` (a commit is its own ancestor)."""
        try:
            self._get_repo().git.merge_base("--is-ancestor", ancestor, descendant)
            return True
        except git.exc.GitCommandError as e:
            if e.status == 1:
                return False
            raise translate_git_error("merge-base", e, f"{ancestor}..{descendant}") from e

    def merge_base(self, first: str, second: str) -> Optional[str]:
        """Best common ancestor, or None when the histories are unrelated."""
        try:
            return self._get_repo().git.merge_base(first, second).strip() or None
        except git.exc.GitCommandError as e:
            if e.status == 1 and not _stderr_of(e):
                return None
            raise translate_git_error("merge-base", e, f"{first}...{second}") from e

    def unique_commits(self, branch: str, base: str) -> List[str]:
        """Commits reachable from ``branch`` but not from ``base``."""
        output = self._run("rev_list", f"{base}..{branch}", ref=branch)
        return [line.strip() for line in output.splitlines() if line.strip()]

    def branch_creation_point(self, branch_name: str) -> Optional[str]:
        """Commit the branch pointed at when it was created, from its reflog.

        Returns:
            The oldest reflog SHA, or None when the branch has no reflog
        """
        try:
            output = self._get_repo().git.reflog("show", "--format=%H", f"refs/heads/{branch_name}")
        except git.exc.GitCommandError as e:
            logger.debug(f"No reflog for {branch_name}: {_stderr_of(e)}")
            return None

        entries = [line.strip() for line in output.splitlines() if line.strip()]
        if not entries:
            return None
        # reflog lists newest first
        return entries[-1]

    def list_merge_commits(self, tip: str, exclude: str, limit: int) -> List[MergeCommit]:
        """Merge commits reachable from ``tip`` but not from ``exclude``, newest first."""
        output = self._run(
            "rev_list", "--merges", "--parents", f"--max-count={limit}", tip, f"^{exclude}", ref=tip
        )
        commits = []
        for line in output.splitlines():
            parts = line.split()
            if len(parts) >= 3:
                commits.append(MergeCommit(sha=parts[0], parents=tuple(parts[1:])))
        return commits

    def list_worktrees(self) -> List[WorktreeInfo]:
        """Get detailed information about all worktrees, main first."""
        output = self._run("worktree", "list", "--porcelain")
        admin_dirs = worktree_admin_dirs(self._get_repo().common_dir)
        worktree_list = parse_worktree_porcelain(output, admin_dirs)
        logger.debug(f"Found {len(worktree_list)} worktrees")
        for wt in worktree_list:
            logger.debug(f"  {wt}")
        return worktree_list

    def has_tracked_changes(self, worktree_path: Union[str, Path]) -> bool:
        """Whether a worktree has staged or unstaged changes to tracked files.

        Untracked files are ignored; the files copied in at setup are untracked.
        """
        try:
            output = git.Repo(str(worktree_path)).git.status("--porcelain", "--untracked-files=no")
        except (
            git.exc.GitCommandError,
            git.exc.InvalidGitRepositoryError,
            git.exc.NoSuchPathError,
        ) as e:
            raise translate_git_error("status", e, str(worktree_path)) from e
        return bool(output.strip())

    def find_worktree(self, branch_name: str) -> Optional[WorktreeInfo]:
        """The worktree that has ``branch_name`` checked out, if any."""
        return next(
            (wt for wt in self.list_worktrees() if wt.branch_name == branch_name),
            None,
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_branch(self, branch_name: str, start_point: str) -> None:
        """Create a local branch at ``start_point`` without checking it out."""
        self._run("branch", "--no-track", branch_name, start_point, ref=branch_name)
        logger.info(f"Created branch {branch_name} from {start_point}")

    def fetch_remote_branch(self, branch_name: str) -> None:
        refspec = f"+refs/heads/{branch_name}:refs/remotes/{self.remote_name}/{branch_name}"
        self._run("fetch", self.remote_name, refspec, ref=branch_name)
        logger.info(f"Fetched {self.remote_name}/{branch_name}")

    def create_tracking_branch(self, branch_name: str) -> None:
        upstream = f"{self.remote_name}/{branch_name}"
        self._run("branch", "--track", branch_name, upstream, ref=branch_name)
        logger.info(f"Created branch {branch_name} tracking {upstream}")

    def add_worktree(self, path: Union[str, Path], branch_name: str) -> None:
        self._run("worktree", "add", str(path), branch_name, ref=branch_name)
        logger.info(f"Created worktree at {path} for {branch_name}")

    def remove_worktree(self, path: Union[str, Path], force: bool = False) -> None:
        """Remove a worktree.

        Without ``force`` Git refuses to remove a worktree with local
        modifications or untracked files.

        Raises:
            WorktreeNotFoundError: no worktree is registered at ``path``
        """
        args = ["remove", str(path)]
        if force:
            args.append("--force")
        try:
            self._get_repo().git.worktree(*args)
        except git.exc.GitCommandError as e:
            translated = translate_git_error("worktree remove", e, str(path))
            if isinstance(translated, RefNotFoundError):
                raise WorktreeNotFoundError(str(path)) from e
            raise translated from e
        logger.info(f"Removed worktree at {path}")

    def delete_branch(self, branch_name: str, force: bool = False) -> None:
        self._run("branch", "-D" if force else "-d", branch_name, ref=branch_name)
        logger.info(f"Deleted branch {branch_name}")

    def prune_worktrees(self) -> None:
        """Prune orphaned worktree metadata."""
        self._run("worktree", "prune")
        logger.debug("Pruned orphaned worktree metadata")
