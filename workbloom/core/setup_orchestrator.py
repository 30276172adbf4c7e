"""Worktree setup for workbloom"""

import os
from contextlib import nullcontext
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.progress import Progress

from workbloom.config import Config
from workbloom.core.cleanup_orchestrator import CleanupOrchestrator
from workbloom.exceptions import AmbiguousGitStateError, WorkbloomError
from workbloom.logging_config import get_logger
from workbloom.models.branch import Branch
from workbloom.models.decision import CleanupMode, PortTriple, RemovalDecision
from workbloom.models.worktree import WorktreeInfo
from workbloom.services import file_ops
from workbloom.services.branch_validation_service import BranchValidationService
from workbloom.services.git.repository import GitRepository
from workbloom.services.port_allocator import PortAllocator
from workbloom.services.session_service import session_name

logger = get_logger(__name__)

SETUP_STEPS = 4


@dataclass
class SetupResult:
    """Everything the caller needs to hand the new worktree to the user."""

    branch: str
    worktree: WorktreeInfo
    path: Path
    display_path: Path
    ports: PortTriple
    session_name: str
    created: bool = True
    copied: List[str] = field(default_factory=list)
    setup_script_exit: Optional[int] = None
    cleanup_decisions: List[RemovalDecision] = field(default_factory=list)
    branch_info: Optional[Branch] = None


def display_root_alias(repo_root: Path) -> Path:
    """Drop a ``/private`` prefix (macOS temp dirs) when the alias exists."""
    try:
        stripped = repo_root.relative_to("/private")
    except ValueError:
        return repo_root
    alias = Path("/") / stripped
    return alias if alias.exists() else repo_root


def display_worktree_path(repo_root: Path, dir_name: str) -> Path:
    """Path to show the user for a worktree.

    If ``$PWD`` resolves to the repository root, the worktree path is built
    from ``$PWD`` so symlinked roots are kept as the user typed them.
    """
    pwd = os.environ.get("PWD")
    if pwd:
        try:
            if Path(pwd).resolve() == repo_root.resolve():
                return Path(pwd) / dir_name
        except OSError:
            pass
    return display_root_alias(repo_root) / dir_name


class SetupOrchestrator:
    """Create (or reuse) the worktree for a branch and provision it."""

    def __init__(
        self,
        repository: GitRepository,
        config: Optional[Config] = None,
        cleanup: Optional[CleanupOrchestrator] = None,
        allocator: Optional[PortAllocator] = None,
        console: Optional[Console] = None,
        show_progress: bool = True,
    ):
        self.repository = repository
        self.config = config or Config()
        self.cleanup = cleanup or CleanupOrchestrator(repository, self.config)
        self.allocator = allocator or PortAllocator.from_config(self.config)
        self.console = console or Console()
        self.show_progress = show_progress

    def worktree_path_for(self, branch_name: str) -> Path:
        """``<repo-root>/<prefix><branch with '/' replaced by '-'>``."""
        dir_name = f"{self.config.worktree_prefix}{branch_name.replace('/', '-')}"
        return self.repository.root_dir / dir_name

    def setup(self, branch_name: str) -> SetupResult:
        """Create and provision the worktree for ``branch_name``.

        Args:
            branch_name: Branch to check out; created from main if it exists nowhere

        Returns:
            SetupResult with the worktree, its ports and its session name

        Raises:
            InvalidBranchNameError: before any Git or filesystem call
            GitOperationError: the branch or worktree could not be created
        """
        BranchValidationService.validate_branch_name(branch_name)

        worktree_path = self.worktree_path_for(branch_name)
        root = self.repository.root_dir
        logger.info(f"Setting up worktree for {branch_name} at {worktree_path}")

        cleanup_decisions: List[RemovalDecision] = []
        if self.config.cleanup_before_setup:
            cleanup_decisions = self._sweep_merged(branch_name)

        progress_context = (
            Progress(console=self.console, transient=True) if self.show_progress else nullcontext()
        )
        with progress_context as progress:
            task = None
            if progress is not None:
                task = progress.add_task("Checking branch...", total=SETUP_STEPS)

            def step(description: str):
                if progress is not None:
                    progress.update(task, advance=1, description=description)

            self.ensure_branch_ready(branch_name)
            branch_info = self.repository.get_branch(branch_name)
            logger.debug(
                f"{branch_name} at {branch_info.head[:7]}, upstream {branch_info.upstream.value}"
            )
            step("Creating worktree...")

            existing = self.repository.find_worktree(branch_name)
            created = existing is None or existing.is_orphaned
            if existing is not None and existing.is_orphaned:
                self.repository.prune_worktrees()
            if created:
                self.repository.add_worktree(worktree_path, branch_name)
                worktree = self.repository.find_worktree(branch_name)
                if worktree is None:
                    raise AmbiguousGitStateError(
                        "worktree add", branch_name, "worktree not listed after creation"
                    )
            else:
                logger.info(f"Reusing existing worktree at {existing.path}")
                worktree = existing
            worktree_dir = Path(worktree.path)
            step("Copying files...")

            ports = self.allocator.allocate(branch_name)
            copied: List[str] = []
            script_exit = None
            if created:
                report = file_ops.copy_required_files(root, worktree_dir, self.config.copy_manifest)
                copied = report.copied
                for entry, error in report.failed:
                    self.console.print(f"[yellow]Could not copy {entry}: {error}[/yellow]")
            file_ops.update_env_with_ports(worktree_dir, ports)
            step("Running setup script...")

            if created:
                script_exit = file_ops.run_setup_script(worktree_dir, self.config.setup_script)
                if script_exit:
                    self.console.print(
                        f"[yellow]Warning: {self.config.setup_script} exited with {script_exit}[/yellow]"
                    )
            step("Setting up direnv...")

            if file_ops.setup_direnv(worktree_dir) is False:
                self.console.print("[yellow]Run 'direnv allow' in the worktree to load .envrc[/yellow]")

        return SetupResult(
            branch=branch_name,
            worktree=worktree,
            path=worktree_dir,
            display_path=display_worktree_path(root, worktree_dir.name),
            ports=ports,
            session_name=session_name(root, worktree_dir.name),
            created=created,
            copied=copied,
            setup_script_exit=script_exit,
            cleanup_decisions=cleanup_decisions,
            branch_info=branch_info,
        )

    def ensure_branch_ready(self, branch_name: str) -> str:
        """Make sure a local branch exists.

        Returns:
            "local", "remote" (fetched and now tracking) or "created" (from main)
        """
        if self.repository.branch_exists(branch_name):
            logger.debug(f"Branch {branch_name} exists locally")
            return "local"

        if self.repository.remote_branch_exists(branch_name):
            self.console.print(
                f"Branch '{branch_name}' exists on remote. Fetching and creating tracking branch..."
            )
            self.repository.fetch_remote_branch(branch_name)
            self.repository.create_tracking_branch(branch_name)
            return "remote"

        self.console.print(f"Branch '{branch_name}' does not exist. Creating it from {self.config.main_branch}...")
        self.repository.create_branch(branch_name, self.config.main_branch)
        return "created"

    def _sweep_merged(self, branch_name: str) -> List[RemovalDecision]:
        """Default cleanup run that never touches the branch being set up."""
        self.console.print("Checking for merged worktrees to clean up...")
        try:
            return self.cleanup.run(CleanupMode.default(), protected_branches={branch_name})
        except WorkbloomError as e:
            logger.warning(f"Pre-setup cleanup skipped: {e}")
            return []
