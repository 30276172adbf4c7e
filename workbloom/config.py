"""Configuration handling for workbloom"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List, Union

from workbloom.constants import (
    BACKEND_BASE_PORT,
    CLAUDE_DIR,
    DATABASE_BASE_PORT,
    DEFAULT_CLAUDE_FILES,
    DEFAULT_FILES_TO_COPY,
    FRONTEND_BASE_PORT,
    MANIFEST_FILE,
    MERGE_SCAN_LIMIT,
    MIN_WORKTREE_AGE_HOURS,
    PORT_SPAN,
    SETUP_SCRIPT,
    WORKTREE_DIR_PREFIX,
)
from workbloom.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class Config:
    """Configuration for workbloom with validation."""

    # Repository
    main_branch: str = "main"
    remote_name: str = "origin"
    worktree_prefix: str = WORKTREE_DIR_PREFIX

    # Safety
    min_age_hours: int = MIN_WORKTREE_AGE_HOURS
    merge_scan_limit: int = MERGE_SCAN_LIMIT

    # Ports
    port_span: int = PORT_SPAN
    frontend_base_port: int = FRONTEND_BASE_PORT
    backend_base_port: int = BACKEND_BASE_PORT
    database_base_port: int = DATABASE_BASE_PORT

    # Provisioning
    files_to_copy: List[str] = field(default_factory=lambda: list(DEFAULT_FILES_TO_COPY))
    directories_to_copy: List[str] = field(default_factory=list)
    claude_files: List[str] = field(default_factory=lambda: list(DEFAULT_CLAUDE_FILES))
    manifest_file: str = MANIFEST_FILE
    setup_script: str = SETUP_SCRIPT
    cleanup_before_setup: bool = True

    # Sessions
    use_tmux: bool = True

    # Output
    verbose: bool = False
    debug: bool = False

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_main_branch()
        self._validate_remote_name()
        self._validate_min_age()
        self._validate_positive("merge_scan_limit")
        self._validate_positive("port_span")
        self._validate_ports()
        self._validate_copy_lists()

    def _validate_main_branch(self):
        """Validate main_branch is not empty."""
        if not self.main_branch or not self.main_branch.strip():
            raise ValueError("main_branch cannot be empty")
        self.main_branch = self.main_branch.strip()

    def _validate_remote_name(self):
        if not self.remote_name or not self.remote_name.strip():
            raise ValueError("remote_name cannot be empty")
        self.remote_name = self.remote_name.strip()

    def _validate_min_age(self):
        """Validate min_age_hours is not negative."""
        if self.min_age_hours < 0:
            raise ValueError(f"min_age_hours cannot be negative, got {self.min_age_hours}")

    def _validate_positive(self, name: str):
        value = getattr(self, name)
        if value <= 0:
            raise ValueError(f"{name} must be positive, got {value}")

    def _validate_ports(self):
        """Validate that every allocatable port fits in the TCP range."""
        for name in ("frontend_base_port", "backend_base_port", "database_base_port"):
            base = getattr(self, name)
            if base <= 0 or base + self.port_span > 65535:
                raise ValueError(
                    f"{name}={base} with port_span={self.port_span} exceeds the port range"
                )

    def _validate_copy_lists(self):
        """Reject absolute paths and parent traversal in copy lists."""
        for entry in self.files_to_copy + self.directories_to_copy + self.claude_files:
            path = Path(entry)
            if path.is_absolute() or ".." in path.parts:
                raise ValueError(f"copy entries must be relative to the repository: {entry!r}")

    @property
    def copy_manifest(self) -> List[str]:
        """Ordered list of relative paths/globs handed to the file-copy collaborator."""
        entries = list(self.files_to_copy) + list(self.directories_to_copy)
        entries.extend(f"{CLAUDE_DIR}/{name}" for name in self.claude_files)
        # Keep first occurrence order, drop duplicates
        return list(dict.fromkeys(entries))

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def get(self, key: str, default=None):
        """Get config value by key."""
        return getattr(self, key, default)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "Config":
        """Create Config from dictionary."""
        known_fields = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in config_dict.items() if k in known_fields}
        return cls(**filtered)

    @classmethod
    def load(cls, repo_root: Union[str, Path], **overrides) -> "Config":
        """Build a Config for a repository, appending manifest entries to the copy list.

        Args:
            repo_root: Main checkout of the repository
            **overrides: Field values taken from the command line; None values are ignored

        Returns:
            Validated Config
        """
        config = cls.from_dict({k: v for k, v in overrides.items() if v is not None})
        extras = read_manifest(Path(repo_root) / config.manifest_file)
        if extras:
            logger.debug(f"Manifest adds {len(extras)} entries: {extras}")
            config.directories_to_copy = config.directories_to_copy + extras
            config._validate_copy_lists()
        return config


def read_manifest(manifest_path: Path) -> List[str]:
    """Read the repository-root list of extra files to copy.

    One relative path or glob per line; blank lines and ``#`` comments are ignored.
    A missing manifest is not an error.
    """
    if not manifest_path.is_file():
        return []

    entries: List[str] = []
    for raw in manifest_path.read_text(encoding="utf-8").splitlines():
        line = raw.split("#", 1)[0].strip()
        if line:
            entries.append(line.rstrip("/"))
    return entries

