"""Tmux session naming and lifecycle for worktrees."""

import hashlib
import os
import re
import shutil
import subprocess
from pathlib import Path
from typing import Optional, Union

from workbloom.constants import SESSION_FALLBACK_SLUG, SESSION_PREFIX
from workbloom.exceptions import ExternalProcessError
from workbloom.logging_config import get_logger

logger = get_logger(__name__)

_UNSAFE_SESSION_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def sanitize_session_name(name: str) -> str:
    """Replace anything tmux might misread with '-', trim dashes, never return empty."""
    sanitized = _UNSAFE_SESSION_CHARS.sub("-", name).strip("-")
    return sanitized or SESSION_FALLBACK_SLUG


def repository_hash(repo_root: Union[str, Path]) -> str:
    """First 8 hex digits of the SHA-1 of the repository root path."""
    digest = hashlib.sha1(str(repo_root).encode("utf-8")).digest()
    return digest[:4].hex()


def session_name(repo_root: Union[str, Path], identifier: str) -> str:
    """Deterministic session name for a worktree of a repository.

    The repository path digest keeps two checkouts of same-named repositories
    on one host from sharing sessions.
    """
    repo_segment = Path(repo_root).name or "repo"
    repo_slug = sanitize_session_name(repo_segment)
    identifier_slug = sanitize_session_name(identifier)
    return sanitize_session_name(
        f"{SESSION_PREFIX}-{repo_slug}-{repository_hash(repo_root)}-{identifier_slug}"
    )


class TmuxClient:
    """Thin wrapper over the tmux command line."""

    def __init__(self, executable: str = "tmux"):
        self.executable = executable

    def _run(self, *args: str) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                [self.executable, *args],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                check=False,
            )
        except OSError as e:
            raise ExternalProcessError(self.executable, str(e)) from e

    def is_available(self) -> bool:
        if shutil.which(self.executable) is None:
            return False
        try:
            return self._run("-V").returncode == 0
        except ExternalProcessError:
            return False

    def session_exists(self, name: str) -> bool:
        result = self._run("has-session", "-t", name)
        if result.returncode == 0:
            return True
        if result.returncode == 1:
            return False
        raise ExternalProcessError("tmux has-session", result.stderr.strip(), result.returncode)

    def create_session(self, name: str, directory: Union[str, Path]) -> None:
        result = self._run("new-session", "-d", "-s", name, "-c", str(directory))
        if result.returncode != 0:
            raise ExternalProcessError("tmux new-session", result.stderr.strip(), result.returncode)

    def attach_session(self, name: str) -> None:
        # Attaching hands the terminal to tmux, so stdio is inherited
        try:
            result = subprocess.run([self.executable, "attach-session", "-t", name], check=False)
        except OSError as e:
            raise ExternalProcessError(self.executable, str(e)) from e
        if result.returncode != 0:
            raise ExternalProcessError("tmux attach-session", returncode=result.returncode)

    def kill_session(self, name: str) -> bool:
        """Kill a session if it exists. Returns True if one was killed."""
        if not self.is_available() or not self.session_exists(name):
            return False
        result = self._run("kill-session", "-t", name)
        if result.returncode != 0:
            raise ExternalProcessError("tmux kill-session", result.stderr.strip(), result.returncode)
        return True


class SessionService:
    """Start, reattach and tear down worktree sessions, falling back to a plain shell."""

    def __init__(self, client: Optional[TmuxClient] = None):
        self.client = client or TmuxClient()

    @staticmethod
    def inside_tmux() -> bool:
        return bool(os.environ.get("TMUX"))

    def start_or_attach(self, name: str, directory: Union[str, Path]) -> bool:
        """Attach to ``name``, creating it in ``directory`` first if needed.

        Returns:
            True if tmux took over, False if the caller should start a plain shell
        """
        if self.inside_tmux():
            logger.info("Already inside tmux, using a regular shell")
            return False

        if not self.client.is_available():
            logger.warning("tmux is not available, using a regular shell")
            return False

        try:
            if self.client.session_exists(name):
                logger.info(f"Re-attaching to existing tmux session {name}")
            else:
                logger.info(f"Creating tmux session {name} in {directory}")
                self.client.create_session(name, directory)
            self.client.attach_session(name)
            return True
        except ExternalProcessError as e:
            logger.warning(f"tmux session failed, falling back to shell: {e}")
            return False

    def launch(self, name: str, directory: Union[str, Path], use_tmux: bool = True) -> None:
        """Hand the terminal to a session for ``directory``; returns when it exits."""
        if use_tmux and self.start_or_attach(name, directory):
            return
        start_shell(directory)

    def teardown(self, name: str) -> bool:
        """Kill the session for a removed worktree. Failures are logged, not raised."""
        try:
            killed = self.client.kill_session(name)
        except ExternalProcessError as e:
            logger.warning(f"Could not kill tmux session {name}: {e}")
            return False
        if killed:
            logger.info(f"Killed tmux session {name}")
        return killed


def start_shell(directory: Union[str, Path]) -> int:
    """Run the user's shell in ``directory`` and wait for it to exit."""
    shell = os.environ.get("SHELL") or "/bin/bash"
    try:
        return subprocess.run([shell], cwd=str(directory), check=False).returncode
    except OSError as e:
        raise ExternalProcessError(shell, str(e)) from e
