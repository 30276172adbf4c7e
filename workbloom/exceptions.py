"""Custom exceptions for workbloom"""

from typing import Optional


class WorkbloomError(Exception):
    """Base exception for all workbloom errors."""
    pass


class InvalidInputError(WorkbloomError):
    """Exception raised for user input rejected before any mutation."""
    pass


class InvalidBranchNameError(InvalidInputError):
    """Exception raised when a branch name fails validation."""

    def __init__(self, branch: str, reason: str):
        self.branch = branch
        self.reason = reason
        super().__init__(f"Invalid branch name {branch!r}: {reason}")


class InvalidPatternError(InvalidInputError):
    """Exception raised when a cleanup pattern fails validation."""

    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Invalid pattern {pattern!r}: {reason}")


class GitOperationError(WorkbloomError):
    """Exception raised for errors in Git operations."""

    def __init__(self, operation: str, ref: Optional[str] = None, message: Optional[str] = None):
        self.operation = operation
        self.ref = ref
        self.message = message

        error_msg = f"Git operation '{operation}' failed"
        if ref:
            error_msg += f" for '{ref}'"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class RefNotFoundError(GitOperationError):
    """Exception raised when a branch, commit or remote ref does not exist."""
    pass


class WorktreeNotFoundError(GitOperationError):
    """Exception raised when no worktree exists at a path or for a branch."""

    def __init__(self, target: str):
        super().__init__("find_worktree", target, "Worktree not found")


class GitIOError(GitOperationError):
    """Exception raised for I/O, permission or missing-executable failures."""
    pass


class AmbiguousGitStateError(GitOperationError):
    """Exception raised when Git reports a state that cannot be interpreted."""
    pass


class ExternalProcessError(WorkbloomError):
    """Exception raised when an external process (tmux, shell, script) fails."""

    def __init__(self, command: str, message: Optional[str] = None, returncode: Optional[int] = None):
        self.command = command
        self.message = message
        self.returncode = returncode

        error_msg = f"Command '{command}' failed"
        if returncode is not None:
            error_msg += f" (exit {returncode})"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)
