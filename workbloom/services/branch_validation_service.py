"""Branch name and pattern validation for workbloom."""

import re

from workbloom.exceptions import InvalidBranchNameError, InvalidPatternError

MAX_BRANCH_NAME_LENGTH = 200
MAX_PATTERN_LENGTH = 200

# Letters, digits and . _ / - only: no whitespace, quotes, $, ;, |, &, `, *, ~, ^, :, ?, [, \
SAFE_BRANCH_CHARS = re.compile(r"^[A-Za-z0-9._/-]+$")
# Branch characters plus the fnmatch glob characters
SAFE_PATTERN_CHARS = re.compile(r"[A-Za-z0-9._/*?\[\]-]+")
RESERVED_NAMES = {"HEAD", "@"}


class BranchValidationService:
    """Service for validating user-supplied names before they reach Git or the filesystem.

    Branch names end up in worktree paths, tmux session names and process
    arguments, so anything outside a conservative token grammar is rejected.
    """

    @staticmethod
    def validate_branch_name(branch_name: str) -> str:
        """
        Validate a branch name against the safe-token grammar.

        Args:
            branch_name: Name supplied by the user

        Returns:
            The branch name, unchanged

        Raises:
            InvalidBranchNameError: if the name is unsafe or not a valid Git ref name
        """
        if not branch_name:
            raise InvalidBranchNameError(branch_name, "name is empty")

        if len(branch_name) > MAX_BRANCH_NAME_LENGTH:
            raise InvalidBranchNameError(
                branch_name, f"name is longer than {MAX_BRANCH_NAME_LENGTH} characters"
            )

        if not SAFE_BRANCH_CHARS.fullmatch(branch_name):
            raise InvalidBranchNameError(
                branch_name, "only letters, digits, '.', '_', '/' and '-' are allowed"
            )

        if branch_name in RESERVED_NAMES:
            raise InvalidBranchNameError(branch_name, "name is reserved by Git")

        if branch_name.startswith("-"):
            raise InvalidBranchNameError(branch_name, "name must not start with '-'")

        if branch_name.startswith("/") or branch_name.endswith("/"):
            raise InvalidBranchNameError(branch_name, "name must not start or end with '/'")

        if ".." in branch_name or "//" in branch_name:
            raise InvalidBranchNameError(branch_name, "name must not contain '..' or '//'")

        if branch_name.endswith("."):
            raise InvalidBranchNameError(branch_name, "name must not end with '.'")

        for component in branch_name.split("/"):
            if component.startswith("."):
                raise InvalidBranchNameError(
                    branch_name, f"path component {component!r} must not start with '.'"
                )
            if component.endswith(".lock"):
                raise InvalidBranchNameError(
                    branch_name, f"path component {component!r} must not end with '.lock'"
                )

        return branch_name

    @staticmethod
    def is_valid_branch_name(branch_name: str) -> bool:
        """Check a branch name without raising."""
        try:
            BranchValidationService.validate_branch_name(branch_name)
            return True
        except InvalidBranchNameError:
            return False

    @staticmethod
    def validate_pattern(pattern: str) -> str:
        """
        Validate a cleanup pattern (substring or fnmatch-style glob).

        Raises:
            InvalidPatternError: if the pattern is empty, too long or uses characters
                outside the branch-name set and the glob characters ``*?[]``
        """
        if pattern is None or not pattern.strip():
            raise InvalidPatternError(pattern or "", "pattern is empty")

        if len(pattern) > MAX_PATTERN_LENGTH:
            raise InvalidPatternError(pattern, f"pattern is longer than {MAX_PATTERN_LENGTH} characters")

        pattern = pattern.strip()
        if not SAFE_PATTERN_CHARS.fullmatch(pattern):
            raise InvalidPatternError(
                pattern, "only letters, digits, '.', '_', '/', '-' and glob characters are allowed"
            )

        return pattern

    @staticmethod
    def is_protected(branch_name: str, protected_branches) -> bool:
        """
        Check if a branch is protected.

        Args:
            branch_name: Name of the branch
            protected_branches: Collection of protected branch names

        Returns:
            True if branch is protected
        """
        return branch_name in protected_branches
