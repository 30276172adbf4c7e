"""Command-line argument parsing for workbloom."""

import argparse

from workbloom.__version__ import __version__
from workbloom.models.decision import CleanupMode


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="workbloom",
        description="Git worktree management with safe cleanup and per-branch ports",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show verbose output")
    parser.add_argument(
        "--debug", action="store_true", help="Show debug information for troubleshooting"
    )
    parser.add_argument("--version", action="version", version=f"workbloom {__version__}")
    parser.add_argument("--main-branch", default=None, help="Main branch name (default: main)")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    setup = subparsers.add_parser("setup", help="Create or reuse the worktree for a branch")
    setup.add_argument("branch", help="Branch to check out in the worktree")
    entry = setup.add_mutually_exclusive_group()
    entry.add_argument(
        "--shell", action="store_true", help="Start a tmux session (or shell) in the worktree"
    )
    entry.add_argument(
        "--no-shell", action="store_true", help="Only print where the worktree is (default)"
    )
    entry.add_argument(
        "--print-path",
        action="store_true",
        help="Print only the worktree path on stdout, for cd \"$(workbloom setup b --print-path)\"",
    )
    setup.add_argument(
        "--no-tmux", action="store_true", help="With --shell, start a plain shell instead of tmux"
    )

    cleanup = subparsers.add_parser("cleanup", help="Remove worktrees whose work is in main")
    modes = cleanup.add_mutually_exclusive_group()
    modes.add_argument(
        "--merged", action="store_true", help="Remove merged worktrees (default)"
    )
    modes.add_argument(
        "--pattern", metavar="P", help="Only consider worktrees whose branch or directory matches P"
    )
    modes.add_argument(
        "--interactive", action="store_true", help="Ask before removing each eligible worktree"
    )
    modes.add_argument(
        "--status", action="store_true", help="Show what cleanup would decide, remove nothing"
    )
    cleanup.add_argument(
        "--force",
        action="store_true",
        help="Also remove worktrees whose branch is not merged (never ones younger than 24h)",
    )

    return parser


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "cleanup" and args.force and (args.pattern or args.interactive or args.status):
        parser.error("--force can only be combined with --merged")
    if args.command == "setup" and args.no_tmux and not args.shell:
        parser.error("--no-tmux requires --shell")

    return args


def mode_from_args(args) -> CleanupMode:
    """Map parsed cleanup flags onto a CleanupMode."""
    if args.status:
        return CleanupMode.status_only()
    if args.pattern is not None:
        return CleanupMode.matching(args.pattern)
    if args.interactive:
        return CleanupMode.interactive()
    if args.force:
        return CleanupMode.force()
    return CleanupMode.default()
