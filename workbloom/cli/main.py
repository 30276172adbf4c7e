"""Command-line entry point for workbloom"""

import os
import sys

from rich.console import Console
from rich.prompt import Confirm

from workbloom.cli.args import mode_from_args, parse_args
from workbloom.config import Config
from workbloom.core import CleanupOrchestrator, SetupOrchestrator
from workbloom.exceptions import WorkbloomError
from workbloom.logging_config import get_logger, setup_logging
from workbloom.models.decision import CleanupKind, CleanupOutcome, RemovalDecision
from workbloom.services.display_service import DisplayService
from workbloom.services.git import GitRepository
from workbloom.services.session_service import SessionService

logger = get_logger(__name__)


def color_disabled(environ=None) -> bool:
    """NO_COLOR (any value) or CLICOLOR=0 turn colors off."""
    environ = os.environ if environ is None else environ
    return "NO_COLOR" in environ or environ.get("CLICOLOR") == "0"


def make_confirm(console: Console):
    """Interactive confirmation callback backed by rich's prompt."""

    def confirm(decision: RemovalDecision) -> bool:
        branch = decision.branch_name or "(detached)"
        return Confirm.ask(
            f"Remove {decision.worktree.dir_name} ({branch}, {decision.reason.value})?",
            console=console,
            default=False,
        )

    return confirm


def run_setup(args, repository: GitRepository, config: Config, console: Console) -> int:
    display = DisplayService(console, verbose=config.verbose)
    cleanup = CleanupOrchestrator(repository, config)
    orchestrator = SetupOrchestrator(
        repository,
        config,
        cleanup=cleanup,
        console=console,
        show_progress=not args.print_path,
    )

    console.print(f"Setting up git worktree for [cyan]{args.branch}[/cyan]...")
    result = orchestrator.setup(args.branch)

    removed = [d for d in result.cleanup_decisions if d.outcome == CleanupOutcome.REMOVED]
    if removed:
        display.display_summary(result.cleanup_decisions)
    display.display_setup_result(result)

    if args.print_path:
        # stdout carries nothing but the path
        print(result.display_path)
        return 0

    if args.shell:
        console.print("Starting worktree session...")
        SessionService().launch(result.session_name, result.path, use_tmux=config.use_tmux)
        return 0

    console.print(f"\ncd {result.display_path}")
    console.print(
        "[dim]Tip: use 'workbloom setup <branch> --shell' to start a session in the worktree[/dim]"
    )
    return 0


def run_cleanup(args, repository: GitRepository, config: Config, console: Console) -> int:
    mode = mode_from_args(args)
    display = DisplayService(console, verbose=config.verbose)
    orchestrator = CleanupOrchestrator(repository, config, confirm=make_confirm(console))

    decisions = orchestrator.run(mode)

    status_only = mode.kind == CleanupKind.STATUS_ONLY
    display.display_decision_table(
        decisions,
        title="Worktree status" if status_only else "Worktree cleanup",
        show_legend=status_only or config.verbose,
    )
    if not status_only:
        display.display_summary(decisions)
    if config.debug:
        console.print(f"[dim]{orchestrator.classifier.get_classification_stats()}[/dim]")

    return 1 if any(d.outcome == CleanupOutcome.FAILED for d in decisions) else 0


def main(argv=None) -> int:
    """Main entry point for the application."""
    args = parse_args(argv)
    no_color = color_disabled()
    print_path = args.command == "setup" and args.print_path

    setup_logging(verbose=args.verbose, debug=args.debug, use_color=not no_color)
    console = Console(stderr=print_path, no_color=no_color, highlight=not no_color)

    try:
        repository = GitRepository.discover()
        overrides = {
            "main_branch": args.main_branch,
            "verbose": args.verbose,
            "debug": args.debug,
        }
        if args.command == "setup":
            overrides["use_tmux"] = not args.no_tmux
        config = Config.load(repository.root_dir, **overrides)

        if args.debug:
            console.print("[yellow]Configuration:[/yellow]")
            for key, value in config.to_dict().items():
                console.print(f"  {key}: {value}")

        if args.command == "setup":
            return run_setup(args, repository, config, console)
        return run_cleanup(args, repository, config, console)
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return 1
    except WorkbloomError as e:
        console.print(f"[red]Error: {e}[/red]")
        if args.debug:
            console.print_exception()
        return 1
    except Exception as e:
        logger.debug("Unexpected failure", exc_info=True)
        console.print(f"[red]Error: {e}[/red]")
        if args.debug:
            console.print_exception()
        return 1


if __name__ == "__main__":
    sys.exit(main())
