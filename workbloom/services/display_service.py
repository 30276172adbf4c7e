"""Display and formatting service for cleanup decisions and setup results"""
from datetime import datetime, timezone
from typing import List, Optional, TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from workbloom.constants import CLI_COLORS, LEGEND_TEXT
from workbloom.formatters import (
    format_age,
    format_created_at,
    format_decision_summary,
    format_outcome,
    format_reason,
    format_verdict,
    get_decision_style_type,
)
from workbloom.logging_config import get_logger
from workbloom.models.branch import UpstreamKind
from workbloom.models.decision import CleanupOutcome, RemovalDecision

if TYPE_CHECKING:
    from workbloom.core.setup_orchestrator import SetupResult

logger = get_logger(__name__)

COLUMNS = ("Branch", "Worktree", "Age", "Verdict", "Reason", "Outcome")


class DisplayService:
    def __init__(self, console: Optional[Console] = None, verbose: bool = False):
        self.console = console or Console()
        self.verbose = verbose

    def display_decision_table(
        self,
        decisions: List[RemovalDecision],
        title: str = "Worktrees",
        show_legend: bool = False,
        now: Optional[datetime] = None,
    ) -> None:
        """Display a table of cleanup decisions."""
        if not decisions:
            self.console.print("No worktrees besides the main checkout.")
            return

        now = now or datetime.now(timezone.utc)
        table = Table(title=title)
        for col in COLUMNS:
            table.add_column(col)
        if self.verbose:
            table.add_column("Created")

        for decision in decisions:
            style = CLI_COLORS.get(get_decision_style_type(decision))
            row = [
                decision.branch_name or "(detached)",
                decision.worktree.dir_name,
                format_age(decision.worktree.created_at, now),
                format_verdict(decision.verdict),
                format_reason(decision.reason),
                format_outcome(decision),
            ]
            if self.verbose:
                row.append(format_created_at(decision.worktree.created_at))
            table.add_row(*row, style=style)

        self.console.print(table)

        if show_legend:
            self.console.print(LEGEND_TEXT)

    def display_summary(self, decisions: List[RemovalDecision]) -> None:
        """Print what was removed and what failed."""
        removed = [d for d in decisions if d.outcome == CleanupOutcome.REMOVED]
        failed = [d for d in decisions if d.outcome == CleanupOutcome.FAILED]
        declined = [d for d in decisions if d.outcome == CleanupOutcome.DECLINED]
        eligible = [d for d in decisions if d.eligible]

        if removed:
            self.console.print(f"\n[green]Removed {len(removed)} worktree(s):[/green]")
            self.console.print(format_decision_summary(removed))
        if failed:
            self.console.print(f"\n[red]Failed to remove {len(failed)} worktree(s):[/red]")
            for decision in failed:
                self.console.print(f"  • {decision.worktree.dir_name}: {decision.error}")
        if declined:
            self.console.print(f"\nSkipped {len(declined)} worktree(s) at the prompt")
        if not eligible:
            self.console.print("\nNothing to clean up.")

    def display_setup_result(self, result: "SetupResult") -> None:
        """Print the created worktree, its ports and how to enter it."""
        verb = "Created" if result.created else "Reusing"
        self.console.print(f"\n[green]{verb} worktree for {result.branch}[/green]")
        self.console.print(f"  Path:     {result.display_path}")
        branch_info = result.branch_info
        if branch_info is not None and branch_info.upstream != UpstreamKind.NONE:
            self.console.print(f"  Tracking: {branch_info.upstream_ref}")
        self.console.print(f"  Frontend: {result.ports.frontend}")
        self.console.print(f"  Backend:  {result.ports.backend}")
        self.console.print(f"  Database: {result.ports.database}")
        if self.verbose:
            self.console.print(f"  Session:  {result.session_name}")
