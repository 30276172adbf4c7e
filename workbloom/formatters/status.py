"""Verdict, reason and outcome formatting utilities."""

from workbloom.constants import DecisionStyleType
from workbloom.models.decision import CleanupOutcome, MergeVerdict, RemovalDecision, RemovalReason

VERDICT_DISPLAY = {
    MergeVerdict.MERGED_VIA_MERGE_COMMIT: "merged (merge commit)",
    MergeVerdict.MERGED_FAST_FORWARD: "merged (fast-forward)",
    MergeVerdict.NOT_MERGED: "not merged",
    MergeVerdict.NO_UNIQUE_COMMITS: "no unique commits",
}


def format_verdict(verdict: MergeVerdict) -> str:
    """
    Format a merge verdict as display text.

    Args:
        verdict: Merge verdict enum value

    Returns:
        Display text for the verdict
    """
    return VERDICT_DISPLAY.get(verdict, verdict.value)


def format_reason(reason: RemovalReason) -> str:
    """Reason tag as shown in the table and legend."""
    return reason.value


def format_outcome(decision: RemovalDecision) -> str:
    """Outcome text, with the error appended for failures."""
    if decision.outcome == CleanupOutcome.FAILED and decision.error:
        return f"failed: {decision.error}"
    if decision.outcome == CleanupOutcome.REMOVED and decision.branch_deleted:
        return "removed (+branch)"
    return decision.outcome.value


def format_decision_summary(decisions: list) -> str:
    """
    Format one line per eligible decision for the confirmation and summary output.

    Example:
        "  • feat/x (merged, worktree-feat-x)"
    """
    lines = []
    for decision in decisions:
        branch = decision.branch_name or "(detached)"
        lines.append(f"  • {branch} ({format_reason(decision.reason)}, {decision.worktree.dir_name})")
    return "\n".join(lines)


def get_decision_style_type(decision: RemovalDecision) -> str:
    """
    Determine the style type for a decision row.

    Args:
        decision: Removal decision

    Returns:
        DecisionStyleType constant
    """
    if decision.outcome == CleanupOutcome.FAILED:
        return DecisionStyleType.FAILED
    if decision.protected:
        return DecisionStyleType.PROTECTED
    if decision.reason == RemovalReason.FORCED_UNMERGED:
        return DecisionStyleType.FORCED
    if decision.eligible:
        return DecisionStyleType.REMOVABLE
    return DecisionStyleType.BLOCKED
