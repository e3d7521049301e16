"""Per pull request orchestration of overview, inline comments and approval."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, TypeVar

from rich.console import Console
from rich.markup import escape

from stashlens_core.approval import decide_approval
from stashlens_core.comments import CommentIndex
from stashlens_core.config import ConfigurationError, PullRequestRef, ReviewSettings
from stashlens_core.diff import DiffIndex, DiffPosition
from stashlens_core.issues import Finding, FindingSet
from stashlens_core.markdown import Renderer, render_issue
from stashlens_core.overview import maybe_publish_overview, maybe_publish_summary
from stashlens_core.publisher import RunOutcome, publish_findings
from stashlens_core.stash.client import StashClient, StashClientError
from stashlens_core.stash.pull_request import ensure_reviewer

console = Console()
logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ReviewSummary:
    """Result returned by run_review: what was posted and which steps failed.

    ``outcome`` is None when inline commenting did not run (notifications
    disabled, threshold exceeded, or the diff could not be fetched).
    """

    ref: str
    finding_count: int
    outcome: RunOutcome | None = None
    threshold_exceeded: bool = False
    overview_posted: bool = False
    summary_posted: bool = False
    approval: str | None = None  # "approved" | "reset" | None
    failures: list[str] = field(default_factory=list)
    reviewed_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


def _attempt(summary: ReviewSummary, step: str, action: Callable[[], T]) -> T | None:
    """Run one remote step; a StashClientError is recorded and does not stop the other steps."""
    try:
        return action()
    except StashClientError as e:
        logger.error("%s failed on %s: %s", step, summary.ref, e)
        console.print(f"[red]{step} failed: {escape(str(e))}[/red]")
        summary.failures.append(f"{step}: {e}")
        return None


def _publish_inline(
    ref: PullRequestRef,
    findings: FindingSet,
    settings: ReviewSettings,
    client: StashClient,
    renderer: Renderer,
) -> RunOutcome:
    # The whole step depends on the diff; a failure here is fatal to inline commenting.
    diff_index = client.fetch_diff(ref)
    comment_index = CommentIndex(lambda path: client.fetch_comments(ref, path))
    return publish_findings(findings, diff_index, comment_index, client, ref, settings, renderer)


def run_review(
    ref: PullRequestRef,
    findings: FindingSet,
    settings: ReviewSettings,
    client: StashClient,
    reviewer: str | None = None,
    renderer: Renderer = render_issue,
) -> ReviewSummary:
    """Report ``findings`` on the pull request and update its approval.

    The notify flag gates the overview, the summary and inline comments as one
    unit. Approval is gated by its own flag and runs regardless of notify and
    of failures in the notification steps.
    """
    if ref is None:
        raise ConfigurationError("Pull request identity is missing.")

    summary = ReviewSummary(ref=str(ref), finding_count=findings.count())
    summary.threshold_exceeded = settings.exceeds_issue_threshold(summary.finding_count)

    if settings.notify:
        summary.overview_posted = bool(
            _attempt(summary, "Overview", lambda: maybe_publish_overview(findings, settings, client, ref))
        )
        summary.summary_posted = bool(
            _attempt(summary, "Summary", lambda: maybe_publish_summary(findings, settings, client, ref))
        )

        if summary.threshold_exceeded:
            console.print(
                f"[yellow]{summary.finding_count} issue(s) exceed the threshold of {settings.issue_threshold}. "
                "Skipping inline comments.[/yellow]"
            )
        else:
            summary.outcome = _attempt(
                summary, "Inline comments", lambda: _publish_inline(ref, findings, settings, client, renderer)
            )
    else:
        logger.info("Notifications disabled; nothing posted on %s", ref)

    if settings.approve:
        if reviewer:
            _attempt(summary, "Reviewer", lambda: ensure_reviewer(client, ref, reviewer))
        summary.approval = _attempt(
            summary, "Approval", lambda: decide_approval(summary.finding_count, True, client, ref)
        )

    return summary


def preview_findings(findings: FindingSet, diff_index: DiffIndex | None) -> list[tuple[Finding, DiffPosition | None]]:
    """Pair each finding with its diff anchor (None when outside the diff or no diff is known)."""
    rows = []
    for finding in findings:
        position = None
        if diff_index is not None:
            path = diff_index.normalize_path(finding.path)
            position = diff_index.resolve(path, finding.line) if path else None
        rows.append((finding, position))
    return rows


def print_preview(rows: list[tuple[Finding, DiffPosition | None]], settings: ReviewSettings, renderer: Renderer) -> None:
    """Print what a run would publish without posting anything."""
    _severity_color = {"BLOCKER": "red", "CRITICAL": "red", "MAJOR": "yellow", "MINOR": "blue", "INFO": "dim"}
    if not rows:
        console.print("[yellow]Dry run: no findings to publish.[/yellow]")
        return
    console.print(f"\n[bold]Dry run — {len(rows)} finding(s) (nothing posted)[/bold]\n")
    for finding, position in rows:
        color = _severity_color.get(finding.severity.name, "white")
        where = f"diff line {position.line} ({position.line_type})" if position else "[dim]outside diff[/dim]"
        console.print(
            f"[bold cyan]{finding.path}[/bold cyan]  line [bold]{finding.line}[/bold]  "
            f"[{color}]{finding.severity.name}[/{color}]  {where}"
        )
        flags = []
        if position and settings.should_comment(finding.severity):
            flags.append("comment")
        if position and settings.should_raise_task(finding.severity):
            flags.append("task")
        if flags:
            console.print(f"  [dim]would {' + '.join(flags)}[/dim]")
        console.print(f"  {escape(renderer(finding, settings.sonar_url))}")
        console.print()
