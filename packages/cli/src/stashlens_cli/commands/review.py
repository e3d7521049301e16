"""review command — publish SonarQube findings on a pull request."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from stashlens_core.issues import Severity
from stashlens_core.markdown import render_issue
from stashlens_core.reviewer import ReviewSummary, preview_findings, print_preview, run_review
from stashlens_core.stash.client import StashClient, StashClientError

console = Console()

_SEVERITY_CHOICE = click.Choice([s.name for s in Severity] + ["NONE"], case_sensitive=False)


def _print_summary(summary: ReviewSummary) -> None:
    table = Table(title=f"stashlens — {summary.ref}", show_header=True)
    table.add_column("Step", style="bold")
    table.add_column("Result")

    table.add_row("Findings", str(summary.finding_count))
    table.add_row("Overview", "posted" if summary.overview_posted else "—")
    table.add_row("Summary", "posted" if summary.summary_posted else "—")
    if summary.threshold_exceeded:
        table.add_row("Inline comments", "[yellow]skipped (issue threshold exceeded)[/yellow]")
    elif summary.outcome is not None:
        outcome = summary.outcome
        table.add_row(
            "Inline comments",
            f"{outcome.published_count} published · {len(outcome.tasks)} task(s) · {outcome.skipped_count} skipped",
        )
        if outcome.errors:
            table.add_row("Errors", f"[red]{len(outcome.errors)}[/red]")
    else:
        table.add_row("Inline comments", "—")
    table.add_row("Approval", summary.approval or "—")
    console.print(table)

    if summary.outcome is not None:
        for error in summary.outcome.errors:
            f = error.finding
            console.print(f"  [red]{f.path}:{f.line} {f.rule}[/red] — {escape(error.error)}")


@click.command("review")
@click.option("--project", required=True, help="Stash project key.")
@click.option("--repo", required=True, help="Stash repository slug.")
@click.option("--pr", "pr_id", required=True, help="Pull request id.")
@click.option(
    "--report",
    "report_path",
    required=True,
    type=click.Path(dir_okay=False),
    help="SonarQube issues report (JSON).",
)
@click.option("--stash-url", default=None, help="Stash base URL. Overrides config file.")
@click.option("--sonar-url", default=None, help="SonarQube base URL used in rule links. Overrides config file.")
@click.option("--notify/--no-notify", default=None, help="Post comments, tasks, overview and summary.")
@click.option("--approve/--no-approve", default=None, help="Approve clean pull requests, reset approval otherwise.")
@click.option("--comment-threshold", type=_SEVERITY_CHOICE, default=None, help="Minimum severity to comment.")
@click.option("--task-threshold", type=_SEVERITY_CHOICE, default=None, help="Minimum severity to raise a task.")
@click.option("--issue-threshold", type=int, default=None, help="Skip inline comments above this many issues.")
@click.option("--dry-run", is_flag=True, help="Print what would be published without posting anything.")
@click.pass_context
def review_cmd(
    ctx,
    project: str,
    repo: str,
    pr_id: str,
    report_path: str,
    stash_url: str | None,
    sonar_url: str | None,
    notify: bool | None,
    approve: bool | None,
    comment_threshold: str | None,
    task_threshold: str | None,
    issue_threshold: int | None,
    dry_run: bool,
):
    """Publish SonarQube findings on a Stash pull request.

    Findings inside the pull request diff become inline comments (and tasks
    above the task threshold); an overview and summary can be posted on the
    pull request, and the pull request can be approved when no issue is left.

    \b
    Credentials (first match wins):
      STASH_TOKEN                    HTTP access token
      STASH_USER / STASH_PASSWORD    basic auth
      ~/.netrc                       entry for the Stash host
    """
    from stashlens_core.config import PullRequestRef, ReviewSettings, load_config, require_stash_url
    from stashlens_core.issues import load_findings
    from stashlens_cli.auth import resolve_stash_credentials

    config_path = (ctx.obj or {}).get("config_path", ".stashlens.yml")
    try:
        config = load_config(
            config_path,
            cli_overrides={
                "stash_url": stash_url,
                "sonar_url": sonar_url,
                "notify": notify,
                "approve": approve,
                "comment_severity_threshold": comment_threshold,
                "task_severity_threshold": task_threshold,
                "issue_threshold": issue_threshold,
            },
        )
        settings = ReviewSettings.from_config(config)
        ref = PullRequestRef.create(project, repo, pr_id)
        findings = load_findings(report_path)
        base_url = require_stash_url(config) if not dry_run or config.get("stash_url") else None
    except (FileNotFoundError, ValueError) as e:  # ConfigurationError is a ValueError
        raise click.UsageError(str(e))

    if base_url is None:
        print_preview(preview_findings(findings, None), settings, renderer=render_issue)
        return

    credentials = resolve_stash_credentials(base_url)
    if credentials is None:
        raise click.UsageError("No Stash credentials found. Set STASH_TOKEN, or STASH_USER and STASH_PASSWORD.")

    with StashClient(
        base_url,
        user=credentials.user,
        password=credentials.password,
        token=credentials.token,
        timeout=settings.timeout,
    ) as client:
        if dry_run:
            try:
                diff_index = client.fetch_diff(ref)
            except StashClientError as e:
                raise click.ClickException(str(e))
            print_preview(preview_findings(findings, diff_index), settings, renderer=render_issue)
            return

        summary = run_review(
            ref,
            findings,
            settings,
            client,
            reviewer=config.get("reviewer") or credentials.user,
        )

    _print_summary(summary)
    if summary.failures:
        ctx.exit(1)
