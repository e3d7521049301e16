"""Markdown bodies for inline comments, the analysis overview and the summary."""

from __future__ import annotations

from typing import Callable
from urllib.parse import quote

from stashlens_core.config import ReviewSettings
from stashlens_core.issues import Finding, FindingSet, Severity

# Any callable with this shape can replace render_issue in the publication engine.
Renderer = Callable[[Finding, str], str]

_SEVERITY_ORDER = sorted(Severity, reverse=True)


def rule_link(rule: str, base_url: str) -> str:
    return f"{base_url.rstrip('/')}/coding_rules#rule_key={quote(rule, safe='')}"


def render_issue(finding: Finding, base_url: str) -> str:
    """Render one finding as the body of an inline comment."""
    body = f"*{finding.severity.name}* - {finding.message}"
    if finding.rule:
        body += f" [[{finding.rule}]({rule_link(finding.rule, base_url)})]"
    return body


def render_overview(findings: FindingSet, settings: ReviewSettings) -> str:
    total = findings.count()
    counts = findings.by_severity()

    lines = ["## SonarQube analysis overview", ""]
    if total == 0:
        lines.append("> No new issues found.")
    else:
        lines.append(f"> **{total}** new issue(s) found.")
    lines.append("")
    lines.append("| Severity | Issues |")
    lines.append("| --- | ---: |")
    for severity in _SEVERITY_ORDER:
        lines.append(f"| {severity.name.title()} | {counts[severity]} |")

    if settings.exceeds_issue_threshold(total):
        lines.append("")
        lines.append(
            f"_Too many issues to comment inline: {total} exceeds the threshold of {settings.issue_threshold}. "
            "Review them in SonarQube._"
        )

    rules = sorted({f.rule for f in findings if f.rule})
    if rules and settings.sonar_url:
        lines.append("")
        lines.append("**Rules:** " + ", ".join(f"[{r}]({rule_link(r, settings.sonar_url)})" for r in rules))

    return "\n".join(lines)


def render_summary(findings: FindingSet, settings: ReviewSettings) -> str:
    total = findings.count()
    if total == 0:
        return "SonarQube: no new issues."
    counts = findings.by_severity()
    parts = [f"{counts[s]} {s.name.lower()}" for s in _SEVERITY_ORDER if counts[s]]
    text = f"SonarQube: {total} new issue(s) ({', '.join(parts)})."
    if settings.exceeds_issue_threshold(total):
        text += f" Inline comments skipped: more than {settings.issue_threshold} issues."
    return text
