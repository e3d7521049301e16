"""Correlates findings with the pull request diff and publishes them as inline comments.

For every finding, in report order:
    resolve diff anchor → render → dedupe against posted comments
        → publish comment (comment threshold) → raise task (task threshold)

The comment and task thresholds are independent: a finding below the comment
threshold never gets a new comment, but if an identical comment is already on
the pull request it still receives a task when it meets the task threshold.

A failed remote call only affects the finding being processed; it is recorded
in the RunOutcome and the loop moves on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from stashlens_core.comments import CommentIndex, PostedComment
from stashlens_core.config import PullRequestRef, ReviewSettings
from stashlens_core.diff import DiffIndex
from stashlens_core.issues import Finding, FindingSet
from stashlens_core.markdown import Renderer, render_issue
from stashlens_core.stash.base import PullRequestCommenter
from stashlens_core.stash.client import StashClientError

logger = logging.getLogger(__name__)

OUTSIDE_DIFF = "outside diff"
DUPLICATE = "duplicate"
BELOW_THRESHOLD = "below comment threshold"


@dataclass(frozen=True)
class SkippedFinding:
    finding: Finding
    reason: str


@dataclass(frozen=True)
class FindingError:
    finding: Finding
    error: str


@dataclass
class RunOutcome:
    """What one publication run did, finding by finding."""

    published: list[PostedComment] = field(default_factory=list)
    tasks: list[int] = field(default_factory=list)  # ids of the comments that received a task
    skipped: list[SkippedFinding] = field(default_factory=list)
    errors: list[FindingError] = field(default_factory=list)

    @property
    def published_count(self) -> int:
        return len(self.published)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    def skipped_for(self, reason: str) -> list[Finding]:
        return [s.finding for s in self.skipped if s.reason == reason]


def _describe(finding: Finding) -> str:
    return f"{finding.rule} at {finding.path}:{finding.line}"


def publish_findings(
    findings: FindingSet,
    diff_index: DiffIndex,
    comment_index: CommentIndex,
    client: PullRequestCommenter,
    ref: PullRequestRef,
    settings: ReviewSettings,
    renderer: Renderer = render_issue,
) -> RunOutcome:
    """Publish one inline comment (and optionally a task) per finding inside the diff.

    Never raises for a per-finding remote failure; those end up in
    ``RunOutcome.errors`` with the offending finding.
    """
    outcome = RunOutcome()

    for finding in findings:
        path = diff_index.normalize_path(finding.path)
        position = diff_index.resolve(path, finding.line) if path else None
        if position is None:
            logger.debug("Skipping %s (not in diff)", _describe(finding))
            outcome.skipped.append(SkippedFinding(finding, OUTSIDE_DIFF))
            continue

        text = renderer(finding, settings.sonar_url)

        try:
            comment = comment_index.find(text, path, position.line)
            if comment is not None:
                logger.debug("Skipping %s (already commented)", _describe(finding))
                outcome.skipped.append(SkippedFinding(finding, DUPLICATE))
            elif settings.should_comment(finding.severity):
                comment = client.publish_comment(ref, text, path, position.line, position.line_type)
                comment_index.record(comment)
                outcome.published.append(comment)
                logger.debug("Commented %s (comment %s)", _describe(finding), comment.id)
            else:
                logger.debug("Skipping %s (%s below comment threshold)", _describe(finding), finding.severity.name)
                outcome.skipped.append(SkippedFinding(finding, BELOW_THRESHOLD))

            if comment is not None and settings.should_raise_task(finding.severity):
                client.publish_task(comment.id, finding.message)
                outcome.tasks.append(comment.id)
        except StashClientError as e:
            logger.error("Unable to publish %s: %s", _describe(finding), e)
            outcome.errors.append(FindingError(finding, str(e)))

    logger.info(
        "%s: %d comment(s) published, %d task(s), %d skipped, %d error(s)",
        ref,
        outcome.published_count,
        len(outcome.tasks),
        outcome.skipped_count,
        len(outcome.errors),
    )
    return outcome
