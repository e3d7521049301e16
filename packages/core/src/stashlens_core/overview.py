"""Pull-request level overview and summary comments.

Each is gated by its own flag only; the aggregate issue threshold changes
what they say, never whether they are published.
"""

from __future__ import annotations

import logging

from stashlens_core.config import PullRequestRef, ReviewSettings
from stashlens_core.issues import FindingSet
from stashlens_core.markdown import render_overview, render_summary
from stashlens_core.stash.base import PullRequestCommenter

logger = logging.getLogger(__name__)


def maybe_publish_overview(
    findings: FindingSet, settings: ReviewSettings, client: PullRequestCommenter, ref: PullRequestRef
) -> bool:
    """Publish the analysis overview when enabled. Returns True if a comment was posted."""
    if not settings.include_overview:
        return False
    text = render_overview(findings, settings)
    client.publish_general_comment(ref, text)
    logger.info("Posted analysis overview on %s (%d issue(s))", ref, findings.count())
    return True


def maybe_publish_summary(
    findings: FindingSet, settings: ReviewSettings, client: PullRequestCommenter, ref: PullRequestRef
) -> bool:
    """Publish the condensed analysis summary when enabled. Returns True if a comment was posted."""
    if not settings.include_summary:
        return False
    client.publish_general_comment(ref, render_summary(findings, settings))
    logger.info("Posted analysis summary on %s", ref)
    return True
