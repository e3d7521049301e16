from __future__ import annotations

import logging

from stashlens_core.config import PullRequestRef
from stashlens_core.stash.base import PullRequestApprover

logger = logging.getLogger(__name__)

APPROVED = "approved"
RESET = "reset"


def decide_approval(finding_count: int, enabled: bool, client: PullRequestApprover, ref: PullRequestRef) -> str | None:
    """Approve a clean pull request, or withdraw approval when findings remain.

    Makes at most one remote call. Returns APPROVED, RESET, or None when disabled.
    """
    if not enabled:
        return None
    if finding_count == 0:
        client.approve(ref)
        logger.info("Approved %s: no new issues", ref)
        return APPROVED
    client.reset_approval(ref)
    logger.info("Reset approval of %s: %d new issue(s)", ref, finding_count)
    return RESET
