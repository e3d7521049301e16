from __future__ import annotations

import logging

from stashlens_core.config import PullRequestRef
from stashlens_core.stash.base import PullRequestApprover

logger = logging.getLogger(__name__)


def get_reviewer(pull_request: dict, user_slug: str) -> dict | None:
    """Return the reviewer entry for ``user_slug`` on a raw pull request resource, or None."""
    for reviewer in pull_request.get("reviewers") or []:
        user = reviewer.get("user") or {}
        if user_slug in (user.get("slug"), user.get("name")):
            return reviewer
    return None


def ensure_reviewer(client: PullRequestApprover, ref: PullRequestRef, user_slug: str) -> bool:
    """Add ``user_slug`` as a reviewer of the pull request unless it already is one.

    Returns True when the reviewer list was updated.
    """
    pull_request = client.get_pull_request(ref)
    if get_reviewer(pull_request, user_slug) is not None:
        logger.debug("%s is already a reviewer of %s", user_slug, ref)
        return False

    user = client.get_user(user_slug)
    reviewers = [{"user": r.get("user")} for r in pull_request.get("reviewers") or []]
    reviewers.append({"user": {"name": user.get("name", user_slug)}})
    client.add_reviewer(ref, pull_request.get("version", 0), reviewers)
    logger.info("Added %s as reviewer of %s", user_slug, ref)
    return True
