"""Stash credential resolution with ~/.netrc fallback.

Resolution order (stops at first success):
  1. STASH_TOKEN environment variable (HTTP access token, sent as Bearer)
  2. STASH_USER / STASH_PASSWORD environment variables (basic auth)
  3. A ~/.netrc entry for the Stash host (basic auth)
"""

from __future__ import annotations

import logging
import netrc
import os
from dataclasses import dataclass
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StashCredentials:
    user: str | None = None
    password: str | None = None
    token: str | None = None


def resolve_stash_credentials(stash_url: str | None) -> StashCredentials | None:
    """Return credentials for ``stash_url`` or None if no source is available.

    Never raises — callers should check for None and emit a UsageError.
    """
    token = os.environ.get("STASH_TOKEN")
    user = os.environ.get("STASH_USER")
    if token:
        # The user name is still needed to add the bot as a reviewer.
        return StashCredentials(user=user, token=token)
    if user:
        return StashCredentials(user=user, password=os.environ.get("STASH_PASSWORD"))

    host = urlparse(stash_url or "").hostname
    if not host:
        return None
    try:
        entry = netrc.netrc().authenticators(host)
    except (FileNotFoundError, netrc.NetrcParseError) as e:
        logger.debug("No usable ~/.netrc: %s", e)
        return None
    if entry:
        login, _, password = entry
        logger.debug("Resolved Stash credentials for %s via ~/.netrc.", host)
        return StashCredentials(user=login, password=password)
    return None
