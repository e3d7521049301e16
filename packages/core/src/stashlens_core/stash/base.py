"""Pull request mutation interfaces.

Commenting and approval are two independent capabilities. The publication
engine and reporter depend on PullRequestCommenter only; the approval step
depends on PullRequestApprover only. StashClient implements both, tests can
stub either one on its own.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stashlens_core.comments import PostedComment
    from stashlens_core.config import PullRequestRef
    from stashlens_core.diff import DiffIndex


class PullRequestCommenter(ABC):
    """Reads the diff and comments of a pull request and publishes new ones.

    Every method raises StashClientError on transport or server failure.
    """

    @abstractmethod
    def fetch_diff(self, ref: PullRequestRef) -> DiffIndex:
        """Return the full diff of the pull request."""

    @abstractmethod
    def fetch_comments(self, ref: PullRequestRef, path: str) -> list[PostedComment]:
        """Return the comments already anchored on ``path``."""

    @abstractmethod
    def publish_comment(self, ref: PullRequestRef, text: str, path: str, line: int, line_type: str) -> PostedComment:
        """Publish an inline comment and return it with its server id."""

    @abstractmethod
    def publish_general_comment(self, ref: PullRequestRef, text: str) -> PostedComment:
        """Publish a comment on the pull request itself (no file anchor)."""

    @abstractmethod
    def publish_task(self, comment_id: int, text: str) -> None:
        """Attach a task to an existing comment."""


class PullRequestApprover(ABC):
    """Approval and reviewer management for a pull request."""

    @abstractmethod
    def approve(self, ref: PullRequestRef) -> None:
        """Approve the pull request as the authenticated user."""

    @abstractmethod
    def reset_approval(self, ref: PullRequestRef) -> None:
        """Withdraw the authenticated user's approval."""

    @abstractmethod
    def get_pull_request(self, ref: PullRequestRef) -> dict:
        """Return the raw pull request resource (reviewers, version)."""

    @abstractmethod
    def get_user(self, slug: str) -> dict:
        """Return the raw user resource for ``slug``."""

    @abstractmethod
    def add_reviewer(self, ref: PullRequestRef, version: int, reviewers: list[dict]) -> None:
        """Replace the reviewer list of the pull request at ``version``."""
