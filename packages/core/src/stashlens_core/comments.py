"""Inline comments already present on the pull request."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PostedComment:
    id: int
    path: str
    line: int | None
    text: str
    line_type: str | None = None

    @classmethod
    def from_stash_json(cls, data: dict, default_path: str = "") -> PostedComment:
        anchor = data.get("anchor") or {}
        return cls(
            id=data["id"],
            path=anchor.get("path") or default_path,
            line=anchor.get("line"),
            text=data.get("text", ""),
            line_type=anchor.get("lineType"),
        )


def flatten_comments(values: Iterable[dict], default_path: str = "") -> list[PostedComment]:
    """Convert server comment JSON into PostedComments, including nested replies."""
    comments = []
    stack = list(values)
    while stack:
        data = stack.pop(0)
        comment = PostedComment.from_stash_json(data, default_path)
        comments.append(comment)
        # Replies carry no anchor of their own; they inherit the parent's location.
        for reply in data.get("comments") or []:
            stack.append({**reply, "anchor": reply.get("anchor") or data.get("anchor")})
    return comments


class CommentIndex:
    """Per-file cache of posted comments, fetched lazily once per path.

    The cache is never refetched during a run. Comments published by the run
    itself are added with record(), so an identical finding later in the same
    run is still recognised as a duplicate.
    """

    def __init__(self, fetch: Callable[[str], Iterable[PostedComment]]):
        self._fetch = fetch
        self._by_path: dict[str, list[PostedComment]] = {}

    def comments_for(self, path: str) -> list[PostedComment]:
        if path not in self._by_path:
            self._by_path[path] = list(self._fetch(path))
            logger.debug("Loaded %d existing comment(s) for %s", len(self._by_path[path]), path)
        return self._by_path[path]

    def find(self, text: str, path: str, line: int | None) -> PostedComment | None:
        for comment in self.comments_for(path):
            if comment.text == text and comment.path == path and comment.line == line:
                return comment
        return None

    def contains(self, text: str, path: str, line: int | None) -> bool:
        return self.find(text, path, line) is not None

    def record(self, comment: PostedComment) -> None:
        self.comments_for(comment.path).append(comment)
