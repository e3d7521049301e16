"""Stash (Bitbucket Server) REST client.

All transport failures are converted to StashClientError here so callers deal
with a single exception type. Paging and retries are left to the server
defaults: one page with a generous limit is requested.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from stashlens_core.comments import PostedComment, flatten_comments
from stashlens_core.config import PullRequestRef
from stashlens_core.diff import DiffIndex
from stashlens_core.stash.base import PullRequestApprover, PullRequestCommenter

logger = logging.getLogger(__name__)

_API = "/rest/api/1.0"
_PAGE_LIMIT = 1000


class StashClientError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class StashClient(PullRequestCommenter, PullRequestApprover):
    def __init__(
        self,
        base_url: str,
        user: str | None = None,
        password: str | None = None,
        token: str | None = None,
        timeout: float = 10,
        transport: httpx.BaseTransport | None = None,
    ):
        headers = {"Accept": "application/json"}
        auth = None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        elif user:
            auth = httpx.BasicAuth(user, password or "")
        self.user = user
        self._http = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            auth=auth,
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> StashClient:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Transport                                                          #
    # ------------------------------------------------------------------ #

    def _request(self, method: str, url: str, what: str, **kwargs) -> Any:
        logger.debug("%s %s", method, url)
        try:
            response = self._http.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise StashClientError(f"Unable to {what}: HTTP {status} {_error_message(e.response)}", status) from e
        except httpx.HTTPError as e:
            raise StashClientError(f"Unable to {what}: {type(e).__name__}: {e}") from e

        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as e:
            raise StashClientError(f"Unable to {what}: response is not valid JSON") from e
        if not isinstance(data, dict):
            raise StashClientError(f"Unable to {what}: expected a JSON object, got {type(data).__name__}")
        return data

    @staticmethod
    def _pr_url(ref: PullRequestRef) -> str:
        return f"{_API}/projects/{ref.project}/repos/{ref.repository}/pull-requests/{ref.pull_request_id}"

    # ------------------------------------------------------------------ #
    # PullRequestCommenter                                               #
    # ------------------------------------------------------------------ #

    def fetch_diff(self, ref: PullRequestRef) -> DiffIndex:
        what = f"get diff of {ref}"
        data = self._request("GET", f"{self._pr_url(ref)}/diff", what, params={"withComments": "false"})
        try:
            return DiffIndex.from_stash_json(data)
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            raise StashClientError(f"Unable to {what}: unexpected response ({type(e).__name__}: {e})") from e

    def fetch_comments(self, ref: PullRequestRef, path: str) -> list[PostedComment]:
        what = f"get comments of {ref} on {path}"
        data = self._request("GET", f"{self._pr_url(ref)}/comments", what, params={"path": path, "limit": _PAGE_LIMIT})
        try:
            return flatten_comments(data.get("values") or [], default_path=path)
        except (KeyError, TypeError, AttributeError) as e:
            raise StashClientError(f"Unable to {what}: unexpected response ({type(e).__name__}: {e})") from e

    def publish_comment(self, ref: PullRequestRef, text: str, path: str, line: int, line_type: str) -> PostedComment:
        payload = {
            "text": text,
            "anchor": {"path": path, "srcPath": path, "line": line, "lineType": line_type},
        }
        what = f"comment on {ref} at {path}:{line}"
        data = self._request("POST", f"{self._pr_url(ref)}/comments", what, json=payload)
        return PostedComment(id=_require(data, "id", what), path=path, line=line, text=text, line_type=line_type)

    def publish_general_comment(self, ref: PullRequestRef, text: str) -> PostedComment:
        what = f"comment on {ref}"
        data = self._request("POST", f"{self._pr_url(ref)}/comments", what, json={"text": text})
        return PostedComment(id=_require(data, "id", what), path="", line=None, text=text)

    def publish_task(self, comment_id: int, text: str) -> None:
        payload = {"anchor": {"id": comment_id, "type": "COMMENT"}, "text": text}
        self._request("POST", f"{_API}/tasks", f"create task on comment {comment_id}", json=payload)

    # ------------------------------------------------------------------ #
    # PullRequestApprover                                                #
    # ------------------------------------------------------------------ #

    def approve(self, ref: PullRequestRef) -> None:
        self._request("POST", f"{self._pr_url(ref)}/approve", f"approve {ref}")

    def reset_approval(self, ref: PullRequestRef) -> None:
        self._request("DELETE", f"{self._pr_url(ref)}/approve", f"reset approval of {ref}")

    def get_pull_request(self, ref: PullRequestRef) -> dict:
        return self._request("GET", self._pr_url(ref), f"get {ref}")

    def get_user(self, slug: str) -> dict:
        return self._request("GET", f"{_API}/users/{slug}", f"get user {slug}")

    def add_reviewer(self, ref: PullRequestRef, version: int, reviewers: list[dict]) -> None:
        payload = {"version": version, "reviewers": reviewers}
        self._request("PUT", self._pr_url(ref), f"update reviewers of {ref}", json=payload)


def _error_message(response: httpx.Response) -> str:
    """Extract the first server-side error message, falling back to the reason phrase."""
    try:
        errors = response.json().get("errors") or []
    except (ValueError, AttributeError):
        errors = []
    if errors and isinstance(errors[0], dict) and errors[0].get("message"):
        return errors[0]["message"]
    return response.reason_phrase


def _require(data: dict, key: str, what: str) -> Any:
    if data.get(key) is None:
        raise StashClientError(f"Unable to {what}: response has no {key!r}")
    return data[key]
