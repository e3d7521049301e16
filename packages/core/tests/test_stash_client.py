"""Tests for the Stash REST client, using httpx's mock transport."""

import json

import httpx
import pytest

from stashlens_core.config import PullRequestRef, ReviewSettings
from stashlens_core.diff import ADDED
from stashlens_core.issues import Finding, FindingSet, Severity
from stashlens_core.reviewer import run_review
from stashlens_core.stash.client import StashClient, StashClientError

REF = PullRequestRef("PROJ", "repo", "7")
PR_URL = "/rest/api/1.0/projects/PROJ/repos/repo/pull-requests/7"


class Recorder:
    """Mock transport handler that records requests and replies from a route table."""

    def __init__(self, routes):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"errors": [{"message": f"no route {key}"}]})
        status, body = self.routes[key]
        return httpx.Response(status, json=body) if body is not None else httpx.Response(status)


def _client(routes, **kwargs):
    recorder = Recorder(routes)
    client = StashClient("https://stash.example.com/", transport=httpx.MockTransport(recorder), **kwargs)
    return client, recorder


class TestComments:
    def test_fetch_diff_builds_index(self):
        diff = {
            "diffs": [
                {
                    "destination": {"toString": "src/a.py"},
                    "hunks": [{"segments": [{"type": "ADDED", "lines": [{"source": 1, "destination": 2}]}]}],
                }
            ]
        }
        client, recorder = _client({("GET", f"{PR_URL}/diff"): (200, diff)})

        index = client.fetch_diff(REF)

        assert index.resolve("src/a.py", 2).line_type == ADDED
        assert recorder.requests[0].url.host == "stash.example.com"

    def test_fetch_comments_sends_path(self):
        values = {"values": [{"id": 9, "text": "t", "anchor": {"path": "src/a.py", "line": 2, "lineType": "ADDED"}}]}
        client, recorder = _client({("GET", f"{PR_URL}/comments"): (200, values)})

        comments = client.fetch_comments(REF, "src/a.py")

        assert [(c.id, c.line) for c in comments] == [(9, 2)]
        assert recorder.requests[0].url.params["path"] == "src/a.py"

    def test_publish_comment_payload(self):
        client, recorder = _client({("POST", f"{PR_URL}/comments"): (201, {"id": 321})})

        comment = client.publish_comment(REF, "*MAJOR* - msg", "src/a.py", 2, "ADDED")

        assert comment.id == 321
        assert comment.text == "*MAJOR* - msg"
        assert json.loads(recorder.requests[0].content) == {
            "text": "*MAJOR* - msg",
            "anchor": {"path": "src/a.py", "srcPath": "src/a.py", "line": 2, "lineType": "ADDED"},
        }

    def test_publish_general_comment_has_no_anchor(self):
        client, recorder = _client({("POST", f"{PR_URL}/comments"): (201, {"id": 1})})

        client.publish_general_comment(REF, "overview")

        assert json.loads(recorder.requests[0].content) == {"text": "overview"}

    def test_publish_task_payload(self):
        client, recorder = _client({("POST", "/rest/api/1.0/tasks"): (201, {"id": 5})})

        client.publish_task(321, "message1")

        assert json.loads(recorder.requests[0].content) == {
            "anchor": {"id": 321, "type": "COMMENT"},
            "text": "message1",
        }


class TestApproval:
    def test_approve_and_reset(self):
        client, recorder = _client(
            {("POST", f"{PR_URL}/approve"): (200, {"approved": True}), ("DELETE", f"{PR_URL}/approve"): (204, None)}
        )

        client.approve(REF)
        client.reset_approval(REF)

        assert [r.method for r in recorder.requests] == ["POST", "DELETE"]

    def test_add_reviewer_payload(self):
        client, recorder = _client({("PUT", PR_URL): (200, {})})

        client.add_reviewer(REF, 3, [{"user": {"name": "sonarqube"}}])

        assert json.loads(recorder.requests[0].content) == {"version": 3, "reviewers": [{"user": {"name": "sonarqube"}}]}

    def test_get_user(self):
        client, _ = _client({("GET", "/rest/api/1.0/users/sonarqube"): (200, {"name": "sonarqube"})})
        assert client.get_user("sonarqube") == {"name": "sonarqube"}


class TestAuthAndErrors:
    def test_basic_auth(self):
        client, recorder = _client({("GET", PR_URL): (200, {})}, user="login", password="password")
        client.get_pull_request(REF)
        assert recorder.requests[0].headers["Authorization"].startswith("Basic ")

    def test_token_auth(self):
        client, recorder = _client({("GET", PR_URL): (200, {})}, token="tok")
        client.get_pull_request(REF)
        assert recorder.requests[0].headers["Authorization"] == "Bearer tok"

    def test_http_error_converted(self):
        client, _ = _client({})

        with pytest.raises(StashClientError) as excinfo:
            client.fetch_diff(REF)

        assert excinfo.value.status_code == 404
        assert "no route" in str(excinfo.value)

    def test_transport_error_converted(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = StashClient("https://stash.example.com", transport=httpx.MockTransport(handler))

        with pytest.raises(StashClientError, match="ConnectError"):
            client.approve(REF)

    def test_invalid_json_converted(self):
        def handler(request):
            return httpx.Response(200, content=b"<html>login</html>")

        client = StashClient("https://stash.example.com", transport=httpx.MockTransport(handler))

        with pytest.raises(StashClientError, match="not valid JSON"):
            client.get_pull_request(REF)

    def test_context_manager_closes(self):
        with StashClient("https://stash.example.com", transport=httpx.MockTransport(Recorder({}))) as client:
            pass
        assert client._http.is_closed


class TestMalformedResponses:
    def test_empty_comment_reply_raises_client_error(self):
        client, _ = _client({("POST", f"{PR_URL}/comments"): (201, None)})

        with pytest.raises(StashClientError, match="no 'id'"):
            client.publish_comment(REF, "text", "src/a.py", 2, "ADDED")

    def test_comment_reply_without_id_raises_client_error(self):
        client, _ = _client({("POST", f"{PR_URL}/comments"): (201, {"text": "overview"})})

        with pytest.raises(StashClientError, match="no 'id'"):
            client.publish_general_comment(REF, "overview")

    def test_non_object_comment_entry_raises_client_error(self):
        client, _ = _client({("GET", f"{PR_URL}/comments"): (200, {"values": ["not a comment"]})})

        with pytest.raises(StashClientError, match="unexpected response"):
            client.fetch_comments(REF, "src/a.py")

    def test_comment_entry_without_id_raises_client_error(self):
        client, _ = _client({("GET", f"{PR_URL}/comments"): (200, {"values": [{"text": "t"}]})})

        with pytest.raises(StashClientError, match="unexpected response"):
            client.fetch_comments(REF, "src/a.py")

    def test_json_array_raises_client_error(self):
        client, _ = _client({("GET", PR_URL): (200, [1, 2])})

        with pytest.raises(StashClientError, match="expected a JSON object"):
            client.get_pull_request(REF)

    def test_malformed_diff_raises_client_error(self):
        client, _ = _client({("GET", f"{PR_URL}/diff"): (200, {"diffs": ["nope"]})})

        with pytest.raises(StashClientError, match="unexpected response"):
            client.fetch_diff(REF)

    def test_empty_comment_reply_is_isolated_and_approval_still_runs(self):
        diff = {
            "diffs": [
                {
                    "destination": {"toString": "src/a.py"},
                    "hunks": [{"segments": [{"type": "ADDED", "lines": [{"source": 1, "destination": 2}]}]}],
                }
            ]
        }
        client, recorder = _client(
            {
                ("GET", f"{PR_URL}/diff"): (200, diff),
                ("GET", f"{PR_URL}/comments"): (200, {"values": []}),
                ("POST", f"{PR_URL}/comments"): (201, None),
                ("DELETE", f"{PR_URL}/approve"): (204, None),
            }
        )
        findings = FindingSet([Finding(Severity.MAJOR, "py:S1", "Fix me", "src/a.py", 2)])
        settings = ReviewSettings(include_overview=False, approve=True)

        summary = run_review(REF, findings, settings, client)

        assert len(summary.outcome.errors) == 1
        assert "no 'id'" in summary.outcome.errors[0].error
        assert summary.approval == "reset"
        assert summary.failures == []
        assert ("DELETE", f"{PR_URL}/approve") in [(r.method, r.url.path) for r in recorder.requests]
