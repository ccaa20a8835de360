from __future__ import annotations

from typing import Any

import pytest
import requests

from jira_client import JiraClient, JiraClientError, project_key_from_issue_id


class FakeResponse:
    def __init__(self, status_code: int, body: Any = None) -> None:
        self.status_code = status_code
        self._body = body

    def json(self) -> Any:
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class FakeSession:
    def __init__(self, *responses: FakeResponse | Exception) -> None:
        self.headers: dict[str, str] = {}
        self.requests: list[tuple[str, str, Any]] = []
        self._responses = list(responses)

    def request(self, method: str, url: str, json: Any = None, timeout: float | None = None):
        self.requests.append((method, url, json))
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


STORY_JSON = {
    "key": "PROJ-1",
    "fields": {
        "issuetype": {"name": "Story", "subtask": False},
        "summary": "[QE] Storage",
        "description": None,
        "labels": ["qe"],
        "subtasks": [
            {
                "key": "PROJ-2",
                "fields": {
                    "issuetype": {"name": "Sub-task", "subtask": True},
                    "summary": "Test Report (1/1 PASSED)",
                },
            },
            {"key": "PROJ-3", "fields": {"summary": "Docs"}},
        ],
    },
}


def _client(session: FakeSession) -> JiraClient:
    return JiraClient("https://jira.example.com/", "s3cret", session=session)


def test_bearer_token_is_sent() -> None:
    session = FakeSession()
    _client(session)
    assert session.headers["Authorization"] == "Bearer s3cret"


def test_get_issue_parses_story_with_subtasks() -> None:
    session = FakeSession(FakeResponse(200, STORY_JSON))

    issue = _client(session).get_issue("PROJ-1")

    assert session.requests[0][:2] == (
        "GET",
        "https://jira.example.com/rest/api/2/issue/PROJ-1",
    )
    assert issue.id == "PROJ-1"
    assert issue.type_name == "Story"
    assert issue.description == ""
    assert issue.labels == ["qe"]
    assert [c.id for c in issue.children] == ["PROJ-2", "PROJ-3"]
    assert issue.children[0].type_name == "Sub-task"
    assert issue.children[1].summary == "Docs"


def test_get_issue_keeps_parent_reference() -> None:
    body = {
        "key": "PROJ-2",
        "fields": {"issuetype": {"name": "Sub-task"}, "parent": {"key": "PROJ-1"}},
    }
    issue = _client(FakeSession(FakeResponse(200, body))).get_issue("PROJ-2")
    assert issue.parent_id == "PROJ-1"


def test_get_issue_rejects_non_200() -> None:
    with pytest.raises(JiraClientError, match="HTTP status code: 404"):
        _client(FakeSession(FakeResponse(404))).get_issue("PROJ-9")


def test_get_issue_rejects_malformed_body() -> None:
    with pytest.raises(JiraClientError, match="could not be parsed"):
        _client(FakeSession(FakeResponse(200, ValueError("not json")))).get_issue("PROJ-1")
    with pytest.raises(JiraClientError, match="could not be parsed"):
        _client(FakeSession(FakeResponse(200, {"fields": {}}))).get_issue("PROJ-1")


def test_network_errors_are_wrapped() -> None:
    session = FakeSession(requests.ConnectionError("connection refused"))
    with pytest.raises(JiraClientError, match="connection refused"):
        _client(session).get_issue("PROJ-1")


def test_update_issue_sends_set_operations() -> None:
    session = FakeSession(FakeResponse(204))

    _client(session).update_issue("PROJ-2", "Test Report", "desc", ["tests-passed"])

    method, url, payload = session.requests[0]
    assert method == "PUT"
    assert url.endswith("/rest/api/2/issue/PROJ-2")
    assert payload == {
        "update": {
            "summary": [{"set": "Test Report"}],
            "description": [{"set": "desc"}],
            "labels": [{"set": ["tests-passed"]}],
        }
    }


def test_update_issue_requires_no_content_status() -> None:
    with pytest.raises(JiraClientError, match="could not be updated"):
        _client(FakeSession(FakeResponse(200))).update_issue("PROJ-2", "s", "d", [])


def test_create_subtask_posts_fields_and_returns_key() -> None:
    session = FakeSession(FakeResponse(201, {"key": "PROJ-10", "self": "https://..."}))

    new_id = _client(session).create_subtask("PROJ-1", "Test Report", "desc", ["x"])

    method, url, payload = session.requests[0]
    assert new_id == "PROJ-10"
    assert method == "POST"
    assert url == "https://jira.example.com/rest/api/2/issue/"
    assert payload["fields"] == {
        "project": {"key": "PROJ"},
        "parent": {"key": "PROJ-1"},
        "summary": "Test Report",
        "description": "desc",
        "labels": ["x"],
        "issuetype": {"name": "Sub-task"},
    }


def test_create_subtask_requires_created_status() -> None:
    with pytest.raises(JiraClientError, match="HTTP status code: 400"):
        _client(FakeSession(FakeResponse(400))).create_subtask("PROJ-1", "s", "d", [])


@pytest.mark.parametrize(
    "issue_id,project",
    [("PROJ-1", "PROJ"), ("MY-PROJ-22", "MY-PROJ"), ("PROJ", "PROJ")],
)
def test_project_key_from_issue_id(issue_id: str, project: str) -> None:
    assert project_key_from_issue_id(issue_id) == project
