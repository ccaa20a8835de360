"""
jira_client.py – All Jira REST interactions.

Only three calls are needed: fetch an issue (with its sub-tasks), update
the summary / description / labels of an issue, and create a Sub-task
under a parent issue.  Everything goes through a single `requests`
session authenticated with a bearer token.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from models import Issue

logger = logging.getLogger("jira-test-reporter")

ISSUES_ENDPOINT = "/rest/api/2/issue/"
SUBTASK_TYPE_NAME = "Sub-task"


class JiraClientError(Exception):
    """Raised when Jira cannot be reached or answers with an unexpected response."""


# ── Payload helpers ─────────────────────────────────────────────────────

def _issue_from_json(data: dict[str, Any]) -> Issue:
    """Convert an issue returned by the REST API to the internal mirror."""
    fields: dict[str, Any] = data.get("fields") or {}
    parent = fields.get("parent") or {}
    return Issue(
        id=data["key"],
        type_name=(fields.get("issuetype") or {}).get("name", ""),
        summary=fields.get("summary") or "",
        description=fields.get("description") or "",
        labels=list(fields.get("labels") or []),
        parent_id=parent.get("key", ""),
        children=[_issue_from_json(s) for s in fields.get("subtasks") or []],
    )


def _update_document(
    summary: str, description: str, labels: list[str]
) -> dict[str, Any]:
    return {
        "update": {
            "summary": [{"set": summary}],
            "description": [{"set": description}],
            "labels": [{"set": list(labels)}],
        }
    }


def project_key_from_issue_id(issue_id: str) -> str:
    """Return the project part of an issue key, e.g. ``ABC`` for ``ABC-123``."""
    return issue_id.rsplit("-", 1)[0] if "-" in issue_id else issue_id


# ── Main client ─────────────────────────────────────────────────────────

class JiraClient:
    """Wraps every Jira interaction needed by the reporter."""

    def __init__(
        self,
        server_url: str,
        token: str,
        session: requests.Session | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._base = server_url.rstrip("/") + ISSUES_ENDPOINT
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            }
        )

    def _send(
        self, method: str, url: str, payload: dict[str, Any] | None = None
    ) -> requests.Response:
        try:
            return self._session.request(
                method, url, json=payload, timeout=self._timeout
            )
        except requests.RequestException as exc:
            raise JiraClientError(f"{method} {url} failed: {exc}") from exc

    # ── Issues ──────────────────────────────────────────────────────────

    def get_issue(self, issue_id: str) -> Issue:
        """Fetch a single issue, including its sub-tasks."""
        logger.info("Getting Jira issue '%s'", issue_id)
        resp = self._send("GET", self._base + issue_id)
        if resp.status_code != 200:
            raise JiraClientError(
                f"issue {issue_id} could not be fetched. "
                f"HTTP status code: {resp.status_code}"
            )
        try:
            return _issue_from_json(resp.json())
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise JiraClientError(
                f"issue {issue_id} response could not be parsed: {exc}"
            ) from exc

    def update_issue(
        self, issue_id: str, summary: str, description: str, labels: list[str]
    ) -> None:
        """Overwrite summary, description and labels of an existing issue."""
        logger.info("Updating Jira issue '%s' (%s, %s)", issue_id, summary, labels)
        resp = self._send(
            "PUT",
            self._base + issue_id,
            _update_document(summary, description, labels),
        )
        if resp.status_code != 204:
            raise JiraClientError(
                f"issue {issue_id} could not be updated. "
                f"HTTP status code: {resp.status_code}"
            )

    def create_subtask(
        self, parent_id: str, summary: str, description: str, labels: list[str]
    ) -> str:
        """Create a Sub-task under *parent_id* and return its new key."""
        logger.info("Creating a new Jira issue under '%s'", parent_id)
        document = {
            "fields": {
                "project": {"key": project_key_from_issue_id(parent_id)},
                "parent": {"key": parent_id},
                "summary": summary,
                "description": description,
                "labels": list(labels),
                "issuetype": {"name": SUBTASK_TYPE_NAME},
            }
        }
        resp = self._send("POST", self._base, document)
        if resp.status_code != 201:
            raise JiraClientError(
                "sub-task could not be created. "
                f"HTTP status code: {resp.status_code}"
            )
        try:
            return resp.json()["key"]
        except (ValueError, KeyError, TypeError) as exc:
            raise JiraClientError(
                f"sub-task creation response could not be parsed: {exc}"
            ) from exc
