from __future__ import annotations

import pytest

from config import DesiredStateConfig, DiscoveryConfig, ReporterConfig, Settings
from jira_client import JiraClientError
from models import (
    AggregateReport,
    Counts,
    Issue,
    SuiteInput,
    TestCase,
    TestStatus,
    TestSuite,
)

PASS = TestStatus.PASSED
FAIL = TestStatus.FAILED
ERROR = TestStatus.ERRORED
SKIP = TestStatus.SKIPPED


def make_suite(name: str, statuses: list[TestStatus], **properties: str) -> SuiteInput:
    return SuiteInput(
        name=name,
        properties=dict(properties),
        cases=[TestCase(name=f"{name}_case_{i}", status=s) for i, s in enumerate(statuses)],
    )


def make_report(destination: str, **counts: int) -> AggregateReport:
    report = AggregateReport(
        destination=destination,
        test_suites=[TestSuite(name="suite", counts=Counts(**counts))],
    )
    report.aggregate_counts()
    return report


class FakeJiraClient:
    """In-memory stand-in for JiraClient that records every write."""

    def __init__(self, issues: dict[str, Issue] | None = None) -> None:
        self.issues = issues or {}
        self.get_calls: list[str] = []
        self.updated: list[tuple[str, str, str, list[str]]] = []
        self.created: list[tuple[str, str, str, list[str]]] = []
        self.fail_writes = False

    def get_issue(self, issue_id: str) -> Issue:
        self.get_calls.append(issue_id)
        if issue_id not in self.issues:
            raise JiraClientError(
                f"issue {issue_id} could not be fetched. HTTP status code: 404"
            )
        return self.issues[issue_id]

    def update_issue(
        self, issue_id: str, summary: str, description: str, labels: list[str]
    ) -> None:
        if self.fail_writes:
            raise JiraClientError(f"issue {issue_id} could not be updated. HTTP status code: 400")
        self.updated.append((issue_id, summary, description, labels))

    def create_subtask(
        self, parent_id: str, summary: str, description: str, labels: list[str]
    ) -> str:
        if self.fail_writes:
            raise JiraClientError("sub-task could not be created. HTTP status code: 400")
        self.created.append((parent_id, summary, description, labels))
        return f"{parent_id.split('-')[0]}-{900 + len(self.created)}"


@pytest.fixture(autouse=True)
def _clean_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(Settings, "JIRA_TOKEN", "")
    monkeypatch.setattr(Settings, "JIRA_SERVER_URL", "")
    monkeypatch.setattr(Settings, "CONFIG_PATH", ".")


@pytest.fixture
def reporter_config() -> ReporterConfig:
    return ReporterConfig(
        server_url="https://jira.example.com",
        discovery=DiscoveryConfig(),
        desired_state=DesiredStateConfig(
            summary_contents="Test Report",
            include_test_counts=True,
            template_path="embedded:jira_description.tmpl",
            on_success_labels=["tests-passed"],
            on_failure_labels=["tests-failed"],
        ),
    )


@pytest.fixture
def fake_client() -> FakeJiraClient:
    return FakeJiraClient()
