"""
uploader.py – Reconcile aggregate reports with their Jira issues.

For every report the uploader computes the desired issue state, reads the
destination issue and then either:

  • updates it in place   (destination is a Sub-task), or
  • finds / creates a Sub-task under it   (destination is a Story).

Reports are processed one after another.  Each upload reads the current
issue state right before writing, so two reports targeting the same Story
never race between the sub-task search and the create.
"""

from __future__ import annotations

import logging

from config import ReporterConfig
from jira_client import JiraClient, JiraClientError
from models import (
    AggregateReport,
    DesiredStateFields,
    Issue,
    IssueKind,
    MetadataEntry,
    UploadSummary,
)
from templates import TemplateRenderError, TemplateRenderer

_DEFAULT_LOGGER = logging.getLogger("jira-test-reporter")


class UploadError(Exception):
    """A report was rejected before or while writing to Jira."""


class UploadBatchError(Exception):
    """Raised after a batch upload in which at least one report failed."""

    def __init__(self, summary: UploadSummary) -> None:
        super().__init__(
            f"{summary.failed_count} Aggregate Report(s) failed to be uploaded"
        )
        self.summary = summary


class ReportUploader:
    """Pushes aggregate reports to their destination Jira issues."""

    def __init__(
        self,
        client: JiraClient,
        config: ReporterConfig,
        renderer: TemplateRenderer | None = None,
        metadata: list[MetadataEntry] | tuple[MetadataEntry, ...] = (),
        logger: logging.Logger | None = None,
    ) -> None:
        self._client = client
        self._discovery = config.discovery
        self._desired = config.desired_state
        self._renderer = renderer or TemplateRenderer()
        self._metadata = list(metadata)
        self._logger = logger or _DEFAULT_LOGGER

    # ── Desired state ───────────────────────────────────────────────────

    def desired_state(self, report: AggregateReport) -> DesiredStateFields:
        """Compute the summary, description and labels for *report*."""
        c = report.counts

        summary = self._desired.summary_contents
        if self._desired.include_test_counts:
            summary = f"{summary} ({c.passed}/{c.total - c.skipped} PASSED)"

        description = self._renderer.render_report(
            self._desired.template_path, report, self._metadata
        )

        labels = self._desired.on_failure_labels
        if c.failures == 0 and c.errored == 0:
            labels = self._desired.on_success_labels

        return DesiredStateFields(
            summary=summary, description=description, labels=list(labels)
        )

    # ── Guards ──────────────────────────────────────────────────────────

    def _is_report_subtask(self, issue: Issue) -> bool:
        """True if *issue* carries the summary text every report sub-task has."""
        return self._desired.summary_contents in issue.summary

    def _check_discovery(self, story: Issue) -> None:
        prefix = self._discovery.required_prefix
        if prefix and not story.summary.startswith(prefix):
            raise UploadError(
                f"summary of target Story '{story.id}' does not have "
                f"the required prefix '{prefix}'"
            )

        required = self._discovery.required_any_of_labels
        if required and not story.is_labeled_with_any_of(required):
            raise UploadError(
                f"target Story '{story.id}' is not labeled with any of "
                f"the following: {required}"
            )

    # ── Writes ──────────────────────────────────────────────────────────

    def _update(self, issue_id: str, fields: DesiredStateFields) -> str:
        try:
            self._client.update_issue(
                issue_id, fields.summary, fields.description, fields.labels
            )
        except JiraClientError as exc:
            raise UploadError(f"sub-task could not be updated: {exc}") from exc
        return issue_id

    def _sync_subtask(self, issue: Issue, fields: DesiredStateFields) -> str:
        if not self._is_report_subtask(issue):
            raise UploadError(
                f"summary of target Sub-task '{issue.id}' does not contain "
                f"'{self._desired.summary_contents}'"
            )
        return self._update(issue.id, fields)

    def _sync_story(
        self, story: Issue, fields: DesiredStateFields, summary: UploadSummary
    ) -> str:
        self._check_discovery(story)

        match = next((c for c in story.children if self._is_report_subtask(c)), None)
        if match is not None:
            self._logger.info(
                "Found a matching Sub-task '%s' for issue '%s'", match.id, story.id
            )
            summary.updated_ids.append(self._update(match.id, fields))
            return match.id

        try:
            new_id = self._client.create_subtask(
                story.id, fields.summary, fields.description, fields.labels
            )
        except JiraClientError as exc:
            raise UploadError(f"sub-task could not be created: {exc}") from exc
        self._logger.info("Created new Sub-task '%s' for issue '%s'", new_id, story.id)
        summary.created_ids.append(new_id)
        return new_id

    # ── Public API ──────────────────────────────────────────────────────

    def upload_single_aggregate_report(
        self, report: AggregateReport, summary: UploadSummary | None = None
    ) -> str:
        """Bring the destination of *report* to its desired state.

        Returns the key of the issue that was written.  Raises UploadError
        for rejected reports; Jira and template failures propagate as
        JiraClientError / TemplateRenderError.
        """
        summary = summary if summary is not None else UploadSummary()

        if not report.destination:
            raise UploadError("given report does not have a valid destination")
        if report.is_empty:
            raise UploadError("given report is empty")

        fields = self.desired_state(report)
        issue = self._client.get_issue(report.destination)
        self._logger.info(
            "Processing issue '%s' type: '%s', summary: '%s'",
            issue.id,
            issue.type_name,
            issue.summary,
        )

        kind = issue.kind
        if kind is IssueKind.SUB_TASK:
            written = self._sync_subtask(issue, fields)
            summary.updated_ids.append(written)
            return written
        if kind is IssueKind.STORY:
            return self._sync_story(issue, fields, summary)

        raise UploadError(
            "target issue has to be either a Story or a Sub-task. "
            f"Got '{issue.type_name}' instead"
        )

    def upload_aggregate_reports(self, reports: list[AggregateReport]) -> UploadSummary:
        """Upload every report, in order, without stopping at failures.

        Raises UploadBatchError once all reports have been attempted if any
        of them failed.
        """
        summary = UploadSummary()

        for i, report in enumerate(reports, start=1):
            summary.attempted += 1
            try:
                self.upload_single_aggregate_report(report, summary)
            except (UploadError, JiraClientError, TemplateRenderError) as exc:
                self._logger.warning(
                    "Aggregate Report %d) could not be uploaded: %s", i, exc
                )
                summary.failures[i] = str(exc)
            else:
                summary.uploaded.append(report.destination)

        self._logger.info(
            "Summary: %d/%d Aggregate Reports uploaded to Jira",
            len(summary.uploaded),
            len(reports),
        )

        if summary.failures:
            raise UploadBatchError(summary)
        return summary
