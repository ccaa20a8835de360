"""
templates.py – Render Jira issue descriptions with Jinja2.

A template path starting with ``embedded:`` refers to a template shipped
with the reporter; anything else is read from the local filesystem.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from jinja2 import (
    BaseLoader,
    DictLoader,
    Environment,
    FileSystemLoader,
    StrictUndefined,
    Template,
    TemplateError,
)

from models import AggregateReport, MetadataEntry

logger = logging.getLogger("jira-test-reporter")

EMBEDDED_PREFIX = "embedded:"

# ── Templates shipped with the reporter ─────────────────────────────────

JIRA_DESCRIPTION_TEMPLATE = """\
h2. Test Results

||Test Suite||Passed||Failed||Skipped||Total||
{% for suite in report.test_suites %}
|{{ suite.name or "(unnamed)" }}|{{ suite.counts.passed }}|{{ suite.counts.failed }}|{{ suite.counts.skipped }}|{{ suite.counts.total }}|
{% endfor %}
|*All Test Suites*|*{{ report.counts.passed }}*|*{{ report.counts.failed }}*|*{{ report.counts.skipped }}*|*{{ report.counts.total }}*|
{% if report.counts.failed == 0 %}

(/) All executed tests passed.
{% else %}

(x) {{ report.counts.failed }} test(s) failed{% if report.counts.errored %}, {{ report.counts.errored }} of them with errors{% endif %}.
{% endif %}
{% if metadata %}

h3. Details

{% for entry in metadata %}
* *{{ entry.key }}:* {{ entry.value }}
{% endfor %}
{% endif %}
"""

EMBEDDED_TEMPLATES: dict[str, str] = {
    "jira_description.tmpl": JIRA_DESCRIPTION_TEMPLATE,
}


class TemplateRenderError(Exception):
    """Raised when a description template cannot be loaded or rendered."""


def _environment(loader: BaseLoader) -> Environment:
    return Environment(
        loader=loader,
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        autoescape=False,
    )


def load_embedded_template(name: str) -> Template:
    """Load one of the templates shipped with the reporter."""
    return _environment(DictLoader(EMBEDDED_TEMPLATES)).get_template(name)


def load_local_template(path: str) -> Template:
    """Load a template file from the local filesystem."""
    directory, name = os.path.split(os.path.abspath(path))
    return _environment(FileSystemLoader(directory)).get_template(name)


# ── Public API ──────────────────────────────────────────────────────────

class TemplateRenderer:
    """Renders issue descriptions for aggregate reports."""

    def render(self, path: str, data: dict[str, Any]) -> str:
        embedded = path.startswith(EMBEDDED_PREFIX)
        kind = "embedded" if embedded else "local"
        try:
            if embedded:
                name = path[len(EMBEDDED_PREFIX):]
                logger.debug("Rendering embedded template '%s'", name)
                template = load_embedded_template(name)
            else:
                logger.debug("Rendering local template '%s'", path)
                template = load_local_template(path)
        except (TemplateError, OSError, UnicodeDecodeError) as exc:
            raise TemplateRenderError(
                f"{kind} description template could not be loaded: {exc}"
            ) from exc

        try:
            return template.render(**data)
        except Exception as exc:
            raise TemplateRenderError(
                f"{kind} description template could not be rendered: {exc}"
            ) from exc

    def render_report(
        self,
        path: str,
        report: AggregateReport,
        metadata: list[MetadataEntry] | tuple[MetadataEntry, ...] = (),
    ) -> str:
        return self.render(path, {"report": report, "metadata": list(metadata)})
