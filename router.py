"""
router.py – Classify ingested test suites into per-destination reports.

Routing rules are grouped by destination first, so every Jira issue gets
exactly one AggregateReport no matter how many config entries point at it.
Destinations are processed in lexicographic order to keep the output
stable regardless of how the rules were written.
"""

from __future__ import annotations

import logging

from models import (
    AggregateReport,
    CaseRule,
    Counts,
    Route,
    SuiteInput,
    SuiteRule,
    TestSuite,
    any_matches,
)

_DEFAULT_LOGGER = logging.getLogger("jira-test-reporter")


def group_routes_by_destination(routes: list[Route]) -> list[Route]:
    """Merge every route sharing a destination into a single route."""
    grouped: dict[str, list[SuiteRule]] = {}
    for route in routes:
        grouped.setdefault(route.destination, []).extend(route.suite_rules)

    return [
        Route(destination=dest, suite_rules=tuple(grouped[dest]))
        for dest in sorted(grouped)
    ]


def _applicable_case_rules(
    suite: SuiteInput, rules: tuple[SuiteRule, ...]
) -> tuple[list[CaseRule], bool]:
    """Collect the case rules of every suite rule matching *suite*.

    The boolean is True when at least one matching suite rule selects
    every case of the suite.
    """
    case_rules: list[CaseRule] = []
    match_all = False
    for rule in rules:
        if not any_matches(rule.matchers, suite.name, suite.properties):
            continue
        if rule.case_rules is None:
            match_all = True
        else:
            case_rules.extend(rule.case_rules)
    return case_rules, match_all


def process_suites(suites: list[SuiteInput], route: Route) -> AggregateReport:
    """Build the AggregateReport for one route.

    A suite matched by any suite rule contributes a processed TestSuite,
    even if none of its cases end up selected. Each case is counted at
    most once, however many case rules select it.
    """
    report = AggregateReport(destination=route.destination)

    for suite in suites:
        case_rules, match_all = _applicable_case_rules(suite, route.suite_rules)
        if not case_rules and not match_all:
            continue

        counts = Counts()
        for case in suite.cases:
            if match_all or any(
                any_matches(rule.matchers, case.name, case.properties)
                for rule in case_rules
            ):
                counts.add(case.status)

        report.test_suites.append(TestSuite(name=suite.name, counts=counts))

    report.aggregate_counts()
    return report


# ── Public API ──────────────────────────────────────────────────────────

class ReportRouter:
    """Turns ingested suites into one AggregateReport per destination."""

    def __init__(
        self,
        routes: list[Route] | None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._logger = logger or _DEFAULT_LOGGER
        if not routes:
            self._logger.info(
                "No custom routing configured; classifying every test suite "
                "without a destination."
            )
            routes = [Route()]
        self._routes = group_routes_by_destination(routes)

    def process(self, suites: list[SuiteInput]) -> list[AggregateReport]:
        reports = [process_suites(suites, route) for route in self._routes]
        self._logger.debug(
            "Classified %d test suites into %d aggregate reports",
            len(suites),
            len(reports),
        )
        return reports


def log_aggregate_reports(
    logger: logging.Logger, reports: list[AggregateReport]
) -> None:
    """Dump the reports in a human-readable form, one line per report."""
    logger.info("Aggregate Reports created based on configured routing rules")
    for i, report in enumerate(reports, start=1):
        c = report.counts
        dest = report.destination or "(no destination specified)"
        note = " (no data to upload)" if report.is_empty else ""
        logger.info(
            "%-3s Passed %-4d Failed %-4d Skipped %-4d Total %-4d -> Jira %s%s",
            f"{i})",
            c.passed,
            c.failed,
            c.skipped,
            c.total,
            dest,
            note,
        )
