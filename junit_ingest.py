"""
junit_ingest.py – Locate and parse JUnit XML test reports.

Both ``<testsuites>`` and bare ``<testsuite>`` roots are accepted; nested
suites are flattened into a single ordered list.
"""

from __future__ import annotations

import logging
import os
import xml.etree.ElementTree as ET
from pathlib import Path

from models import SuiteInput, TestCase, TestStatus

logger = logging.getLogger("jira-test-reporter")

SUPPORTED_EXTENSIONS = (".xml", ".junit")


class IngestError(Exception):
    """Raised when a test report cannot be read or parsed."""


# ── File discovery ──────────────────────────────────────────────────────

def find_report_files(paths: list[str]) -> list[str]:
    """Expand files and directories into the JUnit reports they contain."""
    files: list[str] = []
    seen: set[str] = set()

    def _keep(path: str) -> None:
        if path.endswith(SUPPORTED_EXTENSIONS) and path not in seen:
            seen.add(path)
            files.append(path)

    for entry in paths:
        if os.path.isfile(entry):
            _keep(entry)
            continue
        if not os.path.isdir(entry):
            logger.warning("Input path '%s' does not exist; skipping.", entry)
            continue
        for root, dirs, names in os.walk(entry):
            dirs.sort()
            for name in sorted(names):
                _keep(os.path.join(root, name))
    return files


# ── XML helpers ─────────────────────────────────────────────────────────

def _properties(el: ET.Element) -> dict[str, str]:
    props: dict[str, str] = {}
    for prop in el.findall("./properties/property"):
        name = prop.get("name")
        if name is None:
            continue
        value = prop.get("value")
        if value is None:
            value = (prop.text or "").strip()
        props[name] = value
    return props


def _case_status(el: ET.Element) -> TestStatus:
    if el.find("failure") is not None:
        return TestStatus.FAILED
    if el.find("error") is not None:
        return TestStatus.ERRORED
    if el.find("skipped") is not None:
        return TestStatus.SKIPPED
    return TestStatus.PASSED


def _collect_suites(el: ET.Element, out: list[SuiteInput]) -> None:
    """Append *el* (if it holds cases) and every nested suite to *out*."""
    cases = [
        TestCase(
            name=tc.get("name", ""),
            status=_case_status(tc),
            properties=_properties(tc),
        )
        for tc in el.findall("testcase")
    ]
    nested = el.findall("testsuite")
    if cases or not nested:
        out.append(
            SuiteInput(name=el.get("name", ""), properties=_properties(el), cases=cases)
        )
    for child in nested:
        _collect_suites(child, out)


def parse_report(path: str | Path) -> list[SuiteInput]:
    """Parse one JUnit XML file into its test suites."""
    try:
        root = ET.parse(path).getroot()
    except (OSError, ET.ParseError) as exc:
        raise IngestError(f"test report '{path}' could not be parsed: {exc}") from exc

    suites: list[SuiteInput] = []
    if root.tag == "testsuites":
        for el in root.findall("testsuite"):
            _collect_suites(el, suites)
    elif root.tag == "testsuite":
        _collect_suites(root, suites)
    else:
        raise IngestError(
            f"test report '{path}' has unexpected root element <{root.tag}>"
        )
    return suites


# ── Public API ──────────────────────────────────────────────────────────

def ingest_files(paths: list[str]) -> list[SuiteInput]:
    """Parse every report; any unreadable file fails the whole batch."""
    suites: list[SuiteInput] = []
    for path in paths:
        parsed = parse_report(path)
        logger.debug("Parsed %d test suites from '%s'", len(parsed), path)
        suites.extend(parsed)
    return suites
