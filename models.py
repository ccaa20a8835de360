"""
models.py – Plain data-classes shared across every module.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


# ── Ingested test data ──────────────────────────────────────────────────

class TestStatus(str, enum.Enum):
    """Outcome of a single test case as recorded in the test report."""

    __test__ = False

    PASSED = "passed"
    FAILED = "failed"
    ERRORED = "errored"
    SKIPPED = "skipped"


@dataclass
class TestCase:
    """A single test case read from a JUnit report."""

    __test__ = False

    name: str
    status: TestStatus = TestStatus.PASSED
    properties: dict[str, str] = field(default_factory=dict)


@dataclass
class SuiteInput:
    """A test suite as produced by the ingestion step."""

    name: str
    properties: dict[str, str] = field(default_factory=dict)
    cases: list[TestCase] = field(default_factory=list)


# ── Aggregation ─────────────────────────────────────────────────────────

@dataclass
class Counts:
    """Running pass / fail / skip tallies.

    ``failed`` covers both failed and errored cases; ``errored`` records
    how many of those were errors, so callers can still tell the two apart.
    """

    passed: int = 0
    failed: int = 0
    skipped: int = 0
    total: int = 0
    errored: int = 0

    def add(self, status: TestStatus) -> None:
        if status == TestStatus.PASSED:
            self.passed += 1
        elif status == TestStatus.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1
            if status == TestStatus.ERRORED:
                self.errored += 1
        self.total += 1

    @property
    def failures(self) -> int:
        """Cases whose raw status was ``failed`` (errors excluded)."""
        return self.failed - self.errored


@dataclass
class TestSuite:
    """A processed suite: its name and the counts of the cases routed to it."""

    __test__ = False

    name: str
    counts: Counts = field(default_factory=Counts)


@dataclass
class AggregateReport:
    """Everything that should be reported to one destination issue."""

    destination: str = ""
    test_suites: list[TestSuite] = field(default_factory=list)
    counts: Counts = field(default_factory=Counts)

    def aggregate_counts(self) -> None:
        """Recompute ``counts`` as the sum over every suite."""
        self.counts = Counts()
        for suite in self.test_suites:
            self.counts.passed += suite.counts.passed
            self.counts.failed += suite.counts.failed
            self.counts.skipped += suite.counts.skipped
            self.counts.total += suite.counts.total
            self.counts.errored += suite.counts.errored

    @property
    def is_empty(self) -> bool:
        return self.counts.total <= 0


# ── Routing rules ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class MatchAll:
    """Matches any entity, including one with an empty name."""

    def matches(self, name: str, properties: dict[str, str]) -> bool:
        return True


@dataclass(frozen=True)
class ByName:
    """Matches an entity whose name is exactly ``name``."""

    name: str

    def matches(self, name: str, properties: dict[str, str]) -> bool:
        return self.name == name


@dataclass(frozen=True)
class ByProperty:
    """Matches an entity carrying property ``key`` set to exactly ``value``."""

    key: str
    value: str

    def matches(self, name: str, properties: dict[str, str]) -> bool:
        return self.key in properties and properties[self.key] == self.value

    @classmethod
    def parse(cls, predicate: str) -> ByProperty | None:
        """Build a rule from ``key=value``; split on the first ``=`` only.

        Returns ``None`` when the predicate has no ``=`` at all.
        """
        key, sep, value = predicate.partition("=")
        if not sep:
            return None
        return cls(key=key, value=value)


Matcher = MatchAll | ByName | ByProperty


def any_matches(
    matchers: tuple[Matcher, ...], name: str, properties: dict[str, str]
) -> bool:
    return any(m.matches(name, properties) for m in matchers)


@dataclass(frozen=True)
class CaseRule:
    """One test-case selector; an empty ``matchers`` tuple matches nothing."""

    matchers: tuple[Matcher, ...] = ()


@dataclass(frozen=True)
class SuiteRule:
    """One test-suite selector with its optional nested case selectors.

    ``case_rules=None`` means every case of a matched suite is counted.
    """

    matchers: tuple[Matcher, ...] = ()
    case_rules: tuple[CaseRule, ...] | None = None


MATCH_ALL_SUITES = SuiteRule(matchers=(MatchAll(),))


@dataclass(frozen=True)
class Route:
    """A destination together with every suite rule feeding it."""

    destination: str = ""
    suite_rules: tuple[SuiteRule, ...] = (MATCH_ALL_SUITES,)


# ── Issue tracker mirror ────────────────────────────────────────────────

class IssueKind(enum.Enum):
    STORY = "Story"
    SUB_TASK = "Sub-task"
    OTHER = "Other"

    @classmethod
    def from_type_name(cls, type_name: str) -> IssueKind:
        for kind in (cls.STORY, cls.SUB_TASK):
            if kind.value == type_name:
                return kind
        return cls.OTHER


@dataclass
class Issue:
    """Read-only mirror of a Jira issue as fetched for one upload attempt."""

    id: str
    type_name: str
    summary: str = ""
    description: str = ""
    labels: list[str] = field(default_factory=list)
    parent_id: str = ""
    children: list[Issue] = field(default_factory=list)

    @property
    def kind(self) -> IssueKind:
        return IssueKind.from_type_name(self.type_name)

    def is_labeled_with_any_of(self, labels: list[str]) -> bool:
        own = set(self.labels)
        return any(label in own for label in labels)


# ── Upload ──────────────────────────────────────────────────────────────

@dataclass
class DesiredStateFields:
    """Values sent to Jira so the issue reflects the latest test run."""

    summary: str
    description: str
    labels: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class MetadataEntry:
    """A key / value pair exposed to the description template."""

    key: str
    value: str


@dataclass
class UploadSummary:
    """Summary returned after every report has been attempted."""

    attempted: int = 0
    uploaded: list[str] = field(default_factory=list)
    created_ids: list[str] = field(default_factory=list)
    updated_ids: list[str] = field(default_factory=list)
    failures: dict[int, str] = field(default_factory=dict)

    @property
    def failed_count(self) -> int:
        return len(self.failures)
