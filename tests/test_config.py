from __future__ import annotations

import logging
from pathlib import Path

import pytest

from config import (
    ConfigError,
    Settings,
    deep_merge,
    find_config_file,
    load_config,
    parse_routing,
)
from models import MATCH_ALL_SUITES, ByName, ByProperty, CaseRule, MatchAll, Route, SuiteRule

USER_CONFIG = """\
spec:
  jira:
    discovery:
      summary:
        requiredPrefix: "[QE]"
      labels:
        requiredAnyOf: ["qe"]
    desiredState:
      summary:
        contents: "Nightly Report"
      onFailure:
        labels: ["broken"]
  reporting:
    routing:
      - destination: PROJ-2
        testSuites:
          - name: "*"
      - destination: PROJ-1
        testSuites:
          - property: "env=prod"
            testCases:
              - name: test_a
              - property: "tier=smoke"
"""


def test_defaults_are_used_without_user_config(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert config.server_url == "https://issues.redhat.com"
    assert config.desired_state.template_path == "embedded:jira_description.tmpl"
    assert config.desired_state.include_test_counts is True
    assert config.discovery.required_any_of_labels == []
    assert config.routing == []


def test_user_config_is_merged_over_defaults(tmp_path: Path) -> None:
    (tmp_path / "config.yaml").write_text(USER_CONFIG, encoding="utf-8")

    config = load_config(tmp_path)

    assert config.discovery.required_prefix == "[QE]"
    assert config.discovery.required_any_of_labels == ["qe"]
    assert config.desired_state.summary_contents == "Nightly Report"
    assert config.desired_state.include_test_counts is True
    assert config.desired_state.on_success_labels == ["tests-passed"]
    assert config.desired_state.on_failure_labels == ["broken"]
    assert config.routing == [
        Route("PROJ-2", (SuiteRule((MatchAll(),)),)),
        Route(
            "PROJ-1",
            (
                SuiteRule(
                    (ByProperty("env", "prod"),),
                    (CaseRule((ByName("test_a"),)), CaseRule((ByProperty("tier", "smoke"),))),
                ),
            ),
        ),
    ]


def test_explicit_file_path(tmp_path: Path) -> None:
    path = tmp_path / "reporter.yml"
    path.write_text("spec:\n  jira:\n    server:\n      url: https://jira.local\n")

    assert find_config_file(path) == path
    assert load_config(path).server_url == "https://jira.local"


def test_server_url_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(Settings, "JIRA_SERVER_URL", "https://env.example.com")
    assert load_config(tmp_path).server_url == "https://env.example.com"


def test_route_without_suites_matches_everything() -> None:
    assert parse_routing([{"destination": "PROJ-1"}]) == [Route("PROJ-1", (MATCH_ALL_SUITES,))]


def test_malformed_property_rule_is_dropped(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="jira-test-reporter"):
        routes = parse_routing(
            [{"destination": "PROJ-1", "testSuites": [{"property": "no-separator"}]}]
        )

    assert routes[0].suite_rules == (SuiteRule(matchers=()),)
    assert "malformed property rule 'no-separator'" in caplog.text


def test_rule_with_name_and_property_matches_either() -> None:
    routes = parse_routing(
        [{"destination": "D", "testSuites": [{"name": "A", "property": "k=v"}]}]
    )
    assert routes[0].suite_rules[0].matchers == (ByName("A"), ByProperty("k", "v"))


@pytest.mark.parametrize(
    "routing",
    [
        {"destination": "PROJ-1"},
        ["PROJ-1"],
        [{"destination": "PROJ-1", "testSuites": "all"}],
        [{"destination": "PROJ-1", "testSuites": [{"name": "A", "testCases": "x"}]}],
    ],
)
def test_malformed_routing_raises(routing) -> None:
    with pytest.raises(ConfigError):
        parse_routing(routing)


def test_invalid_yaml_raises(tmp_path: Path) -> None:
    (tmp_path / "config.yaml").write_text("spec: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="could not be loaded"):
        load_config(tmp_path)


def test_deep_merge_replaces_lists() -> None:
    merged = deep_merge({"a": {"b": [1, 2], "c": 1}}, {"a": {"b": [3]}})
    assert merged == {"a": {"b": [3], "c": 1}}


def test_validate_exits_without_token() -> None:
    with pytest.raises(SystemExit):
        Settings.validate("")
    Settings.validate("token")


@pytest.mark.parametrize("value", ['"false"', "1", "[true]"])
def test_include_test_counts_must_be_boolean(tmp_path: Path, value: str) -> None:
    (tmp_path / "config.yaml").write_text(
        f"spec:\n  jira:\n    desiredState:\n      summary:\n        includeTestCounts: {value}\n",
        encoding="utf-8",
    )

    with pytest.raises(ConfigError, match="includeTestCounts"):
        load_config(tmp_path)


def test_include_test_counts_false(tmp_path: Path) -> None:
    (tmp_path / "config.yaml").write_text(
        "spec:\n  jira:\n    desiredState:\n      summary:\n        includeTestCounts: false\n",
        encoding="utf-8",
    )

    assert load_config(tmp_path).desired_state.include_test_counts is False
