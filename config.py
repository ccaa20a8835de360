"""
config.py – Environment settings and the YAML reporter configuration.

The YAML configuration is built from an embedded default document merged
with an optional user file.  Secrets and per-machine overrides come from
environment variables (a local ``.env`` file is honoured).
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from models import (
    MATCH_ALL_SUITES,
    ByName,
    ByProperty,
    CaseRule,
    MatchAll,
    Matcher,
    Route,
    SuiteRule,
)

load_dotenv()

logger = logging.getLogger("jira-test-reporter")

MATCH_ALL_SYMBOL = "*"
CONFIG_FILE_NAMES = ("config.yaml", "config.yml")
ENV_JIRA_TOKEN = "REPORTER_JIRA_TOKEN"

DEFAULT_CONFIG_YAML = """\
apiVersion: v1
spec:
  jira:
    server:
      url: https://issues.redhat.com
    discovery:
      summary:
        requiredPrefix: ""
      labels:
        requiredAnyOf: []
    desiredState:
      summary:
        contents: "Test Report"
        includeTestCounts: true
      description:
        templatePath: "embedded:jira_description.tmpl"
      onSuccess:
        labels: ["tests-passed"]
      onFailure:
        labels: ["tests-failed"]
  reporting:
    routing:
"""


class ConfigError(ValueError):
    """Raised when the configuration file is unreadable or malformed."""


class Settings:
    """Validated, read-only values taken from the environment."""

    JIRA_TOKEN: str = os.getenv(ENV_JIRA_TOKEN, "")
    JIRA_SERVER_URL: str = os.getenv("REPORTER_JIRA_SERVER_URL", "")
    CONFIG_PATH: str = os.getenv("REPORTER_CONFIG_PATH", ".")

    @classmethod
    def validate(cls, token: str | None = None) -> None:
        """Halt early if no Jira access token is available."""
        if not (token or cls.JIRA_TOKEN):
            sys.exit(
                "[ERROR] Jira access token not set.\n"
                f"  → Use the -t/--jira-token flag or set the '{ENV_JIRA_TOKEN}' env var."
            )


# ── Typed configuration ─────────────────────────────────────────────────

@dataclass
class DiscoveryConfig:
    required_prefix: str = ""
    required_any_of_labels: list[str] = field(default_factory=list)


@dataclass
class DesiredStateConfig:
    summary_contents: str = ""
    include_test_counts: bool = False
    template_path: str = ""
    on_success_labels: list[str] = field(default_factory=list)
    on_failure_labels: list[str] = field(default_factory=list)


@dataclass
class ReporterConfig:
    server_url: str = ""
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    desired_state: DesiredStateConfig = field(default_factory=DesiredStateConfig)
    routing: list[Route] = field(default_factory=list)


# ── Parsing helpers ─────────────────────────────────────────────────────

def _section(data: Any, *keys: str) -> dict[str, Any]:
    """Walk nested mappings, treating a missing or null section as empty."""
    node = data
    for key in keys:
        if node is None:
            return {}
        if not isinstance(node, dict):
            raise ConfigError(f"'{key}' parent section must be a mapping")
        node = node.get(key)
    if node is None:
        return {}
    if not isinstance(node, dict):
        raise ConfigError(f"section '{'.'.join(keys)}' must be a mapping")
    return node


def _string_list(value: Any, where: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"'{where}' must be a list of strings")
    return [str(v) for v in value]


def _bool(value: Any, where: str) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ConfigError(f"'{where}' must be true or false")
    return value


def _matchers(entry: dict[str, Any], where: str) -> tuple[Matcher, ...]:
    """Translate ``name`` / ``property`` keys into explicit matchers."""
    matchers: list[Matcher] = []

    name = entry.get("name")
    if name:
        name = str(name)
        matchers.append(MatchAll() if name == MATCH_ALL_SYMBOL else ByName(name))

    prop = entry.get("property")
    if prop:
        rule = ByProperty.parse(str(prop))
        if rule is None:
            logger.warning(
                "Ignoring malformed property rule '%s' in %s (expected key=value)",
                prop,
                where,
            )
        else:
            matchers.append(rule)

    return tuple(matchers)


def _suite_rule(entry: Any, where: str) -> SuiteRule:
    if not isinstance(entry, dict):
        raise ConfigError(f"{where} must be a mapping")

    case_rules: tuple[CaseRule, ...] | None = None
    if entry.get("testCases") is not None:
        cases = entry["testCases"]
        if not isinstance(cases, list):
            raise ConfigError(f"{where}.testCases must be a list")
        parsed: list[CaseRule] = []
        for j, case in enumerate(cases):
            if not isinstance(case, dict):
                raise ConfigError(f"{where}.testCases[{j}] must be a mapping")
            parsed.append(CaseRule(_matchers(case, f"{where}.testCases[{j}]")))
        case_rules = tuple(parsed)

    return SuiteRule(matchers=_matchers(entry, where), case_rules=case_rules)


def parse_routing(routing: Any) -> list[Route]:
    """Convert the ``spec.reporting.routing`` list into Route objects."""
    if routing is None:
        return []
    if not isinstance(routing, list):
        raise ConfigError("spec.reporting.routing must be a list")

    routes: list[Route] = []
    for i, entry in enumerate(routing):
        where = f"spec.reporting.routing[{i}]"
        if not isinstance(entry, dict):
            raise ConfigError(f"{where} must be a mapping")

        destination = str(entry.get("destination") or "")
        suites = entry.get("testSuites")
        if suites is None:
            suite_rules: tuple[SuiteRule, ...] = (MATCH_ALL_SUITES,)
        elif isinstance(suites, list):
            suite_rules = tuple(
                _suite_rule(s, f"{where}.testSuites[{j}]")
                for j, s in enumerate(suites)
            )
        else:
            raise ConfigError(f"{where}.testSuites must be a list")

        routes.append(Route(destination=destination, suite_rules=suite_rules))
    return routes


def config_from_dict(data: dict[str, Any]) -> ReporterConfig:
    """Build the typed configuration from a merged YAML document."""
    jira = _section(data, "spec", "jira")
    desired = _section(jira, "desiredState")

    return ReporterConfig(
        server_url=str(_section(jira, "server").get("url") or ""),
        discovery=DiscoveryConfig(
            required_prefix=str(
                _section(jira, "discovery", "summary").get("requiredPrefix") or ""
            ),
            required_any_of_labels=_string_list(
                _section(jira, "discovery", "labels").get("requiredAnyOf"),
                "spec.jira.discovery.labels.requiredAnyOf",
            ),
        ),
        desired_state=DesiredStateConfig(
            summary_contents=str(_section(desired, "summary").get("contents") or ""),
            include_test_counts=_bool(
                _section(desired, "summary").get("includeTestCounts"),
                "spec.jira.desiredState.summary.includeTestCounts",
            ),
            template_path=str(
                _section(desired, "description").get("templatePath") or ""
            ),
            on_success_labels=_string_list(
                _section(desired, "onSuccess").get("labels"),
                "spec.jira.desiredState.onSuccess.labels",
            ),
            on_failure_labels=_string_list(
                _section(desired, "onFailure").get("labels"),
                "spec.jira.desiredState.onFailure.labels",
            ),
        ),
        routing=parse_routing(_section(data, "spec", "reporting").get("routing")),
    )


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return *base* updated recursively with *override*; lists are replaced."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"config file '{path}' could not be loaded: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file '{path}' must contain a mapping")
    return data


def find_config_file(path: str | Path) -> Path | None:
    """Resolve *path* to a config file: a file as-is, a directory by name."""
    candidate = Path(path)
    if candidate.is_file():
        return candidate
    if candidate.is_dir():
        for name in CONFIG_FILE_NAMES:
            if (candidate / name).is_file():
                return candidate / name
    return None


# ── Public API ──────────────────────────────────────────────────────────

def load_config(path: str | Path | None = None) -> ReporterConfig:
    """Load the embedded defaults and merge the user config found at *path*."""
    data: dict[str, Any] = yaml.safe_load(DEFAULT_CONFIG_YAML)

    config_path = find_config_file(path if path is not None else Settings.CONFIG_PATH)
    if config_path is None:
        logger.info("User config not found at '%s'. Continuing with defaults", path)
    else:
        data = deep_merge(data, _read_yaml(config_path))
        logger.info("Loaded config file at '%s'", config_path)

    config = config_from_dict(data)

    if Settings.JIRA_SERVER_URL:
        config.server_url = Settings.JIRA_SERVER_URL

    if not config.routing:
        logger.info(
            "No custom routing for test reports found. This can be configured "
            "in the 'spec.reporting.routing' section of the config file"
        )
    else:
        logger.info("Routing rules loaded from config file: %d", len(config.routing))

    return config
