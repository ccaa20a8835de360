#!/usr/bin/env python3
"""
run.py – CLI entry-point for the Jira test reporter.

Usage:
    python run.py upload -i results/ -d PROJ-123
    python run.py upload -i results/junit.xml -c config/ --no-sync
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime, timezone

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from config import ReporterConfig, Settings, load_config
from jira_client import JiraClient
from junit_ingest import find_report_files, ingest_files
from models import AggregateReport, MetadataEntry, Route, UploadSummary
from router import ReportRouter, log_aggregate_reports
from uploader import ReportUploader, UploadBatchError

__version__ = "1.0.0"

DEFAULT_INPUT_PATH = "input/"

console = Console()
logger = logging.getLogger("jira-test-reporter")

# ── Logging ─────────────────────────────────────────────────────────────

def _configure_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, markup=False)],
    )


# ── Pretty output helpers ──────────────────────────────────────────────

def _show_reports(reports: list[AggregateReport]) -> None:
    table = Table(title="Aggregate Reports", show_lines=True)
    table.add_column("#", style="dim", width=4)
    table.add_column("Destination", style="bold")
    table.add_column("Suites", justify="right")
    table.add_column("Passed", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Skipped", justify="right", style="yellow")
    table.add_column("Total", justify="right")

    for i, report in enumerate(reports, 1):
        c = report.counts
        table.add_row(
            str(i),
            escape(report.destination) or "[dim](no destination specified)[/]",
            str(len(report.test_suites)),
            str(c.passed),
            str(c.failed),
            str(c.skipped),
            str(c.total) if c.total else "[dim]0 (no data)[/]",
        )
    console.print(table)


def _show_results(summary: UploadSummary) -> None:
    console.print()
    console.print(
        Panel(
            f"[green bold]Uploaded:[/]  {len(summary.uploaded)} of {summary.attempted}\n"
            f"[green bold]Created:[/]   {summary.created_ids or '—'}\n"
            f"[yellow bold]Updated:[/]   {summary.updated_ids or '—'}\n"
            f"[red bold]Failed:[/]    {summary.failed_count}",
            title="Upload Summary",
            border_style="red" if summary.failures else "green",
        )
    )


# ── Argument helpers ────────────────────────────────────────────────────

def _metadata_entry(raw: str) -> MetadataEntry:
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got '{raw}'")
    return MetadataEntry(key=key, value=value)


def _system_metadata() -> list[MetadataEntry]:
    return [
        MetadataEntry("Reporter version", __version__),
        MetadataEntry(
            "Uploaded at",
            datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC"),
        ),
    ]


# ── Core orchestration ─────────────────────────────────────────────────

def upload(args: argparse.Namespace) -> int:
    """Ingest → Route → Upload.  Returns the process exit code."""
    logger.info("Reporter version %s", __version__)

    # ── Phase 1: Configuration ──────────────────────────────────────
    config: ReporterConfig = load_config(args.config)

    if args.dest:
        logger.info(
            "[-d/--dest flag set] Adding a global route for Jira issue '%s'. "
            "Any routes defined in the config file will be discarded",
            args.dest,
        )
        config.routing = [Route(destination=args.dest)]

    if args.jira_server_url:
        config.server_url = args.jira_server_url

    # ── Phase 2: Ingest ─────────────────────────────────────────────
    console.rule("[bold blue]Phase 1 · Ingest JUnit Reports")
    paths = find_report_files(args.input or [DEFAULT_INPUT_PATH])
    logger.info("Processing %d JUnit test reports %s", len(paths), paths)
    suites = ingest_files(paths)

    # ── Phase 3: Route ──────────────────────────────────────────────
    console.rule("[bold blue]Phase 2 · Route Test Suites")
    reports = ReportRouter(config.routing, logger=logger).process(suites)
    log_aggregate_reports(logger, reports)
    _show_reports(reports)

    if args.no_sync:
        console.print(
            "\n[yellow bold]NO SYNC[/] – synchronization with Jira has been "
            "disabled. No test reports will be uploaded."
        )
        return 0

    # ── Phase 4: Upload ─────────────────────────────────────────────
    console.rule("[bold blue]Phase 3 · Upload to Jira")
    token = args.jira_token or Settings.JIRA_TOKEN
    Settings.validate(token)

    client = JiraClient(config.server_url, token)
    uploader = ReportUploader(
        client,
        config,
        metadata=_system_metadata() + list(args.metadata or []),
        logger=logger,
    )
    try:
        summary = uploader.upload_aggregate_reports(reports)
    except UploadBatchError as exc:
        _show_results(exc.summary)
        logger.error("%s", exc)
        return 1

    _show_results(summary)
    return 0


# ── CLI ─────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jira-test-reporter",
        description="Upload JUnit test results to Jira Stories and Sub-tasks.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug-level logging.",
    )
    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    up = commands.add_parser("upload", help="Process test reports and upload them to Jira.")
    up.add_argument(
        "-i",
        "--input",
        action="append",
        metavar="PATH",
        help=f"JUnit XML file or directory. Can be repeated (default: {DEFAULT_INPUT_PATH}).",
    )
    up.add_argument(
        "-d",
        "--dest",
        default="",
        help="Upload every test report to this Jira Story or Sub-task.",
    )
    up.add_argument(
        "-c",
        "--config",
        default=Settings.CONFIG_PATH,
        help="Path to the user configuration file or its directory.",
    )
    up.add_argument(
        "-s",
        "--jira-server-url",
        default="",
        help="URL of the Jira server instance to connect to.",
    )
    up.add_argument(
        "-t",
        "--jira-token",
        default="",
        help="Service account access token for Jira. "
        "Can also be set using the REPORTER_JIRA_TOKEN env var.",
    )
    up.add_argument(
        "-n",
        "--no-sync",
        action="store_true",
        default=False,
        help="Process test reports but do NOT send anything to Jira.",
    )
    up.add_argument(
        "-m",
        "--metadata",
        action="append",
        type=_metadata_entry,
        metavar="KEY=VALUE",
        help="Extra detail shown in the issue description. Can be repeated.",
    )
    up.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Enable debug-level logging.",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    _configure_logging(args.verbose)

    console.print(
        Panel(
            "[bold white]Jira Test Reporter[/]  –  JUnit results → Jira issues",
            border_style="bright_magenta",
        )
    )

    try:
        code = upload(args)
    except KeyboardInterrupt:
        console.print("\n[red]Aborted by user.[/]")
        sys.exit(130)
    except Exception as exc:
        console.print(f"\n[red bold]Error:[/] {escape(str(exc))}")
        logger.debug("Traceback:", exc_info=True)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
