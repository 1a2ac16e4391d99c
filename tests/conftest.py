from collections import defaultdict

import pytest
from rich.console import Console
from rich.table import Table

from cb_common.stop_token import StopToken

# Keep in sync with the markers declared in pyproject.toml.
AREA_MARKERS = (
    "unit_common",
    "unit_provisioner",
    "unit_runner",
    "unit_controller",
    "unit_scheduler",
    "unit_analytics",
)


@pytest.fixture
def stop_token():
    """A fresh stop token per test."""
    return StopToken()


def _counted(report) -> bool:
    return report.when == "call" or (report.when == "setup" and report.outcome == "skipped")


def pytest_terminal_summary(terminalreporter, exitstatus, config):
    """Print pass/fail/skip counts and durations per area marker."""
    _ = (exitstatus, config)
    areas = defaultdict(lambda: {"passed": 0, "failed": 0, "skipped": 0, "duration": 0.0})

    for outcome in ("passed", "failed", "skipped"):
        for report in terminalreporter.stats.get(outcome, []):
            if not _counted(report):
                continue
            for marker in AREA_MARKERS:
                if marker in report.keywords:
                    areas[marker][outcome] += 1
                    areas[marker]["duration"] += getattr(report, "duration", 0.0)

    if not areas:
        return

    table = Table(title="cloudbench tests by area", header_style="bold magenta")
    table.add_column("Area", style="cyan")
    for column, style in (
        ("Total", None),
        ("Passed", "green"),
        ("Failed", "red"),
        ("Skipped", "yellow"),
        ("Duration (s)", "blue"),
    ):
        table.add_column(column, justify="right", style=style)

    for marker in AREA_MARKERS:
        if marker not in areas:
            continue
        stats = areas[marker]
        total = stats["passed"] + stats["failed"] + stats["skipped"]
        table.add_row(
            marker.removeprefix("unit_"),
            str(total),
            str(stats["passed"]),
            str(stats["failed"]),
            str(stats["skipped"]),
            f"{stats['duration']:.2f}",
        )

    console = Console()
    console.print()
    console.print(table)
