"""Fixtures for live e2e tests against the review environment.

Each test gets a BrowserSession named after the test (failure artifacts land
in ``<artifacts_dir>/<test name>/``) and a report that collects
ScenarioReports into a JSON file at session end.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from loguru import logger

from trafficolor.config import settings as harness_settings
from trafficolor.scenarios import ScenarioReport


@pytest.fixture(scope="session")
def settings():
    return harness_settings


class E2EReport:
    """Accumulates scenario reports and writes them as JSON on close."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.reports: list[dict] = []

    def record(self, test_name: str, report: ScenarioReport) -> None:
        entry = report.model_dump(mode="json")
        entry["test"] = test_name
        self.reports.append(entry)

    def write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        summary = {
            "total": len(self.reports),
            "failed": sum(1 for r in self.reports if r["state"] == "failed"),
            "scenarios": self.reports,
        }
        self.path.write_text(json.dumps(summary, indent=2))
        logger.info(f"E2E scenario report: {self.path}")


@pytest.fixture(scope="session")
def e2e_report(settings):
    report = E2EReport(Path(settings.artifacts_dir) / "e2e-report.json")
    yield report
    report.write()
