"""Shared pytest configuration for the traffic-color suite.

Live tests against the review environment are marked ``e2e`` and only run
with ``--e2e`` (or TRAFFICOLOR_E2E=1). Everything else is offline.
"""

from __future__ import annotations

import os

import pytest


def pytest_addoption(parser):
    """Add --e2e CLI option for the live review-environment tests."""
    parser.addoption(
        "--e2e",
        action="store_true",
        default=False,
        help="Run e2e tests against the deployed review environment",
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--e2e") or os.environ.get("TRAFFICOLOR_E2E") == "1":
        return
    skip_e2e = pytest.mark.skip(reason="live review environment; use --e2e to run")
    for item in items:
        if "e2e" in item.keywords:
            item.add_marker(skip_e2e)
