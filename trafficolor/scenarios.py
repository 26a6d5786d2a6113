"""Scenario runner — traffic tile requests and rendered colors per zoom.

Each scenario walks a fixed state machine:

  not_started -> navigating -> panels_switching -> observing -> settled -> reported

Any state may move to ``failed``. A failure while navigating or switching
panels is fatal: the error is recorded on the report and re-raised, nothing
is retried.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any

from loguru import logger
from playwright.async_api import Page
from pydantic import BaseModel, Field

from .config import Settings, settings as default_settings
from .observer import TrafficColorCollector, TrafficRequestCounter, review_traffic_predicate
from .session import build_map_url, open_map, settle, switch_to_review_source


class ScenarioState(str, Enum):
    NOT_STARTED = "not_started"
    NAVIGATING = "navigating"
    PANELS_SWITCHING = "panels_switching"
    OBSERVING = "observing"
    SETTLED = "settled"
    REPORTED = "reported"
    FAILED = "failed"


_TRANSITIONS: dict[ScenarioState, set[ScenarioState]] = {
    ScenarioState.NOT_STARTED: {ScenarioState.NAVIGATING},
    ScenarioState.NAVIGATING: {ScenarioState.PANELS_SWITCHING},
    ScenarioState.PANELS_SWITCHING: {ScenarioState.OBSERVING},
    ScenarioState.OBSERVING: {ScenarioState.SETTLED},
    ScenarioState.SETTLED: {ScenarioState.REPORTED},
    ScenarioState.REPORTED: set(),
    ScenarioState.FAILED: set(),
}


class ScenarioStateError(RuntimeError):
    """Raised on a transition the scenario state machine does not allow."""


class ScenarioReport(BaseModel):
    """Outcome of one scenario run."""

    scenario: str
    zoom: int
    map_url: str = ""
    state: ScenarioState = ScenarioState.NOT_STARTED
    request_count: int | None = None
    colors: list[int] = Field(default_factory=list)
    failed_decodes: int = 0
    duration_s: float = 0.0
    error: str | None = None
    history: list[ScenarioState] = Field(default_factory=list)
    details: dict[str, Any] = Field(default_factory=dict)


class TrafficScenario:
    """Runs one observation scenario against a fresh page.

    Args:
        page: Playwright page, used for this scenario only.
        zoom: Map zoom level (0-19).
        settings: Harness settings. Defaults to the module settings.
    """

    def __init__(self, page: Page, zoom: int, settings: Settings | None = None):
        self._page = page
        self._settings = settings or default_settings
        self.report = ScenarioReport(
            scenario="",
            zoom=zoom,
            map_url=build_map_url(zoom, self._settings),
            history=[ScenarioState.NOT_STARTED],
        )

    @property
    def state(self) -> ScenarioState:
        return self.report.state

    def transition(self, new_state: ScenarioState) -> None:
        current = self.report.state
        if new_state != ScenarioState.FAILED and new_state not in _TRANSITIONS[current]:
            raise ScenarioStateError(f"{current.value} -> {new_state.value} not allowed")
        if current in (ScenarioState.REPORTED, ScenarioState.FAILED):
            raise ScenarioStateError(f"scenario already {current.value}")
        self.report.state = new_state
        self.report.history.append(new_state)
        logger.info(f"[{self.report.scenario} z{self.report.zoom}] {current.value} -> {new_state.value}")

    async def _prepare(self) -> None:
        self.transition(ScenarioState.NAVIGATING)
        await open_map(self._page, self.report.zoom, self._settings)
        self.transition(ScenarioState.PANELS_SWITCHING)
        await switch_to_review_source(self._page, self._settings)
        self.transition(ScenarioState.OBSERVING)

    def _fail(self, e: BaseException) -> None:
        self.report.error = f"{type(e).__name__}: {e}"
        if self.report.state not in (ScenarioState.REPORTED, ScenarioState.FAILED):
            self.transition(ScenarioState.FAILED)
        logger.error(f"[{self.report.scenario} z{self.report.zoom}] failed: {self.report.error}")

    async def count_requests(self) -> int:
        """Distinct review traffic tile requests seen at this zoom."""
        self.report.scenario = "count_review_traffic_requests"
        t0 = time.monotonic()
        try:
            async with TrafficRequestCounter(self._page, review_traffic_predicate(self._settings)) as counter:
                await self._prepare()
                await settle(self._page, self._settings.request_settle_ms, "traffic tile requests")
                self.transition(ScenarioState.SETTLED)
                self.report.request_count = counter.count
                self.report.details["sample_urls"] = sorted(counter.urls)[:5]
        except BaseException as e:
            self._fail(e)
            raise
        finally:
            self.report.duration_s = time.monotonic() - t0
        self.transition(ScenarioState.REPORTED)
        return self.report.request_count

    async def collect_colors(self) -> set[int]:
        """Color codes decoded from review traffic tiles rendered at this zoom."""
        self.report.scenario = "collect_rendered_colors"
        t0 = time.monotonic()
        try:
            async with TrafficColorCollector(self._page, review_traffic_predicate(self._settings)) as collector:
                await self._prepare()
                await settle(self._page, self._settings.color_settle_ms, "traffic tile responses")
                await collector.drain()
                self.transition(ScenarioState.SETTLED)
                colors = set(collector.colors)
                self.report.colors = sorted(colors)
                self.report.failed_decodes = collector.failed_decodes
                self.report.details["decoded_tiles"] = collector.decoded
        except BaseException as e:
            self._fail(e)
            raise
        finally:
            self.report.duration_s = time.monotonic() - t0
        self.transition(ScenarioState.REPORTED)
        return colors


async def count_review_traffic_requests(
    page: Page, zoom: int, settings: Settings | None = None
) -> int:
    """Open the map at ``zoom``, switch to review tiles, count traffic tile URLs."""
    return await TrafficScenario(page, zoom, settings).count_requests()


async def collect_rendered_colors(
    page: Page, zoom: int, settings: Settings | None = None
) -> set[int]:
    """Open the map at ``zoom``, switch to review tiles, decode tile colors."""
    return await TrafficScenario(page, zoom, settings).collect_colors()
