"""BrowserSession — Playwright lifecycle with failure artifacts.

One browser and one traced context per test. Each scenario gets its own
page from ``scenario_page()``, closed when the scenario ends. When the
``async with`` block exits with an exception (assertion failures included),
a screenshot of the latest open page and the Playwright trace are saved
under ``<artifacts_dir>/<name>/``. A clean exit discards the trace.
"""

from __future__ import annotations

import re
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from loguru import logger
from playwright.async_api import Browser, BrowserContext, Page, async_playwright

from .config import Settings, settings as default_settings


def _safe_name(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]+", "_", name).strip("_") or "session"


class BrowserSession:
    """Manages a Playwright browser and context for one test.

    Args:
        settings: Harness settings (browser, viewport, timeouts, artifacts).
        name: Test name, used for the artifact directory.
    """

    def __init__(self, settings: Settings | None = None, name: str = "session"):
        self._settings = settings or default_settings
        self.name = _safe_name(name)
        self._pw = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._pages: list[Page] = []
        self._tracing = False

    @property
    def artifact_dir(self) -> Path:
        return Path(self._settings.artifacts_dir) / self.name

    @property
    def page(self) -> Page | None:
        """Most recently opened page."""
        return self._pages[-1] if self._pages else None

    async def start(self) -> None:
        s = self._settings
        self._pw = await async_playwright().start()
        launcher = getattr(self._pw, s.browser_name)
        self._browser = await launcher.launch(headless=s.headless)
        self._context = await self._browser.new_context(
            viewport={"width": s.viewport_width, "height": s.viewport_height},
            ignore_https_errors=s.ignore_https_errors,
        )
        self._context.set_default_timeout(s.action_timeout_ms)
        self._context.set_default_navigation_timeout(s.navigation_timeout_ms)
        await self._context.tracing.start(screenshots=True, snapshots=True)
        self._tracing = True
        logger.info(f"Browser session '{self.name}': {s.browser_name} headless={s.headless}")

    async def new_page(self) -> Page:
        """Fresh page in the traced context."""
        page = await self._context.new_page()
        self._pages.append(page)
        return page

    @asynccontextmanager
    async def scenario_page(self) -> AsyncIterator[Page]:
        """Fresh page closed when its scenario ends.

        On an exception the page is left open for the failure screenshot;
        the context closes it in ``stop()``.
        """
        page = await self.new_page()
        yield page
        await page.close()
        self._pages.remove(page)

    async def save_failure_artifacts(self) -> list[Path]:
        """Write screenshot and trace for a failed test. Returns written paths."""
        out = self.artifact_dir
        out.mkdir(parents=True, exist_ok=True)
        written: list[Path] = []
        page = self.page
        if page is not None and not page.is_closed():
            shot = out / "failure.png"
            try:
                await page.screenshot(path=str(shot), full_page=True)
                written.append(shot)
            except Exception as e:
                logger.warning(f"Failure screenshot not captured: {e}")
        trace = out / "trace.zip"
        await self._context.tracing.stop(path=str(trace))
        written.append(trace)
        for path in written:
            logger.warning(f"Failure artifact: {path}")
        return written

    async def stop(self, failed: bool = False) -> None:
        try:
            if self._context is not None:
                if self._tracing:
                    self._tracing = False
                    if failed:
                        await self.save_failure_artifacts()
                    else:
                        await self._context.tracing.stop()
                await self._context.close()
        finally:
            if self._browser is not None:
                await self._browser.close()
            if self._pw is not None:
                await self._pw.stop()
            self._pages.clear()

    async def __aenter__(self) -> BrowserSession:
        try:
            await self.start()
        except BaseException:
            await self.stop()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop(failed=exc_type is not None)
