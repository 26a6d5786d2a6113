"""Browser session controller — navigation and panel source switching.

The comparison map shows two MapLibre panels side by side ("before" on the
left, "after" on the right). Each panel has its own source selector and,
once the Martin source is picked, a tile variant selector.
"""

from __future__ import annotations

from loguru import logger
from playwright.async_api import Page, expect

from .config import Settings, settings as default_settings

MIN_ZOOM = 0
MAX_ZOOM = 19

MARTIN_SOURCE = "martin"
REVIEW_VARIANT = "review"

# (selector, option value), applied in order
REVIEW_SOURCE_SELECTIONS = (
    ("#left-source-selector", MARTIN_SOURCE),
    ("#right-source-selector", MARTIN_SOURCE),
    ("#left-martin-tile-selector", REVIEW_VARIANT),
    ("#right-martin-tile-selector", REVIEW_VARIANT),
)


def build_map_url(zoom: int, settings: Settings | None = None) -> str:
    """Map URL with the viewport encoded in the fragment: #zoom/lat/lon."""
    s = settings or default_settings
    if isinstance(zoom, bool) or not isinstance(zoom, int):
        raise ValueError(f"zoom must be an integer, got {zoom!r}")
    if not MIN_ZOOM <= zoom <= MAX_ZOOM:
        raise ValueError(f"zoom {zoom} outside [{MIN_ZOOM}, {MAX_ZOOM}]")
    return f"{s.app_base_url}#{zoom}/{s.map_center}"


async def settle(page: Page, ms: float, reason: str) -> None:
    """Fixed wait for asynchronous style/tile reloads in the app.

    The app exposes no "reload complete" signal, so this is a heuristic
    window rather than a readiness check.
    """
    logger.info(f"Settling {ms:.0f}ms: {reason}")
    await page.wait_for_timeout(ms)


async def open_map(page: Page, zoom: int, settings: Settings | None = None) -> str:
    """Navigate to the map at ``zoom`` and wait for the left panel canvas.

    Returns the URL navigated to. Raises on navigation timeout or if the
    canvas never becomes visible (AssertionError from ``expect``).
    """
    s = settings or default_settings
    url = build_map_url(zoom, s)
    logger.info(f"Opening map at zoom {zoom}: {url}")
    await page.goto(url, wait_until="networkidle", timeout=s.navigation_timeout_ms)
    await expect(page.locator(s.left_map_canvas)).to_be_visible(timeout=s.expect_timeout_ms)
    return url


async def switch_to_review_source(page: Page, settings: Settings | None = None) -> None:
    """Point both panels at the Martin source, review tile variant."""
    s = settings or default_settings
    for selector, value in REVIEW_SOURCE_SELECTIONS:
        await page.select_option(selector, value)
    await settle(page, s.panel_settle_ms, "style reload after source switch")
