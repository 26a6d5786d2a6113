"""Network observers scoped to one page scenario.

Two recorders subscribe to Playwright page events while a scenario runs:

  - TrafficRequestCounter: distinct outgoing traffic tile request URLs.
  - TrafficColorCollector: color codes decoded from successful traffic tile
    responses, one asyncio task per response.

Both are async context managers. The listener is removed on every exit path
so observations never leak into the next scenario on the same page.
"""

from __future__ import annotations

import asyncio
from typing import Callable

from loguru import logger

from .config import Settings, settings as default_settings
from .tiles import decode_colors

UrlPredicate = Callable[[str], bool]
Decoder = Callable[[bytes], set[int]]


def is_review_traffic_tile_url(url: str, settings: Settings | None = None) -> bool:
    """True if the URL points at the review traffic tile endpoint."""
    s = settings or default_settings
    return s.review_traffic_host in url and s.traffic_path in url


def review_traffic_predicate(settings: Settings | None = None) -> UrlPredicate:
    return lambda url: is_review_traffic_tile_url(url, settings)


class TrafficRequestCounter:
    """Collects distinct request URLs matching a predicate.

    Args:
        page: Playwright page to observe.
        predicate: URL filter. Defaults to the review traffic tile predicate.
    """

    def __init__(self, page, predicate: UrlPredicate | None = None):
        self._page = page
        self._predicate = predicate or review_traffic_predicate()
        self._urls: set[str] = set()
        self._active = False

    def _on_request(self, request) -> None:
        url = request.url
        if self._predicate(url):
            self._urls.add(url)

    async def __aenter__(self) -> TrafficRequestCounter:
        self._page.on("request", self._on_request)
        self._active = True
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._active:
            self._page.remove_listener("request", self._on_request)
            self._active = False
        logger.info(f"Request counter: {len(self._urls)} distinct traffic tile URLs")

    @property
    def count(self) -> int:
        return len(self._urls)

    @property
    def urls(self) -> frozenset[str]:
        return frozenset(self._urls)


class TrafficColorCollector:
    """Decodes matching 200 responses into a shared color set.

    Each response gets its own task; ``drain()`` joins all of them, including
    tasks scheduled while draining. A task that fails to read or decode its
    body contributes nothing and is counted in ``failed_decodes``.

    Args:
        page: Playwright page to observe.
        predicate: URL filter. Defaults to the review traffic tile predicate.
        decoder: bytes -> set of color codes. Defaults to decode_colors.
    """

    def __init__(
        self,
        page,
        predicate: UrlPredicate | None = None,
        decoder: Decoder | None = None,
    ):
        self._page = page
        self._predicate = predicate or review_traffic_predicate()
        self._decoder = decoder or decode_colors
        self._colors: set[int] = set()
        self._tasks: set[asyncio.Task] = set()
        self._active = False
        self.decoded = 0
        self.failed_decodes = 0

    def _on_response(self, response) -> None:
        if response.status != 200 or not self._predicate(response.url):
            return
        task = asyncio.get_running_loop().create_task(self._decode(response))
        self._tasks.add(task)

    async def _decode(self, response) -> None:
        try:
            body = await response.body()
            colors = self._decoder(body)
        except Exception as e:
            # Error pages are sometimes served on the tile path
            self.failed_decodes += 1
            logger.debug(f"Skipping undecodable tile {response.url}: {e}")
            return
        self.decoded += 1
        self._colors.update(colors)

    async def drain(self) -> None:
        """Wait until every scheduled decode task has finished."""
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending)

    async def __aenter__(self) -> TrafficColorCollector:
        self._page.on("response", self._on_response)
        self._active = True
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._active:
            self._page.remove_listener("response", self._on_response)
            self._active = False
        pending = [t for t in self._tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info(
            f"Color collector: {self.decoded} tiles decoded, "
            f"{self.failed_decodes} skipped, colors={sorted(self._colors)}"
        )

    @property
    def colors(self) -> frozenset[int]:
        return frozenset(self._colors)

    @property
    def pending(self) -> int:
        return sum(1 for t in self._tasks if not t.done())


def count_matching_requests(page, predicate: UrlPredicate | None = None) -> TrafficRequestCounter:
    """Request-counting observer for ``async with``."""
    return TrafficRequestCounter(page, predicate)


def collect_colors(
    page, predicate: UrlPredicate | None = None, decoder: Decoder | None = None
) -> TrafficColorCollector:
    """Response-decoding observer for ``async with``."""
    return TrafficColorCollector(page, predicate, decoder)
