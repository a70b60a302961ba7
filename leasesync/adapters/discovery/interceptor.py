# leasesync/adapters/discovery/interceptor.py
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlsplit

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, Response, async_playwright

from ...config import settings
from ...domain.detection import detect_listings_path, detect_pagination_type, filter_headers, is_json_response
from ...domain.types import DiscoveredEndpoint, DiscoveryConfig

log = logging.getLogger(__name__)

MAP_SELECTOR = ".map, [data-map], #map, .leaflet-container, .gm-style, .mapboxgl-map"
VIEWPORT = {"width": 1440, "height": 900}

SCROLL_STEPS = 5
SCROLL_PAUSE_MS = 800
SETTLE_AFTER_LOAD_MS = 5000
SETTLE_AFTER_STEP_MS = 3000

_SCROLL_JS = """
async ([steps, pause]) => {
  for (let i = 0; i < steps; i++) {
    window.scrollBy(0, window.innerHeight);
    await new Promise((r) => setTimeout(r, pause));
  }
  window.scrollTo(0, 0);
}
"""


@dataclass
class Candidate:
    url: str
    method: str
    headers: dict[str, str]
    post_data: str | None
    listings_path: str
    listings_count: int


@dataclass
class CandidateCollector:
    """
    Accumulates listing-bearing JSON responses and folds them into endpoints.
    Browser-free so it can be fed directly.
    """

    candidates: list[Candidate] = field(default_factory=list)

    def offer(
        self,
        *,
        url: str,
        method: str,
        headers: dict[str, str] | None,
        post_data: str | None,
        body: Any,
    ) -> Candidate | None:
        found = detect_listings_path(body)
        if not found:
            return None
        path, count = found
        c = Candidate(
            url=url,
            method=(method or "GET").upper(),
            headers=filter_headers(headers),
            post_data=post_data,
            listings_path=path,
            listings_count=count,
        )
        self.candidates.append(c)
        log.info("Candidate listing endpoint: %s %s path=%s count=%d", c.method, url[:120], path, count)
        return c

    def build_endpoints(self, *, now: datetime | None = None) -> list[DiscoveredEndpoint]:
        """One endpoint per (pathname, method); the largest sample wins."""
        best: dict[str, Candidate] = {}
        for c in self.candidates:
            try:
                key = f"{urlsplit(c.url).path}|{c.method}"
            except ValueError:
                key = c.url
            cur = best.get(key)
            if cur is None or c.listings_count > cur.listings_count:
                best[key] = c

        stamp = (now or datetime.now(timezone.utc)).isoformat()
        out: list[DiscoveredEndpoint] = []
        for c in best.values():
            body = _parse_post_data(c.post_data)
            out.append(
                DiscoveredEndpoint(
                    url=c.url,
                    method=c.method,
                    headers=c.headers,
                    body=body,
                    pagination_type=detect_pagination_type(c.url, body),
                    listings_path=c.listings_path,
                    sample_count=c.listings_count,
                    discovered_at=stamp,
                )
            )
        return out


def _parse_post_data(post_data: str | None) -> Any:
    if not post_data:
        return None
    try:
        return json.loads(post_data)
    except ValueError:
        return post_data


class EndpointDiscoverer:
    """
    Loads a page in headless Chromium, watches every JSON response and keeps
    the ones that look like listing collections.

    Page problems (timeouts, navigation errors) are logged; whatever was
    captured before the failure is still returned.
    """

    def __init__(self, source: str, *, user_agent: str | None = None, timeout_s: float | None = None) -> None:
        self.source = source
        self.user_agent = user_agent or settings.BROWSER_USER_AGENT
        self.timeout_ms = int(float(timeout_s or settings.DISCOVERY_TIMEOUT_S) * 1000)
        self.collector = CandidateCollector()
        self._pending: set[asyncio.Task] = set()

    async def discover(self, target_url: str) -> DiscoveryConfig:
        log.info("Starting endpoint discovery source=%s url=%s", self.source, target_url)
        self.collector = CandidateCollector()

        async with async_playwright() as pw:
            browser = await pw.chromium.launch(headless=True)
            try:
                context = await browser.new_context(user_agent=self.user_agent, viewport=VIEWPORT)
                page = await context.new_page()
                page.on("response", self._on_response)
                try:
                    await self.drive(page, target_url)
                except (PlaywrightError, asyncio.TimeoutError) as e:
                    log.warning("Page load issue, continuing with intercepted data: %s", e)
                await self._drain()
            finally:
                await browser.close()

        endpoints = self.collector.build_endpoints()
        log.info(
            "Discovery complete: %d endpoints, %d sample listings",
            len(endpoints),
            sum(ep.sample_count for ep in endpoints),
        )
        return DiscoveryConfig(source=self.source, target_url=target_url, endpoints=endpoints)

    async def drive(self, page: Page, target_url: str) -> None:
        """Navigation plus the scroll and map nudges that shake loose lazy requests."""
        await page.goto(target_url, wait_until="networkidle", timeout=self.timeout_ms)
        await page.wait_for_timeout(SETTLE_AFTER_LOAD_MS)

        await self.scroll(page)
        await page.wait_for_timeout(SETTLE_AFTER_STEP_MS)

        await self.interact_with_map(page)
        await page.wait_for_timeout(SETTLE_AFTER_STEP_MS)

    async def scroll(self, page: Page) -> None:
        try:
            await page.evaluate(_SCROLL_JS, [SCROLL_STEPS, SCROLL_PAUSE_MS])
        except PlaywrightError as e:
            log.debug("scroll failed: %s", e)

    async def interact_with_map(self, page: Page) -> None:
        try:
            el = await page.query_selector(MAP_SELECTOR)
            if el is None:
                return
            box = await el.bounding_box()
            if not box:
                return
            log.info("Map element detected, clicking and zooming")
            await page.mouse.click(box["x"] + box["width"] / 2, box["y"] + box["height"] / 2)
            await page.wait_for_timeout(1000)
            await page.mouse.wheel(0, 300)
            await page.wait_for_timeout(2000)
        except PlaywrightError as e:
            log.debug("map interaction failed: %s", e)

    def _on_response(self, response: Response) -> None:
        task = asyncio.ensure_future(self.handle_response(response))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def handle_response(self, response: Response) -> None:
        try:
            if not is_json_response(response.headers.get("content-type"), response.status):
                return
            try:
                body = await response.json()
            except (PlaywrightError, ValueError):
                return
            if not body:
                return
            request = response.request
            self.collector.offer(
                url=response.url,
                method=request.method,
                headers=request.headers,
                post_data=request.post_data,
                body=body,
            )
        except PlaywrightError as e:
            log.debug("response inspection failed for %s: %s", response.url[:120], e)
