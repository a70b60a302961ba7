# leasesync/adapters/clients/browser.py
from __future__ import annotations

import logging
from types import TracebackType

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from ...config import settings

log = logging.getLogger(__name__)


class BrowserSession:
    """
    One headless Chromium + one reusable page.

        async with BrowserSession() as b:
            html = await b.render(url)
    """

    def __init__(self, *, user_agent: str | None = None, timeout_s: float = 30.0) -> None:
        self.user_agent = user_agent or settings.BROWSER_USER_AGENT
        self.timeout_ms = int(timeout_s * 1000)
        self._pw: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    async def __aenter__(self) -> "BrowserSession":
        self._pw = await async_playwright().start()
        try:
            self._browser = await self._pw.chromium.launch(headless=True)
            self._context = await self._browser.new_context(user_agent=self.user_agent)
            self._page = await self._context.new_page()
        except Exception:
            await self._close()
            raise
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self._close()

    async def _close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._pw is not None:
            await self._pw.stop()
            self._pw = None

    async def render(self, url: str, *, settle_ms: int = 2000, timeout_ms: int | None = None) -> str:
        """Navigate, wait for the network to go quiet, return the rendered HTML."""
        assert self._page is not None, "BrowserSession used outside `async with`"
        await self._page.goto(url, wait_until="networkidle", timeout=timeout_ms or self.timeout_ms)
        if settle_ms > 0:
            await self._page.wait_for_timeout(settle_ms)
        return await self._page.content()
