from __future__ import annotations

"""
Headless browser pool used for the rendered-page image fallback.

One Chromium instance is launched lazily on first use and shared by every
page; a semaphore caps how many pages are open at once. Callers that ask
for a page while the budget is spent wait for a slot (optionally bounded
by ``acquire_timeout``). The pool is owned by whoever builds it and must
be closed, ideally with ``async with BrowserPool() as pool:``.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional

from loguru import logger
from playwright.async_api import Browser, Page, Playwright, async_playwright

from .config import (
    BROWSER_LAUNCH_ARGS,
    BROWSER_MAX_PAGES,
    BROWSER_NAV_TIMEOUT_MS,
    BROWSER_VIEWPORT,
    HTTP_USER_AGENT,
)
from .errors import BrowserPoolExhausted

Launcher = Callable[[], Awaitable[Browser]]


class BrowserPool:
    def __init__(
        self,
        max_pages: int = BROWSER_MAX_PAGES,
        acquire_timeout: Optional[float] = None,
        launcher: Optional[Launcher] = None,
        headless: bool = True,
    ):
        self.max_pages = max_pages
        self.acquire_timeout = acquire_timeout
        self.headless = headless
        self._launcher = launcher
        self._slots = asyncio.Semaphore(max_pages)
        self._lock = asyncio.Lock()
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._open_pages = 0
        self._closed = False

    @property
    def open_pages(self) -> int:
        return self._open_pages

    async def __aenter__(self) -> "BrowserPool":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def _stop_playwright(self) -> None:
        if self._playwright is None:
            return
        try:
            await self._playwright.stop()
        except Exception as e:
            logger.warning("Error stopping Playwright: {}", e)
        finally:
            self._playwright = None

    async def _launch(self) -> Browser:
        if self._launcher is not None:
            return await self._launcher()
        # a disconnected browser leaves its driver running
        await self._stop_playwright()
        self._playwright = await async_playwright().start()
        return await self._playwright.chromium.launch(
            headless=self.headless,
            args=BROWSER_LAUNCH_ARGS,
        )

    async def _get_browser(self) -> Browser:
        async with self._lock:
            if self._closed:
                raise RuntimeError("BrowserPool is closed")
            if self._browser is None or not self._browser.is_connected():
                logger.info("Launching headless browser (page budget {})", self.max_pages)
                self._browser = await self._launch()
            return self._browser

    async def _acquire_slot(self) -> None:
        if self.acquire_timeout is None:
            await self._slots.acquire()
            return
        try:
            await asyncio.wait_for(self._slots.acquire(), timeout=self.acquire_timeout)
        except asyncio.TimeoutError:
            raise BrowserPoolExhausted(
                "No browser page became available",
                {"max_pages": self.max_pages, "timeout": self.acquire_timeout},
            ) from None

    @asynccontextmanager
    async def page(self) -> AsyncIterator[Page]:
        """Borrow a fresh page in its own context; both are closed on exit."""
        await self._acquire_slot()
        context = None
        try:
            browser = await self._get_browser()
            context = await browser.new_context(
                user_agent=HTTP_USER_AGENT,
                viewport=BROWSER_VIEWPORT,
            )
            pg = await context.new_page()
            pg.set_default_navigation_timeout(BROWSER_NAV_TIMEOUT_MS)
            pg.set_default_timeout(BROWSER_NAV_TIMEOUT_MS)
            self._open_pages += 1
            try:
                yield pg
            finally:
                self._open_pages -= 1
        finally:
            if context is not None:
                try:
                    await context.close()
                except Exception as e:
                    logger.warning("Browser context close failed: {}", e)
            self._slots.release()

    async def close(self) -> None:
        async with self._lock:
            self._closed = True
            if self._browser is not None:
                try:
                    await self._browser.close()
                except Exception as e:
                    logger.warning("Error closing browser: {}", e)
                finally:
                    self._browser = None
            await self._stop_playwright()
        logger.debug("Browser pool closed")
