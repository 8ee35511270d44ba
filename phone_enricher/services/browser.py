import asyncio
import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from playwright.async_api import Browser, ElementHandle, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from phone_enricher.exceptions.custom import (
    BrowserUnavailableError,
    NavigationFailure,
    PageQueryError,
)

logger = logging.getLogger(__name__)

_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)

_LAUNCH_ARGS = [
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-extensions",
    "--no-first-run",
    "--disable-default-apps",
]


class PlaywrightElement:
    def __init__(self, handle: ElementHandle, selector: str):
        self._handle = handle
        self._selector = selector

    async def attribute(self, name: str) -> str | None:
        try:
            return await self._handle.get_attribute(name)
        except PlaywrightError as exc:
            raise PageQueryError(self._selector, str(exc)) from exc

    async def text(self) -> str:
        try:
            return await self._handle.inner_text()
        except PlaywrightError as exc:
            raise PageQueryError(self._selector, str(exc)) from exc


class PlaywrightPage:
    def __init__(self, page: Page, navigation_timeout: float, settle_delay: float):
        self._page = page
        self._navigation_timeout_ms = navigation_timeout * 1000
        self._settle_delay = settle_delay

    async def navigate(self, url: str) -> None:
        try:
            await self._page.goto(url, wait_until="load", timeout=self._navigation_timeout_ms)
        except PlaywrightError as exc:
            raise NavigationFailure(url, str(exc)) from exc

    async def wait_stable(self) -> None:
        try:
            await self._page.wait_for_load_state("networkidle", timeout=self._navigation_timeout_ms)
        except PlaywrightError:
            # Maps keeps long-polling connections open; a late networkidle is not fatal
            logger.debug("networkidle not reached for %s", self._page.url)
        if self._settle_delay > 0:
            await asyncio.sleep(self._settle_delay)

    async def query_elements(self, selector: str) -> list[PlaywrightElement]:
        try:
            handles = await self._page.query_selector_all(selector)
        except PlaywrightError as exc:
            raise PageQueryError(selector, str(exc)) from exc
        return [PlaywrightElement(h, selector) for h in handles]


class PlaywrightPageSource:
    """One shared Chromium instance; every session gets its own context and page."""

    def __init__(
        self,
        *,
        headless: bool = True,
        executable_path: str = "",
        navigation_timeout: float = 20.0,
        settle_delay: float = 2.0,
        user_agent: str = _USER_AGENT,
    ) -> None:
        self._headless = headless
        self._executable_path = executable_path
        self._navigation_timeout = navigation_timeout
        self._settle_delay = settle_delay
        self._user_agent = user_agent
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._lock = asyncio.Lock()

    async def start(self) -> Browser:
        async with self._lock:
            if self._browser is not None:
                return self._browser

            if self._executable_path:
                logger.info("Checking Chrome executable at %s", self._executable_path)
                if not os.path.exists(self._executable_path):
                    raise BrowserUnavailableError(
                        f"Google Chrome no está instalado en {self._executable_path}"
                    )

            self._playwright = await async_playwright().start()
            try:
                self._browser = await self._playwright.chromium.launch(
                    headless=self._headless,
                    executable_path=self._executable_path or None,
                    args=_LAUNCH_ARGS,
                )
            except PlaywrightError as exc:
                await self._playwright.stop()
                self._playwright = None
                raise BrowserUnavailableError(f"Failed to launch browser: {exc}") from exc

            logger.info("Browser launched (headless=%s)", self._headless)
            return self._browser

    async def close(self) -> None:
        async with self._lock:
            if self._browser is not None:
                await self._browser.close()
                self._browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None

    @asynccontextmanager
    async def session(self) -> AsyncIterator[PlaywrightPage]:
        browser = await self.start()
        context = await browser.new_context(user_agent=self._user_agent)
        try:
            page = await context.new_page()
            yield PlaywrightPage(page, self._navigation_timeout, self._settle_delay)
        finally:
            await context.close()
