"""Playwright browser lifecycle manager with anti-detection.

One shared Chromium process per manager; every adapter invocation gets its
own browser context (fresh cookies, fresh storage, rotated user agent) that
is closed when the session block exits.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import structlog
from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from ecomscout.config import settings
from ecomscout.scrapers.utils.user_agents import get_random_user_agent

logger = structlog.get_logger(__name__)


@dataclass
class BrowserSession:
    """The context and listing page owned by one adapter invocation."""

    website: str
    context: BrowserContext
    page: Page

    async def new_page(self) -> Page:
        """Extra page in the same context, for detail fetches."""
        return await self.context.new_page()


class BrowserManager:
    """Manages Playwright browser lifecycle with anti-detection features.

    Creates one context per session with:
    - User-agent rotation per context
    - Optional proxy server
    - Stealth JS injection to bypass bot detection
    - Optional font blocking for faster page loads
    """

    def __init__(
        self,
        headless: Optional[bool] = None,
        channel: Optional[str] = None,
        proxy_server: Optional[str] = None,
        block_fonts: bool = True,
    ):
        self._headless = settings.HEADLESS if headless is None else headless
        self._channel = channel if channel is not None else settings.BROWSER_CHANNEL
        self._proxy_server = settings.PROXY_SERVER if proxy_server is None else proxy_server
        self._block_fonts = block_fonts
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()
        self._open_sessions = 0

    @property
    def is_running(self) -> bool:
        return self._browser is not None

    @property
    def open_sessions(self) -> int:
        return self._open_sessions

    async def start(self) -> None:
        """Launch the browser. Safe to call more than once."""
        async with self._lock:
            if self._browser:
                return
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self._headless,
                channel=self._channel or None,
                args=[
                    "--disable-blink-features=AutomationControlled",
                    "--disable-dev-shm-usage",
                    "--no-sandbox",
                ],
            )
            logger.info("browser_started", headless=self._headless, channel=self._channel)

    async def stop(self) -> None:
        """Close the browser and the Playwright driver."""
        async with self._lock:
            if self._browser:
                try:
                    await self._browser.close()
                except PlaywrightError as e:
                    logger.warning("browser_close_failed", error=str(e))
                self._browser = None
            if self._playwright:
                await self._playwright.stop()
                self._playwright = None
            logger.info("browser_stopped")

    async def _new_context(self) -> BrowserContext:
        if not self._browser:
            await self.start()

        proxy_config = {"server": self._proxy_server} if self._proxy_server else None
        context = await self._browser.new_context(
            user_agent=get_random_user_agent(),
            viewport={"width": 1920, "height": 1080},
            locale=settings.LOCALE,
            timezone_id=settings.TIMEZONE_ID,
            proxy=proxy_config,
            java_script_enabled=True,
            bypass_csp=True,
        )

        try:
            # Inject stealth script to avoid detection
            await context.add_init_script(STEALTH_JS)

            if self._block_fonts:
                await context.route("**/*.{woff,woff2,ttf,eot}", lambda route: route.abort())
        except PlaywrightError:
            await context.close()
            raise

        return context

    @asynccontextmanager
    async def session(self, website: str) -> AsyncIterator[BrowserSession]:
        """Open a fresh context and page, closed exactly once on exit."""
        context = await self._new_context()
        self._open_sessions += 1
        logger.info("browser_session_opened", website=website, has_proxy=bool(self._proxy_server))
        try:
            page = await context.new_page()
            yield BrowserSession(website=website, context=context, page=page)
        finally:
            self._open_sessions -= 1
            try:
                await context.close()
            except PlaywrightError as e:
                logger.warning("browser_session_close_failed", website=website, error=str(e))
            logger.info("browser_session_closed", website=website)


# Minimal stealth JS to mask automation signals
STEALTH_JS = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'languages', { get: () => ['en-IN', 'en-GB', 'en-US', 'en', 'hi'] });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
window.chrome = { runtime: {} };
const originalQuery = window.navigator.permissions.query;
window.navigator.permissions.query = (parameters) =>
  parameters.name === 'notifications'
    ? Promise.resolve({ state: Notification.permission })
    : originalQuery(parameters);
"""
