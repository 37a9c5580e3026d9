"""Pytest configuration and shared fixtures.

The fakes below stand in for Playwright's Page/Locator/BrowserContext so
adapters, the selector engine and the disambiguator run without a browser.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ecomscout.config import ScraperTimings
from ecomscout.scrapers.utils.browser_manager import BrowserSession


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend for tests."""
    return "asyncio"


@dataclass
class FakeElement:
    text: str = ""
    visible: bool = True
    click_error: Optional[Exception] = None
    hang_on_click: bool = False
    on_click: Optional[Callable[["FakePage"], None]] = None
    value: str = ""
    clicks: int = 0


class FakeLocator:
    def __init__(self, page: "FakePage", selector: str, index: Optional[int] = None):
        self.page = page
        self.selector = selector
        self.index = index

    @property
    def first(self) -> "FakeLocator":
        return FakeLocator(self.page, self.selector, 0)

    def nth(self, index: int) -> "FakeLocator":
        return FakeLocator(self.page, self.selector, index)

    def _element(self) -> Optional[FakeElement]:
        elements = self.page.elements.get(self.selector, [])
        index = self.index or 0
        return elements[index] if index < len(elements) else None

    async def wait_for(self, state: str = "visible", timeout: Optional[float] = None) -> None:
        element = self._element()
        if element is None or not element.visible:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {self.selector}")

    async def count(self) -> int:
        return len(self.page.elements.get(self.selector, []))

    async def is_visible(self) -> bool:
        element = self._element()
        return bool(element and element.visible)

    async def inner_text(self, timeout: Optional[float] = None) -> str:
        element = self._element()
        if element is None:
            raise PlaywrightTimeoutError(f"no element for {self.selector}")
        return element.text

    async def click(self, timeout: Optional[float] = None) -> None:
        element = self._element()
        if element is None:
            raise PlaywrightTimeoutError(f"no element for {self.selector}")
        element.clicks += 1
        if element.hang_on_click:
            await asyncio.sleep(3600)
        if element.click_error is not None:
            raise element.click_error
        self.page.clicked.append((self.selector, self.index or 0))
        if element.on_click:
            element.on_click(self.page)

    async def fill(self, value: str, timeout: Optional[float] = None) -> None:
        element = self._element()
        element.value = value

    async def press_sequentially(self, value: str, delay: Optional[float] = None, timeout: Optional[float] = None) -> None:
        element = self._element()
        element.value += value
        self.page.typed.append(value)

    async def press(self, key: str, timeout: Optional[float] = None) -> None:
        self.page.pressed.append(key)


class FakePage:
    """Selector string -> elements; records every interaction."""

    def __init__(
        self,
        elements: Optional[Dict[str, List[FakeElement]]] = None,
        html: str = "<html><body></body></html>",
        goto_failures: int = 0,
        page_height: int = 4000,
        viewport_height: int = 800,
    ):
        self.elements: Dict[str, List[FakeElement]] = elements or {}
        self.html = html
        self.goto_failures = goto_failures
        self.page_height = page_height
        self.viewport_height = viewport_height
        self.url = "about:blank"
        self.gotos: List[tuple] = []
        self.clicked: List[tuple] = []
        self.typed: List[str] = []
        self.pressed: List[str] = []
        self.evaluations: List[str] = []
        self.content_error: Optional[Exception] = None
        self.evaluate_error: Optional[Exception] = None
        self.closed = False

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    async def goto(self, url: str, wait_until: str = "load", timeout: Optional[float] = None) -> None:
        self.gotos.append((url, wait_until))
        if self.goto_failures > 0:
            self.goto_failures -= 1
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded navigating to {url}")
        self.url = url

    async def content(self) -> str:
        if self.content_error is not None:
            raise self.content_error
        return self.html

    async def evaluate(self, expression: str, arg=None):
        if self.evaluate_error is not None:
            raise self.evaluate_error
        self.evaluations.append(expression)
        if "scrollHeight" in expression:
            return {"height": self.page_height, "viewport": self.viewport_height}
        return 0

    async def screenshot(self, full_page: bool = False) -> bytes:
        return b"\x89PNG fake"

    async def close(self) -> None:
        self.closed = True


class FakeContext:
    def __init__(self, detail_pages: Optional[Dict[str, str]] = None):
        self.detail_pages = detail_pages or {}
        self.pages: List[FakePage] = []
        self.close_count = 0

    async def new_page(self) -> FakePage:
        page = _DetailPage(self.detail_pages)
        self.pages.append(page)
        return page

    async def close(self) -> None:
        self.close_count += 1


class _DetailPage(FakePage):
    def __init__(self, detail_pages: Dict[str, str]):
        super().__init__()
        self._detail_pages = detail_pages

    async def goto(self, url: str, wait_until: str = "load", timeout: Optional[float] = None) -> None:
        await super().goto(url, wait_until, timeout)
        if url not in self._detail_pages:
            raise PlaywrightError(f"net::ERR_NAME_NOT_RESOLVED at {url}")
        self.html = self._detail_pages[url]


@dataclass
class FakeSessionFactory:
    """Callable with the BrowserManager.session signature."""

    page: FakePage
    context: FakeContext = field(default_factory=FakeContext)
    opened: int = 0
    closed: int = 0
    websites: List[str] = field(default_factory=list)

    def __call__(self, website: str):
        return self._session(website)

    @asynccontextmanager
    async def _session(self, website: str):
        self.opened += 1
        self.websites.append(website)
        try:
            yield BrowserSession(website=website, context=self.context, page=self.page)
        finally:
            self.closed += 1
            await self.context.close()


@pytest.fixture
def fast_timings() -> ScraperTimings:
    """Timings with no pauses and short waits."""
    return ScraperTimings(
        NAVIGATION_TIMEOUT_MS=1000,
        RETRY_NAVIGATION_TIMEOUT_MS=1000,
        POST_NAVIGATION_SETTLE_MS=0,
        CANDIDATE_TIMEOUT_MS=50,
        ACTION_TIMEOUT_MS=1000,
        SUGGESTION_WAIT_MS=50,
        AFTER_MENU_OPEN_MS=0,
        TYPING_DELAY_MS=0,
        AFTER_TYPING_MS=0,
        AFTER_SUGGESTION_MS=0,
        AFTER_CONFIRM_MS=0,
        SCROLL_MIN_STEPS=2,
        SCROLL_MAX_STEPS=3,
        SCROLL_STEP_PAUSE_MS=0,
        SCROLL_TOP_PAUSE_MS=0,
        SETTLE_PAUSE_MS=0,
        EVALUATE_TIMEOUT_MS=1000,
        STEP_TIMEOUT_S=5.0,
        ADAPTER_TIMEOUT_S=10.0,
        DIAGNOSTIC_TIMEOUT_S=1.0,
        INTER_SITE_DELAY_MS=0,
        RETRY_BACKOFF_MS=0,
    )
