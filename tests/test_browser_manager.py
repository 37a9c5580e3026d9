"""Tests for per-invocation browser sessions.

A fake browser object stands in for Chromium; no real browser is launched.
"""

import pytest
from playwright.async_api import Error as PlaywrightError

from conftest import FakePage
from ecomscout.scrapers.utils.browser_manager import STEALTH_JS, BrowserManager
from ecomscout.scrapers.utils.user_agents import USER_AGENTS


class FakeBrowserContext:
    def __init__(self, init_error=None):
        self.init_error = init_error
        self.init_scripts = []
        self.routes = []
        self.page = FakePage()
        self.close_count = 0

    async def add_init_script(self, script):
        if self.init_error is not None:
            raise self.init_error
        self.init_scripts.append(script)

    async def route(self, pattern, handler):
        self.routes.append(pattern)

    async def new_page(self):
        return self.page

    async def close(self):
        self.close_count += 1


class FakeBrowser:
    def __init__(self, init_error=None):
        self.init_error = init_error
        self.contexts = []
        self.options = []

    async def new_context(self, **options):
        context = FakeBrowserContext(self.init_error)
        self.contexts.append(context)
        self.options.append(options)
        return context


def make_manager(browser, **kwargs) -> BrowserManager:
    manager = BrowserManager(headless=True, proxy_server="", **kwargs)
    manager._browser = browser
    return manager


class TestBrowserSession:
    """Tests for BrowserManager.session."""

    async def test_fresh_context_per_session(self):
        browser = FakeBrowser()
        manager = make_manager(browser)

        async with manager.session("dmart") as first:
            assert manager.open_sessions == 1
        async with manager.session("zepto") as second:
            pass

        assert first.context is not second.context
        assert second.website == "zepto"
        assert [c.close_count for c in browser.contexts] == [1, 1]
        assert manager.open_sessions == 0

    async def test_context_configuration(self):
        browser = FakeBrowser()
        manager = make_manager(browser)

        async with manager.session("dmart") as session:
            assert session.page is browser.contexts[0].page

        options = browser.options[0]
        assert options["locale"] == "en-IN"
        assert options["timezone_id"] == "Asia/Kolkata"
        assert options["user_agent"] in USER_AGENTS
        assert options["proxy"] is None
        assert browser.contexts[0].init_scripts == [STEALTH_JS]
        assert browser.contexts[0].routes

    async def test_fonts_not_blocked_when_disabled(self):
        browser = FakeBrowser()
        manager = make_manager(browser, block_fonts=False)

        async with manager.session("dmart"):
            pass

        assert browser.contexts[0].routes == []

    async def test_context_closed_on_error(self):
        browser = FakeBrowser()
        manager = make_manager(browser)

        with pytest.raises(RuntimeError):
            async with manager.session("jiomart"):
                raise RuntimeError("adapter crashed")

        assert browser.contexts[0].close_count == 1
        assert manager.open_sessions == 0

    async def test_failed_setup_closes_context(self):
        browser = FakeBrowser(init_error=PlaywrightError("Target closed"))
        manager = make_manager(browser)

        with pytest.raises(PlaywrightError):
            async with manager.session("swiggy"):
                pass

        assert browser.contexts[0].close_count == 1
        assert manager.open_sessions == 0

    async def test_session_extra_page(self):
        browser = FakeBrowser()
        manager = make_manager(browser)

        async with manager.session("dmart") as session:
            page = await session.new_page()

        assert page is browser.contexts[0].page

    def test_not_running_until_started(self):
        assert BrowserManager(headless=True).is_running is False
