"""Base site adapter.

All storefront adapters inherit from BaseSiteAdapter and supply their
locator chains, extraction rules and search URL. The base class runs the
location-selection state machine:

    Init -> Navigated -> LocationMenuOpen -> LocationTyped -> SuggestionSelected
    -> LocationConfirmed -> Reloaded -> ContentSettled -> Extracted -> Closed

Every step is bounded by ``STEP_TIMEOUT_S`` (navigation steps by the
navigation budget). Detail-page enrichment runs after extraction under its
own bound and never fails a run. A step that cannot find its
elements captures a diagnostic snapshot and the run closes with a typed
AdapterError.
"""

import asyncio
from abc import ABC, abstractmethod
from enum import Enum
from typing import AsyncContextManager, Awaitable, Callable, List, Optional, Tuple

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from ecomscout.config import ScraperTimings, settings
from ecomscout.core.exceptions import (
    AdapterError,
    LocatorNotFound,
    NavigationFailure,
    SessionError,
    SuggestionNotFound,
)
from ecomscout.schemas.request import LocationSelectionRequest
from ecomscout.scrapers.disambiguator import DEFAULT_EXCLUSIONS, SuggestionDisambiguator
from ecomscout.scrapers.extraction import ExtractionRules, ProductExtractor, extract_detail_image
from ecomscout.scrapers.records import ExtractionResult, ProductRecord
from ecomscout.scrapers.selector_engine import SelectorResolver, SiteLocators, click, type_slowly
from ecomscout.scrapers.utils.browser_manager import BrowserSession
from ecomscout.scrapers.utils.diagnostics import DiagnosticsRecorder
from ecomscout.scrapers.utils.retry import NAVIGATION_WAIT_STATES, navigation_retrying
from ecomscout.scrapers.utils.settling import settle_lazy_content

SessionFactory = Callable[[str], AsyncContextManager[BrowserSession]]


class AdapterState(str, Enum):
    INIT = "init"
    NAVIGATED = "navigated"
    LOCATION_MENU_OPEN = "location_menu_open"
    LOCATION_TYPED = "location_typed"
    SUGGESTION_SELECTED = "suggestion_selected"
    LOCATION_CONFIRMED = "location_confirmed"
    RELOADED = "reloaded"
    CONTENT_SETTLED = "content_settled"
    EXTRACTED = "extracted"
    CLOSED = "closed"


class BaseSiteAdapter(ABC):
    """Abstract base class for all storefront adapters.

    Subclasses set the class attributes below and implement search_url().
    One adapter instance handles one run; the orchestrator creates a new
    instance for every attempt.
    """

    site_slug: str = ""  # Must be overridden in subclass (e.g., "dmart")
    site_name: str = ""  # Display name (e.g., "D-Mart")
    base_url: str = ""
    aliases: Tuple[str, ...] = ()

    locators: SiteLocators
    extraction_rules: ExtractionRules
    extra_exclusions: Tuple[str, ...] = ()

    confirm_with_enter: bool = False  # Enter in the location input as last confirm fallback
    run_isolated: bool = False  # Runs after the parallel batch
    enrich_from_details: bool = False  # Fill missing images from product pages

    def __init__(
        self,
        timings: Optional[ScraperTimings] = None,
        diagnostics: Optional[DiagnosticsRecorder] = None,
        max_detail_pages: Optional[int] = None,
    ):
        """Initialize the adapter with dependency injection points."""
        self.timings = timings if timings is not None else settings.TIMINGS
        self.diagnostics = diagnostics
        self.max_detail_pages = settings.MAX_DETAIL_PAGES if max_detail_pages is None else max_detail_pages
        self.logger = structlog.get_logger(__name__).bind(adapter=self.site_slug)
        self.state = AdapterState.INIT
        self.history: List[AdapterState] = [AdapterState.INIT]
        self.resolver = SelectorResolver(self.site_slug, self.timings)
        self.disambiguator = SuggestionDisambiguator(
            self.site_slug, DEFAULT_EXCLUSIONS + tuple(self.extra_exclusions), self.timings
        )
        self.extractor = ProductExtractor(self.extraction_rules, self.site_slug)
        self._location_input: Optional[Locator] = None

    @abstractmethod
    def search_url(self, query: str) -> str:
        """Storefront search results URL for a query."""

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _transition(self, state: AdapterState) -> None:
        self.state = state
        self.history.append(state)
        self.logger.debug("adapter_state", state=state.value)

    def _step_timeout_error(self, step: str, location: str, timeout: float) -> AdapterError:
        message = f"step '{step}' exceeded {timeout}s"
        if step in ("navigate", "reload"):
            return NavigationFailure(self.site_slug, message)
        if step == "select_suggestion":
            return SuggestionNotFound(self.site_slug, location, message=message)
        return LocatorNotFound(self.site_slug, step, message=message)

    def _step_timeout(self, step: str) -> float:
        if step in ("navigate", "reload"):
            return self.timings.navigation_budget_s
        return self.timings.STEP_TIMEOUT_S

    async def _step(self, step: str, work: Awaitable, reached: AdapterState, location: str = ""):
        timeout = self._step_timeout(step)
        try:
            result = await asyncio.wait_for(work, timeout=timeout)
        except asyncio.TimeoutError:
            raise self._step_timeout_error(step, location, timeout) from None
        self._transition(reached)
        return result

    async def run(
        self, request: LocationSelectionRequest, session_factory: SessionFactory
    ) -> ExtractionResult:
        """Select the delivery location and extract the search results.

        Opens exactly one session through ``session_factory`` and releases it
        on every exit path.

        Raises:
            NavigationFailure, LocatorNotFound, SuggestionNotFound, SessionError
        """
        self.state = AdapterState.INIT
        self.history = [AdapterState.INIT]
        self.logger = self.logger.bind(product=request.product_query, location=request.location)
        self.logger.info("adapter_run_started")

        try:
            async with session_factory(self.site_slug) as session:
                try:
                    result = await self._run_flow(session, request)
                except (LocatorNotFound, SuggestionNotFound) as e:
                    await self._capture_diagnostics(session.page, e)
                    raise
        except AdapterError as e:
            self.logger.warning("adapter_run_failed", kind=e.kind, state=self.state.value, error=e.detail)
            raise
        except PlaywrightError as e:
            self.logger.warning("adapter_session_error", state=self.state.value, error=str(e)[:300])
            raise SessionError(self.site_slug, str(e).splitlines()[0] if str(e) else "browser error") from e
        finally:
            self._transition(AdapterState.CLOSED)

        self.logger.info("adapter_run_finished", products=len(result.products))
        return result

    async def _run_flow(self, session: BrowserSession, request: LocationSelectionRequest) -> ExtractionResult:
        page = session.page
        url = self.search_url(request.product_query)
        location = request.location

        await self._step("navigate", self._navigate(page, url), AdapterState.NAVIGATED)
        await self._step("open_location_menu", self.open_location_menu(page), AdapterState.LOCATION_MENU_OPEN)
        await self._step("type_location", self.type_location(page, location), AdapterState.LOCATION_TYPED)
        await self._step(
            "select_suggestion",
            self.select_suggestion(page, location),
            AdapterState.SUGGESTION_SELECTED,
            location=location,
        )
        await self._step("confirm_location", self.confirm_location(page), AdapterState.LOCATION_CONFIRMED)
        await self._step("reload", self._navigate(page, url), AdapterState.RELOADED)
        await self._step("settle", settle_lazy_content(page, self.timings), AdapterState.CONTENT_SETTLED)
        result = await self._step("extract", self.extract(session, request), AdapterState.EXTRACTED)
        if self.enrich_from_details and result.products:
            await self._enrich_within_budget(session, result.products)
        return result

    # ------------------------------------------------------------------
    # Steps. Subclasses override these when a storefront needs extra work.
    # ------------------------------------------------------------------

    async def _navigate(self, page: Page, url: str) -> None:
        """goto() with one relaxed retry, then the post-navigation settle."""
        try:
            async for attempt in navigation_retrying(self.timings.RETRY_BACKOFF_MS / 1000):
                with attempt:
                    number = attempt.retry_state.attempt_number
                    wait_until = NAVIGATION_WAIT_STATES[number - 1]
                    timeout = (
                        self.timings.NAVIGATION_TIMEOUT_MS if number == 1 else self.timings.RETRY_NAVIGATION_TIMEOUT_MS
                    )
                    self.logger.info("navigating", url=url, wait_until=wait_until)
                    await page.goto(url, wait_until=wait_until, timeout=timeout)
        except (PlaywrightError, asyncio.TimeoutError) as e:
            raise NavigationFailure(self.site_slug, f"could not load {url}: {str(e)[:200]}") from e
        await asyncio.sleep(self.timings.POST_NAVIGATION_SETTLE_MS / 1000)

    async def open_location_menu(self, page: Page) -> None:
        try:
            await self.resolver.resolve(
                page,
                self.locators.location_trigger,
                click(self.timings.ACTION_TIMEOUT_MS),
                step="open_location_menu",
            )
        except LocatorNotFound:
            # Some storefronts open the picker on first visit
            try:
                await self.resolver.resolve(page, self.locators.location_input, None, step="location_input_visible")
            except LocatorNotFound:
                raise LocatorNotFound(
                    self.site_slug, "open_location_menu", tried=len(self.locators.location_trigger)
                ) from None
            self.logger.info("location_picker_already_open")
        await asyncio.sleep(self.timings.AFTER_MENU_OPEN_MS / 1000)

    async def type_location(self, page: Page, location: str) -> None:
        delay = self.timings.TYPING_DELAY_MS
        resolution = await self.resolver.resolve(
            page,
            self.locators.location_input,
            type_slowly(location, delay, self.timings.ACTION_TIMEOUT_MS),
            step="type_location",
            action_timeout_ms=self.timings.ACTION_TIMEOUT_MS + delay * len(location),
        )
        self._location_input = resolution.locator
        await asyncio.sleep(self.timings.AFTER_TYPING_MS / 1000)

    async def select_suggestion(self, page: Page, location: str) -> None:
        await self.disambiguator.select(page, self.locators.suggestion_items, location)
        await asyncio.sleep(self.timings.AFTER_SUGGESTION_MS / 1000)

    async def confirm_location(self, page: Page) -> None:
        chain = self.locators.confirm_button
        if not chain and not self.confirm_with_enter:
            self.logger.debug("confirm_step_not_required")
        else:
            try:
                if not chain:
                    raise LocatorNotFound(self.site_slug, "confirm_location", tried=0)
                await self.resolver.resolve(page, chain, click(self.timings.ACTION_TIMEOUT_MS), step="confirm_location")
            except LocatorNotFound:
                if not (self.confirm_with_enter and self._location_input is not None):
                    raise
                await self._press_enter()
            await asyncio.sleep(self.timings.AFTER_CONFIRM_MS / 1000)

        if self.locators.dismiss_overlay:
            await self._dismiss_overlay(page)

    async def _press_enter(self) -> None:
        try:
            await self._location_input.press("Enter", timeout=self.timings.ACTION_TIMEOUT_MS)
        except PlaywrightError as e:
            raise LocatorNotFound(
                self.site_slug, "confirm_location", message=f"Enter fallback failed: {str(e)[:120]}"
            ) from e
        self.logger.info("location_confirmed_with_enter")

    async def _dismiss_overlay(self, page: Page) -> None:
        try:
            await self.resolver.resolve(
                page,
                self.locators.dismiss_overlay,
                click(self.timings.ACTION_TIMEOUT_MS),
                step="dismiss_overlay",
                timeout_ms=self.timings.SUGGESTION_WAIT_MS,
            )
        except LocatorNotFound:
            self.logger.debug("no_overlay_to_dismiss")

    async def extract(self, session: BrowserSession, request: LocationSelectionRequest) -> ExtractionResult:
        html = await session.page.content()
        result = self.extractor.extract(html, request.location, request.product_query)
        self.logger.info("products_extracted", count=len(result.products), empty=result.is_empty)
        return result

    async def _enrich_within_budget(self, session: BrowserSession, products: List[ProductRecord]) -> None:
        """Run enrich_products bounded by DETAIL_ENRICHMENT_TIMEOUT_S.

        An overrun keeps whatever was enriched so far; the listing records
        are returned either way.
        """
        budget = self.timings.DETAIL_ENRICHMENT_TIMEOUT_S
        try:
            await asyncio.wait_for(self.enrich_products(session, products), timeout=budget)
        except asyncio.TimeoutError:
            self.logger.warning(
                "detail_enrichment_timed_out",
                timeout_s=budget,
                with_image=sum(1 for p in products if p.image_url),
            )

    async def enrich_products(self, session: BrowserSession, products: List[ProductRecord]) -> int:
        """Fill missing image URLs from product detail pages.

        Every URL comes from the listing already parsed, so the listing page is
        never navigated away from. Each detail page is opened in its own tab.
        Returns the number of records enriched.
        """
        targets = [p for p in products if p.product_url and not p.image_url][: self.max_detail_pages]
        enriched = 0
        for product in targets:
            try:
                page = await session.new_page()
            except PlaywrightError as e:
                self.logger.warning("detail_page_open_failed", error=str(e)[:200])
                break
            try:
                await page.goto(
                    product.product_url,
                    wait_until="domcontentloaded",
                    timeout=self.timings.NAVIGATION_TIMEOUT_MS,
                )
                image_url = extract_detail_image(await page.content(), self.base_url)
                if image_url:
                    product.image_url = image_url
                    enriched += 1
            except (PlaywrightError, asyncio.TimeoutError) as e:
                self.logger.warning("detail_fetch_failed", url=product.product_url, error=str(e)[:200])
            finally:
                try:
                    await page.close()
                except PlaywrightError as e:
                    self.logger.debug("detail_page_close_failed", error=str(e)[:120])
        if targets:
            self.logger.info("detail_enrichment_done", attempted=len(targets), enriched=enriched)
        return enriched

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    async def _capture_diagnostics(self, page: Page, error: AdapterError) -> None:
        if self.diagnostics is None:
            return
        step = getattr(error, "step", None) or "select_suggestion"
        state = {
            "state": self.state.value,
            "history": [s.value for s in self.history],
            "error": error.detail,
            "kind": error.kind,
        }
        if isinstance(error, SuggestionNotFound):
            state["location"] = error.location
            state["tried_variants"] = error.tried_variants
        await self.diagnostics.capture(page, self.site_slug, step, state)
