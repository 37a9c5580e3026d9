"""Cascading locator resolution shared by every site adapter.

Each protocol step (open the location menu, type into the location input,
confirm) is configured as an ordered tuple of :class:`LocatorDescriptor`.
:class:`SelectorResolver` walks that tuple strictly in order, giving every
candidate its own visibility timeout and its own action timeout, and stops at
the first candidate that is visible and whose action succeeds.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence, Tuple

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from ecomscout.config import ScraperTimings, settings
from ecomscout.core.exceptions import LocatorNotFound

logger = structlog.get_logger(__name__)

Action = Callable[[Locator], Awaitable[Any]]


class LocatorKind(str, Enum):
    CSS = "css"
    XPATH = "xpath"
    TEXT = "text"
    PLACEHOLDER = "placeholder"
    ROLE = "role"


@dataclass(frozen=True)
class LocatorDescriptor:
    """One way of finding an element.

    ``rank`` is the confidence rank (lower is more specific). It is carried
    for logging only; resolution order is the order of the tuple.
    """

    kind: LocatorKind
    expression: str
    rank: int = 0
    note: str = ""

    @property
    def selector(self) -> str:
        """Render as a Playwright selector string."""
        expr = self.expression
        if self.kind == LocatorKind.XPATH:
            return expr if expr.startswith("xpath=") else f"xpath={expr}"
        if self.kind == LocatorKind.TEXT:
            return expr if expr.startswith("text=") else f"text={expr}"
        if self.kind == LocatorKind.PLACEHOLDER:
            return f'[placeholder*="{expr}" i]'
        if self.kind == LocatorKind.ROLE:
            return expr if expr.startswith("role=") else f"role={expr}"
        return expr


def css(expression: str, rank: int = 0, note: str = "") -> LocatorDescriptor:
    return LocatorDescriptor(LocatorKind.CSS, expression, rank, note)


def xpath(expression: str, rank: int = 0, note: str = "") -> LocatorDescriptor:
    return LocatorDescriptor(LocatorKind.XPATH, expression, rank, note)


def text(expression: str, rank: int = 0, note: str = "") -> LocatorDescriptor:
    return LocatorDescriptor(LocatorKind.TEXT, expression, rank, note)


def placeholder(expression: str, rank: int = 0, note: str = "") -> LocatorDescriptor:
    return LocatorDescriptor(LocatorKind.PLACEHOLDER, expression, rank, note)


def role(expression: str, rank: int = 0, note: str = "") -> LocatorDescriptor:
    return LocatorDescriptor(LocatorKind.ROLE, expression, rank, note)


LocatorChain = Tuple[LocatorDescriptor, ...]


@dataclass(frozen=True)
class SiteLocators:
    """Per-storefront locator chains, one per protocol step.

    An empty ``confirm_button`` chain means the storefront applies the
    location as soon as a suggestion is clicked.
    """

    location_trigger: LocatorChain
    location_input: LocatorChain
    suggestion_items: LocatorChain
    confirm_button: LocatorChain = ()
    dismiss_overlay: LocatorChain = ()


@dataclass
class Resolution:
    """The candidate that won a resolution."""

    descriptor: LocatorDescriptor
    index: int
    locator: Locator


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


def click(timeout_ms: Optional[int] = None) -> Action:
    async def _click(locator: Locator) -> None:
        await locator.click(timeout=timeout_ms)

    return _click


def fill(value: str, timeout_ms: Optional[int] = None) -> Action:
    async def _fill(locator: Locator) -> None:
        await locator.fill(value, timeout=timeout_ms)

    return _fill


def type_slowly(value: str, delay_ms: int, timeout_ms: Optional[int] = None) -> Action:
    """Clear the input then type one key at a time.

    Autocomplete widgets on these storefronts only fire on real key events,
    so ``fill`` alone never opens the suggestion list.
    """

    clear = fill("", timeout_ms)

    async def _type(locator: Locator) -> None:
        await locator.click(timeout=timeout_ms)
        await clear(locator)
        await locator.press_sequentially(value, delay=delay_ms, timeout=timeout_ms)

    return _type


class SelectorResolver:
    """Resolves a locator chain against a page for one website."""

    def __init__(self, website: str, timings: Optional[ScraperTimings] = None):
        self.website = website
        self.timings = timings if timings is not None else settings.TIMINGS
        self.logger = logger.bind(website=website)

    async def resolve(
        self,
        page: Page,
        candidates: Sequence[LocatorDescriptor],
        action: Optional[Action] = None,
        step: str = "",
        timeout_ms: Optional[int] = None,
        action_timeout_ms: Optional[int] = None,
    ) -> Resolution:
        """Return the first candidate that is visible and accepts the action.

        Args:
            page: Playwright page to search
            candidates: Ordered fallback chain, most specific first
            action: Coroutine run on the matched locator, or None to only
                require visibility
            step: Protocol step name, used in logs and errors
            timeout_ms: Visibility timeout per candidate
            action_timeout_ms: Action timeout per candidate

        Raises:
            LocatorNotFound: Every candidate failed
        """
        wait_ms = self.timings.CANDIDATE_TIMEOUT_MS if timeout_ms is None else timeout_ms
        act_ms = self.timings.ACTION_TIMEOUT_MS if action_timeout_ms is None else action_timeout_ms

        for index, descriptor in enumerate(candidates):
            locator = page.locator(descriptor.selector).first
            try:
                await locator.wait_for(state="visible", timeout=wait_ms)
            except PlaywrightError as e:
                self.logger.debug(
                    "locator_not_visible",
                    step=step,
                    index=index,
                    selector=descriptor.selector,
                    error=str(e).splitlines()[0] if str(e) else "",
                )
                continue

            if action is not None:
                try:
                    await asyncio.wait_for(action(locator), timeout=act_ms / 1000)
                except (PlaywrightError, asyncio.TimeoutError) as e:
                    self.logger.debug(
                        "locator_action_failed",
                        step=step,
                        index=index,
                        selector=descriptor.selector,
                        error=str(e).splitlines()[0] if str(e) else type(e).__name__,
                    )
                    continue

            self.logger.info(
                "locator_resolved",
                step=step,
                index=index,
                rank=descriptor.rank,
                note=descriptor.note,
            )
            return Resolution(descriptor=descriptor, index=index, locator=locator)

        raise LocatorNotFound(self.website, step, tried=len(candidates))
