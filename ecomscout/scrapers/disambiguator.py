"""Picks the right autocomplete suggestion for a typed location."""

import asyncio
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from ecomscout.config import ScraperTimings, settings
from ecomscout.core.exceptions import SuggestionNotFound
from ecomscout.scrapers.selector_engine import LocatorDescriptor

logger = structlog.get_logger(__name__)

# Landmarks that share a locality's name, plus UI rows of the widget itself
DEFAULT_EXCLUSIONS = (
    "airport",
    "railway",
    "station",
    "metro",
    "bus stand",
    "temple",
    "search",
    "enter",
)


def fold(value: str) -> str:
    """Case-fold and collapse whitespace."""
    return " ".join(value.split()).casefold()


def split_camel_case(value: str) -> str:
    """'rtNagar' -> 'rt Nagar', 'RTNagar' -> 'RT Nagar'."""
    value = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", " ", value)
    return re.sub(r"(?<=[A-Z])(?=[A-Z][a-z])", " ", value)


def location_variants(target: str) -> List[str]:
    """Lexical variants tried when the typed location matches nothing.

    Whitespace removed, Title Case and camelCase split, in that order.
    Variants equal to the target after case folding are dropped, as are
    duplicates.
    """
    base = " ".join(target.split())
    seen = {fold(base)}
    variants = []
    for candidate in (base.replace(" ", ""), base.title(), split_camel_case(base)):
        key = fold(candidate)
        if not key or key in seen:
            continue
        seen.add(key)
        variants.append(candidate)
    return variants


def _contains_token(folded_text: str, token: str) -> bool:
    return re.search(rf"\b{re.escape(token)}\b", folded_text) is not None


def is_match(text: str, target: str, exclusions: Iterable[str] = DEFAULT_EXCLUSIONS) -> bool:
    """True when text contains target and none of the exclusion tokens.

    Tokens match on word boundaries, so "enter" does not reject "Mall Center".
    A token that is part of the target itself is not applied: typing
    "Railway Colony" must still be able to select "Railway Colony".
    """
    folded_text = fold(text)
    folded_target = fold(target)
    if not folded_target or folded_target not in folded_text:
        return False
    for token in exclusions:
        folded_token = fold(token)
        if not folded_token or _contains_token(folded_target, folded_token):
            continue
        if _contains_token(folded_text, folded_token):
            return False
    return True


def ranked_matches(
    texts: Sequence[str], target: str, exclusions: Iterable[str] = DEFAULT_EXCLUSIONS
) -> List[int]:
    """Indices of every passing candidate, target phase first then variants."""
    exclusions = tuple(exclusions)
    ordered: List[int] = []
    for phrase in [target] + location_variants(target):
        for index, value in enumerate(texts):
            if index not in ordered and is_match(value, phrase, exclusions):
                ordered.append(index)
    return ordered


def choose(
    texts: Sequence[str], target: str, exclusions: Iterable[str] = DEFAULT_EXCLUSIONS
) -> Optional[int]:
    """Index of the suggestion to click, or None.

    The first candidate that passes with the target as typed wins; only if
    none does are the lexical variants tried.
    """
    matches = ranked_matches(texts, target, exclusions)
    return matches[0] if matches else None


@dataclass
class SuggestionCandidate:
    text: str
    locator: Optional[Locator] = None
    descriptor: Optional[LocatorDescriptor] = None


class SuggestionDisambiguator:
    """Reads visible suggestions and clicks the one matching the location."""

    def __init__(
        self,
        website: str,
        exclusions: Iterable[str] = DEFAULT_EXCLUSIONS,
        timings: Optional[ScraperTimings] = None,
    ):
        self.website = website
        self.exclusions = tuple(exclusions)
        self.timings = timings if timings is not None else settings.TIMINGS
        self.logger = logger.bind(website=website)

    async def collect(
        self, page: Page, chain: Sequence[LocatorDescriptor]
    ) -> List[SuggestionCandidate]:
        """Visible suggestion rows in descriptor order, then DOM order."""
        candidates: List[SuggestionCandidate] = []
        for descriptor in chain:
            items = page.locator(descriptor.selector)
            try:
                await items.first.wait_for(state="visible", timeout=self.timings.SUGGESTION_WAIT_MS)
                count = await items.count()
            except PlaywrightError:
                continue

            for i in range(count):
                item = items.nth(i)
                try:
                    if not await item.is_visible():
                        continue
                    label = await item.inner_text(timeout=self.timings.ACTION_TIMEOUT_MS)
                except PlaywrightError:
                    continue
                label = " ".join((label or "").split())
                if label:
                    candidates.append(SuggestionCandidate(text=label, locator=item, descriptor=descriptor))

        self.logger.debug("suggestions_collected", count=len(candidates))
        return candidates

    async def select(
        self, page: Page, chain: Sequence[LocatorDescriptor], target: str
    ) -> SuggestionCandidate:
        """Click the best matching suggestion.

        Raises:
            SuggestionNotFound: No visible suggestion passed the rules, or
                every passing suggestion refused the click
        """
        tried_variants = [target] + location_variants(target)
        candidates = await self.collect(page, chain)
        if not candidates:
            raise SuggestionNotFound(
                self.website, target, tried_variants, message=f"no suggestions visible for '{target}'"
            )

        order = ranked_matches([c.text for c in candidates], target, self.exclusions)
        if not order:
            self.logger.warning(
                "no_suggestion_matched",
                location=target,
                suggestions=[c.text[:60] for c in candidates[:10]],
            )
            raise SuggestionNotFound(self.website, target, tried_variants)

        for index in order:
            candidate = candidates[index]
            try:
                await asyncio.wait_for(
                    candidate.locator.click(timeout=self.timings.ACTION_TIMEOUT_MS),
                    timeout=self.timings.ACTION_TIMEOUT_MS / 1000,
                )
            except (PlaywrightError, asyncio.TimeoutError) as e:
                self.logger.debug("suggestion_click_failed", index=index, text=candidate.text[:60], error=str(e)[:120])
                continue
            self.logger.info("suggestion_selected", index=index, text=candidate.text[:80])
            return candidate

        raise SuggestionNotFound(
            self.website, target, tried_variants, message=f"no matching suggestion for '{target}' was clickable"
        )
