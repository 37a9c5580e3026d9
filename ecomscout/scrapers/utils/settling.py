"""Lazy-content settling: scroll the listing so deferred cards and images render."""

import asyncio
import math
from typing import Any, Optional

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from ecomscout.config import ScraperTimings, settings

logger = structlog.get_logger(__name__)


PAGE_METRICS_JS = """() => ({
  height: document.body ? document.body.scrollHeight : 0,
  viewport: window.innerHeight || 0
})"""

SCROLL_BY_JS = "(delta) => window.scrollBy(0, delta)"

SCROLL_TOP_JS = "() => window.scrollTo(0, 0)"

# Copy deferred image sources into src when src is missing or a placeholder
MATERIALIZE_IMAGES_JS = """() => {
  let count = 0;
  document.querySelectorAll('img[data-src], img[data-lazy-src], img[data-original], img[data-srcset]')
    .forEach((img) => {
      const current = img.getAttribute('src');
      if (current && !current.startsWith('data:')) return;
      const srcset = img.getAttribute('data-srcset');
      const deferred = img.getAttribute('data-src')
        || img.getAttribute('data-lazy-src')
        || img.getAttribute('data-original')
        || (srcset ? srcset.split(',')[0].trim().split(' ')[0] : null);
      if (deferred) {
        img.setAttribute('src', deferred);
        count += 1;
      }
    });
  return count;
}"""


def scroll_steps(height: float, viewport: float, min_steps: int, max_steps: int) -> int:
    """Half-viewport steps needed to cover the page, clamped."""
    if not viewport or viewport <= 0 or not height:
        return min_steps
    return max(min_steps, min(max_steps, math.ceil(height / (viewport * 0.5))))


async def _evaluate(page: Page, expression: str, arg: Any = None, timeout_ms: int = 10000) -> Any:
    return await asyncio.wait_for(page.evaluate(expression, arg), timeout=timeout_ms / 1000)


async def settle_lazy_content(page: Page, timings: Optional[ScraperTimings] = None) -> int:
    """Scroll down in bounded steps, return to top, force lazy images.

    Returns the number of scroll steps taken. A page that stops answering
    mid-scroll ends the scroll early; extraction then works with whatever
    has rendered.
    """
    timings = timings if timings is not None else settings.TIMINGS
    budget = timings.EVALUATE_TIMEOUT_MS
    steps_taken = 0

    try:
        metrics = await _evaluate(page, PAGE_METRICS_JS, timeout_ms=budget) or {}
        viewport = metrics.get("viewport") or 0
        steps = scroll_steps(
            metrics.get("height") or 0,
            viewport,
            timings.SCROLL_MIN_STEPS,
            timings.SCROLL_MAX_STEPS,
        )
        delta = int((viewport or 800) * 0.5)

        for _ in range(steps):
            await _evaluate(page, SCROLL_BY_JS, delta, timeout_ms=budget)
            steps_taken += 1
            await asyncio.sleep(timings.SCROLL_STEP_PAUSE_MS / 1000)

        await _evaluate(page, SCROLL_TOP_JS, timeout_ms=budget)
        await asyncio.sleep(timings.SCROLL_TOP_PAUSE_MS / 1000)

        materialized = await _evaluate(page, MATERIALIZE_IMAGES_JS, timeout_ms=budget)
        logger.debug("lazy_content_settled", steps=steps_taken, images_materialized=materialized)
    except (PlaywrightError, asyncio.TimeoutError) as e:
        logger.warning("settle_incomplete", steps=steps_taken, error=str(e)[:200] or type(e).__name__)

    await asyncio.sleep(timings.SETTLE_PAUSE_MS / 1000)
    return steps_taken
