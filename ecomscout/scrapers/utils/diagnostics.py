"""Failure snapshots: full-page screenshot, serialized DOM and state JSON."""

import asyncio
import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from ecomscout.config import settings

logger = structlog.get_logger(__name__)


class DiagnosticsRecorder:
    """Writes one timestamped directory per captured failure.

    Capture is bounded by ``timeout_s`` and never raises; a failed capture is
    logged and the original adapter error continues to propagate.
    """

    def __init__(
        self,
        base_dir: Optional[Path] = None,
        enabled: Optional[bool] = None,
        timeout_s: Optional[float] = None,
    ):
        self.base_dir = Path(base_dir or settings.DIAGNOSTICS_DIR)
        self.enabled = settings.DIAGNOSTICS_ENABLED if enabled is None else enabled
        self.timeout_s = settings.TIMINGS.DIAGNOSTIC_TIMEOUT_S if timeout_s is None else timeout_s

    async def capture(self, page: Page, website: str, step: str, state: Dict[str, Any]) -> Optional[Path]:
        """Snapshot the page. Returns the snapshot directory, or None.

        The whole capture, including the write, shares one ``timeout_s``
        bound.
        """
        if not self.enabled:
            return None
        try:
            return await asyncio.wait_for(self._capture(page, website, step, state), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            logger.warning("diagnostic_capture_timed_out", website=website, step=step, timeout_s=self.timeout_s)
            return None

    async def _capture(self, page: Page, website: str, step: str, state: Dict[str, Any]) -> Optional[Path]:
        screenshot: Optional[bytes] = None
        html: Optional[str] = None
        # Screenshot gets at most half the budget
        try:
            screenshot = await asyncio.wait_for(page.screenshot(full_page=True), timeout=self.timeout_s / 2)
        except (PlaywrightError, asyncio.TimeoutError) as e:
            logger.warning("diagnostic_screenshot_failed", website=website, step=step, error=str(e)[:200])
        try:
            html = await page.content()
        except PlaywrightError as e:
            logger.warning("diagnostic_content_failed", website=website, step=step, error=str(e)[:200])

        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
        safe_step = re.sub(r"[^a-zA-Z0-9_-]", "_", step)
        directory = self.base_dir / f"{website}_{safe_step}_{timestamp}"

        full_state = dict(state)
        full_state.setdefault("website", website)
        full_state.setdefault("step", step)
        full_state.setdefault("url", getattr(page, "url", None))
        full_state["captured_at"] = datetime.now(timezone.utc).isoformat()

        try:
            await asyncio.to_thread(self._write, directory, screenshot, html, full_state)
        except OSError as e:
            logger.warning("diagnostic_write_failed", website=website, step=step, error=str(e))
            return None

        logger.info("diagnostic_captured", website=website, step=step, path=str(directory))
        return directory

    @staticmethod
    def _write(directory: Path, screenshot: Optional[bytes], html: Optional[str], state: Dict[str, Any]) -> None:
        directory.mkdir(parents=True, exist_ok=True)
        if screenshot:
            (directory / "screenshot.png").write_bytes(screenshot)
        if html is not None:
            (directory / "page.html").write_text(html, encoding="utf-8")
        (directory / "state.json").write_text(json.dumps(state, indent=2, default=str), encoding="utf-8")
