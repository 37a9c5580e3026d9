"""Scraper utilities for browser sessions, settling, normalization and retries."""

from .user_agents import get_random_user_agent, USER_AGENTS
from .normalizer import (
    PriceNormalizer,
    ResultNormalizer,
    CURRENCY_TOKEN_PATTERN,
    absolute_url,
    first_srcset_url,
    normalize_url,
)
from .retry import NAVIGATION_WAIT_STATES, adapter_retrying, navigation_retrying
from .settling import settle_lazy_content, scroll_steps
from .diagnostics import DiagnosticsRecorder
from .browser_manager import BrowserManager, BrowserSession


__all__ = [
    # User agents
    "get_random_user_agent",
    "USER_AGENTS",
    # Normalization
    "PriceNormalizer",
    "ResultNormalizer",
    "CURRENCY_TOKEN_PATTERN",
    "absolute_url",
    "first_srcset_url",
    "normalize_url",
    # Retry policies
    "NAVIGATION_WAIT_STATES",
    "adapter_retrying",
    "navigation_retrying",
    # Settling
    "settle_lazy_content",
    "scroll_steps",
    # Diagnostics
    "DiagnosticsRecorder",
    # Browser
    "BrowserManager",
    "BrowserSession",
]
