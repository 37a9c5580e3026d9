"""Retry policies for navigation and whole adapter runs."""

import asyncio

import structlog
from playwright.async_api import Error as PlaywrightError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from ecomscout.core.exceptions import AdapterTimeout, NavigationFailure, SessionError


logger = structlog.get_logger(__name__)


# goto() wait conditions, one per attempt: the retry relaxes to "commit"
NAVIGATION_WAIT_STATES = ("domcontentloaded", "commit")


def _log_before_sleep(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "retrying",
        attempt=retry_state.attempt_number,
        error=str(exc)[:200] if exc else None,
        error_type=type(exc).__name__ if exc else None,
    )


def navigation_retrying(backoff_s: float = 1.0) -> AsyncRetrying:
    """One initial navigation plus one relaxed retry.

    Use ``NAVIGATION_WAIT_STATES[attempt.retry_state.attempt_number - 1]``
    inside the loop to pick the wait condition.
    """
    return AsyncRetrying(
        stop=stop_after_attempt(len(NAVIGATION_WAIT_STATES)),
        wait=wait_fixed(backoff_s),
        retry=retry_if_exception_type((PlaywrightError, asyncio.TimeoutError)),
        before_sleep=_log_before_sleep,
        reraise=True,
    )


def is_retryable_adapter_error(exc: BaseException) -> bool:
    """Navigation and session failures get a fresh session; timeouts do not."""
    if isinstance(exc, AdapterTimeout):
        return False
    return isinstance(exc, (NavigationFailure, SessionError))


def adapter_retrying(max_attempts: int, backoff_s: float = 2.0) -> AsyncRetrying:
    """Retry a whole adapter run, each attempt in a brand new session."""
    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_fixed(backoff_s),
        retry=retry_if_exception(is_retryable_adapter_error),
        before_sleep=_log_before_sleep,
        reraise=True,
    )
