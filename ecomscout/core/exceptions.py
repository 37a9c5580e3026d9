"""Custom exception classes for the application."""

from typing import Sequence


class ScoutException(Exception):
    """Base exception for all ecomscout errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class NotFoundError(ScoutException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} with identifier '{identifier}' not found")


class UnsupportedWebsiteError(ScoutException):
    """Raised when a website name does not map to a registered adapter."""

    def __init__(self, name: str, supported: Sequence[str]):
        self.name = name
        super().__init__(
            f"Unsupported website: {name}. Supported websites: {', '.join(supported)}"
        )


class JobCreationError(ScoutException):
    """Raised when a job record cannot be created."""


class InvalidJobTransition(ScoutException):
    """Raised when a job status change would regress or skip a state."""

    def __init__(self, job_id: str, current: str, requested: str):
        super().__init__(f"Job {job_id} cannot move from '{current}' to '{requested}'")


# ---------------------------------------------------------------------------
# Adapter failures. These are caught at the orchestrator boundary and recorded
# per website; they never fail a job.
# ---------------------------------------------------------------------------


class AdapterError(ScoutException):
    """Raised when a site adapter cannot complete its flow."""

    kind: str = "AdapterError"

    def __init__(self, website: str, message: str):
        self.website = website
        self.detail = message
        super().__init__(f"{website}: {message}")


class NavigationFailure(AdapterError):
    """Initial page load did not settle, even with the relaxed retry."""

    kind = "NavigationFailure"


class LocatorNotFound(AdapterError):
    """Every locator in a step's fallback chain failed."""

    kind = "LocatorNotFound"

    def __init__(self, website: str, step: str, tried: int = 0, message: str = ""):
        self.step = step
        self.tried = tried
        super().__init__(
            website,
            message or f"no locator matched for step '{step}' after {tried} candidates",
        )


class SuggestionNotFound(AdapterError):
    """No autocomplete suggestion passed the disambiguation rules."""

    kind = "SuggestionNotFound"

    def __init__(self, website: str, location: str, tried_variants: Sequence[str] = (), message: str = ""):
        self.location = location
        self.tried_variants = list(tried_variants)
        super().__init__(
            website,
            message or f"no suggestion matched location '{location}'",
        )


class SessionError(AdapterError):
    """The browser session became unusable mid-flow."""

    kind = "SessionError"


class AdapterTimeout(SessionError):
    """The adapter exceeded its overall time budget."""

    kind = "AdapterTimeout"
