"""Application configuration via Pydantic Settings."""

from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ScraperTimings(BaseModel):
    """Timing budget shared by every site adapter.

    All values are milliseconds except the ``*_S`` fields which bound a whole
    step or a whole adapter run in seconds.
    """

    NAVIGATION_TIMEOUT_MS: int = 60000
    RETRY_NAVIGATION_TIMEOUT_MS: int = 60000
    POST_NAVIGATION_SETTLE_MS: int = 3000

    # Selector resolution: every candidate gets its own budget
    CANDIDATE_TIMEOUT_MS: int = 5000
    ACTION_TIMEOUT_MS: int = 5000
    SUGGESTION_WAIT_MS: int = 3000

    # Location flow pauses
    AFTER_MENU_OPEN_MS: int = 1000
    TYPING_DELAY_MS: int = 100
    AFTER_TYPING_MS: int = 3000
    AFTER_SUGGESTION_MS: int = 2000
    AFTER_CONFIRM_MS: int = 3000

    # Lazy-content settling
    SCROLL_MIN_STEPS: int = 20
    SCROLL_MAX_STEPS: int = 60
    SCROLL_STEP_PAUSE_MS: int = 200
    SCROLL_TOP_PAUSE_MS: int = 500
    SETTLE_PAUSE_MS: int = 2000
    EVALUATE_TIMEOUT_MS: int = 10000

    # Upper bounds. Navigation steps are bounded by navigation_budget_s instead
    STEP_TIMEOUT_S: float = 90.0
    DETAIL_ENRICHMENT_TIMEOUT_S: float = 60.0
    ADAPTER_TIMEOUT_S: float = 300.0
    DIAGNOSTIC_TIMEOUT_S: float = 10.0
    INTER_SITE_DELAY_MS: int = 2000
    RETRY_BACKOFF_MS: int = 2000

    @property
    def navigation_budget_s(self) -> float:
        """Worst case for one navigate/reload step: both goto attempts,
        the backoff between them and the post-navigation settle."""
        total_ms = (
            self.NAVIGATION_TIMEOUT_MS
            + self.RETRY_BACKOFF_MS
            + self.RETRY_NAVIGATION_TIMEOUT_MS
            + self.POST_NAVIGATION_SETTLE_MS
        )
        return total_ms / 1000

    @model_validator(mode="after")
    def adapter_timeout_covers_navigation(self) -> "ScraperTimings":
        if self.ADAPTER_TIMEOUT_S < self.navigation_budget_s:
            raise ValueError(
                f"ADAPTER_TIMEOUT_S ({self.ADAPTER_TIMEOUT_S}s) is shorter than one "
                f"navigation with its relaxed retry ({self.navigation_budget_s}s)"
            )
        return self


class Settings(BaseSettings):
    """Global application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        env_nested_delimiter="__",
        extra="ignore",
    )

    # App
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Browser
    HEADLESS: bool = True
    BROWSER_CHANNEL: Optional[str] = None  # e.g. "chrome"; None = bundled Chromium
    PROXY_SERVER: str = ""
    LOCALE: str = "en-IN"
    TIMEZONE_ID: str = "Asia/Kolkata"

    # Orchestration
    DISPATCH_MODE: Literal["parallel", "sequential"] = "parallel"
    ENABLED_WEBSITES: str = "dmart,jiomart,naturesbasket,zepto,swiggy"
    MAX_CONCURRENT_SESSIONS: int = 4
    ADAPTER_MAX_ATTEMPTS: int = 2
    JOB_REGISTRY_MAX_JOBS: int = 200

    # Diagnostics
    DIAGNOSTICS_ENABLED: bool = True
    DIAGNOSTICS_DIR: Path = Path("diagnostics")

    # Detail-page enrichment
    MAX_DETAIL_PAGES: int = 10

    TIMINGS: ScraperTimings = ScraperTimings()

    @field_validator("ADAPTER_MAX_ATTEMPTS", "MAX_CONCURRENT_SESSIONS", "JOB_REGISTRY_MAX_JOBS")
    @classmethod
    def at_least_one(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value

    def get_enabled_websites(self) -> List[str]:
        """Parse ENABLED_WEBSITES into a list of website slugs.

        Returns:
            List of slug strings, empty if ENABLED_WEBSITES is not set
        """
        if not self.ENABLED_WEBSITES:
            return []
        return [w.strip().lower() for w in self.ENABLED_WEBSITES.split(",") if w.strip()]


settings = Settings()
