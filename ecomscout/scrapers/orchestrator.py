"""Job orchestrator: non-blocking submit, background dispatch, polling.

``submit`` returns a job id before any browser work starts. The job's
background task runs every selected adapter (each in its own session),
records one WebsiteOutcome per adapter, normalizes and aggregates the
results, hands the aggregate to the result sink and completes the job.
Adapter failures never fail a job.
"""

import asyncio
import time
from typing import Dict, List, Optional, Sequence

import structlog

from ecomscout.config import ScraperTimings, settings
from ecomscout.core.exceptions import AdapterError, AdapterTimeout, JobCreationError, NotFoundError
from ecomscout.jobs.registry import JobRegistry, JobSnapshot
from ecomscout.jobs.sinks import LoggingResultSink, ResultSink
from ecomscout.schemas.request import LocationSelectionRequest
from ecomscout.schemas.result import AggregateResult, WebsiteOutcome
from ecomscout.scrapers.base import BaseSiteAdapter, SessionFactory
from ecomscout.scrapers.factory import AdapterFactory, get_adapter_factory
from ecomscout.scrapers.records import ExtractionResult
from ecomscout.scrapers.register_adapters import register_all_adapters
from ecomscout.scrapers.utils.browser_manager import BrowserManager
from ecomscout.scrapers.utils.diagnostics import DiagnosticsRecorder
from ecomscout.scrapers.utils.normalizer import ResultNormalizer
from ecomscout.scrapers.utils.retry import adapter_retrying

logger = structlog.get_logger(__name__)


class JobOrchestrator:
    """Runs location-selection jobs across storefronts.

    Usage::

        configure_logging()  # ecomscout.core.logging_config, once at startup
        async with JobOrchestrator() as orchestrator:
            job_id = orchestrator.submit("milk", "RT Nagar")
            ...
            snapshot = orchestrator.get_status(job_id)
    """

    def __init__(
        self,
        factory: Optional[AdapterFactory] = None,
        browser_manager: Optional[BrowserManager] = None,
        session_factory: Optional[SessionFactory] = None,
        registry: Optional[JobRegistry] = None,
        sink: Optional[ResultSink] = None,
        diagnostics: Optional[DiagnosticsRecorder] = None,
        timings: Optional[ScraperTimings] = None,
        dispatch_mode: Optional[str] = None,
        max_concurrent_sessions: Optional[int] = None,
        max_attempts: Optional[int] = None,
        websites: Optional[Sequence[str]] = None,
    ):
        self.factory = factory if factory is not None else get_adapter_factory()
        if not self.factory.get_registered_sites():
            register_all_adapters(self.factory)

        self.browser_manager = browser_manager
        if session_factory is None:
            self.browser_manager = browser_manager if browser_manager is not None else BrowserManager()
            session_factory = self.browser_manager.session
        self.session_factory = session_factory

        self.registry = registry if registry is not None else JobRegistry(settings.JOB_REGISTRY_MAX_JOBS)
        self.sink = sink if sink is not None else LoggingResultSink()
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticsRecorder()
        self.timings = timings if timings is not None else settings.TIMINGS
        self.dispatch_mode = dispatch_mode or settings.DISPATCH_MODE
        if self.dispatch_mode not in ("parallel", "sequential"):
            raise ValueError(f"Invalid dispatch_mode: {self.dispatch_mode}")
        self.max_attempts = settings.ADAPTER_MAX_ATTEMPTS if max_attempts is None else max_attempts
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if max_concurrent_sessions is None:
            max_concurrent_sessions = settings.MAX_CONCURRENT_SESSIONS
        if max_concurrent_sessions < 1:
            raise ValueError("max_concurrent_sessions must be >= 1")
        self._semaphore = asyncio.Semaphore(max_concurrent_sessions)

        if websites is not None:
            self.default_websites = self._select_sites(websites)
        else:
            enabled = [w for w in settings.get_enabled_websites() if self.factory.has_adapter(w)]
            self.default_websites = self._select_sites(enabled)

        self._tasks: Dict[str, asyncio.Task] = {}
        self.logger = logger.bind(dispatch_mode=self.dispatch_mode)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self.browser_manager is not None:
            await self.browser_manager.start()

    async def close(self) -> None:
        """Wait for in-flight jobs, then stop the browser."""
        pending = list(self._tasks.values())
        if pending:
            self.logger.info("waiting_for_jobs", count=len(pending))
            await asyncio.gather(*pending, return_exceptions=True)
        if self.browser_manager is not None:
            await self.browser_manager.stop()

    async def __aenter__(self) -> "JobOrchestrator":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Submit / poll
    # ------------------------------------------------------------------

    def _select_sites(self, websites: Optional[Sequence[str]]) -> List[str]:
        """Resolve names/aliases to slugs, keeping order and dropping repeats."""
        if not websites:
            return self.factory.get_registered_sites()
        slugs: List[str] = []
        for name in websites:
            slug = self.factory.resolve_site(name)
            if slug not in slugs:
                slugs.append(slug)
        return slugs

    def submit(self, product: str, location: str, websites: Optional[Sequence[str]] = None) -> str:
        """Queue a job and return its id without waiting for any adapter.

        Must be called from code running on an event loop.

        Raises:
            pydantic.ValidationError: Empty product or location
            UnsupportedWebsiteError: Unknown website name
            JobCreationError: No running event loop, or the job record
                could not be created
        """
        request = LocationSelectionRequest(product_query=product, location=location)
        sites = self._select_sites(websites) if websites else list(self.default_websites)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            raise JobCreationError("submit() must be called from a running event loop") from e

        snapshot = self.registry.create(request, sites)
        job_id = snapshot.id
        task = loop.create_task(self._process(job_id, request, sites), name=job_id)
        self._tasks[job_id] = task
        task.add_done_callback(lambda _t, job_id=job_id: self._tasks.pop(job_id, None))

        self.logger.info(
            "job_submitted",
            job_id=job_id,
            product=request.product_query,
            location=request.location,
            websites=sites,
        )
        return job_id

    def get_status(self, job_id: str) -> JobSnapshot:
        """Current snapshot of a job.

        Raises:
            NotFoundError: Unknown job id
        """
        return self.registry.get(job_id)

    async def wait(self, job_id: str) -> JobSnapshot:
        """Wait for a job's background task and return its final snapshot."""
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.shield(task)
        return self.get_status(job_id)

    async def run(self, product: str, location: str, websites: Optional[Sequence[str]] = None) -> JobSnapshot:
        """Submit a job and wait for it to reach a terminal state."""
        return await self.wait(self.submit(product, location, websites))

    # ------------------------------------------------------------------
    # Background processing
    # ------------------------------------------------------------------

    async def _process(self, job_id: str, request: LocationSelectionRequest, sites: List[str]) -> None:
        log = self.logger.bind(job_id=job_id)
        try:
            self.registry.mark_processing(job_id)
        except NotFoundError:
            log.warning("job_dropped_before_processing")
            return
        started = time.monotonic()

        try:
            outcomes = await self._dispatch(request, sites)
            aggregate = AggregateResult.from_outcomes(outcomes)
        except Exception as e:
            log.exception("job_orchestration_failed")
            self._record(log, self.registry.fail, job_id, f"{type(e).__name__}: {e}")
            return

        try:
            await self.sink.save(job_id, aggregate)
        except Exception as e:
            log.error("result_sink_failed", error=str(e), error_type=type(e).__name__)

        if not self._record(log, self.registry.complete, job_id, aggregate):
            return
        log.info(
            "job_completed",
            successful=aggregate.successful,
            failed=aggregate.failed,
            total_products=aggregate.total_products,
            duration_seconds=round(time.monotonic() - started, 2),
        )

    @staticmethod
    def _record(log, update, job_id: str, value) -> bool:
        """Apply a terminal registry update; False when the job is gone."""
        try:
            update(job_id, value)
        except NotFoundError:
            log.warning("job_missing_from_registry")
            return False
        return True

    async def _dispatch(self, request: LocationSelectionRequest, sites: List[str]) -> List[WebsiteOutcome]:
        outcomes: Dict[str, WebsiteOutcome] = {}

        if self.dispatch_mode == "sequential":
            for index, slug in enumerate(sites):
                if index:
                    await asyncio.sleep(self.timings.INTER_SITE_DELAY_MS / 1000)
                outcomes[slug] = await self._run_site(slug, request)
        else:
            batch = [s for s in sites if not self.factory.get_adapter_class(s).run_isolated]
            isolated = [s for s in sites if s not in batch]
            results = await asyncio.gather(*(self._run_site(slug, request) for slug in batch))
            outcomes.update(zip(batch, results))
            for slug in isolated:
                outcomes[slug] = await self._run_site(slug, request)

        return [outcomes[slug] for slug in sites]

    def _create_adapter(self, slug: str) -> BaseSiteAdapter:
        return self.factory.create_adapter(slug, timings=self.timings, diagnostics=self.diagnostics)

    async def _run_once(self, slug: str, request: LocationSelectionRequest) -> ExtractionResult:
        adapter = self._create_adapter(slug)
        async with self._semaphore:
            try:
                return await asyncio.wait_for(
                    adapter.run(request, self.session_factory),
                    timeout=self.timings.ADAPTER_TIMEOUT_S,
                )
            except asyncio.TimeoutError:
                raise AdapterTimeout(slug, f"adapter exceeded {self.timings.ADAPTER_TIMEOUT_S}s") from None

    async def _run_site(self, slug: str, request: LocationSelectionRequest) -> WebsiteOutcome:
        """One adapter with retries. Always returns an outcome."""
        log = self.logger.bind(website=slug)
        started = time.monotonic()
        attempts = 0

        try:
            async for attempt in adapter_retrying(self.max_attempts, self.timings.RETRY_BACKOFF_MS / 1000):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    result = await self._run_once(slug, request)
        except AdapterError as e:
            log.warning("website_failed", kind=e.kind, error=e.detail, attempts=attempts)
            return WebsiteOutcome.from_error(slug, e, time.monotonic() - started, attempts)
        except Exception as e:
            log.exception("website_unexpected_error", attempts=attempts)
            return WebsiteOutcome.from_error(slug, e, time.monotonic() - started, attempts)

        base_url = self.factory.get_adapter_class(slug).base_url
        normalized = ResultNormalizer(base_url).normalize_extraction(result)
        outcome = WebsiteOutcome.from_result(normalized, time.monotonic() - started, attempts)
        log.info("website_finished", products=outcome.product_count, empty=outcome.empty, attempts=attempts)
        return outcome
