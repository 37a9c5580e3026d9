"""Where finished job aggregates go.

Persistence is an external concern; the orchestrator only needs something
with ``async save(job_id, aggregate)``. A sink that raises is logged by the
orchestrator and never changes the job outcome.
"""

from typing import Dict, Protocol, runtime_checkable

import structlog

from ecomscout.schemas.result import AggregateResult

logger = structlog.get_logger(__name__)


@runtime_checkable
class ResultSink(Protocol):
    async def save(self, job_id: str, aggregate: AggregateResult) -> None:
        ...


class LoggingResultSink:
    """Default sink: one summary log line per job."""

    async def save(self, job_id: str, aggregate: AggregateResult) -> None:
        logger.info(
            "job_result",
            job_id=job_id,
            total_websites=aggregate.total_websites,
            successful=aggregate.successful,
            failed=aggregate.failed,
            total_products=aggregate.total_products,
        )


class InMemoryResultSink:
    """Keeps aggregates in a dict, for embedding and tests."""

    def __init__(self):
        self.saved: Dict[str, AggregateResult] = {}

    async def save(self, job_id: str, aggregate: AggregateResult) -> None:
        self.saved[job_id] = aggregate
