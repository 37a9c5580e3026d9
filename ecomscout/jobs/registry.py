"""In-process job tracking.

Jobs move forward only: queued -> processing -> completed | failed. Every
update swaps status, result and error together under one lock, and readers
only ever get a frozen JobSnapshot.
"""

import itertools
import threading
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

import structlog

from ecomscout.core.exceptions import InvalidJobTransition, JobCreationError, NotFoundError
from ecomscout.schemas.job import JobStatusResponse, JobSubmitResponse
from ecomscout.schemas.request import LocationSelectionRequest
from ecomscout.schemas.result import AggregateResult

logger = structlog.get_logger(__name__)


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


_ALLOWED_TRANSITIONS = {
    JobStatus.QUEUED: {JobStatus.PROCESSING},
    JobStatus.PROCESSING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}


@dataclass(frozen=True)
class JobSnapshot:
    """Immutable view of a job at one point in time."""

    id: str
    request: LocationSelectionRequest
    websites: Tuple[str, ...]
    status: JobStatus
    created_at: datetime
    updated_at: datetime
    result: Optional[AggregateResult] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_response(self) -> JobStatusResponse:
        return JobStatusResponse(
            job_id=self.id,
            status=self.status.value,
            product=self.request.product_query,
            location=self.request.location,
            created_at=self.created_at,
            result=self.result,
            error=self.error,
        )

    def to_submit_response(self) -> JobSubmitResponse:
        return JobSubmitResponse(job_id=self.id, status=self.status.value)


@dataclass
class Job:
    id: str
    request: LocationSelectionRequest
    websites: Tuple[str, ...]
    status: JobStatus = JobStatus.QUEUED
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = None
    result: Optional[AggregateResult] = None
    error: Optional[str] = None

    def __post_init__(self):
        if self.updated_at is None:
            self.updated_at = self.created_at

    def snapshot(self) -> JobSnapshot:
        return JobSnapshot(
            id=self.id,
            request=self.request,
            websites=self.websites,
            status=self.status,
            created_at=self.created_at,
            updated_at=self.updated_at,
            result=self.result,
            error=self.error,
        )


class JobRegistry:
    """Maps job id to Job, capped at ``max_jobs``.

    Inserting beyond the cap evicts the oldest finished jobs by
    ``created_at``. Unfinished jobs are never evicted.
    Safe to read from other threads.
    """

    def __init__(self, max_jobs: int = 200):
        if max_jobs < 1:
            raise ValueError("max_jobs must be >= 1")
        self.max_jobs = max_jobs
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()
        self._counter = itertools.count(1)

    def _new_id(self) -> str:
        return f"job-{int(time.time() * 1000)}-{next(self._counter)}"

    def create(self, request: LocationSelectionRequest, websites: List[str]) -> JobSnapshot:
        """Insert a new queued job.

        Raises:
            JobCreationError: Generated id already in use
        """
        with self._lock:
            job_id = self._new_id()
            if job_id in self._jobs:
                raise JobCreationError(f"Job id collision: {job_id}")
            job = Job(id=job_id, request=request, websites=tuple(websites))
            self._jobs[job_id] = job
            evicted = self._evict_locked()
            snapshot = job.snapshot()

        if evicted:
            logger.info("jobs_evicted", count=len(evicted), job_ids=evicted)
        logger.info("job_created", job_id=job_id, websites=list(websites))
        return snapshot

    def _evict_locked(self) -> List[str]:
        # Only finished jobs are evicted; queued and processing jobs stay even
        # if that keeps the map above the cap until they finish.
        overflow = len(self._jobs) - self.max_jobs
        if overflow <= 0:
            return []
        finished = [job for job in self._jobs.values() if job.status.is_terminal]
        oldest = sorted(finished, key=lambda j: j.created_at)[:overflow]
        for job in oldest:
            del self._jobs[job.id]
        return [job.id for job in oldest]

    def get(self, job_id: str) -> JobSnapshot:
        """Snapshot of a job.

        Raises:
            NotFoundError: Unknown or evicted job id
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise NotFoundError("Job", job_id)
            return job.snapshot()

    def _update(
        self,
        job_id: str,
        status: JobStatus,
        result: Optional[AggregateResult] = None,
        error: Optional[str] = None,
    ) -> JobSnapshot:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise NotFoundError("Job", job_id)
            if status not in _ALLOWED_TRANSITIONS[job.status]:
                raise InvalidJobTransition(job_id, job.status.value, status.value)
            self._jobs[job_id] = replace(
                job,
                status=status,
                result=result,
                error=error,
                updated_at=datetime.now(timezone.utc),
            )
            snapshot = self._jobs[job_id].snapshot()

        logger.info("job_status_changed", job_id=job_id, status=status.value)
        return snapshot

    def mark_processing(self, job_id: str) -> JobSnapshot:
        return self._update(job_id, JobStatus.PROCESSING)

    def complete(self, job_id: str, result: AggregateResult) -> JobSnapshot:
        return self._update(job_id, JobStatus.COMPLETED, result=result)

    def fail(self, job_id: str, error: str) -> JobSnapshot:
        return self._update(job_id, JobStatus.FAILED, error=error)

    def list_jobs(self) -> List[JobSnapshot]:
        with self._lock:
            return [job.snapshot() for job in self._jobs.values()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def __contains__(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._jobs
