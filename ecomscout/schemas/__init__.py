"""Pydantic schemas for the job submit/poll contract.

All request/response models are defined here for easy import.
"""

from ecomscout.schemas.request import LocationSelectionRequest
from ecomscout.schemas.result import AggregateResult, WebsiteOutcome
from ecomscout.schemas.job import JobStatusResponse, JobSubmitResponse

__all__ = [
    # Request
    "LocationSelectionRequest",
    # Results
    "WebsiteOutcome",
    "AggregateResult",
    # Jobs
    "JobSubmitResponse",
    "JobStatusResponse",
]
