"""Job tracking and result sinks."""

from .registry import Job, JobRegistry, JobSnapshot, JobStatus
from .sinks import InMemoryResultSink, LoggingResultSink, ResultSink

__all__ = [
    "Job",
    "JobRegistry",
    "JobSnapshot",
    "JobStatus",
    "ResultSink",
    "LoggingResultSink",
    "InMemoryResultSink",
]
