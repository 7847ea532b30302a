"""Durable job queue and its consumer."""

from .jobs import Job, JobOptions, JobQueue, JobState
from .worker import JobHandler, JobWorker

__all__ = [
    "Job",
    "JobOptions",
    "JobQueue",
    "JobState",
    "JobHandler",
    "JobWorker",
]
