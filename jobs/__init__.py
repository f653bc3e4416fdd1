"""In-memory delayed job scheduling primitives."""

from .errors import DuplicateIdError, InvalidTransitionError, JobError, WorkerExecutionError  # noqa: F401
from .models import Job, JobStatus, WorkResult  # noqa: F401
from .store import JobStore  # noqa: F401
from .scheduler import JobScheduler, Worker  # noqa: F401

__all__ = [
    "DuplicateIdError",
    "InvalidTransitionError",
    "Job",
    "JobError",
    "JobScheduler",
    "JobStatus",
    "JobStore",
    "WorkResult",
    "Worker",
    "WorkerExecutionError",
]
