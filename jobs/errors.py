"""Errors raised by the job store and scheduler."""
from __future__ import annotations


class JobError(Exception):
    """Base class for job subsystem errors."""


class DuplicateIdError(JobError):
    """A job with the same id is already present in the store."""

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job id already exists: {job_id}")
        self.job_id = job_id


class InvalidTransitionError(JobError):
    """A job was asked to move to a status its lifecycle does not allow."""

    def __init__(self, job_id: str, current: str, target: str) -> None:
        super().__init__(f"Job {job_id} cannot move from {current} to {target}")
        self.job_id = job_id
        self.current = current
        self.target = target


class WorkerExecutionError(JobError):
    """Failure raised or reported by a worker while performing a job."""

    def __init__(self, message: str, *, task_type: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.task_type = task_type

    @classmethod
    def from_exception(cls, exc: BaseException, *, task_type: str | None = None) -> "WorkerExecutionError":
        message = str(exc)
        if not message.strip():
            message = exc.__class__.__name__
        return cls(message, task_type=task_type)
