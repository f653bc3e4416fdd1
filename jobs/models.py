"""Data models describing deferred background jobs."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from .errors import InvalidTransitionError

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utcnow() -> datetime:
    """Return a timezone-aware UTC datetime."""

    return datetime.now(timezone.utc)


def _format_ts(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(ISO_FORMAT)


class JobStatus(str, Enum):
    """Lifecycle states for a background job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

_ALLOWED_TRANSITIONS = {
    JobStatus.PENDING: frozenset({JobStatus.RUNNING}),
    JobStatus.RUNNING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


@dataclass(frozen=True)
class WorkResult:
    """Explicit outcome a worker may return instead of raising."""

    ok: bool
    value: Any = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: Any = None) -> "WorkResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "WorkResult":
        return cls(ok=False, error=str(error) or "worker failed")


@dataclass
class Job:
    """A unit of deferred work executed by a worker capability."""

    id: str
    task_type: str
    payload: Dict[str, Any] = field(default_factory=dict)
    scheduled_at: datetime = field(default_factory=utcnow)
    status: JobStatus = JobStatus.PENDING
    result: Any = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def is_due(self, now: datetime) -> bool:
        return self.status == JobStatus.PENDING and self.scheduled_at <= now

    def _transition(self, target: JobStatus) -> None:
        if target not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.id, self.status.value, target.value)
        self.status = target

    def mark_running(self, now: Optional[datetime] = None) -> None:
        self._transition(JobStatus.RUNNING)
        self.started_at = now or utcnow()

    def mark_completed(self, result: Any, now: Optional[datetime] = None) -> None:
        self._transition(JobStatus.COMPLETED)
        self.result = result
        self.completed_at = now or utcnow()

    def mark_failed(self, error: str, now: Optional[datetime] = None) -> None:
        self._transition(JobStatus.FAILED)
        self.error = error
        self.completed_at = now or utcnow()

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "task_type": self.task_type,
            "payload": self.payload,
            "status": self.status.value,
            "scheduled_at": _format_ts(self.scheduled_at),
            "created_at": _format_ts(self.created_at),
            "started_at": _format_ts(self.started_at),
            "completed_at": _format_ts(self.completed_at),
        }
        if self.status == JobStatus.COMPLETED:
            payload["result"] = self.result
        if self.status == JobStatus.FAILED:
            payload["error"] = self.error
        return payload
