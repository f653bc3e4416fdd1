"""Delayed background-job scheduler with per-job status tracking."""
from __future__ import annotations

import threading
import time
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Protocol

from config import SCHEDULER_POLL_INTERVAL_S
from observability.logger import get_logger, log_job_transition
from observability.metrics import get_registry

from .errors import WorkerExecutionError
from .models import Job, JobStatus, WorkResult, utcnow
from .store import JobStore

LOGGER = get_logger("agent_lab.jobs.scheduler")
REGISTRY = get_registry()
SCHEDULED_COUNTER = REGISTRY.counter("jobs.scheduled_total")
COMPLETED_COUNTER = REGISTRY.counter("jobs.completed_total")
FAILED_COUNTER = REGISTRY.counter("jobs.failed_total")
# Process-wide: reflects the scheduler that last wrote it. Per-app counts come from the store.
PENDING_GAUGE = REGISTRY.gauge("jobs.pending")

Clock = Callable[[], datetime]
IdGenerator = Callable[[], str]


class Worker(Protocol):
    def perform(self, task_type: str, payload: Dict[str, Any]) -> Any:
        ...


def generate_job_id() -> str:
    return f"job_{int(time.time())}_{uuid.uuid4().hex[:12]}"


class JobScheduler:
    """Polling scheduler dispatching due jobs to a worker one at a time.

    ``execute_pending_jobs`` snapshots the set of due jobs before running any
    of them, so a job that becomes due while the batch is running waits for
    the next call. Worker failures are recorded on the job and never raised.
    """

    def __init__(
        self,
        worker: Worker,
        *,
        store: Optional[JobStore] = None,
        clock: Clock = utcnow,
        id_generator: IdGenerator = generate_job_id,
        poll_interval_s: float = SCHEDULER_POLL_INTERVAL_S,
    ) -> None:
        self._worker = worker
        self._store = store if store is not None else JobStore()
        self._clock = clock
        self._id_generator = id_generator
        self._poll_interval_s = max(0.01, float(poll_interval_s))
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._thread_lock = threading.Lock()

    @property
    def store(self) -> JobStore:
        return self._store

    def schedule_job(self, task_type: str, payload: Optional[Dict[str, Any]] = None, delay_seconds: float = 0) -> str:
        now = self._clock()
        delay = max(0.0, float(delay_seconds or 0))
        job = Job(
            id=self._id_generator(),
            task_type=str(task_type),
            payload=dict(payload or {}),
            scheduled_at=now + timedelta(seconds=delay),
            created_at=now,
        )
        self._store.add(job)
        SCHEDULED_COUNTER.inc()
        PENDING_GAUGE.add(1)
        LOGGER.info(
            "job_scheduled",
            extra={"job_id": job.id, "task_type": job.task_type, "scheduled_at": job.to_dict()["scheduled_at"]},
        )
        return job.id

    def execute_pending_jobs(self) -> List[Job]:
        """Run every job due at call time and return the processed jobs."""

        now = self._clock()
        due = self._store.select(lambda job: job.is_due(now))
        if due:
            LOGGER.info("jobs_executing", extra={"count": len(due)})
        processed: List[Job] = []
        for job in due:
            if self._run_job(job):
                processed.append(job)
        PENDING_GAUGE.set(float(self._store.count(JobStatus.PENDING)))
        return processed

    def job_status(self, job_id: str) -> Optional[Job]:
        return self._store.find(job_id)

    def list_jobs(self) -> List[Job]:
        return self._store.all()

    def clear_jobs(self) -> None:
        self._store.clear()
        PENDING_GAUGE.set(0.0)
        LOGGER.info("jobs_cleared")

    def _claim(self, job: Job) -> bool:
        claimed = False

        def _mark(target: Job) -> None:
            nonlocal claimed
            if target.status == JobStatus.PENDING:
                target.mark_running(self._clock())
                claimed = True

        if self._store.update(job.id, _mark) is None:
            LOGGER.warning("job_missing", extra={"job_id": job.id})
            return False
        return claimed

    def _run_job(self, job: Job) -> bool:
        if not self._claim(job):
            return False
        log_job_transition(LOGGER, job_id=job.id, task_type=job.task_type, status=JobStatus.RUNNING.value)

        failure: Optional[WorkerExecutionError] = None
        result: Any = None
        try:
            outcome = self._worker.perform(job.task_type, job.payload)
            if isinstance(outcome, WorkResult):
                if not outcome.ok:
                    raise WorkerExecutionError(outcome.error or "worker failed", task_type=job.task_type)
                outcome = outcome.value
            result = outcome
        except WorkerExecutionError as exc:
            failure = exc
        except Exception as exc:  # noqa: BLE001
            failure = WorkerExecutionError.from_exception(exc, task_type=job.task_type)

        finished_at = self._clock()
        if failure is None:
            self._finish(job, lambda target: target.mark_completed(result, finished_at))
            COMPLETED_COUNTER.inc()
            log_job_transition(LOGGER, job_id=job.id, task_type=job.task_type, status=JobStatus.COMPLETED.value)
        else:
            message = failure.message
            self._finish(job, lambda target: target.mark_failed(message, finished_at))
            FAILED_COUNTER.inc()
            LOGGER.warning("job_failed", extra={"job_id": job.id, "task_type": job.task_type, "error": message})
        return True

    def _finish(self, job: Job, mutator: Callable[[Job], None]) -> None:
        # The store may have been cleared while the worker ran; the record still settles.
        if self._store.update(job.id, mutator) is None:
            mutator(job)

    def run_forever(self, stop_event: Optional[threading.Event] = None) -> None:
        event = stop_event or self._stop_event
        while not event.is_set():
            try:
                self.execute_pending_jobs()
            except Exception:  # noqa: BLE001
                LOGGER.exception("scheduler_loop_error")
            event.wait(self._poll_interval_s)

    def start(self) -> None:
        with self._thread_lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._stop_event.clear()
            self._thread = threading.Thread(target=self.run_forever, name="job-scheduler", daemon=True)
            self._thread.start()
        LOGGER.info("scheduler_started", extra={"poll_interval_s": self._poll_interval_s})

    def stop(self, timeout: float = 1.0) -> None:
        self._stop_event.set()
        with self._thread_lock:
            thread = self._thread
            self._thread = None
        if thread is not None:
            thread.join(timeout=timeout)
            LOGGER.info("scheduler_stopped")

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()


__all__ = ["JobScheduler", "Worker", "generate_job_id"]
