"""In-memory ordered job store."""
from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Callable, List, Optional

from .errors import DuplicateIdError
from .models import Job, JobStatus


class JobStore:
    """Thread-safe in-memory storage preserving insertion order."""

    def __init__(self) -> None:
        self._jobs: "OrderedDict[str, Job]" = OrderedDict()
        self._seen_ids: set[str] = set()
        self._lock = threading.RLock()

    def add(self, job: Job) -> Job:
        with self._lock:
            if job.id in self._seen_ids:
                raise DuplicateIdError(job.id)
            self._seen_ids.add(job.id)
            self._jobs[job.id] = job
            return job

    def find(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.get(job_id)

    def all(self) -> List[Job]:
        with self._lock:
            return list(self._jobs.values())

    def select(self, predicate: Callable[[Job], bool]) -> List[Job]:
        with self._lock:
            return [job for job in self._jobs.values() if predicate(job)]

    def update(self, job_id: str, mutator: Callable[[Job], None]) -> Optional[Job]:
        """Apply ``mutator`` to the job while holding the store lock."""

        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            mutator(job)
            return job

    def count(self, status: JobStatus) -> int:
        with self._lock:
            return sum(1 for job in self._jobs.values() if job.status == status)

    def clear(self) -> None:
        """Drop every job. Issued ids stay reserved for the store's lifetime."""

        with self._lock:
            self._jobs.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            return job_id in self._jobs
