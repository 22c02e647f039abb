"""Background job runner with cooperative cancellation."""

from __future__ import annotations

import threading
import uuid
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Deque, Dict, List, Optional

import structlog

from .errors import ExportCancelled
from .models import ExportJobStatus, utcnow

logger = structlog.get_logger("export_jobs")


class CancelOutcome(str, Enum):
    REMOVED = "removed"
    SIGNALLED = "signalled"
    IGNORED = "ignored"


class CancellationToken:
    """Flag a running job polls to find out it should stop."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ExportCancelled("Export job was cancelled")


JobWork = Callable[[str, CancellationToken], ExportJobStatus]
EvictionListener = Callable[[List[str]], None]


@dataclass
class JobRecord:
    job_id: str
    status: ExportJobStatus = ExportJobStatus.QUEUED
    token: CancellationToken = field(default_factory=CancellationToken)
    future: Optional[Future] = None
    enqueued_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class BackgroundJobRunner:
    """Runs units of work on a thread pool, identified by opaque job ids.

    A job that is cancelled while still queued is never started. A running job
    only sees its token set; it is expected to stop at its next checkpoint.

    Only the most recent ``retained_jobs`` finished jobs are remembered. Older
    ones are forgotten and reported to the eviction listeners, after which
    they behave like unknown ids.
    """

    def __init__(self, max_workers: int = 4, retained_jobs: int = 1000) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="export-job")
        self.retained_jobs = max(retained_jobs, 1)
        self._jobs: Dict[str, JobRecord] = {}
        self._finished: Deque[str] = deque()
        self._eviction_listeners: List[EvictionListener] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def add_eviction_listener(self, listener: EvictionListener) -> None:
        self._eviction_listeners.append(listener)

    def enqueue(self, work: JobWork) -> str:
        """Record a job and hand it to the pool; returns without waiting for it."""
        record = JobRecord(job_id=uuid.uuid4().hex)
        with self._lock:
            # _execute waits on this lock until the record is registered.
            record.future = self._executor.submit(self._execute, record, work)
            self._jobs[record.job_id] = record
        logger.info("job_enqueued", job_id=record.job_id)
        return record.job_id

    def _retire(self, record: JobRecord) -> List[str]:
        """Mark a job finished and drop the oldest finished jobs over the limit.

        Must be called with the lock held; returns the evicted job ids.
        """
        record.finished_at = utcnow()
        self._finished.append(record.job_id)
        evicted: List[str] = []
        while len(self._finished) > self.retained_jobs:
            job_id = self._finished.popleft()
            self._jobs.pop(job_id, None)
            evicted.append(job_id)
        return evicted

    def _notify_evicted(self, job_ids: List[str]) -> None:
        if not job_ids:
            return
        logger.debug("jobs_evicted", job_ids=job_ids)
        for listener in list(self._eviction_listeners):
            listener(job_ids)

    def _execute(self, record: JobRecord, work: JobWork) -> None:
        with self._lock:
            if record.status != ExportJobStatus.QUEUED:
                return
            record.status = ExportJobStatus.RUNNING
            record.started_at = utcnow()

        try:
            final_status = work(record.job_id, record.token)
        except ExportCancelled:
            final_status = ExportJobStatus.CANCELLED
        except Exception as exc:
            logger.error("job_crashed", job_id=record.job_id, error=str(exc))
            final_status = ExportJobStatus.FAILED

        with self._lock:
            record.status = final_status
            evicted = self._retire(record)
        logger.info("job_finished", job_id=record.job_id, status=final_status.value)
        self._notify_evicted(evicted)

    def cancel(self, job_id: str) -> CancelOutcome:
        """Cancel a job; unknown and finished jobs are silently ignored."""
        with self._lock:
            record = self._jobs.get(job_id)
            if record is None or record.status.is_terminal:
                return CancelOutcome.IGNORED

            evicted: List[str] = []
            record.token.cancel()
            if record.status == ExportJobStatus.QUEUED:
                record.status = ExportJobStatus.CANCELLED
                if record.future is not None:
                    record.future.cancel()
                evicted = self._retire(record)
                outcome = CancelOutcome.REMOVED
            else:
                outcome = CancelOutcome.SIGNALLED

        logger.info("job_cancel_requested", job_id=job_id, outcome=outcome.value)
        self._notify_evicted(evicted)
        return outcome

    def status(self, job_id: str) -> Optional[ExportJobStatus]:
        with self._lock:
            record = self._jobs.get(job_id)
            return record.status if record else None

    def active_job_ids(self) -> List[str]:
        with self._lock:
            return [job_id for job_id, record in self._jobs.items() if not record.status.is_terminal]

    def wait(self, job_id: str, timeout: Optional[float] = None) -> Optional[ExportJobStatus]:
        """Block until a job's worker has returned, then report its status."""
        with self._lock:
            record = self._jobs.get(job_id)
        if record is None:
            return None
        if record.future is not None and not record.future.cancelled():
            wait([record.future], timeout=timeout)
        return self.status(job_id)

    def shutdown(self, wait_for_running: bool = False) -> None:
        self._executor.shutdown(wait=wait_for_running, cancel_futures=True)


__all__ = [
    "BackgroundJobRunner",
    "CancelOutcome",
    "CancellationToken",
    "EvictionListener",
    "JobRecord",
    "JobWork",
]
