"""In-memory registry of bulk user import jobs.

One ImportJobRecord per submitted job. The registry is owned by the
running application (created at startup, stored on ``app.state``) and is
never persisted: restarting the process drops every job's progress and
history, although staged upload files stay on disk. Records are never
evicted.

Each record carries its own lock. The batch worker thread is the only
writer of progress fields; HTTP handlers read consistent snapshots and
may only set the cancellation flag.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED})
CANCELLABLE_STATUSES = frozenset({JobStatus.QUEUED, JobStatus.PROCESSING})


class JobNotFoundError(LookupError):
    """Raised when a job id is not present in the registry."""


class JobNotCancellableError(RuntimeError):
    """Raised when cancellation is requested for a job past the point of cancelling."""


class JobStateError(RuntimeError):
    """Raised on an illegal status transition."""


@dataclass(frozen=True)
class CreatedCredential:
    username: str
    password: str
    name: str
    surname: str


@dataclass
class ImportResult:
    created_count: int = 0
    error_count: int = 0
    classes_created_count: int = 0
    created_users: list[CreatedCredential] = field(default_factory=list)


@dataclass(frozen=True)
class JobSnapshot:
    """Point-in-time copy of a job, safe to hand to other threads."""

    id: str
    status: JobStatus
    total: int
    current: int
    messages: tuple[str, ...]
    errors: tuple[str, ...]
    started_at: datetime
    finished_at: datetime | None
    result: ImportResult | None
    error: str | None
    cancel_requested: bool


class ImportJobRecord:
    """Mutable state of a single import job."""

    def __init__(
        self,
        job_id: str,
        source_path: Path,
        message_capacity: int = 200,
        error_capacity: int = 100,
    ) -> None:
        self.id = job_id
        self.source_path = source_path
        self._lock = threading.Lock()
        self._status = JobStatus.QUEUED
        self._total = 0
        self._current = 0
        self._messages: deque[str] = deque(maxlen=message_capacity)
        self._errors: deque[str] = deque(maxlen=error_capacity)
        self._started_at = datetime.now(timezone.utc)
        self._finished_at: datetime | None = None
        self._result: ImportResult | None = None
        self._error: str | None = None
        self._cancel_requested = False

    @property
    def status(self) -> JobStatus:
        with self._lock:
            return self._status

    @property
    def cancel_requested(self) -> bool:
        with self._lock:
            return self._cancel_requested

    def push_message(self, message: str) -> None:
        with self._lock:
            self._messages.append(message)

    def push_error(self, error: str) -> None:
        with self._lock:
            self._errors.append(error)

    def mark_processing(self) -> None:
        with self._lock:
            if self._status is not JobStatus.QUEUED:
                raise JobStateError(f"Job {self.id} cannot start from status {self._status.value}")
            self._status = JobStatus.PROCESSING

    def set_total(self, total: int) -> None:
        with self._lock:
            self._total = total

    def advance(self, current: int) -> None:
        """Move the progress counter forward; it never decreases or passes total."""
        with self._lock:
            self._current = max(self._current, min(current, self._total))

    def finish(
        self,
        status: JobStatus,
        result: ImportResult,
        error: str | None = None,
    ) -> None:
        with self._lock:
            if not status.is_terminal:
                raise JobStateError(f"{status.value} is not a terminal status")
            if self._status.is_terminal:
                raise JobStateError(f"Job {self.id} already finished as {self._status.value}")
            self._status = status
            self._result = result
            self._error = error if status is JobStatus.FAILED else None
            self._finished_at = datetime.now(timezone.utc)

    def request_cancel(self) -> None:
        with self._lock:
            if self._status not in CANCELLABLE_STATUSES or self._cancel_requested:
                raise JobNotCancellableError(f"Job {self.id} cannot be cancelled")
            self._cancel_requested = True
            self._messages.append("Cancelling import...")

    def snapshot(self) -> JobSnapshot:
        with self._lock:
            result = None
            if self._result is not None:
                result = replace(self._result, created_users=list(self._result.created_users))
            return JobSnapshot(
                id=self.id,
                status=self._status,
                total=self._total,
                current=self._current,
                messages=tuple(self._messages),
                errors=tuple(self._errors),
                started_at=self._started_at,
                finished_at=self._finished_at,
                result=result,
                error=self._error,
                cancel_requested=self._cancel_requested,
            )


class JobRegistry:
    """Process-wide map of job id to ImportJobRecord."""

    def __init__(self, message_capacity: int = 200, error_capacity: int = 100) -> None:
        self._message_capacity = message_capacity
        self._error_capacity = error_capacity
        self._jobs: dict[str, ImportJobRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def create(self, source_path: Path) -> ImportJobRecord:
        """Register a queued job for an already staged file."""
        record = ImportJobRecord(
            str(uuid.uuid4()),
            source_path,
            message_capacity=self._message_capacity,
            error_capacity=self._error_capacity,
        )
        record.push_message("File uploaded. Queued for processing...")
        with self._lock:
            self._jobs[record.id] = record
        logger.info(f"Registered import job {record.id} for {source_path}")
        return record

    def get(self, job_id: str) -> ImportJobRecord:
        with self._lock:
            record = self._jobs.get(job_id)
        if record is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        return record

    def snapshot(self, job_id: str) -> JobSnapshot:
        return self.get(job_id).snapshot()

    def list(self, status: JobStatus | None = None, limit: int | None = None) -> list[JobSnapshot]:
        """Return snapshots newest first, optionally filtered by status."""
        with self._lock:
            records = list(self._jobs.values())
        snapshots = [record.snapshot() for record in records]
        if status is not None:
            snapshots = [snapshot for snapshot in snapshots if snapshot.status is status]
        snapshots.sort(key=lambda snapshot: snapshot.started_at, reverse=True)
        return snapshots[:limit] if limit is not None else snapshots

    def cancel(self, job_id: str) -> JobSnapshot:
        record = self.get(job_id)
        record.request_cancel()
        logger.info(f"Cancellation requested for import job {job_id}")
        return record.snapshot()
