"""Batch processor for bulk user import jobs.

The job is driven as an explicit cooperative loop: ``start()`` reads the
staged CSV, each ``step()`` runs exactly one batch inside one database
transaction, and ``run()`` executes those calls in a worker thread while
yielding to the event loop between batches. Cancellation is only observed
before a batch starts, so a batch in flight always finishes.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from schoolmaster.services.class_resolver import ClassResolver
from schoolmaster.services.csv_ingest import SourceFileError, read_rows
from schoolmaster.services.job_registry import (
    CreatedCredential,
    ImportJobRecord,
    ImportResult,
    JobStatus,
)
from schoolmaster.services.row_validator import RowRejectedError, validate_row
from schoolmaster.services.user_creator import create_user
from schoolmaster.utils.batching import chunked

logger = logging.getLogger(__name__)


@dataclass
class BatchOutcome:
    """What one batch produced; merged into the job only after commit."""

    credentials: list[CreatedCredential] = field(default_factory=list)
    error_count: int = 0
    messages: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class ImportUsersJob:
    """Owns and mutates one ImportJobRecord from queued to a terminal status."""

    def __init__(
        self,
        job: ImportJobRecord,
        session_factory: sessionmaker[Session],
        *,
        batch_size: int = 25,
        password_length: int = 12,
        bcrypt_rounds: int = 10,
        class_auto_archive_days: int = 365,
    ) -> None:
        self.job = job
        self._session_factory = session_factory
        self._batch_size = batch_size
        self._password_length = password_length
        self._bcrypt_rounds = bcrypt_rounds
        self._class_auto_archive_days = class_auto_archive_days

        self._batches: list[Any] = []
        self._batch_index = 0
        self._created: list[CreatedCredential] = []
        self._error_count = 0
        self._resolver: ClassResolver | None = None
        self._finished = False

    @property
    def total_batches(self) -> int:
        return len(self._batches)

    async def run(self) -> None:
        """Process the whole job; never raises except on task cancellation."""
        logger.info(f"Import job {self.job.id} started")
        try:
            if await asyncio.to_thread(self.start):
                while await asyncio.to_thread(self.step):
                    # Let polls and cancel requests in before the next batch
                    await asyncio.sleep(0)
        except Exception as exc:
            logger.exception(f"Import job {self.job.id} crashed")
            if not self._finished:
                self._fail(str(exc) or exc.__class__.__name__)

    def start(self) -> bool:
        """Move to processing and parse the source file.

        Returns False when the job already reached a terminal state.
        """
        self.job.mark_processing()
        if self.job.cancel_requested:
            self._finish_cancelled()
            return False

        self.job.push_message("Reading CSV from storage...")
        try:
            rows = read_rows(self.job.source_path)
            with self._session_factory() as session:
                self._resolver = ClassResolver.load(
                    session, auto_archive_days=self._class_auto_archive_days
                )
        except (SourceFileError, SQLAlchemyError) as exc:
            logger.error(f"Import job {self.job.id} could not read its source: {exc}")
            self._fail(str(exc))
            return False

        self.job.set_total(len(rows))
        self._batches = chunked(rows, self._batch_size)
        self.job.push_message(f"Parsed {len(rows)} rows. Beginning import...")
        return True

    def step(self) -> bool:
        """Run the next batch. Returns True while more batches remain."""
        if self._finished:
            return False

        if self._batch_index < self.total_batches:
            if self.job.cancel_requested:
                self._finish_cancelled()
                return False
            self._process_batch(self._batch_index)
            self._batch_index += 1

        if self._batch_index >= self.total_batches:
            self._finish_completed()
            return False
        return True

    def _process_batch(self, index: int) -> None:
        batch = self._batches[index]
        first_row = index * self._batch_size + 1
        last_row = first_row + len(batch) - 1
        batch_label = f"batch {index + 1}/{self.total_batches} (rows {first_row}-{last_row})"
        self.job.push_message(f"Processing {batch_label}")

        outcome = BatchOutcome()
        try:
            with self._session_factory() as session, session.begin():
                for offset, raw in enumerate(batch):
                    self._process_row(session, raw, first_row + offset, outcome)
        except SQLAlchemyError as exc:
            logger.error(f"Import job {self.job.id}: {batch_label} failed", exc_info=True)
            self._resolver.discard_pending()
            self._error_count += len(batch)
            self.job.push_error(f"Batch {index + 1} failed: {exc}")
        else:
            self._resolver.commit_pending()
            self._created.extend(outcome.credentials)
            self._error_count += outcome.error_count
            for message in outcome.messages:
                self.job.push_message(message)
            for error in outcome.errors:
                self.job.push_error(error)

        self.job.advance(last_row)
        self.job.push_message(f"Processed {batch_label}")

    def _process_row(
        self,
        session: Session,
        raw: dict[str, Any],
        row_number: int,
        outcome: BatchOutcome,
    ) -> None:
        try:
            row = validate_row(session, raw, row_number)
        except RowRejectedError as exc:
            outcome.error_count += 1
            outcome.errors.append(str(exc))
            return

        if row.archive_date_error:
            outcome.errors.append(row.archive_date_error)

        try:
            with self._resolver.row_scope(), session.begin_nested():
                created = create_user(
                    session,
                    row,
                    self._resolver,
                    password_length=self._password_length,
                    bcrypt_rounds=self._bcrypt_rounds,
                )
        except IntegrityError as exc:
            # Connection and locking faults propagate and fail the whole batch
            outcome.error_count += 1
            outcome.errors.append(f"Row {row_number}: {getattr(exc, 'orig', None) or exc}")
            return

        outcome.credentials.append(created.credential)
        outcome.errors.extend(created.warnings)
        outcome.messages.extend(
            f'Created new class: "{class_name}"' for class_name in created.created_classes
        )

    def _result(self) -> ImportResult:
        return ImportResult(
            created_count=len(self._created),
            error_count=self._error_count,
            classes_created_count=self._resolver.created_count if self._resolver else 0,
            created_users=list(self._created),
        )

    def _finish_cancelled(self) -> None:
        self._finished = True
        self.job.push_message("Import cancelled by user")
        self.job.finish(JobStatus.CANCELLED, self._result())
        logger.info(
            f"Import job {self.job.id} cancelled after {self._batch_index}/{self.total_batches} batches"
        )

    def _finish_completed(self) -> None:
        self._finished = True
        result = self._result()
        self.job.finish(JobStatus.COMPLETED, result)
        self.job.push_message(
            f"Import completed: {result.created_count} users created, "
            f"{result.classes_created_count} classes created, {result.error_count} errors"
        )
        if result.created_users:
            self.job.push_message(
                "Download the CSV file with usernames and passwords from the completion screen."
            )
        logger.info(
            f"Import job {self.job.id} completed: {result.created_count} created, "
            f"{result.error_count} errors"
        )

    def _fail(self, message: str) -> None:
        self._finished = True
        self.job.finish(JobStatus.FAILED, self._result(), error=message)
        self.job.push_message(f"Import failed: {message}")
