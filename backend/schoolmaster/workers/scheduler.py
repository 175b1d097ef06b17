"""Runs one background asyncio task per submitted import job."""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy.orm import Session, sessionmaker

from schoolmaster.core.config import Settings
from schoolmaster.services.job_registry import ImportJobRecord
from schoolmaster.workers.import_users import ImportUsersJob

logger = logging.getLogger(__name__)


class ImportScheduler:
    """Starts import jobs outside the request/response cycle.

    Tasks live only as long as the event loop; on shutdown they are
    cancelled and their jobs are orphaned (their records stop advancing).
    """

    def __init__(self, session_factory: sessionmaker[Session], settings: Settings) -> None:
        self._session_factory = session_factory
        self._settings = settings
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def active_job_ids(self) -> list[str]:
        return list(self._tasks)

    def build_job(self, record: ImportJobRecord) -> ImportUsersJob:
        return ImportUsersJob(
            record,
            self._session_factory,
            batch_size=self._settings.import_batch_size,
            password_length=self._settings.temp_password_length,
            bcrypt_rounds=self._settings.bcrypt_rounds,
            class_auto_archive_days=self._settings.class_auto_archive_days,
        )

    def submit(self, record: ImportJobRecord) -> asyncio.Task:
        """Schedule the job on the running loop and return immediately."""
        job = self.build_job(record)
        task = asyncio.create_task(job.run(), name=f"import-job-{record.id}")
        self._tasks[record.id] = task
        task.add_done_callback(lambda _: self._tasks.pop(record.id, None))
        logger.info(f"Scheduled import job {record.id}")
        return task

    async def shutdown(self) -> None:
        tasks = list(self._tasks.items())
        for job_id, task in tasks:
            logger.warning(f"Import job {job_id} orphaned by shutdown; its progress will be lost")
            task.cancel()
        if tasks:
            await asyncio.gather(*(task for _, task in tasks), return_exceptions=True)
