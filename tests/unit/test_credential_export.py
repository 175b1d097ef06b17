"""Unit tests for the credentials CSV download."""

import csv
import io
from pathlib import Path

import pytest

from schoolmaster.services.credential_export import (
    CREDENTIAL_HEADERS,
    CredentialsNotReadyError,
    NoCredentialsError,
    export_credentials_csv,
)
from schoolmaster.services.job_registry import (
    CreatedCredential,
    ImportResult,
    JobNotFoundError,
    JobRegistry,
    JobStatus,
)


def finished_job(registry: JobRegistry, status: JobStatus, credentials: list[CreatedCredential]) -> str:
    record = registry.create(Path("/tmp/users.csv"))
    record.mark_processing()
    record.finish(
        status,
        ImportResult(created_count=len(credentials), created_users=credentials),
        error="boom" if status is JobStatus.FAILED else None,
    )
    return record.id


def test_completed_job_exports_every_created_user(registry: JobRegistry) -> None:
    credentials = [
        CreatedCredential("jdoe", "Ab1!xxxxxxxx", "John", "Doe"),
        CreatedCredential("o'neil", 'Cd2"yyyyyyyy', "Mary, Jr", "O'Neil"),
    ]
    job_id = finished_job(registry, JobStatus.COMPLETED, credentials)

    content = export_credentials_csv(registry, job_id)

    rows = list(csv.reader(io.StringIO(content)))
    assert rows[0] == CREDENTIAL_HEADERS
    assert rows[1] == ["jdoe", "Ab1!xxxxxxxx", "John", "Doe"]
    assert rows[2] == ["o'neil", 'Cd2"yyyyyyyy', "Mary, Jr", "O'Neil"]
    assert content.startswith('"username","password","name","surname"')


def test_unknown_job(registry: JobRegistry) -> None:
    with pytest.raises(JobNotFoundError):
        export_credentials_csv(registry, "missing")


def test_running_job_is_not_ready(registry: JobRegistry) -> None:
    record = registry.create(Path("/tmp/users.csv"))
    record.mark_processing()

    with pytest.raises(CredentialsNotReadyError):
        export_credentials_csv(registry, record.id)


@pytest.mark.parametrize("status", [JobStatus.FAILED, JobStatus.CANCELLED])
def test_only_completed_jobs_disclose_credentials(registry: JobRegistry, status: JobStatus) -> None:
    job_id = finished_job(registry, status, [CreatedCredential("a", "b", "c", "d")])

    with pytest.raises(CredentialsNotReadyError):
        export_credentials_csv(registry, job_id)


def test_completed_job_without_users(registry: JobRegistry) -> None:
    job_id = finished_job(registry, JobStatus.COMPLETED, [])

    with pytest.raises(NoCredentialsError):
        export_credentials_csv(registry, job_id)
