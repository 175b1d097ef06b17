"""One-shot disclosure of the temporary passwords generated by an import."""

from __future__ import annotations

import csv
import io

from schoolmaster.services.job_registry import JobRegistry, JobStatus

CREDENTIAL_HEADERS = ["username", "password", "name", "surname"]


class CredentialsNotReadyError(RuntimeError):
    """The job has not completed, so no credentials can be handed out."""


class NoCredentialsError(LookupError):
    """The job completed without creating any user."""


def export_credentials_csv(registry: JobRegistry, job_id: str) -> str:
    """Render the created users of a completed job as CSV.

    Raises JobNotFoundError, CredentialsNotReadyError or NoCredentialsError.
    Never returns partial data for a job that is still running.
    """
    snapshot = registry.snapshot(job_id)
    if snapshot.status is not JobStatus.COMPLETED:
        raise CredentialsNotReadyError(f"Job {job_id} is not completed yet")
    if snapshot.result is None or not snapshot.result.created_users:
        raise NoCredentialsError(f"No users were created in job {job_id}")

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CREDENTIAL_HEADERS)
    for user in snapshot.result.created_users:
        writer.writerow([user.username, user.password, user.name, user.surname])
    return buffer.getvalue()
