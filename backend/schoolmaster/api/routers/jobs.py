"""Import job polling, cancellation and credential download endpoints."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from schoolmaster.api.routers.job_helpers import get_registry, serialize_job
from schoolmaster.api.schemas.job import JobCancelled, JobRead
from schoolmaster.services.credential_export import (
    CredentialsNotReadyError,
    NoCredentialsError,
    export_credentials_csv,
)
from schoolmaster.services.job_registry import (
    JobNotCancellableError,
    JobNotFoundError,
    JobRegistry,
    JobStatus,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/",
    summary="List import jobs",
    response_model=list[JobRead],
)
async def list_jobs(
    limit: int = Query(50, ge=1, le=500, description="Maximum number of jobs to return"),
    status_filter: JobStatus | None = Query(
        None, alias="status", description="Filter by status"
    ),
    registry: JobRegistry = Depends(get_registry),
) -> list[JobRead]:
    """Return jobs known to this process, newest first."""
    return [serialize_job(snapshot) for snapshot in registry.list(status_filter, limit)]


@router.get(
    "/{job_id}",
    summary="Fetch job state and progress",
    response_model=JobRead,
)
async def get_job(
    job_id: str,
    registry: JobRegistry = Depends(get_registry),
) -> JobRead:
    """Expose job state for polling clients."""
    try:
        return serialize_job(registry.snapshot(job_id))
    except JobNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Job not found") from exc


@router.post(
    "/{job_id}/cancel",
    summary="Request cancellation of a queued or running job",
    response_model=JobCancelled,
)
async def cancel_job(
    job_id: str,
    registry: JobRegistry = Depends(get_registry),
) -> JobCancelled:
    """Stop the job at its next batch boundary; the current batch still finishes."""
    try:
        snapshot = registry.cancel(job_id)
    except JobNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Job not found") from exc
    except JobNotCancellableError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Job cannot be cancelled",
        ) from exc
    return JobCancelled(message="Import cancellation requested", job=serialize_job(snapshot))


@router.get(
    "/{job_id}/credentials",
    summary="Download usernames and temporary passwords of a completed import",
    response_class=Response,
)
async def download_credentials(
    job_id: str,
    registry: JobRegistry = Depends(get_registry),
) -> Response:
    try:
        content = export_credentials_csv(registry, job_id)
    except JobNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Job not found") from exc
    except CredentialsNotReadyError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Job is not completed yet",
        ) from exc
    except NoCredentialsError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No users were created in this import",
        ) from exc

    logger.info(f"Credentials for import job {job_id} downloaded")
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="imported_users_{job_id}.csv"',
            "Cache-Control": "no-store",
        },
    )
