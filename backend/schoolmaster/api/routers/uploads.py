"""Endpoints for user import submission."""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile, status

from schoolmaster.api.routers.job_helpers import get_registry
from schoolmaster.api.schemas.job import JobSubmitted
from schoolmaster.services import csv_ingest
from schoolmaster.services.job_registry import JobRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/",
    summary="Start a bulk user import job",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=JobSubmitted,
)
async def enqueue_import(
    request: Request,
    file: UploadFile = File(...),
    registry: JobRegistry = Depends(get_registry),
) -> JobSubmitted:
    """Stage the CSV on disk, register a queued job and return its id.

    Processing starts in the background; outcomes are only reported
    through the job status endpoint.
    """
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Filename is required",
        )
    if not file.filename.lower().endswith(".csv"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only CSV uploads are supported",
        )

    settings = request.app.state.settings
    try:
        staged_path = await csv_ingest.stage_file(file, Path(settings.imports_dir))
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save uploaded file",
        ) from exc

    record = registry.create(staged_path)
    request.app.state.import_scheduler.submit(record)

    logger.info(f"Created import job {record.id} for file {file.filename}")
    return JobSubmitted(job_id=record.id)


@router.get(
    "/template",
    summary="Download the user import CSV template",
    response_class=Response,
)
async def download_template() -> Response:
    return Response(
        content=csv_ingest.build_template_csv(),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="users_template.csv"'},
    )
