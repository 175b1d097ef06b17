"""Read-only user dumps."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from schoolmaster.api.dependencies.db import get_session
from schoolmaster.services.csv_ingest import export_students_csv

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/export-csv",
    summary="Export all students in the import template layout",
    response_class=Response,
)
async def export_users(db: Session = Depends(get_session)) -> Response:
    try:
        content = export_students_csv(db)
    except SQLAlchemyError as e:
        logger.error(f"Database error exporting users: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Export failed",
        ) from e
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="users_export.csv"'},
    )
