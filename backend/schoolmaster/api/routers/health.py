"""Liveness and readiness probes."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from fastapi import APIRouter, HTTPException, Request, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["health"])

SERVICE_NAME = "schoolmaster-api"


@router.get("/live", summary="Liveness probe")
async def live() -> dict[str, str]:
    return {"status": "ok", "service": SERVICE_NAME}


@router.get("/ready", summary="Readiness probe")
async def ready(request: Request) -> dict[str, Any]:
    """Ready when the database answers and uploads can be staged.

    Also reports how many import jobs are running and tracked.
    """
    state = request.app.state
    report: dict[str, Any] = {"status": "ok", "service": SERVICE_NAME, "checks": {}}

    try:
        with state.engine.connect() as conn:
            conn.execute(text("SELECT 1")).scalar()
    except SQLAlchemyError as e:
        logger.error(f"Readiness: database unreachable: {e}", exc_info=True)
        report["status"] = "unhealthy"
        report["checks"]["database"] = {"status": "unhealthy", "message": str(e)}
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=report) from e
    report["checks"]["database"] = {"status": "healthy"}

    imports_dir = Path(state.settings.imports_dir)
    if not (imports_dir.is_dir() and os.access(imports_dir, os.W_OK)):
        logger.error(f"Readiness: imports directory {imports_dir} is not writable")
        report["status"] = "unhealthy"
        report["checks"]["imports_dir"] = {"status": "unhealthy", "path": str(imports_dir)}
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=report)
    report["checks"]["imports_dir"] = {"status": "healthy"}

    report["checks"]["import_jobs"] = {
        "status": "healthy",
        "active": len(state.import_scheduler.active_job_ids),
        "tracked": len(state.job_registry),
    }
    return report
