"""Shared helpers for shaping job responses."""
from __future__ import annotations

from dataclasses import asdict

from fastapi import Request

from schoolmaster.api.schemas.job import ImportResultPayload, JobRead
from schoolmaster.services.job_registry import JobRegistry, JobSnapshot


def get_registry(request: Request) -> JobRegistry:
    """FastAPI dependency returning the process-owned job registry."""
    return request.app.state.job_registry


def serialize_job(snapshot: JobSnapshot) -> JobRead:
    """Turn a registry snapshot into the polling payload (source path stays internal)."""
    result = None
    if snapshot.result is not None:
        result = ImportResultPayload.model_validate(asdict(snapshot.result))

    return JobRead(
        id=snapshot.id,
        status=snapshot.status.value,
        total=snapshot.total,
        current=snapshot.current,
        messages=list(snapshot.messages),
        errors=list(snapshot.errors),
        started_at=snapshot.started_at,
        finished_at=snapshot.finished_at,
        result=result,
        error=snapshot.error,
        cancel_requested=snapshot.cancel_requested,
    )

