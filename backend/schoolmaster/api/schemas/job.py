"""Async import job payloads."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreatedUserCredential(CamelModel):
    username: str
    password: str
    name: str
    surname: str


class ImportResultPayload(CamelModel):
    created_count: int
    error_count: int
    classes_created_count: int
    created_users: list[CreatedUserCredential] = Field(default_factory=list)


class JobRead(CamelModel):
    id: str
    status: str = Field(..., description="queued|processing|completed|failed|cancelled")
    total: int = Field(0, description="Rows in the uploaded file, known once parsing finishes")
    current: int = Field(0, description="Rows processed so far")
    messages: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    started_at: datetime
    finished_at: datetime | None = None
    result: ImportResultPayload | None = None
    error: str | None = None
    cancel_requested: bool = False


class JobSubmitted(CamelModel):
    job_id: str


class JobCancelled(CamelModel):
    message: str
    job: JobRead
