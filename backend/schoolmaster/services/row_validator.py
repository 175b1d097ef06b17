"""Per-row acceptance rules for user imports."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from schoolmaster.db.models.user import User, identity_key
from schoolmaster.utils.csv_validator import parse_archive_date


class RowRejectedError(ValueError):
    """The row cannot become a user; the message is shown in the job error log."""


@dataclass
class ValidatedRow:
    row_number: int
    name: str
    surname: str
    username: str
    email: str
    archive_date: date | None = None
    archive_date_error: str | None = None
    class_names: list[str] = field(default_factory=list)


def validate_row(session: Session, row: dict[str, Any], row_number: int) -> ValidatedRow:
    """Check a normalized row against the current state of the store.

    A malformed archive date does not reject the row; it is reported in
    ``archive_date_error`` and the user is created without pre-archiving.
    """
    name = row.get("name") or ""
    surname = row.get("surname") or ""
    username = row.get("username") or ""
    if not name or not surname or not username:
        raise RowRejectedError(
            f"Row {row_number}: Missing required fields (name, surname, or username)"
        )

    email = (row.get("email") or "").strip().lower() or username

    existing = session.scalar(
        select(User.id)
        .where(
            or_(
                User.username_key == identity_key(username),
                User.email_key == identity_key(email),
            )
        )
        .limit(1)
    )
    if existing is not None:
        raise RowRejectedError(
            f'Row {row_number}: User "{username}" or email "{email}" already exists'
        )

    raw_archive_date = row.get("archive_date")
    archive_date = parse_archive_date(raw_archive_date)
    archive_date_error = None
    if raw_archive_date and archive_date is None:
        archive_date_error = (
            f'Row {row_number}: Invalid archive date format "{raw_archive_date}" (expected dd/mm/yyyy)'
        )

    return ValidatedRow(
        row_number=row_number,
        name=name,
        surname=surname,
        username=username,
        email=email,
        archive_date=archive_date,
        archive_date_error=archive_date_error,
        class_names=list(row.get("class_names") or []),
    )
