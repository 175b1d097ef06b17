"""CSV reading and writing for user imports and exports."""

from __future__ import annotations

import csv
import io
import logging
from pathlib import Path
from typing import Any

from fastapi import UploadFile
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from schoolmaster.db.models.user import User
from schoolmaster.storage.file_storage import save_upload
from schoolmaster.utils.csv_validator import (
    CLASS_COLUMNS,
    TEMPLATE_HEADERS,
    ValidationError,
    format_archive_date,
    normalize_row,
    validate_headers,
)

logger = logging.getLogger(__name__)

TEMPLATE_ROWS = [
    {"name": "John", "surname": "Doe", "username": "john.doe", "email": "john.doe@school.edu",
     "archive_date": "", "class1": "Math 101", "class2": "Science 101"},
    {"name": "Jane", "surname": "Smith", "username": "jane.smith", "email": "jane.smith@school.edu",
     "archive_date": "31/08/2025", "class1": "Math 101", "class3": "English 101"},
    {"name": "Bob", "surname": "Jones", "username": "bob.jones", "email": "bob.jones@school.edu",
     "archive_date": "", "class1": "Science 101"},
]


class SourceFileError(RuntimeError):
    """The staged import file cannot be read; the whole job fails."""


async def stage_file(upload_file: UploadFile, imports_dir: Path) -> Path:
    """Persist uploaded CSV to durable storage and return path."""
    try:
        await upload_file.seek(0)
        return save_upload(upload_file.file, imports_dir, upload_file.filename)
    except OSError as e:
        logger.error(f"OS error saving uploaded file: {e}", exc_info=True)
        raise ValueError(f"Failed to save file: {str(e)}") from e


def read_rows(file_path: Path) -> list[dict[str, Any]]:
    """Parse the whole staged CSV into normalized rows, in file order."""
    try:
        # utf-8-sig drops the BOM that spreadsheet exports prepend
        with file_path.open("r", encoding="utf-8-sig", newline="") as handle:
            reader = csv.DictReader(handle)
            if not reader.fieldnames:
                raise SourceFileError("CSV file appears to be empty or invalid")
            try:
                validate_headers(list(reader.fieldnames))
            except ValidationError as e:
                raise SourceFileError(f"Invalid CSV headers: {str(e)}") from e
            return [normalize_row(row) for row in reader]
    except FileNotFoundError as e:
        raise SourceFileError(f"CSV file not found: {file_path}") from e
    except PermissionError as e:
        raise SourceFileError(f"Permission denied reading file: {file_path}") from e
    except UnicodeDecodeError as e:
        raise SourceFileError(f"File encoding error: {str(e)}") from e
    except csv.Error as e:
        raise SourceFileError(f"CSV parsing error: {str(e)}") from e


def _write_csv(headers: list[str], rows: list[dict[str, Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(
        buffer,
        fieldnames=headers,
        quoting=csv.QUOTE_ALL,
        restval="",
        lineterminator="\n",
    )
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue()


def build_template_csv() -> str:
    """Return the import template with a few example rows."""
    return _write_csv(TEMPLATE_HEADERS, TEMPLATE_ROWS)


def export_students_csv(db: Session) -> str:
    """Dump every student in the import template layout."""
    students = db.scalars(
        select(User)
        .where(User.role == "student")
        .options(selectinload(User.classes))
        .order_by(User.last_name, User.first_name, User.username)
    ).all()

    rows = []
    for student in students:
        row: dict[str, Any] = {
            "name": student.first_name or "",
            "surname": student.last_name or "",
            "username": student.username or "",
            "email": student.email or "",
            "archive_date": (
                format_archive_date(student.archived_at.date())
                if student.archived and student.archived_at
                else ""
            ),
        }
        for column, school_class in zip(CLASS_COLUMNS, student.classes):
            row[column] = school_class.name
        rows.append(row)

    logger.info(f"Exported {len(rows)} students to CSV")
    return _write_csv(TEMPLATE_HEADERS, rows)
