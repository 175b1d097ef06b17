"""Validate CSV headers and normalize user import rows."""

from __future__ import annotations

import re
from datetime import date
from typing import Any


class ValidationError(ValueError):
    """Custom exception for CSV validation errors."""

    pass


REQUIRED_HEADERS = ["name", "surname", "username"]
CLASS_COLUMNS = [f"class{index}" for index in range(1, 11)]
OPTIONAL_HEADERS = ["email", "archive_date", *CLASS_COLUMNS]
TEMPLATE_HEADERS = [*REQUIRED_HEADERS, *OPTIONAL_HEADERS]

ARCHIVE_DATE_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


def validate_headers(headers: list[str] | None) -> None:
    """Ensure CSV contains the required columns before processing."""
    if not headers:
        raise ValidationError(
            "CSV requires a header row with name,surname,username columns"
        )
    normalized = [header.strip().lower() for header in headers if header]
    missing = [field for field in REQUIRED_HEADERS if field not in normalized]
    if missing:
        raise ValidationError(f"Missing required column(s): {', '.join(missing)}")


def normalize_row(row: dict[str, Any]) -> dict[str, Any]:
    """Trim values, lower-case keys and collect the class columns.

    Required fields are not enforced here; empty values come back as ""
    so the row validator can reject them with a row number.
    """
    cleaned = {
        key.strip().lower(): value.strip() if isinstance(value, str) else ""
        for key, value in row.items()
        if isinstance(key, str)
    }

    class_names: list[str] = []
    seen: set[str] = set()
    for column in CLASS_COLUMNS:
        class_name = cleaned.get(column, "")
        if class_name and class_name.casefold() not in seen:
            seen.add(class_name.casefold())
            class_names.append(class_name)

    return {
        "name": cleaned.get("name", ""),
        "surname": cleaned.get("surname", ""),
        "username": cleaned.get("username", ""),
        "email": cleaned.get("email") or None,
        "archive_date": cleaned.get("archive_date") or None,
        "class_names": class_names,
    }


def parse_archive_date(value: str | None) -> date | None:
    """Parse a DD/MM/YYYY string; None when blank or not a real calendar date."""
    if not value or not value.strip():
        return None
    match = ARCHIVE_DATE_PATTERN.match(value.strip())
    if not match:
        return None
    day, month, year = (int(part) for part in match.groups())
    # date() refuses out-of-range days such as 31/02 instead of rolling over
    try:
        return date(year, month, day)
    except ValueError:
        return None


def format_archive_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")
