"""Test helper utilities."""

from typing import Any


def student_rows(count: int, prefix: str = "student", start: int = 1, **extra: Any) -> list[dict[str, Any]]:
    """Build ``count`` valid import rows with unique usernames."""
    return [
        {
            "name": f"Name{index}",
            "surname": f"Surname{index}",
            "username": f"{prefix}{index}",
            **extra,
        }
        for index in range(start, start + count)
    ]
