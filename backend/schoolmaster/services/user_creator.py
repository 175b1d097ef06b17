"""Persist validated import rows as student accounts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time, timezone

from sqlalchemy import insert
from sqlalchemy.orm import Session

from schoolmaster.db.models.school_class import class_students
from schoolmaster.db.models.user import User
from schoolmaster.services.class_resolver import ClassResolutionError, ClassResolver
from schoolmaster.services.credentials import generate_temp_password, hash_password
from schoolmaster.services.job_registry import CreatedCredential
from schoolmaster.services.row_validator import ValidatedRow


@dataclass
class CreatedUser:
    user_id: str
    credential: CreatedCredential
    created_classes: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def create_user(
    session: Session,
    row: ValidatedRow,
    resolver: ClassResolver,
    *,
    password_length: int = 12,
    bcrypt_rounds: int = 10,
) -> CreatedUser:
    """Insert the user and its class memberships; the caller owns the transaction.

    The plaintext password is only returned, never stored.
    """
    temp_password = generate_temp_password(password_length)
    archived_at = None
    if row.archive_date is not None:
        archived_at = datetime.combine(row.archive_date, time.min, tzinfo=timezone.utc)

    user = User(
        username=row.username,
        email=row.email,
        password_hash=hash_password(temp_password, rounds=bcrypt_rounds),
        role="student",
        first_name=row.name,
        last_name=row.surname,
        must_change_password=True,
        archived=archived_at is not None,
        archived_at=archived_at,
    )
    session.add(user)
    session.flush()

    created = CreatedUser(
        user_id=user.id,
        credential=CreatedCredential(
            username=row.username,
            password=temp_password,
            name=row.name,
            surname=row.surname,
        ),
    )

    class_ids: list[str] = []
    for class_name in row.class_names:
        try:
            class_id, was_created = resolver.resolve(session, class_name, row.row_number)
        except ClassResolutionError as exc:
            created.warnings.append(str(exc))
            continue
        if was_created:
            created.created_classes.append(class_name)
        if class_id not in class_ids:
            class_ids.append(class_id)

    if class_ids:
        session.execute(
            insert(class_students),
            [{"class_id": class_id, "student_id": user.id} for class_id in class_ids],
        )
    return created
