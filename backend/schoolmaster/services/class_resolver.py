"""Map class names from import rows to class ids, creating classes on demand."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, timedelta
from typing import Iterator

from sqlalchemy import select
from sqlalchemy.orm import Session

from schoolmaster.db.models.school_class import SchoolClass
from schoolmaster.db.models.user import User

logger = logging.getLogger(__name__)


class ClassResolutionError(RuntimeError):
    """A class could not be found or created; the user row is still kept."""


class ClassResolver:
    """Case-insensitive class lookup shared by every batch of one job.

    Classes created while a batch is open are tracked as pending until
    the batch commits; if the batch rolls back they are forgotten so a
    later batch recreates them instead of pointing at missing rows.
    """

    def __init__(self, classes_by_name: dict[str, str], auto_archive_days: int = 365) -> None:
        self._classes = dict(classes_by_name)
        self._pending: dict[str, str] = {}
        self._default_teacher_id: str | None = None
        self._auto_archive_days = auto_archive_days
        self.created_count = 0

    @classmethod
    def load(cls, session: Session, auto_archive_days: int = 365) -> "ClassResolver":
        """Build the lookup table from every class currently in the store."""
        rows = session.execute(select(SchoolClass.id, SchoolClass.name)).all()
        # First class wins when names collide case-insensitively
        classes: dict[str, str] = {}
        for class_id, name in rows:
            classes.setdefault(name.strip().casefold(), class_id)
        return cls(classes, auto_archive_days=auto_archive_days)

    def resolve(self, session: Session, class_name: str, row_number: int) -> tuple[str, bool]:
        """Return (class_id, created) for a trimmed class name."""
        key = class_name.strip().casefold()
        class_id = self._pending.get(key) or self._classes.get(key)
        if class_id is not None:
            return class_id, False

        teacher_id = self._find_default_teacher(session)
        if teacher_id is None:
            raise ClassResolutionError(
                f'Row {row_number}: No admin user found to assign as teacher for class "{class_name}"'
            )

        new_class = SchoolClass(
            name=class_name.strip(),
            teacher_id=teacher_id,
            auto_archive_date=date.today() + timedelta(days=self._auto_archive_days),
        )
        session.add(new_class)
        session.flush()
        self._pending[key] = new_class.id
        logger.debug(f"Created class {new_class.name!r} ({new_class.id})")
        return new_class.id, True

    @contextmanager
    def row_scope(self) -> Iterator[None]:
        """Forget classes created by a row whose savepoint is rolled back."""
        before = set(self._pending)
        try:
            yield
        except Exception:
            for key in set(self._pending) - before:
                del self._pending[key]
            raise

    def commit_pending(self) -> int:
        """Promote classes created in the finished batch; returns how many."""
        promoted = len(self._pending)
        self._classes.update(self._pending)
        self._pending.clear()
        self.created_count += promoted
        return promoted

    def discard_pending(self) -> None:
        self._pending.clear()
        # The admin lookup may have come from the rolled back transaction's view
        self._default_teacher_id = None

    def _find_default_teacher(self, session: Session) -> str | None:
        if self._default_teacher_id is None:
            self._default_teacher_id = session.scalar(
                select(User.id)
                .where(User.role == "admin")
                .order_by(User.created_at, User.id)
                .limit(1)
            )
        return self._default_teacher_id
