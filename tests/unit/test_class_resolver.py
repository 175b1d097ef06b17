"""Unit tests for class lookup and on-demand class creation."""

from collections.abc import Callable
from datetime import date, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from schoolmaster.db.models import SchoolClass
from schoolmaster.services.class_resolver import ClassResolutionError, ClassResolver


@pytest.fixture
def existing_class(session_factory: sessionmaker[Session], admin_id: str) -> str:
    with session_factory() as session, session.begin():
        school_class = SchoolClass(name="Math 101", teacher_id=admin_id)
        session.add(school_class)
        session.flush()
        return school_class.id


class TestClassResolver:
    """Tests for ClassResolver."""

    def test_existing_class_matches_case_insensitively(
        self, session_factory: sessionmaker[Session], existing_class: str
    ) -> None:
        with session_factory() as session, session.begin():
            resolver = ClassResolver.load(session)
            class_id, created = resolver.resolve(session, "  MATH 101 ", 1)

        assert class_id == existing_class
        assert created is False
        assert resolver.created_count == 0

    def test_missing_class_is_created_with_admin_teacher(
        self, session_factory: sessionmaker[Session], admin_id: str
    ) -> None:
        with session_factory() as session, session.begin():
            resolver = ClassResolver.load(session, auto_archive_days=30)
            class_id, created = resolver.resolve(session, "Science 101", 1)
            again_id, created_again = resolver.resolve(session, "science 101", 2)
            resolver.commit_pending()

        with session_factory() as session:
            school_class = session.get(SchoolClass, class_id)

        assert created is True
        assert created_again is False
        assert again_id == class_id
        assert school_class.name == "Science 101"
        assert school_class.teacher_id == admin_id
        assert school_class.auto_archive_date == date.today() + timedelta(days=30)
        assert resolver.created_count == 1

    def test_no_admin_raises(self, session_factory: sessionmaker[Session], make_user: Callable[..., str]) -> None:
        make_user("teacher1", role="teacher")

        with session_factory() as session, session.begin():
            resolver = ClassResolver.load(session)
            with pytest.raises(ClassResolutionError) as excinfo:
                resolver.resolve(session, "Art", 5)

        assert str(excinfo.value) == 'Row 5: No admin user found to assign as teacher for class "Art"'

    def test_discarded_classes_are_created_again(
        self, session_factory: sessionmaker[Session], admin_id: str
    ) -> None:
        with session_factory() as session:
            resolver = ClassResolver.load(session)
        with session_factory() as session:
            resolver.resolve(session, "History", 1)
            session.rollback()
        resolver.discard_pending()

        with session_factory() as session, session.begin():
            class_id, created = resolver.resolve(session, "History", 2)
            resolver.commit_pending()

        with session_factory() as session:
            count = session.scalar(select(func.count()).select_from(SchoolClass))
        assert created is True
        assert count == 1
        assert resolver.created_count == 1
        assert class_id is not None

    def test_row_scope_forgets_classes_of_failed_row(
        self, session_factory: sessionmaker[Session], admin_id: str
    ) -> None:
        with session_factory() as session, session.begin():
            resolver = ClassResolver.load(session)
            with pytest.raises(RuntimeError):
                with resolver.row_scope(), session.begin_nested():
                    resolver.resolve(session, "Drama", 1)
                    raise RuntimeError("row failed")
            _, created = resolver.resolve(session, "Drama", 2)

        assert created is True
