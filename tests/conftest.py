"""Pytest configuration and shared fixtures."""

import csv
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from schoolmaster.core.config import Settings
from schoolmaster.db.models import User
from schoolmaster.db.session import create_db_engine, create_session_factory, init_db
from schoolmaster.services.credentials import hash_password
from schoolmaster.services.job_registry import JobRegistry
from schoolmaster.utils.csv_validator import TEMPLATE_HEADERS


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at a per-test SQLite file and imports directory."""
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        imports_dir=str(tmp_path / "imports"),
        bcrypt_rounds=4,
        log_level="DEBUG",
    )


@pytest.fixture
def engine(settings: Settings) -> Generator[Engine, None, None]:
    engine = create_db_engine(settings.database_url)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def db(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    with session_factory() as session:
        yield session


@pytest.fixture
def registry() -> JobRegistry:
    return JobRegistry()


@pytest.fixture
def make_user(session_factory: sessionmaker[Session]) -> Callable[..., str]:
    """Insert a user directly and return its id."""

    def _make_user(username: str, role: str = "student", email: str | None = None) -> str:
        with session_factory() as session, session.begin():
            user = User(
                username=username,
                email=email or f"{username}@school.edu",
                password_hash=hash_password("irrelevant", rounds=4),
                role=role,
                first_name=username.title(),
                last_name="Existing",
            )
            session.add(user)
            session.flush()
            return user.id

    return _make_user


@pytest.fixture
def admin_id(make_user: Callable[..., str]) -> str:
    return make_user("admin", role="admin", email="admin@school.edu")


@pytest.fixture
def write_csv(tmp_path: Path) -> Callable[..., Path]:
    """Write rows (dicts keyed by template headers) to a CSV file."""

    def _write_csv(
        rows: list[dict[str, Any]],
        headers: list[str] | None = None,
        name: str = "users.csv",
    ) -> Path:
        path = tmp_path / name
        with path.open("w", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=headers or TEMPLATE_HEADERS, restval="")
            writer.writeheader()
            writer.writerows(rows)
        return path

    return _write_csv

