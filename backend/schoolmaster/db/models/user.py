"""SQLAlchemy model for user accounts."""

import uuid

from sqlalchemy import Boolean, Column, String, func
from sqlalchemy.orm import relationship, validates
from sqlalchemy.types import DateTime

from schoolmaster.db.base import Base
from schoolmaster.db.models.school_class import class_students

USER_ROLES = ("admin", "teacher", "student")


def identity_key(value: str | None) -> str | None:
    """Case-insensitive form of a username or email.

    Folded in Python because SQL ``lower()`` only folds ASCII on SQLite.
    """
    if value is None:
        return None
    return value.strip().casefold()


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String(255), nullable=False)
    username_key = Column(String(255), nullable=False, unique=True)
    email = Column(String(255))
    email_key = Column(String(255), unique=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(16), nullable=False, default="student")
    first_name = Column(String(255))
    last_name = Column(String(255))
    must_change_password = Column(Boolean, nullable=False, default=False)
    archived = Column(Boolean, nullable=False, default=False, index=True)
    archived_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    classes = relationship(
        "SchoolClass",
        secondary=class_students,
        back_populates="students",
        order_by="SchoolClass.name",
    )

    @validates("username")
    def _sync_username_key(self, key, value):
        self.username_key = identity_key(value)
        return value

    @validates("email")
    def _sync_email_key(self, key, value):
        self.email_key = identity_key(value)
        return value
