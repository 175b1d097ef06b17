"""SQLAlchemy models for classes and their student rosters."""

import uuid

from sqlalchemy import Boolean, Column, Date, ForeignKey, String, Table, func
from sqlalchemy.orm import relationship
from sqlalchemy.types import DateTime

from schoolmaster.db.base import Base

class_students = Table(
    "class_students",
    Base.metadata,
    Column("class_id", String(36), ForeignKey("classes.id", ondelete="CASCADE"), primary_key=True),
    Column("student_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class SchoolClass(Base):
    __tablename__ = "classes"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    teacher_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    archived = Column(Boolean, nullable=False, default=False)
    archived_at = Column(DateTime(timezone=True))
    auto_archive_date = Column(Date)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    students = relationship("User", secondary=class_students, back_populates="classes")
