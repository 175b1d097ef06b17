"""Database models package."""
from schoolmaster.db.models.school_class import SchoolClass, class_students
from schoolmaster.db.models.user import USER_ROLES, User, identity_key

__all__ = ["SchoolClass", "User", "USER_ROLES", "class_students", "identity_key"]
