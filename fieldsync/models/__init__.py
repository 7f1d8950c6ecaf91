"""Database models."""
from fieldsync.models.user import User, UserRole
from fieldsync.models.form import FormType, FormSchemaVersion, FormMapping
from fieldsync.models.submission import Submission, SubmissionAnswer, SubmissionStatus

__all__ = [
    "User",
    "UserRole",
    "FormType",
    "FormSchemaVersion",
    "FormMapping",
    "Submission",
    "SubmissionAnswer",
    "SubmissionStatus",
]
