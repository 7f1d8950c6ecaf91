"""Repository layer for data access."""
from fieldsync.repositories.user_repository import UserRepository
from fieldsync.repositories.form_repository import FormRepository
from fieldsync.repositories.submission_repository import SubmissionFilters, SubmissionRepository

__all__ = [
    "UserRepository",
    "FormRepository",
    "SubmissionFilters",
    "SubmissionRepository",
]
