"""Submissions router."""
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from fieldsync.api.dependencies import AnyUser
from fieldsync.core.database import get_db
from fieldsync.repositories.submission_repository import SubmissionFilters
from fieldsync.schemas.submission import (
    AnswersUpsert,
    SubmissionCreate,
    SubmissionCreated,
    SubmissionDetail,
    SubmissionPage,
    SubmissionResponse,
    SubmissionUpdate,
    UpsertResult,
)
from fieldsync.services.submission_service import SubmissionService

router = APIRouter(prefix="/submissions", tags=["Submissions"])


@router.get("", response_model=SubmissionPage)
def list_submissions(
    db: Annotated[Session, Depends(get_db)],
    current_user: AnyUser,
    form_type_id: Optional[int] = Query(None),
    year: Optional[int] = Query(None),
    status_: Optional[str] = Query(None, alias="status"),
    source: Optional[str] = Query(None),
    reg_name: Optional[str] = Query(None),
    prov_name: Optional[str] = Query(None),
    city_name: Optional[str] = Query(None),
    brgy_name: Optional[str] = Query(None),
    page: Optional[int] = Query(None),
    per_page: Optional[int] = Query(None),
):
    """
    List submissions, newest first.

    ``per_page`` is clamped to 1..200 (default 20).
    """
    filters = SubmissionFilters(
        form_type_id=form_type_id,
        year=year,
        status=status_,
        source=source,
        reg_name=reg_name,
        prov_name=prov_name,
        city_name=city_name,
        brgy_name=brgy_name,
    )
    return SubmissionService(db).list_submissions(filters, page=page, per_page=per_page)


@router.post("", response_model=SubmissionCreated, status_code=status.HTTP_201_CREATED)
def create_submission(
    data: SubmissionCreate,
    db: Annotated[Session, Depends(get_db)],
    current_user: AnyUser,
):
    """
    Create a draft submission for a form type and year.

    Returns the submission and the mapping resolved for it.
    """
    return SubmissionService(db).create_submission(data, created_by=current_user.id)


@router.get("/{submission_id}", response_model=SubmissionDetail)
def get_submission(
    submission_id: int,
    db: Annotated[Session, Depends(get_db)],
    current_user: AnyUser,
):
    """Submission with raw and human-readable answers."""
    return SubmissionService(db).get_detail(submission_id)


@router.patch("/{submission_id}", response_model=SubmissionResponse)
def update_submission(
    submission_id: int,
    data: SubmissionUpdate,
    db: Annotated[Session, Depends(get_db)],
    current_user: AnyUser,
):
    """Update status (review), source or location."""
    return SubmissionService(db).update_submission(submission_id, data)


@router.put("/{submission_id}/answers", response_model=UpsertResult)
def upsert_answers(
    submission_id: int,
    data: AnswersUpsert,
    db: Annotated[Session, Depends(get_db)],
    current_user: AnyUser,
):
    """
    Upsert the full answer set.

    Idempotent: sending the same body twice leaves the same rows.
    """
    return SubmissionService(db).upsert_answers(submission_id, data)


@router.post("/{submission_id}/submit", response_model=SubmissionResponse)
def submit_submission(
    submission_id: int,
    db: Annotated[Session, Depends(get_db)],
    current_user: AnyUser,
):
    """Submit a draft; submitting twice is a no-op."""
    return SubmissionService(db).submit(submission_id)
