"""Current user's submissions router."""
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from fieldsync.api.dependencies import AnyUser
from fieldsync.core.database import get_db
from fieldsync.repositories.submission_repository import SubmissionFilters
from fieldsync.schemas.submission import SubmissionPage
from fieldsync.services.submission_service import SubmissionService

router = APIRouter(tags=["Submissions"])


@router.get("/my-submissions", response_model=SubmissionPage)
def list_my_submissions(
    db: Annotated[Session, Depends(get_db)],
    current_user: AnyUser,
    form_type_id: Optional[int] = Query(None),
    year: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    source: Optional[str] = Query(None),
    reg_name: Optional[str] = Query(None),
    prov_name: Optional[str] = Query(None),
    city_name: Optional[str] = Query(None),
    brgy_name: Optional[str] = Query(None),
    page: Optional[int] = Query(None),
    per_page: Optional[int] = Query(None),
):
    """Submissions created by the authenticated user."""
    filters = SubmissionFilters(
        form_type_id=form_type_id,
        year=year,
        status=status,
        source=source,
        reg_name=reg_name,
        prov_name=prov_name,
        city_name=city_name,
        brgy_name=brgy_name,
        created_by=current_user.id,
    )
    return SubmissionService(db).list_submissions(filters, page=page, per_page=per_page)
