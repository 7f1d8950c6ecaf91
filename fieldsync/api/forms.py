"""Form catalogue router (what devices download)."""
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from fieldsync.api.dependencies import AnyUser
from fieldsync.core.database import get_db
from fieldsync.schemas.form import (
    ActiveSchemaResponse,
    FormMappingEnvelope,
    FormTypeListResponse,
    FormYearsResponse,
)
from fieldsync.services.form_service import FormService

router = APIRouter(tags=["Forms"])


@router.get("/form-years", response_model=FormYearsResponse)
def get_form_years(db: Annotated[Session, Depends(get_db)], current_user: AnyUser):
    """Years with at least one active schema."""
    return {"years": FormService(db).get_years()}


@router.get("/form-types", response_model=FormTypeListResponse)
def get_form_types(
    db: Annotated[Session, Depends(get_db)],
    current_user: AnyUser,
    year: Optional[int] = Query(None),
):
    """Active form types with their active schema versions for ``year`` (default: this year)."""
    return {"formTypes": FormService(db).get_form_types(year)}


@router.get("/form-types/{form_type_id}/active-schema", response_model=ActiveSchemaResponse)
def get_active_schema(
    form_type_id: int,
    db: Annotated[Session, Depends(get_db)],
    current_user: AnyUser,
    year: Optional[int] = Query(None),
):
    """Newest active schema version of a form type."""
    return {"schemaVersion": FormService(db).get_active_schema(form_type_id, year)}


@router.get("/form-mappings", response_model=FormMappingEnvelope)
def get_form_mapping(
    db: Annotated[Session, Depends(get_db)],
    current_user: AnyUser,
    form_type_id: Optional[int] = Query(None),
    year: Optional[int] = Query(None),
):
    """Option dictionary of a form type and year."""
    return {"mapping": FormService(db).get_mapping(form_type_id, year)}
