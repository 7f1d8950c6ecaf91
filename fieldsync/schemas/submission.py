"""Submission schemas."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from fieldsync.forms.location import LOCATION_FIELDS, clean_location_value
from fieldsync.models.submission import SubmissionStatus


class LocationFields(BaseModel):
    """
    Optional location names.

    Blank or non-string values are stored as null. Which keys the client
    actually sent is available through ``model_fields_set``.
    """
    reg_name: Optional[str] = None
    prov_name: Optional[str] = None
    city_name: Optional[str] = None
    brgy_name: Optional[str] = None

    @field_validator(*LOCATION_FIELDS, mode="before")
    @classmethod
    def clean_location(cls, value: Any) -> Optional[str]:
        return clean_location_value(value)

    def provided_location(self) -> Dict[str, Optional[str]]:
        """Location keys present in the request body."""
        return {key: getattr(self, key) for key in LOCATION_FIELDS if key in self.model_fields_set}


class SubmissionCreate(LocationFields):
    """Create a submission for a form type and year."""
    form_type_id: Optional[int] = None
    year: Optional[int] = None
    mapping_id: Optional[int] = None
    schema_version_id: Optional[int] = None
    source: Optional[str] = None


class SubmissionUpdate(LocationFields):
    """Partial update of status, source or location."""
    status: Optional[str] = None
    source: Optional[str] = None


class AnswersUpsert(LocationFields):
    """
    Full answer set of a submission.

    ``mode`` is ``draft`` (default) or ``submit``; in submit mode the
    location must be complete.
    """
    answers: Dict[str, Any]
    snapshots: Dict[str, Any] = {}
    mode: Optional[str] = None

    @property
    def is_submit(self) -> bool:
        return (self.mode or "").strip() == "submit"


class SubmissionResponse(BaseModel):
    """Submission row."""
    id: int
    form_type_id: int
    form_type_name: Optional[str] = None
    year: int
    mapping_id: Optional[int] = None
    schema_version_id: Optional[int] = None
    source: str
    status: SubmissionStatus
    reg_name: Optional[str] = None
    prov_name: Optional[str] = None
    city_name: Optional[str] = None
    brgy_name: Optional[str] = None
    created_by: Optional[int] = None
    submitted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SubmissionListItem(SubmissionResponse):
    answers_count: int = 0


class SubmissionCreated(BaseModel):
    submission: SubmissionResponse
    mapping_json: Dict[str, Any] = {}


class AnswerResponse(BaseModel):
    """Stored answer row."""
    id: int
    submission_id: int
    form_type_id: int
    year: int
    field_key: str
    label: Optional[str] = None
    type: Optional[str] = None
    option_key: Optional[str] = None
    option_label: Optional[str] = None
    value_text: Optional[str] = None
    value_number: Optional[float] = None
    value_bool: Optional[bool] = None
    value_json: Any = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class HumanAnswer(BaseModel):
    """Display projection of an answer."""
    field_key: str
    label: Optional[str] = None
    type: Optional[str] = None
    value: Any = None
    option_key: Optional[str] = None
    option_label: Optional[str] = None


class SubmissionDetail(BaseModel):
    submission: SubmissionResponse
    mapping_json: Dict[str, Any] = {}
    answers: List[AnswerResponse] = []
    answers_human: List[HumanAnswer] = []


class UpsertResult(BaseModel):
    updated: int
    rejected: List[str] = []


class PageMeta(BaseModel):
    page: int
    per_page: int
    total: int
    total_pages: int


class SubmissionPage(BaseModel):
    data: List[SubmissionListItem]
    meta: PageMeta
