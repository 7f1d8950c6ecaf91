"""Submission service: create, answer upsert, submit, review and listing."""
import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, NoReturn, Optional, Set

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from fieldsync.core.config import settings
from fieldsync.forms.answers import build_wire_answer, human_value
from fieldsync.forms.location import LOCATION_FIELDS
from fieldsync.forms.schema import normalize_json
from fieldsync.models.form import FormMapping
from fieldsync.models.submission import Submission, SubmissionStatus
from fieldsync.repositories.form_repository import FormRepository
from fieldsync.repositories.submission_repository import SubmissionFilters, SubmissionRepository
from fieldsync.schemas.submission import (
    AnswersUpsert,
    SubmissionCreate,
    SubmissionListItem,
    SubmissionResponse,
    SubmissionUpdate,
)
from fieldsync.services import submission_workflow as workflow

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "mobile"
SOURCE_MAX_LENGTH = 20
MIN_YEAR, MAX_YEAR = 2000, 2100
DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 200


def _fail(status_code: int, message: str, **details: Any) -> NoReturn:
    raise HTTPException(status_code=status_code, detail={"message": message, **details})


def _transition_failed(exc: workflow.InvalidTransition) -> NoReturn:
    code = status.HTTP_409_CONFLICT if exc.conflict else status.HTTP_422_UNPROCESSABLE_ENTITY
    _fail(code, exc.message, **exc.details)


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def clean_source(value: Optional[str]) -> Optional[str]:
    """Trimmed source tag cut to the column width, or None when blank."""
    value = _clean_text(value)
    return value[:SOURCE_MAX_LENGTH] if value else None


def clamp_paging(page: Optional[int], per_page: Optional[int]) -> tuple:
    """Clamp ``per_page`` to [1, 200] (default 20) and ``page`` to >= 1 (default 1)."""
    per_page = DEFAULT_PER_PAGE if per_page is None else per_page
    page = 1 if page is None else page
    return max(page, 1), min(max(per_page, 1), MAX_PER_PAGE)


class SubmissionService:
    """Submission business logic."""

    def __init__(self, db: Session):
        self.db = db
        self.submission_repo = SubmissionRepository(db)
        self.form_repo = FormRepository(db)

    # ---- lookups ----

    def get_submission(self, submission_id: int) -> Submission:
        """
        Get submission by ID.

        Raises:
            HTTPException: If submission not found
        """
        submission = self.submission_repo.get_by_id(submission_id)
        if not submission:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Submission not found"
            )
        return submission

    def _resolve_mapping(self, mapping_id: Optional[int], form_type_id: int, year: int) -> Optional[FormMapping]:
        if mapping_id:
            return self.form_repo.get_mapping(mapping_id)
        return self.form_repo.get_latest_mapping(form_type_id, year)

    def mapping_json_for(self, submission: Submission) -> Dict[str, Any]:
        """The submission's own mapping, else the latest one for its form type and year."""
        mapping = self._resolve_mapping(submission.mapping_id, submission.form_type_id, submission.year)
        if mapping is None:
            return {}
        return normalize_json(mapping.mapping_json) or {}

    def _allowed_keys(self, submission: Submission) -> Set[str]:
        if not settings.ENFORCE_MAPPING_KEYS:
            return set()
        return set(self.mapping_json_for(submission).keys())

    # ---- operations ----

    def create_submission(self, data: SubmissionCreate, created_by: int) -> Dict[str, Any]:
        """
        Create a draft submission.

        Raises:
            HTTPException: If form_type_id, year or schema_version_id is invalid
        """
        if not data.form_type_id or data.form_type_id < 1:
            _fail(status.HTTP_422_UNPROCESSABLE_ENTITY, "form_type_id is required")
        if not data.year or data.year < MIN_YEAR or data.year > MAX_YEAR:
            _fail(status.HTTP_422_UNPROCESSABLE_ENTITY, "year is invalid")
        if not self.form_repo.get_form_type(data.form_type_id):
            _fail(status.HTTP_422_UNPROCESSABLE_ENTITY, "form_type_id does not exist")
        if data.schema_version_id and not self.form_repo.get_schema_version(data.schema_version_id):
            _fail(status.HTTP_422_UNPROCESSABLE_ENTITY, "schema_version_id does not exist")

        mapping = self._resolve_mapping(data.mapping_id, data.form_type_id, data.year)

        submission = self.submission_repo.create(
            form_type_id=data.form_type_id,
            year=data.year,
            mapping_id=mapping.id if mapping else None,
            schema_version_id=data.schema_version_id or None,
            source=clean_source(data.source) or DEFAULT_SOURCE,
            status=SubmissionStatus.DRAFT,
            created_by=created_by,
            **{key: getattr(data, key) for key in LOCATION_FIELDS},
        )
        logger.info("Created submission %s (form_type=%s, year=%s)", submission.id, submission.form_type_id, submission.year)

        mapping_json = normalize_json(mapping.mapping_json) if mapping else None
        return {"submission": submission, "mapping_json": mapping_json or {}}

    def get_detail(self, submission_id: int) -> Dict[str, Any]:
        """Submission with its mapping, raw answers and display answers."""
        submission = self.get_submission(submission_id)
        answers = self.submission_repo.get_answers(submission.id)
        answers_human = [
            {
                "field_key": answer.field_key,
                "label": answer.label or None,
                "type": answer.type or None,
                "value": human_value(
                    answer.option_label,
                    answer.value_text,
                    answer.value_number,
                    answer.value_bool,
                    answer.value_json,
                ),
                "option_key": answer.option_key or None,
                "option_label": answer.option_label or None,
            }
            for answer in answers
        ]
        return {
            "submission": submission,
            "mapping_json": self.mapping_json_for(submission),
            "answers": answers,
            "answers_human": answers_human,
        }

    def update_submission(self, submission_id: int, data: SubmissionUpdate) -> Submission:
        """
        Partially update status, source and location.

        Raises:
            HTTPException: If not found or the status change is not allowed
        """
        submission = self.get_submission(submission_id)
        changes: Dict[str, Any] = {}

        requested = _clean_text(data.status)
        if requested:
            try:
                next_status = workflow.check_update(submission.status, requested)
            except workflow.InvalidTransition as exc:
                _transition_failed(exc)
            changes["status"] = next_status
            if next_status == SubmissionStatus.SUBMITTED and submission.submitted_at is None:
                changes["submitted_at"] = datetime.now(timezone.utc)

        source = clean_source(data.source)
        if source:
            changes["source"] = source

        changes.update(data.provided_location())

        if not changes:
            return submission

        self.submission_repo.apply(submission, changes)
        self.submission_repo.save(submission)
        return submission

    def upsert_answers(self, submission_id: int, data: AnswersUpsert) -> Dict[str, Any]:
        """
        Apply the location sent with the answers and upsert every answer.

        In submit mode an incomplete location rejects the whole request and
        nothing is written.

        Raises:
            HTTPException: If not found or, in submit mode, location is incomplete
        """
        submission = self.get_submission(submission_id)
        location = data.provided_location()

        if data.is_submit:
            merged = {key: getattr(submission, key) for key in LOCATION_FIELDS}
            merged.update(location)
            missing = workflow.missing_for_submit(merged)
            if missing:
                _fail(status.HTTP_422_UNPROCESSABLE_ENTITY, "Location is required before submit.", missing=missing)

        self.submission_repo.apply(submission, location)

        allowed_keys = self._allowed_keys(submission)
        updated = 0
        rejected: List[str] = []
        for raw_key, value in data.answers.items():
            field_key = str(raw_key)
            if allowed_keys and field_key not in allowed_keys:
                rejected.append(field_key)
                continue
            record = build_wire_answer(field_key, value, data.snapshots.get(field_key))
            self.submission_repo.upsert_answer(submission, record)
            updated += 1

        self.submission_repo.save(submission)
        if rejected:
            logger.info("Submission %s: rejected %d answer keys outside the mapping", submission.id, len(rejected))
        return {"updated": updated, "rejected": rejected}

    def submit(self, submission_id: int) -> Submission:
        """
        Mark a submission as submitted.

        Already submitted submissions are returned unchanged.

        Raises:
            HTTPException: If not found (404), reviewed/rejected (409) or location incomplete (422)
        """
        submission = self.get_submission(submission_id)
        try:
            must_transition = workflow.check_submit(submission.status)
        except workflow.InvalidTransition as exc:
            _transition_failed(exc)
        if not must_transition:
            return submission

        missing = workflow.missing_for_submit(submission)
        if missing:
            _fail(status.HTTP_422_UNPROCESSABLE_ENTITY, "Location is required before submit.", missing=missing)

        self.submission_repo.apply(submission, {
            "status": SubmissionStatus.SUBMITTED,
            "submitted_at": datetime.now(timezone.utc),
        })
        self.submission_repo.save(submission)
        logger.info("Submission %s submitted", submission.id)
        return submission

    def list_submissions(self, filters: SubmissionFilters, page: Optional[int] = None,
                         per_page: Optional[int] = None) -> Dict[str, Any]:
        """One page of submissions with paging metadata."""
        for name in ("status", "source", *LOCATION_FIELDS):
            setattr(filters, name, _clean_text(getattr(filters, name)))
        filters.form_type_id = filters.form_type_id or None
        filters.year = filters.year or None

        page, per_page = clamp_paging(page, per_page)
        rows, total = self.submission_repo.list(filters, page, per_page)
        data = [
            SubmissionListItem(
                **SubmissionResponse.model_validate(submission).model_dump(),
                answers_count=answers_count,
            )
            for submission, answers_count in rows
        ]
        return {
            "data": data,
            "meta": {
                "page": page,
                "per_page": per_page,
                "total": total,
                "total_pages": math.ceil(total / per_page) if per_page else 0,
            },
        }
