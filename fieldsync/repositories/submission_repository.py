"""Submission data access, including the idempotent answer upsert."""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, joinedload, selectinload

from fieldsync.forms.answers import AnswerRecord
from fieldsync.models.submission import Submission, SubmissionAnswer

logger = logging.getLogger(__name__)

# Overwritten on every upsert.
VALUE_COLUMNS = ("value_text", "value_number", "value_bool", "value_json")
# Kept when the incoming value is null.
METADATA_COLUMNS = ("label", "type", "option_key", "option_label")


@dataclass
class SubmissionFilters:
    """Exact-match list filters; None means unfiltered."""
    form_type_id: Optional[int] = None
    year: Optional[int] = None
    status: Optional[str] = None
    source: Optional[str] = None
    reg_name: Optional[str] = None
    prov_name: Optional[str] = None
    city_name: Optional[str] = None
    brgy_name: Optional[str] = None
    created_by: Optional[int] = None

    def clauses(self) -> List[Any]:
        out = []
        for name, value in vars(self).items():
            if value is not None:
                out.append(getattr(Submission, name) == value)
        return out


class SubmissionRepository:
    """Submissions and their answers."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, submission_id: int) -> Optional[Submission]:
        return (
            self.db.query(Submission)
            .options(joinedload(Submission.form_type))
            .filter(Submission.id == submission_id)
            .first()
        )

    def create(self, **fields: Any) -> Submission:
        submission = Submission(**fields)
        self.db.add(submission)
        self.db.commit()
        self.db.refresh(submission)
        return submission

    def apply(self, submission: Submission, changes: Dict[str, Any]) -> Submission:
        """Stage attribute changes without committing."""
        for name, value in changes.items():
            setattr(submission, name, value)
        return submission

    def save(self, submission: Optional[Submission] = None) -> None:
        """Commit pending changes and reload the submission."""
        self.db.commit()
        if submission is not None:
            self.db.refresh(submission)

    def list(self, filters: SubmissionFilters, page: int, per_page: int) -> Tuple[List[Tuple[Submission, int]], int]:
        """
        One page of submissions, newest first, with their answer counts.

        Returns:
            (rows of (submission, answers_count), total matching rows)
        """
        clauses = filters.clauses()

        total = self.db.query(func.count(Submission.id)).filter(*clauses).scalar() or 0

        answers_count = (
            select(func.count(SubmissionAnswer.id))
            .where(SubmissionAnswer.submission_id == Submission.id)
            .correlate(Submission)
            .scalar_subquery()
        )
        rows = (
            self.db.query(Submission, answers_count.label("answers_count"))
            .options(selectinload(Submission.form_type))
            .filter(*clauses)
            .order_by(Submission.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return [(submission, int(count or 0)) for submission, count in rows], int(total)

    def get_answers(self, submission_id: int) -> List[SubmissionAnswer]:
        return (
            self.db.query(SubmissionAnswer)
            .filter(SubmissionAnswer.submission_id == submission_id)
            .order_by(SubmissionAnswer.field_key.asc())
            .all()
        )

    def upsert_answer(self, submission: Submission, record: AnswerRecord) -> None:
        """
        Insert or update one answer keyed by ``(submission_id, field_key)``.

        Value slots are overwritten unconditionally; metadata columns keep
        their stored value when the incoming one is null. Not committed.
        """
        values = {
            "submission_id": submission.id,
            "form_type_id": submission.form_type_id,
            "year": submission.year,
            "field_key": record.field_key,
            **record.snapshot.to_dict(),
            **record.to_slots().to_dict(),
        }
        dialect = self.db.get_bind().dialect.name
        if dialect in ("mysql", "mariadb"):
            self.db.execute(self._mysql_upsert(values))
        elif dialect in ("postgresql", "sqlite"):
            self.db.execute(self._on_conflict_upsert(dialect, values))
        else:
            logger.debug("No native upsert for dialect %s; using read-modify-write", dialect)
            self._orm_upsert(values)

    def _on_conflict_upsert(self, dialect: str, values: Dict[str, Any]):
        table = SubmissionAnswer.__table__
        insert = pg_insert if dialect == "postgresql" else sqlite_insert
        stmt = insert(table).values(**values)
        excluded = stmt.excluded
        set_ = {
            "form_type_id": excluded.form_type_id,
            "year": excluded.year,
            "updated_at": func.now(),
        }
        set_.update({name: excluded[name] for name in VALUE_COLUMNS})
        set_.update({name: func.coalesce(excluded[name], table.c[name]) for name in METADATA_COLUMNS})
        return stmt.on_conflict_do_update(
            index_elements=[table.c.submission_id, table.c.field_key],
            set_=set_,
        )

    def _mysql_upsert(self, values: Dict[str, Any]):
        table = SubmissionAnswer.__table__
        stmt = mysql_insert(table).values(**values)
        inserted = stmt.inserted
        set_ = {
            "form_type_id": inserted.form_type_id,
            "year": inserted.year,
            "updated_at": func.now(),
        }
        set_.update({name: inserted[name] for name in VALUE_COLUMNS})
        set_.update({name: func.coalesce(inserted[name], table.c[name]) for name in METADATA_COLUMNS})
        return stmt.on_duplicate_key_update(**set_)

    def _orm_upsert(self, values: Dict[str, Any]) -> None:
        answer = (
            self.db.query(SubmissionAnswer)
            .filter(
                SubmissionAnswer.submission_id == values["submission_id"],
                SubmissionAnswer.field_key == values["field_key"],
            )
            .first()
        )
        if answer is None:
            self.db.add(SubmissionAnswer(**values))
            return
        answer.form_type_id = values["form_type_id"]
        answer.year = values["year"]
        for name in VALUE_COLUMNS:
            setattr(answer, name, values[name])
        for name in METADATA_COLUMNS:
            if values[name] is not None:
                setattr(answer, name, values[name])
