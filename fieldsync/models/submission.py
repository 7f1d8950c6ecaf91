"""Submission models."""
from enum import Enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from fieldsync.core.database import Base


class SubmissionStatus(str, Enum):
    """Lifecycle of a submission."""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    REVIEWED = "reviewed"
    REJECTED = "rejected"


class Submission(Base):
    """
    A filled form uploaded from a device.

    Linked to the form type/year it answers and, optionally, to the mapping
    and schema version the device rendered.
    """

    __tablename__ = "submissions"

    id = Column(Integer, primary_key=True, index=True)
    form_type_id = Column(Integer, ForeignKey("form_types.id", ondelete="RESTRICT"), nullable=False, index=True)
    year = Column(Integer, nullable=False, index=True)
    mapping_id = Column(Integer, ForeignKey("form_mappings.id", ondelete="SET NULL"), nullable=True)
    schema_version_id = Column(Integer, ForeignKey("form_schema_versions.id", ondelete="SET NULL"), nullable=True)

    source = Column(String(20), nullable=False, default="mobile")
    status = Column(
        SQLEnum(SubmissionStatus, values_callable=lambda enum: [member.value for member in enum]),
        nullable=False,
        default=SubmissionStatus.DRAFT,
        index=True,
    )

    # Location
    reg_name = Column(String(255), nullable=True)
    prov_name = Column(String(255), nullable=True)
    city_name = Column(String(255), nullable=True)
    brgy_name = Column(String(255), nullable=True)

    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    # Timestamps
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    creator = relationship("User", back_populates="submissions")
    form_type = relationship("FormType")
    answers = relationship(
        "SubmissionAnswer",
        back_populates="submission",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SubmissionAnswer.id",
    )

    @property
    def form_type_name(self):
        return self.form_type.name if self.form_type is not None else None

    def __repr__(self):
        return f"<Submission(id={self.id}, form_type_id={self.form_type_id}, year={self.year}, status={self.status})>"


class SubmissionAnswer(Base):
    """
    One answer of a submission, unique per ``(submission_id, field_key)``.

    Exactly one of the ``value_*`` slots is populated; field metadata is
    denormalized so answers stay readable after the schema changes.
    """

    __tablename__ = "submission_answers"
    __table_args__ = (UniqueConstraint("submission_id", "field_key", name="uq_submission_answer_field"),)

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(Integer, ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False, index=True)
    form_type_id = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    field_key = Column(String(128), nullable=False)

    # Snapshot
    label = Column(String(255), nullable=True)
    type = Column(String(32), nullable=True)
    option_key = Column(String(128), nullable=True)
    option_label = Column(String(255), nullable=True)

    # Value slots
    value_text = Column(Text, nullable=True)
    value_number = Column(Float, nullable=True)
    value_bool = Column(Boolean, nullable=True)
    value_json = Column(JSON(none_as_null=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    submission = relationship("Submission", back_populates="answers")

    def __repr__(self):
        return f"<SubmissionAnswer(id={self.id}, submission_id={self.submission_id}, field_key={self.field_key})>"
