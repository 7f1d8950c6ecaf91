"""Form catalogue models: form types, schema versions and option mappings."""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from fieldsync.core.database import Base


class FormType(Base):
    """A kind of survey form (e.g. a sector census)."""

    __tablename__ = "form_types"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(64), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    sector_key = Column(String(64), nullable=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    schema_versions = relationship(
        "FormSchemaVersion", back_populates="form_type", cascade="all, delete-orphan"
    )
    mappings = relationship("FormMapping", back_populates="form_type", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<FormType(id={self.id}, key={self.key})>"


class FormSchemaVersion(Base):
    """
    One versioned schema of a form type for a given year.

    Only versions with status ``active`` are served to devices.
    """

    __tablename__ = "form_schema_versions"
    __table_args__ = (UniqueConstraint("form_type_id", "year", "version", name="uq_form_schema_version"),)

    id = Column(Integer, primary_key=True, index=True)
    form_type_id = Column(Integer, ForeignKey("form_types.id", ondelete="CASCADE"), nullable=False, index=True)
    year = Column(Integer, nullable=False, index=True)
    version = Column(Integer, nullable=False, default=1)
    status = Column(String(20), nullable=False, default="active")
    schema_json = Column(JSON, nullable=False)
    ui_json = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    form_type = relationship("FormType", back_populates="schema_versions")

    def __repr__(self):
        return f"<FormSchemaVersion(id={self.id}, form_type_id={self.form_type_id}, year={self.year}, version={self.version})>"


class FormMapping(Base):
    """Option dictionary (option key -> options) of a form type for a given year."""

    __tablename__ = "form_mappings"

    id = Column(Integer, primary_key=True, index=True)
    form_type_id = Column(Integer, ForeignKey("form_types.id", ondelete="CASCADE"), nullable=False, index=True)
    year = Column(Integer, nullable=False, index=True)
    mapping_json = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    form_type = relationship("FormType", back_populates="mappings")

    def __repr__(self):
        return f"<FormMapping(id={self.id}, form_type_id={self.form_type_id}, year={self.year})>"
