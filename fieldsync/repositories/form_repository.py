"""Form catalogue data access."""
from typing import List, Optional

from sqlalchemy.orm import Session

from fieldsync.models.form import FormMapping, FormSchemaVersion, FormType

ACTIVE_STATUS = "active"


class FormRepository:
    """Read access to form types, schema versions and mappings."""

    def __init__(self, db: Session):
        self.db = db

    def get_form_type(self, form_type_id: int) -> Optional[FormType]:
        return self.db.query(FormType).filter(FormType.id == form_type_id).first()

    def get_active_form_types(self) -> List[FormType]:
        return (
            self.db.query(FormType)
            .filter(FormType.is_active.is_(True))
            .order_by(FormType.sector_key.asc(), FormType.name.asc(), FormType.id.asc())
            .all()
        )

    def get_active_schema_versions(self, form_type_ids: List[int], year: int) -> List[FormSchemaVersion]:
        """Active versions of the given form types for a year, newest first per form type."""
        if not form_type_ids:
            return []
        return (
            self.db.query(FormSchemaVersion)
            .filter(
                FormSchemaVersion.status == ACTIVE_STATUS,
                FormSchemaVersion.year == year,
                FormSchemaVersion.form_type_id.in_(form_type_ids),
            )
            .order_by(FormSchemaVersion.form_type_id.asc(), FormSchemaVersion.id.desc())
            .all()
        )

    def get_active_schema(self, form_type_id: int, year: int) -> Optional[FormSchemaVersion]:
        return (
            self.db.query(FormSchemaVersion)
            .filter(
                FormSchemaVersion.form_type_id == form_type_id,
                FormSchemaVersion.year == year,
                FormSchemaVersion.status == ACTIVE_STATUS,
            )
            .order_by(FormSchemaVersion.id.desc())
            .first()
        )

    def get_schema_version(self, schema_version_id: int) -> Optional[FormSchemaVersion]:
        return self.db.query(FormSchemaVersion).filter(FormSchemaVersion.id == schema_version_id).first()

    def get_years(self) -> List[int]:
        """Years that have at least one active schema version."""
        rows = (
            self.db.query(FormSchemaVersion.year)
            .filter(FormSchemaVersion.status == ACTIVE_STATUS)
            .distinct()
            .order_by(FormSchemaVersion.year.asc())
            .all()
        )
        return [row[0] for row in rows]

    def get_mapping(self, mapping_id: int) -> Optional[FormMapping]:
        return self.db.query(FormMapping).filter(FormMapping.id == mapping_id).first()

    def get_latest_mapping(self, form_type_id: int, year: int) -> Optional[FormMapping]:
        """Most recently created mapping of a form type and year."""
        return (
            self.db.query(FormMapping)
            .filter(FormMapping.form_type_id == form_type_id, FormMapping.year == year)
            .order_by(FormMapping.id.desc())
            .first()
        )
