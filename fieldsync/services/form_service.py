"""Form catalogue service."""
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from fieldsync.forms.schema import normalize_json
from fieldsync.models.form import FormMapping, FormSchemaVersion
from fieldsync.repositories.form_repository import FormRepository

MIN_YEAR, MAX_YEAR = 1900, 3000


class FormService:
    """Read-only access to what devices download."""

    def __init__(self, db: Session):
        self.db = db
        self.form_repo = FormRepository(db)

    @staticmethod
    def _check_year(year: Optional[int]) -> int:
        if year is None or year < MIN_YEAR or year > MAX_YEAR:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="year must be a valid year"
            )
        return year

    @staticmethod
    def _check_form_type_id(form_type_id: Optional[int]) -> int:
        if form_type_id is None or form_type_id <= 0:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="form_type_id is required and must be a positive integer"
            )
        return form_type_id

    def get_years(self) -> List[int]:
        return self.form_repo.get_years()

    def get_form_types(self, year: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Active form types with their active schema versions for a year.

        Defaults to the current year.
        """
        year = self._check_year(date.today().year if year is None else year)
        form_types = self.form_repo.get_active_form_types()
        versions = self.form_repo.get_active_schema_versions([ft.id for ft in form_types], year)

        by_form: Dict[int, List[FormSchemaVersion]] = {}
        for version in versions:
            by_form.setdefault(version.form_type_id, []).append(version)

        return [
            {
                "id": ft.id,
                "key": ft.key,
                "name": ft.name,
                "sector_key": ft.sector_key,
                "description": ft.description,
                "schema_versions": by_form.get(ft.id, []),
            }
            for ft in form_types
        ]

    def get_active_schema(self, form_type_id: Optional[int], year: Optional[int]) -> FormSchemaVersion:
        """
        Newest active schema version of a form type for a year.

        Raises:
            HTTPException: If the parameters are invalid or no active schema exists
        """
        form_type_id = self._check_form_type_id(form_type_id)
        year = self._check_year(year)
        version = self.form_repo.get_active_schema(form_type_id, year)
        if not version:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Active schema not found"
            )
        return version

    def get_mapping(self, form_type_id: Optional[int], year: Optional[int]) -> Dict[str, Any]:
        """
        Latest mapping of a form type for a year.

        Raises:
            HTTPException: If the parameters are invalid or no mapping exists
        """
        form_type_id = self._check_form_type_id(form_type_id)
        year = self._check_year(year)
        mapping: Optional[FormMapping] = self.form_repo.get_latest_mapping(form_type_id, year)
        if not mapping:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Mapping not found"
            )
        return {
            "id": mapping.id,
            "form_type_id": mapping.form_type_id,
            "year": mapping.year,
            "mapping_json": normalize_json(mapping.mapping_json) or {},
        }
