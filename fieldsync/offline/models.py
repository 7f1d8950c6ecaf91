"""Local-only records: drafts and downloaded forms.

Stored as camelCase JSON (``draftId``, ``formTypeId``...); the nested
location keeps its snake_case keys, matching the server fields.
"""
import math
import time
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from fieldsync.forms.location import clean_location_value


def now_ms() -> int:
    return int(time.time() * 1000)


def to_int(value: Any) -> Optional[int]:
    """Lenient integer parse: numbers and numeric strings, else None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        return int(number) if math.isfinite(number) else None
    return None


class Location(BaseModel):
    reg_name: Optional[str] = None
    prov_name: Optional[str] = None
    city_name: Optional[str] = None
    brgy_name: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("reg_name", "prov_name", "city_name", "brgy_name", mode="before")
    @classmethod
    def clean(cls, value: Any) -> Optional[str]:
        return clean_location_value(value)


class DraftStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"


class Draft(BaseModel):
    """A form being answered on the device."""

    draft_id: Optional[str] = None
    server_submission_id: Optional[int] = None
    form_type_id: int
    year: int
    mapping_id: Optional[int] = None
    schema_version_id: Optional[int] = None
    location: Location = Field(default_factory=Location)
    answers: Dict[str, Any] = Field(default_factory=dict)
    snapshots: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    status: DraftStatus = DraftStatus.DRAFT
    dirty: bool = True
    updated_at: int = Field(default_factory=now_ms)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class DownloadedForm(BaseModel):
    """A form type/year whose mapping (and schema) are available offline."""

    form_type_id: int
    year: int
    mapping_id: Optional[int] = None
    schema_version_id: Optional[int] = None
    mapping_json: Dict[str, Any] = Field(default_factory=dict)
    schema_definition: Optional[Any] = Field(default=None, alias="schemaJson")
    title: Optional[str] = None
    downloaded_at: int = Field(default_factory=now_ms)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @property
    def identity(self) -> tuple:
        return (self.form_type_id, self.year)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_record(cls, record: Any) -> Optional["DownloadedForm"]:
        """Normalize a stored entry; None when its identity is not numeric."""
        if not isinstance(record, dict):
            return None
        form_type_id = to_int(record.get("formTypeId", record.get("form_type_id")))
        year = to_int(record.get("year"))
        if form_type_id is None or year is None:
            return None
        mapping_json = record.get("mappingJson", record.get("mapping_json"))
        return cls(
            form_type_id=form_type_id,
            year=year,
            mapping_id=to_int(record.get("mappingId", record.get("mapping_id"))),
            schema_version_id=to_int(record.get("schemaVersionId", record.get("schema_version_id"))),
            mapping_json=mapping_json if isinstance(mapping_json, dict) else {},
            schema_definition=record.get("schemaJson", record.get("schema_json")),
            title=record.get("title") if isinstance(record.get("title"), str) else None,
            downloaded_at=to_int(record.get("downloadedAt")) or now_ms(),
        )
