"""Form catalogue schemas."""
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional


class SchemaVersionResponse(BaseModel):
    """An active schema version of a form type."""
    id: int
    form_type_id: int
    year: int
    version: int
    status: str
    schema_definition: Any = Field(default=None, alias="schema_json")
    ui_json: Any = None

    model_config = ConfigDict(from_attributes=True)


class FormTypeResponse(BaseModel):
    """Active form type with its active schema versions for the requested year."""
    id: int
    key: str
    name: str
    sector_key: Optional[str] = None
    description: Optional[str] = None
    schema_versions: List[SchemaVersionResponse] = []

    model_config = ConfigDict(from_attributes=True)


class FormTypeListResponse(BaseModel):
    formTypes: List[FormTypeResponse]


class FormYearsResponse(BaseModel):
    years: List[int]


class ActiveSchemaResponse(BaseModel):
    schemaVersion: SchemaVersionResponse


class FormMappingResponse(BaseModel):
    """Option dictionary of a form type and year."""
    id: int
    form_type_id: int
    year: int
    mapping_json: Dict[str, Any] = {}

    model_config = ConfigDict(from_attributes=True)


class FormMappingEnvelope(BaseModel):
    mapping: FormMappingResponse
