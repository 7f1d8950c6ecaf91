"""Form schema normalization and answer snapshots shared by client and server."""
from fieldsync.forms.answers import (
    AnswerRecord,
    BoolAnswer,
    ChoiceAnswer,
    JsonAnswer,
    NumberAnswer,
    Snapshot,
    TextAnswer,
    ValueSlots,
    build_answer_record,
    build_wire_answer,
    human_value,
    resolve_value_slots,
)
from fieldsync.forms.location import LOCATION_FIELDS, missing_location_fields
from fieldsync.forms.schema import (
    CHOICE_TYPES,
    FieldDescriptor,
    Option,
    build_snapshots_from_schema,
    extract_fields,
    is_choice_type,
    normalize_options,
    options_for_field,
)

__all__ = [
    "AnswerRecord",
    "BoolAnswer",
    "CHOICE_TYPES",
    "ChoiceAnswer",
    "FieldDescriptor",
    "JsonAnswer",
    "LOCATION_FIELDS",
    "NumberAnswer",
    "Option",
    "Snapshot",
    "TextAnswer",
    "ValueSlots",
    "build_answer_record",
    "build_snapshots_from_schema",
    "build_wire_answer",
    "extract_fields",
    "human_value",
    "is_choice_type",
    "missing_location_fields",
    "normalize_options",
    "options_for_field",
    "resolve_value_slots",
]
