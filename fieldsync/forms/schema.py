"""Schema normalization engine.

Turns a form schema JSON blob of any tolerated shape into an ordered list of
``FieldDescriptor`` and resolves a field's selectable options from a mapping
dictionary. Everything here is pure and never raises on malformed input: an
unrecognized schema yields an empty field list.

Tolerated shapes, probed in order (first non-empty wins)::

    {"fields": [...]}
    {"schema": {"fields": [...]}}
    {"form": {"fields": [...]}}
    {"sections": [{"fields": [...]}, ...]}
    {"properties": {...}, "required": [...]}      # JSON-Schema style
"""
from __future__ import annotations

import json
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

CHOICE_TYPES = frozenset({"select", "radio", "multiple_choice"})

FIELD_KEY_CANDIDATES = ("key", "name", "field_key", "fieldKey", "code", "id")
FIELD_LABEL_CANDIDATES = ("label", "title", "name")
FIELD_TYPE_CANDIDATES = ("type", "field_type", "fieldType")
OPTION_REF_CANDIDATES = ("option_key", "optionKey")
OPTION_KEY_CANDIDATES = ("key", "value", "id", "code", "name", "label")
OPTION_LABEL_CANDIDATES = ("label", "name", "title", "value", "key", "id", "code")


class SchemaShape(str, Enum):
    """Which tolerated shape a schema was recognized as."""
    FIELDS = "fields"
    NESTED_SCHEMA = "schema.fields"
    NESTED_FORM = "form.fields"
    SECTIONS = "sections"
    JSON_SCHEMA = "json_schema"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Option:
    """One selectable option."""
    key: str
    label: str

    def to_dict(self) -> Dict[str, str]:
        return {"key": self.key, "label": self.label}


@dataclass(frozen=True)
class FieldDescriptor:
    """A normalized form field."""
    key: str
    label: str
    type: str = "text"
    required: bool = False
    option_key: Optional[str] = None
    options: Tuple[Option, ...] = ()
    placeholder: Optional[str] = None

    @property
    def is_choice(self) -> bool:
        return is_choice_type(self.type)


def is_choice_type(field_type: Optional[str]) -> bool:
    """Whether a field type selects from an option list."""
    return (field_type or "").strip().lower() in CHOICE_TYPES


def stringify(value: Any) -> str:
    """Render a primitive the way the mobile client and wire format do."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
    return str(value)


def normalize_json(raw: Any) -> Optional[Dict[str, Any]]:
    """Return a JSON object from a dict or a JSON string, else None."""
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            parsed = json.loads(raw)
        except ValueError:
            return None
        return parsed if isinstance(parsed, dict) else None
    return None


def _first_text(obj: Mapping[str, Any], candidates: Sequence[str]) -> str:
    for name in candidates:
        value = obj.get(name)
        if value is None or isinstance(value, (dict, list)):
            continue
        text = stringify(value).strip()
        if text:
            return text
    return ""


def _list_at(obj: Any, *path: str) -> List[Any]:
    cur = obj
    for part in path:
        if not isinstance(cur, Mapping):
            return []
        cur = cur.get(part)
    return list(cur) if isinstance(cur, list) else []


def _flatten_sections(schema: Mapping[str, Any]) -> List[Any]:
    out: List[Any] = []
    for section in _list_at(schema, "sections"):
        out.extend(_list_at(section, "fields"))
    return out


def _json_schema_fields(schema: Mapping[str, Any]) -> List[Any]:
    props = schema.get("properties")
    if not isinstance(props, Mapping):
        return []
    required = schema.get("required")
    required_keys = {r for r in required if isinstance(r, str)} if isinstance(required, list) else set()

    out: List[Any] = []
    for key, definition in props.items():
        definition = definition if isinstance(definition, Mapping) else {}
        json_type = stringify(definition.get("type") or "text").lower()
        enum_values = definition.get("enum") if isinstance(definition.get("enum"), list) else None
        if enum_values is not None:
            field_type = "select"
        elif json_type in ("integer", "number"):
            field_type = "number"
        else:
            field_type = "text"
        out.append({
            "key": key,
            "label": stringify(definition.get("title") or key),
            "required": key in required_keys,
            "type": field_type,
            "options": enum_values,
        })
    return out


_SHAPE_PROBES: Tuple[Tuple[SchemaShape, Callable[[Mapping[str, Any]], List[Any]]], ...] = (
    (SchemaShape.FIELDS, lambda s: _list_at(s, "fields")),
    (SchemaShape.NESTED_SCHEMA, lambda s: _list_at(s, "schema", "fields")),
    (SchemaShape.NESTED_FORM, lambda s: _list_at(s, "form", "fields")),
    (SchemaShape.SECTIONS, _flatten_sections),
    (SchemaShape.JSON_SCHEMA, _json_schema_fields),
)


def detect_shape(schema_json: Any) -> Tuple[SchemaShape, List[Any]]:
    """Probe the tolerated shapes in order and return the first non-empty one."""
    schema = normalize_json(schema_json)
    if schema is None:
        return SchemaShape.UNKNOWN, []
    for shape, probe in _SHAPE_PROBES:
        raw_fields = probe(schema)
        if raw_fields:
            return shape, raw_fields
    return SchemaShape.UNKNOWN, []


def normalize_options(raw: Any) -> List[Option]:
    """
    Normalize a heterogeneous option list.

    Accepts bare primitives, objects with any of the usual key/label
    spellings, or a ``{key: label}`` object. Empty keys are dropped and
    duplicates keep their first occurrence.
    """
    if isinstance(raw, Mapping):
        items: List[Any] = [{"key": k, "label": v} for k, v in raw.items()]
    elif isinstance(raw, list):
        items = raw
    else:
        return []

    out: List[Option] = []
    seen = set()
    for item in items:
        if item is None:
            continue
        if isinstance(item, (str, int, float, bool)):
            key = stringify(item).strip()
            label = key
        elif isinstance(item, Mapping):
            key = _first_text(item, OPTION_KEY_CANDIDATES)
            label = _first_text(item, OPTION_LABEL_CANDIDATES) or key
        else:
            continue
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(Option(key=key, label=label))
    return out


def field_from_raw(raw: Mapping[str, Any], index: int) -> FieldDescriptor:
    """Build a descriptor from one raw field entry."""
    key = _first_text(raw, FIELD_KEY_CANDIDATES) or f"field_{index}"
    placeholder = _first_text(raw, ("placeholder",)) or None
    return FieldDescriptor(
        key=key,
        label=_first_text(raw, FIELD_LABEL_CANDIDATES) or key,
        type=_first_text(raw, FIELD_TYPE_CANDIDATES).lower() or "text",
        required=bool(raw.get("required")),
        option_key=_first_text(raw, OPTION_REF_CANDIDATES) or None,
        options=tuple(normalize_options(raw.get("options"))),
        placeholder=placeholder,
    )


def extract_fields(schema_json: Any) -> List[FieldDescriptor]:
    """
    Extract an ordered list of field descriptors from a schema.

    Keys are never empty and never repeated within one schema: a key that
    collides with an earlier field gets an ``_<index>`` suffix.
    """
    _, raw_fields = detect_shape(schema_json)
    fields: List[FieldDescriptor] = []
    seen = set()
    for index, raw in enumerate(raw_fields):
        if not isinstance(raw, Mapping):
            continue
        descriptor = field_from_raw(raw, index)
        key = descriptor.key
        suffix = index
        while key in seen:
            key = f"{descriptor.key}_{suffix}"
            suffix += 1
        if key != descriptor.key:
            descriptor = FieldDescriptor(
                key=key,
                label=descriptor.label,
                type=descriptor.type,
                required=descriptor.required,
                option_key=descriptor.option_key,
                options=descriptor.options,
                placeholder=descriptor.placeholder,
            )
        seen.add(key)
        fields.append(descriptor)
    return fields


def _coerce_field(field: Any) -> Optional[FieldDescriptor]:
    if isinstance(field, FieldDescriptor):
        return field
    if isinstance(field, Mapping):
        return field_from_raw(field, 0)
    return None


def options_for_field(field: Any, mapping_json: Any) -> List[Option]:
    """
    Resolve the selectable options of a field.

    Inline options win outright. Otherwise the field's option key is looked
    up in ``mapping_json[key]``, then ``mapping_json["options"][key]``, then
    ``mapping_json["mappings"][key]``.
    """
    descriptor = _coerce_field(field)
    if descriptor is None:
        return []
    if descriptor.options:
        return list(descriptor.options)
    if not descriptor.option_key:
        return []

    mapping = normalize_json(mapping_json) or {}
    bucket = mapping.get(descriptor.option_key)
    for container in ("options", "mappings"):
        if bucket is not None:
            break
        nested = mapping.get(container)
        if isinstance(nested, Mapping):
            bucket = nested.get(descriptor.option_key)
    return normalize_options(bucket)


def build_snapshots_from_schema(schema_json: Any) -> Dict[str, Dict[str, Any]]:
    """Seed a snapshot bag (label/type/option_key) for every schema field."""
    snapshots: Dict[str, Dict[str, Any]] = {}
    for field in extract_fields(schema_json):
        snapshots[field.key] = {
            "label": field.label,
            "type": field.type,
            "option_key": field.option_key,
            "option_label": None,
        }
    return snapshots
