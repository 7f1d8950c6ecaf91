"""Answer snapshot builder.

An answer is a tagged value (text, number, bool, json or a chosen option)
plus a denormalized ``Snapshot`` of the field it answered. The four flat
``value_*`` slots only exist at the wire and storage boundary, produced by
``resolve_value_slots`` which client and server share.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from fieldsync.forms.schema import (
    FieldDescriptor,
    Option,
    field_from_raw,
    is_choice_type,
    stringify,
)


def _present(value: Any) -> bool:
    return value is not None and stringify(value) != ""


def _finite(value: Any) -> bool:
    # ints beyond float range are kept as text
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


@dataclass(frozen=True)
class Snapshot:
    """Field metadata captured at answer time."""
    label: Optional[str] = None
    type: Optional[str] = None
    option_key: Optional[str] = None
    option_label: Optional[str] = None

    @classmethod
    def from_hint(cls, hint: Optional[Mapping[str, Any]]) -> "Snapshot":
        if not isinstance(hint, Mapping):
            return cls()

        def text(name: str) -> Optional[str]:
            value = hint.get(name)
            return stringify(value) if _present(value) else None

        return cls(
            label=text("label"),
            type=text("type"),
            option_key=text("option_key"),
            option_label=text("option_label"),
        )

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "label": self.label,
            "type": self.type,
            "option_key": self.option_key,
            "option_label": self.option_label,
        }


@dataclass(frozen=True)
class ValueSlots:
    value_text: Optional[str] = None
    value_number: Optional[float] = None
    value_bool: Optional[bool] = None
    value_json: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value_text": self.value_text,
            "value_number": self.value_number,
            "value_bool": self.value_bool,
            "value_json": self.value_json,
        }


@dataclass(frozen=True)
class TextAnswer:
    text: Optional[str]

    def to_slots(self) -> ValueSlots:
        return ValueSlots(value_text=self.text)


@dataclass(frozen=True)
class NumberAnswer:
    number: float

    def to_slots(self) -> ValueSlots:
        return ValueSlots(value_number=self.number)


@dataclass(frozen=True)
class BoolAnswer:
    flag: bool

    def to_slots(self) -> ValueSlots:
        return ValueSlots(value_bool=self.flag)


@dataclass(frozen=True)
class JsonAnswer:
    data: Any

    def to_slots(self) -> ValueSlots:
        return ValueSlots(value_json=self.data)


@dataclass(frozen=True)
class ChoiceAnswer:
    """A selected option; stored as its label."""
    key: Optional[str]
    label: str

    def to_slots(self) -> ValueSlots:
        return ValueSlots(value_text=self.label)


AnswerValue = Union[TextAnswer, NumberAnswer, BoolAnswer, JsonAnswer, ChoiceAnswer]


@dataclass(frozen=True)
class AnswerRecord:
    """One answer ready to be stored locally or sent to the server."""
    field_key: str
    raw_value: Any
    value: AnswerValue
    snapshot: Snapshot

    def to_slots(self) -> ValueSlots:
        return self.value.to_slots()


def classify_value(value: Any, option_label: Any = None, option_key: Optional[str] = None) -> AnswerValue:
    """
    Resolve a raw value into exactly one answer variant.

    Precedence: option label, bool, finite number, object/array, text.
    """
    if _present(option_label):
        return ChoiceAnswer(key=option_key, label=stringify(option_label))
    if isinstance(value, bool):
        return BoolAnswer(value)
    if isinstance(value, (int, float)) and _finite(value):
        return NumberAnswer(value)
    if isinstance(value, (dict, list)):
        return JsonAnswer(value)
    return TextAnswer(None if value is None else stringify(value))


def resolve_value_slots(value: Any, option_label: Any = None) -> ValueSlots:
    """Flat value slots for a raw value; exactly one slot is set unless value is None."""
    return classify_value(value, option_label).to_slots()


def resolve_option_key(field_type: Optional[str], option_key: Any, value: Any) -> Optional[str]:
    """A choice answer without an explicit option key is keyed by its own value."""
    if _present(option_key):
        return stringify(option_key)
    if is_choice_type(field_type) and isinstance(value, (str, int, float, bool)) and _present(value):
        return stringify(value)
    return None


def _lookup_label(options: Iterable[Option], key: str) -> Optional[str]:
    for option in options:
        if option.key == key:
            return option.label
    return None


def build_answer_record(
    field: Union[FieldDescriptor, Mapping[str, Any]],
    raw_value: Any,
    snapshot_hint: Optional[Mapping[str, Any]] = None,
    options: Optional[Iterable[Option]] = None,
) -> AnswerRecord:
    """
    Build the answer record for a field the user just answered.

    Label and type come from the hint first, then the descriptor. A choice
    field keyed by a primitive value records that value as the option key;
    its label is looked up in ``options`` (or the field's inline options)
    and falls back to the key itself.
    """
    descriptor = field if isinstance(field, FieldDescriptor) else field_from_raw(field, 0)
    hint = Snapshot.from_hint(snapshot_hint)

    field_type = hint.type or descriptor.type
    option_key = None
    option_label = None
    if is_choice_type(field_type):
        option_key = resolve_option_key(field_type, None, raw_value)
    if option_key:
        # a label cached for a previous selection is stale
        if hint.option_key == option_key and hint.option_label:
            option_label = hint.option_label
        else:
            candidates = list(options) if options is not None else list(descriptor.options)
            option_label = _lookup_label(candidates, option_key) or option_key

    snapshot = Snapshot(
        label=hint.label or descriptor.label,
        type=field_type,
        option_key=option_key,
        option_label=option_label,
    )
    return AnswerRecord(
        field_key=descriptor.key,
        raw_value=raw_value,
        value=classify_value(raw_value, option_label, option_key),
        snapshot=snapshot,
    )


def build_wire_answer(field_key: str, raw_value: Any, snapshot_hint: Optional[Mapping[str, Any]] = None) -> AnswerRecord:
    """
    Build the answer record for an incoming ``(field_key, value)`` pair.

    No option list is consulted: the label travels in the snapshot the
    client sent.
    """
    hint = Snapshot.from_hint(snapshot_hint)
    option_key = resolve_option_key(hint.type, hint.option_key, raw_value)
    snapshot = Snapshot(
        label=hint.label,
        type=hint.type,
        option_key=option_key,
        option_label=hint.option_label,
    )
    return AnswerRecord(
        field_key=field_key,
        raw_value=raw_value,
        value=classify_value(raw_value, hint.option_label, option_key),
        snapshot=snapshot,
    )


def human_value(
    option_label: Optional[str] = None,
    value_text: Optional[str] = None,
    value_number: Optional[float] = None,
    value_bool: Optional[bool] = None,
    value_json: Any = None,
) -> Any:
    """Display projection of a stored answer."""
    if option_label:
        return option_label
    if value_text is not None and value_text.strip() != "":
        return value_text
    if value_number is not None:
        return value_number
    if value_bool is not None:
        return "Yes" if value_bool else "No"
    if value_json is not None:
        return value_json
    return None
