"""
Reservation form field schema.

An event owns an ordered tuple of ``Field`` values. Order is the display,
table-column and export order. Answers are stored keyed by ``Field.label``.
"""
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Optional, Sequence, Tuple

from .errors import ValidationError


class FieldType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    SELECT = "select"


@dataclass(frozen=True)
class Field:
    id: int
    label: str
    type: FieldType
    required: bool = False
    is_internal: bool = False
    options: Optional[Tuple[str, ...]] = None  # select only

    @staticmethod
    def from_dict(data: dict) -> "Field":
        try:
            field_type = FieldType(data.get("type"))
        except ValueError:
            raise ValidationError(f"Unknown field type: {data.get('type')}")
        try:
            field_id = int(data["id"])
        except (KeyError, TypeError, ValueError):
            raise ValidationError("Field id must be an integer")

        label = str(data.get("label") or "").strip()
        if not label:
            raise ValidationError("Field label is required")

        options = None
        if field_type is FieldType.SELECT:
            options = tuple(str(o) for o in (data.get("options") or []))

        return Field(
            id=field_id,
            label=label,
            type=field_type,
            required=bool(data.get("required", False)),
            is_internal=bool(data.get("is_internal", False)),
            options=options,
        )

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "label": self.label,
            "type": self.type.value,
            "required": self.required,
            "is_internal": self.is_internal,
        }
        if self.options is not None:
            d["options"] = list(self.options)
        return d


DEFAULT_FIELDS = (
    Field(id=1, label="Nombre", type=FieldType.TEXT, required=True),
    Field(id=2, label="Número de personas", type=FieldType.NUMBER, required=True),
    Field(id=3, label="Gasto aproximado", type=FieldType.NUMBER),
)


def _next_id(existing: Iterable[Field]) -> int:
    candidate = int(time.time() * 1000)
    used = {f.id for f in existing}
    while candidate in used:
        candidate += 1
    return candidate


def new_field(label: str, field_type: FieldType, existing: Sequence[Field] = (),
              required: bool = False, is_internal: bool = False,
              options: Optional[Sequence[str]] = None) -> Field:
    """Create a field with a fresh, time-derived id unique within ``existing``."""
    field_type = FieldType(field_type)
    if field_type is FieldType.SELECT:
        options = tuple(options or ())
    else:
        options = None
    return Field(
        id=_next_id(existing),
        label=label,
        type=field_type,
        required=required,
        is_internal=is_internal,
        options=options,
    )


def parse_fields(raw: Optional[Iterable[dict]]) -> Tuple[Field, ...]:
    fields = tuple(Field.from_dict(item) for item in (raw or []))
    seen_ids, seen_labels = set(), set()
    for f in fields:
        if f.id in seen_ids:
            raise ValidationError(f"Duplicate field id: {f.id}")
        if f.label in seen_labels:
            raise ValidationError(f"Duplicate field label: {f.label}")
        seen_ids.add(f.id)
        seen_labels.add(f.label)
    return fields


def find_field(fields: Iterable[Field], field_id) -> Optional[Field]:
    # URLs carry the id as text
    wanted = str(field_id)
    return next((f for f in fields if str(f.id) == wanted), None)


def public_fields(fields: Iterable[Field]) -> Tuple[Field, ...]:
    return tuple(f for f in fields if not f.is_internal)


def internal_fields(fields: Iterable[Field]) -> Tuple[Field, ...]:
    return tuple(f for f in fields if f.is_internal)


def replace_field(fields: Sequence[Field], updated: Field) -> Tuple[Field, ...]:
    """Swap the field with ``updated.id`` in place, or append it if new."""
    current = find_field(fields, updated.id)
    if current is None:
        return tuple(fields) + (updated,)
    if current.type is not updated.type:
        raise ValidationError(f"Field type cannot be changed: {current.label}")
    return tuple(updated if f.id == updated.id else f for f in fields)


def remove_field(fields: Sequence[Field], field_id) -> Tuple[Field, ...]:
    target = find_field(fields, field_id)
    if target is None:
        return tuple(fields)
    if target.required:
        raise ValidationError(f"Required field cannot be removed: {target.label}")
    return tuple(f for f in fields if f.id != target.id)


def with_options(field: Field, options: Sequence[str]) -> Field:
    if field.type is not FieldType.SELECT:
        raise ValidationError(f"Only select fields have options: {field.label}")
    return replace(field, options=tuple(options))


def check_field_edit(old: Sequence[Field], new: Sequence[Field]) -> None:
    """Reject an edit that changes a field's type or drops a required field."""
    new_by_id = {f.id: f for f in new}
    for f in old:
        updated = new_by_id.get(f.id)
        if updated is None:
            if f.required:
                raise ValidationError(f"Required field cannot be removed: {f.label}")
        elif updated.type is not f.type:
            raise ValidationError(f"Field type cannot be changed: {f.label}")


def validate_primary_field(fields: Sequence[Field], primary_field) -> Optional[int]:
    if primary_field is None or primary_field == "":
        return None
    target = find_field(fields, primary_field)
    if target is None:
        raise ValidationError(f"Primary field does not exist: {primary_field}")
    return target.id
