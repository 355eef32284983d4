"""
Public reservation form: field schema in, control descriptors and answer maps out.
"""
from datetime import date, datetime
from typing import Dict, Iterable, Optional, Sequence, Tuple

from .errors import ValidationError
from .fields import Field, FieldType, find_field, public_fields
from .links import Prefill
from .models import Event

SELECT_PLACEHOLDER = "Select an option..."


def build_editable_state(fields: Iterable[Field]) -> Dict[str, str]:
    return {f.label: "" for f in fields if not f.is_internal}


def apply_prefill(state: Dict[str, str], fields: Sequence[Field], field_id,
                  value: Optional[str]) -> Tuple[Dict[str, str], Optional[Field]]:
    """Write ``value`` under the label of the field with ``field_id``.

    Internal fields are valid targets; that is what prefilled links are for.
    """
    state = dict(state)
    if field_id is None or value is None:
        return state, None
    target = find_field(fields, field_id)
    if target is None:
        return state, None
    state[target.label] = value
    return state, target


def to_submission(state: Dict[str, str]) -> Dict[str, str]:
    return dict(state)


def render_input(field: Field, value: str = "", disabled: bool = False) -> dict:
    return {
        "id": field.id,
        "label": field.label,
        "control": "input",
        "input_type": field.type.value,
        "required": field.required,
        "value": value,
        "disabled": disabled,
    }


def render_select(field: Field, value: str = "", disabled: bool = False) -> dict:
    # An option-less select is still rendered; it just offers nothing.
    return {
        "id": field.id,
        "label": field.label,
        "control": "select",
        "placeholder": SELECT_PLACEHOLDER,
        "choices": list(field.options or ()),
        "required": field.required,
        "value": value,
        "disabled": disabled,
    }


def render_control(field: Field, value: str = "", disabled: bool = False) -> dict:
    if field.type is FieldType.SELECT:
        return render_select(field, value, disabled)
    if field.type in (FieldType.TEXT, FieldType.NUMBER, FieldType.DATE):
        return render_input(field, value, disabled)
    raise ValueError(f"Unhandled field type: {field.type}")


def render_form(event: Event, prefill: Optional[Prefill] = None) -> dict:
    state = build_editable_state(event.fields)
    target = None
    if prefill is not None:
        state, target = apply_prefill(state, event.fields, prefill.field_id, prefill.value)

    controls = []
    for f in event.fields:
        is_target = target is not None and f.id == target.id
        if f.is_internal and not is_target:
            continue
        controls.append(render_control(f, state.get(f.label, ""), disabled=is_target))

    return {"controls": controls, "state": state}


def _valid_answer(field: Field, value: str) -> bool:
    if field.type is FieldType.NUMBER:
        try:
            float(value)
        except ValueError:
            return False
        return True
    if field.type is FieldType.DATE:
        try:
            date.fromisoformat(value)
        except ValueError:
            try:
                datetime.fromisoformat(value)
            except ValueError:
                return False
        return True
    if field.type in (FieldType.TEXT, FieldType.SELECT):
        return True
    raise ValueError(f"Unhandled field type: {field.type}")


def validate_submission(fields: Sequence[Field], form_data: Optional[dict]) -> Dict[str, str]:
    """Keep answers for known labels and enforce required/typed inputs."""
    if form_data is not None and not isinstance(form_data, dict):
        raise ValidationError("form_data must be an object")
    answers = {}
    by_label = {f.label: f for f in fields}
    for label, value in (form_data or {}).items():
        if label in by_label:
            answers[label] = "" if value is None else str(value).strip()

    for f in public_fields(fields):
        value = answers.get(f.label, "")
        if not value:
            blocking = f.required and not (f.type is FieldType.SELECT and not f.options)
            if blocking:
                raise ValidationError(f"Missing required field: {f.label}")
            continue
        if not _valid_answer(f, value):
            raise ValidationError(f"Invalid {f.type.value} value for {f.label}")

    return to_submission(answers)
