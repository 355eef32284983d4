"""
Ordering for the reservation table and the dashboard.
"""
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .fields import Field, FieldType
from .models import Event, Reservation

PROMOTER_KEY = "promoter_id"
CREATED_AT_KEY = "created_at"

ASC = "asc"
DESC = "desc"


def _answer_key(field: Field, value: Optional[str]):
    value = value or ""
    if field.type is FieldType.NUMBER:
        try:
            return (0, float(value), "")
        except ValueError:
            # unparsable numbers sort after every number
            return (1, 0.0, value)
    if field.type in (FieldType.TEXT, FieldType.DATE, FieldType.SELECT):
        return (0, 0.0, value)
    raise ValueError(f"Unhandled field type: {field.type}")


def sort_reservations(reservations: Iterable[Reservation], key: str = CREATED_AT_KEY,
                      direction: str = DESC, fields: Sequence[Field] = (),
                      promoter_names: Optional[Dict[str, str]] = None) -> List[Reservation]:
    """Sort by a field label, the promoter's display name, or creation time.

    Ties keep their incoming order.
    """
    promoter_names = promoter_names or {}
    by_label = {f.label: f for f in fields}

    if key in by_label:
        field = by_label[key]

        def sort_key(r):
            return _answer_key(field, r.form_data.get(key))
    elif key == PROMOTER_KEY:
        def sort_key(r):
            return promoter_names.get(r.promoter_id, "") if r.promoter_id else ""
    elif key == CREATED_AT_KEY:
        def sort_key(r):
            return r.created_at or ""
    else:
        return list(reservations)

    ordered = sorted(reservations, key=sort_key, reverse=(direction == DESC))
    if key in by_label and by_label[key].type is FieldType.NUMBER:
        # unparsable numbers stay last in either direction
        parsed = [r for r in ordered if sort_key(r)[0] == 0]
        ordered = parsed + [r for r in ordered if sort_key(r)[0] != 0]
    return ordered


def sort_options(fields: Sequence[Field]) -> List[dict]:
    """Choices offered by the reservation table's sort control."""
    options = [{"key": CREATED_AT_KEY, "direction": DESC, "label": "Most Recent"}]
    options.extend({"key": f.label, "direction": ASC, "label": f.label} for f in fields)
    options.append({"key": PROMOTER_KEY, "direction": ASC, "label": "Promoter"})
    return options


def sort_events(events: Iterable[Event], by: str = "date",
                counts: Optional[Dict[str, int]] = None) -> List[Event]:
    counts = counts or {}
    if by == "name":
        return sorted(events, key=lambda e: e.title.lower())
    if by == "reservations":
        return sorted(events, key=lambda e: counts.get(e.event_id, 0), reverse=True)
    return sorted(events, key=lambda e: e.created_at, reverse=True)


def split_active(events: Iterable[Event]) -> Tuple[List[Event], List[Event]]:
    active, past = [], []
    for e in events:
        (past if e.is_disabled else active).append(e)
    return active, past
