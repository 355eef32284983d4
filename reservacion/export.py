"""
CSV export of an event's reservations.
"""
import re
from datetime import date, datetime
from typing import Dict, Iterable, Optional, Tuple

from .errors import ValidationError
from .models import Event, Reservation


def format_timestamp(value) -> str:
    """Human-readable timestamp, e.g. ``Sun, Oct 18, 2026, 7:05 PM``."""
    if not value:
        return ""
    if isinstance(value, datetime):
        moment = value
    else:
        try:
            moment = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return "Invalid Date"
    hour = moment.hour % 12 or 12
    return f"{moment:%a, %b} {moment.day}, {moment.year}, {hour}:{moment:%M} {moment:%p}"


def _cell(value) -> str:
    return '"' + str(value).replace('"', '""') + '"'


def promoter_label(reservation: Reservation, promoter_names: Dict[str, str]) -> str:
    if reservation.promoter_id in promoter_names:
        return promoter_names[reservation.promoter_id]
    return "Unknown" if reservation.promoter_id else "Direct"


def export_filename(event: Event, today: Optional[date] = None) -> str:
    today = today or date.today()
    safe_title = re.sub(r"[^a-zA-Z0-9]", "_", event.title)
    return f"{safe_title}_reservations_{today.isoformat()}.csv"


def export_csv(event: Event, reservations: Iterable[Reservation],
               promoter_names: Dict[str, str],
               today: Optional[date] = None) -> Tuple[str, str]:
    """Return ``(filename, csv_text)``: one column per field, then promoter and time."""
    reservations = list(reservations)
    if not reservations:
        raise ValidationError("No reservations to export")

    header = [f.label for f in event.fields] + ["Promoter", "Created At"]
    lines = [",".join(header)]
    for r in reservations:
        row = [_cell(r.form_data.get(f.label) or "") for f in event.fields]
        row.append(_cell(promoter_label(r, promoter_names)))
        row.append(_cell(format_timestamp(r.created_at)))
        lines.append(",".join(row))

    return export_filename(event, today), "\n".join(lines)
