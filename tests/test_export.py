from datetime import date

import pytest

from reservacion.errors import ValidationError
from reservacion.export import export_csv, export_filename, format_timestamp
from reservacion.fields import Field, FieldType
from reservacion.models import Event, Reservation

CREATED = "2026-10-18T19:05:00+00:00"


def _event(title="Jazz Night"):
    return Event.new(title=title, fields=(
        Field(id=1, label="Name", type=FieldType.TEXT),
        Field(id=2, label="Qty", type=FieldType.NUMBER),
    ))


def test_export_quotes_and_escapes_cells():
    reservations = [
        Reservation("r1", "evt", {"Name": "A, B", "Qty": "2"}, None, CREATED),
        Reservation("r2", "evt", {"Name": 'Bob "Q"', "Qty": "1"}, "uid-alice", CREATED),
    ]
    filename, content = export_csv(_event(), reservations, {"uid-alice": "Alice"}, date(2026, 10, 18))
    lines = content.split("\n")

    assert lines[0] == "Name,Qty,Promoter,Created At"
    assert lines[1] == '"A, B","2","Direct","Sun, Oct 18, 2026, 7:05 PM"'
    assert lines[2] == '"Bob ""Q""","1","Alice","Sun, Oct 18, 2026, 7:05 PM"'
    assert filename == "Jazz_Night_reservations_2026-10-18.csv"


def test_export_marks_unresolved_promoters_and_missing_answers():
    reservations = [Reservation("r1", "evt", {"Name": "Solo"}, "uid-gone", CREATED)]
    _, content = export_csv(_event(), reservations, {})
    assert content.split("\n")[1].startswith('"Solo","","Unknown",')


def test_export_without_reservations_is_refused():
    with pytest.raises(ValidationError):
        export_csv(_event(), [], {})


def test_export_filename_replaces_non_alphanumerics():
    assert export_filename(_event("Año Nuevo! 2027"), date(2026, 12, 1)) == \
        "A_o_Nuevo__2027_reservations_2026-12-01.csv"


def test_format_timestamp():
    assert format_timestamp(None) == ""
    assert format_timestamp("not a date") == "Invalid Date"
    assert format_timestamp("2026-01-05T00:30:00Z") == "Mon, Jan 5, 2026, 12:30 AM"
