from reservacion.fields import Field, FieldType
from reservacion.models import Event, EventStatus, Reservation
from reservacion.sorting import sort_events, sort_options, sort_reservations, split_active

FIELDS = (
    Field(id=1, label="Name", type=FieldType.TEXT),
    Field(id=2, label="Qty", type=FieldType.NUMBER),
)


def _res(rid, name, qty, promoter=None, created_at="2026-10-01T10:00:00+00:00"):
    return Reservation(rid, "evt", {"Name": name, "Qty": qty}, promoter, created_at)


def test_default_sort_is_most_recent_first():
    older = _res("a", "Ana", "1", created_at="2026-10-01T10:00:00+00:00")
    newer = _res("b", "Bo", "1", created_at="2026-10-02T10:00:00+00:00")
    assert [r.reservation_id for r in sort_reservations([older, newer])] == ["b", "a"]


def test_sort_by_text_label():
    rows = [_res("1", "Carla", "1"), _res("2", "ana", "1"), _res("3", "Bea", "1")]
    ordered = sort_reservations(rows, "Name", "asc", FIELDS)
    # native string ordering: uppercase before lowercase
    assert [r.form_data["Name"] for r in ordered] == ["Bea", "Carla", "ana"]


def test_sort_by_number_label_is_numeric():
    rows = [_res("1", "A", "10"), _res("2", "B", "9"), _res("3", "C", "n/a"), _res("4", "D", "2.5")]
    ordered = sort_reservations(rows, "Qty", "asc", FIELDS)
    assert [r.form_data["Qty"] for r in ordered] == ["2.5", "9", "10", "n/a"]


def test_descending_number_sort_keeps_unparsable_last():
    rows = [_res("1", "A", "n/a"), _res("2", "B", "1"), _res("3", "C", ""), _res("4", "D", "10")]
    ordered = sort_reservations(rows, "Qty", "desc", FIELDS)
    assert [r.form_data["Qty"] for r in ordered] == ["10", "1", "n/a", ""]


def test_sort_by_promoter_resolves_display_names():
    rows = [
        _res("1", "A", "1", promoter="uid-z"),
        _res("2", "B", "1", promoter="uid-unknown"),
        _res("3", "C", "1", promoter="uid-a"),
        _res("4", "D", "1"),
    ]
    names = {"uid-z": "Alice", "uid-a": "Zed"}
    ordered = sort_reservations(rows, "promoter_id", "asc", FIELDS, names)
    # unknown and direct resolve to "" and keep their incoming order
    assert [r.reservation_id for r in ordered] == ["2", "4", "1", "3"]


def test_sort_is_stable_for_ties():
    rows = [_res(str(i), "Same", "1") for i in range(5)]
    assert [r.reservation_id for r in sort_reservations(rows, "Name", "desc", FIELDS)] == \
        ["0", "1", "2", "3", "4"]


def test_unknown_sort_key_keeps_order():
    rows = [_res("1", "B", "1"), _res("2", "A", "1")]
    assert [r.reservation_id for r in sort_reservations(rows, "Nope", "asc", FIELDS)] == ["1", "2"]


def test_sort_options_follow_field_order():
    options = sort_options(FIELDS)
    assert [o["key"] for o in options] == ["created_at", "Name", "Qty", "promoter_id"]
    assert options[0]["direction"] == "desc"


def _event(title, created_at, status=EventStatus.ACTIVE):
    e = Event.new(title=title)
    e.created_at = created_at
    e.status = status
    return e


def test_sort_events_by_date_name_and_reservations():
    a = _event("beta", "2026-01-02")
    b = _event("Alpha", "2026-01-03")
    c = _event("gamma", "2026-01-01")
    assert [e.title for e in sort_events([a, b, c], "date")] == ["Alpha", "beta", "gamma"]
    assert [e.title for e in sort_events([c, a, b], "name")] == ["Alpha", "beta", "gamma"]
    counts = {a.event_id: 1, b.event_id: 0, c.event_id: 5}
    assert [e.title for e in sort_events([a, b, c], "reservations", counts)] == ["gamma", "beta", "Alpha"]


def test_split_active_separates_disabled_events():
    live = _event("Live", "2026-01-01")
    off = _event("Off", "2026-01-02", EventStatus.DISABLED)
    active, past = split_active([live, off])
    assert active == [live]
    assert past == [off]
