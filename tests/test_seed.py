from reservacion.fields import FieldType, internal_fields
from reservacion.seed import sample_event, seed_sample_event


def test_sample_event_fields():
    event = sample_event()
    labels = [f.label for f in event.fields]
    assert labels[:3] == ["Nombre", "Número de personas", "Gasto aproximado"]
    assert event.fields[3].type is FieldType.SELECT
    assert [f.label for f in internal_fields(event.fields)] == ["Código de invitado"]
    assert len({f.id for f in event.fields}) == len(event.fields)


def test_seed_only_into_empty_store(store):
    first = seed_sample_event(store)
    assert first is not None
    assert seed_sample_event(store) is None
    assert [e.event_id for e in store.list_events()] == [first.event_id]
