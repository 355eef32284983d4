"""
Demo data for a fresh deployment.
"""
import logging
from typing import Optional

from .fields import DEFAULT_FIELDS, FieldType, new_field
from .models import Event
from .store import ReservationStore

logger = logging.getLogger(__name__)


def sample_event() -> Event:
    fields = tuple(DEFAULT_FIELDS)
    fields += (new_field("Mesa", FieldType.SELECT, fields, options=["Terraza", "Salón", "Barra"]),)
    fields += (new_field("Código de invitado", FieldType.TEXT, fields, is_internal=True),)
    return Event.new(
        title="Noche de Jazz",
        description="Una velada de jazz en vivo con cena.",
        time="2026-11-20T20:00",
        place="La Terraza",
        address="Av. Reforma 123, CDMX",
        note="Dress code: smart casual",
        fields=fields,
        primary_field=DEFAULT_FIELDS[0].id,
    )


def seed_sample_event(store: ReservationStore) -> Optional[Event]:
    """Create the demo event unless the store already holds events."""
    if store.list_events():
        return None
    event = store.create_event(sample_event())
    logger.info("Seeded sample event %s", event.event_id)
    return event
