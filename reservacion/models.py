from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple
import uuid

from .errors import ValidationError
from .fields import Field, parse_fields

PLACEHOLDER_IMAGE = "placeholder"


def _now() -> str:
    return datetime.now(UTC).isoformat()


class Role(str, Enum):
    ADMIN = "admin"
    PROMOTER = "promoter"


class EventStatus(str, Enum):
    ACTIVE = "active"
    DISABLED = "disabled"


# ---------- Users ----------
@dataclass
class User:
    uid: str
    email: str
    username: str
    role: Role = Role.PROMOTER
    events: FrozenSet[str] = frozenset()  # mirrors Event.promoters

    @staticmethod
    def new(uid: str, email: str, username: Optional[str] = None,
            role: Role = Role.PROMOTER) -> "User":
        email = (email or "").lower()
        return User(
            uid=uid,
            email=email,
            username=username or email.split("@")[0],
            role=Role(role),
        )

    @staticmethod
    def from_item(item: dict) -> "User":
        return User(
            uid=item["uid"],
            email=item.get("email", ""),
            username=item.get("username", ""),
            role=Role(item.get("role", Role.PROMOTER.value)),
            events=frozenset(item.get("events") or ()),
        )

    @property
    def display_name(self) -> str:
        return self.username or self.email

    def to_item(self) -> dict:
        return {
            "uid": self.uid,
            "email": self.email,
            "username": self.username,
            "role": self.role.value,
            "events": set(self.events),
        }

    def to_dict(self) -> dict:
        d = self.to_item()
        d["events"] = sorted(self.events)
        return d


# ---------- Events ----------
@dataclass
class Event:
    event_id: str
    title: str
    description: str
    time: str                   # ISO-ish timestamp string
    place: str
    address: str
    note: str                   # organizer-only
    image_url: str
    fields: Tuple[Field, ...]
    primary_field: Optional[int]
    status: EventStatus
    accepting_reservations: bool
    promoters: FrozenSet[str]
    created_at: str

    @staticmethod
    def new(title: str, description: str = "", time: str = "", place: str = "",
            address: str = "", note: str = "", image_url: Optional[str] = None,
            fields: Tuple[Field, ...] = (), primary_field: Optional[int] = None,
            event_id: Optional[str] = None) -> "Event":
        if not (title or "").strip():
            raise ValidationError("Missing required field: title")
        return Event(
            event_id=event_id or str(uuid.uuid4()),
            title=title,
            description=description or "",
            time=str(time or ""),
            place=place or "",
            address=address or "",
            note=note or "",
            image_url=image_url or PLACEHOLDER_IMAGE,
            fields=tuple(fields),
            primary_field=primary_field,
            status=EventStatus.ACTIVE,
            accepting_reservations=True,
            promoters=frozenset(),
            created_at=_now(),
        )

    @staticmethod
    def from_item(item: dict) -> "Event":
        primary = item.get("primary_field")
        return Event(
            event_id=item["event_id"],
            title=item.get("title", ""),
            description=item.get("description", ""),
            time=item.get("time", ""),
            place=item.get("place", ""),
            address=item.get("address", ""),
            note=item.get("note", ""),
            image_url=item.get("image_url") or PLACEHOLDER_IMAGE,
            fields=parse_fields(item.get("fields")),
            primary_field=int(primary) if primary is not None else None,
            status=EventStatus(item.get("status", EventStatus.ACTIVE.value)),
            # older records predate the flag
            accepting_reservations=item.get("accepting_reservations", True) is not False,
            promoters=frozenset(item.get("promoters") or ()),
            created_at=item.get("created_at", ""),
        )

    @property
    def has_image(self) -> bool:
        return bool(self.image_url) and self.image_url != PLACEHOLDER_IMAGE

    @property
    def is_disabled(self) -> bool:
        return self.status is EventStatus.DISABLED

    def to_item(self) -> dict:
        return {
            "event_id": self.event_id,
            "title": self.title,
            "description": self.description,
            "time": self.time,
            "place": self.place,
            "address": self.address,
            "note": self.note,
            "image_url": self.image_url,
            "fields": [f.to_dict() for f in self.fields],
            "primary_field": self.primary_field,
            "status": self.status.value,
            "accepting_reservations": self.accepting_reservations,
            "promoters": set(self.promoters),
            "created_at": self.created_at,
        }

    def to_dict(self) -> dict:
        d = self.to_item()
        d["promoters"] = sorted(self.promoters)
        return d

    def to_public(self) -> dict:
        """What the public reservation page may see (no note, no promoters)."""
        return {
            "event_id": self.event_id,
            "title": self.title,
            "description": self.description,
            "time": self.time,
            "place": self.place,
            "address": self.address,
            "image_url": self.image_url if self.has_image else None,
        }


# ---------- Reservations ----------
@dataclass
class Reservation:
    reservation_id: str
    event_id: str
    form_data: Dict[str, str]   # keyed by Field.label
    promoter_id: Optional[str]
    created_at: str = field(default_factory=_now)

    @staticmethod
    def new(event_id: str, form_data: Dict[str, str],
            promoter_id: Optional[str] = None) -> "Reservation":
        return Reservation(
            reservation_id=str(uuid.uuid4()),
            event_id=event_id,
            form_data=dict(form_data),
            promoter_id=promoter_id or None,
            created_at=_now(),
        )

    @staticmethod
    def from_item(item: dict) -> "Reservation":
        return Reservation(
            reservation_id=item["reservation_id"],
            event_id=item["event_id"],
            form_data={k: str(v) for k, v in (item.get("form_data") or {}).items()},
            promoter_id=item.get("promoter_id") or None,
            created_at=item.get("created_at", ""),
        )

    def to_item(self) -> dict:
        return {
            "reservation_id": self.reservation_id,
            "event_id": self.event_id,
            "form_data": dict(self.form_data),
            "promoter_id": self.promoter_id,
            "created_at": self.created_at,
        }

    def to_dict(self) -> dict:
        return self.to_item()
