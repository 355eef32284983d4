"""
Shareable reservation and invite links.

A prefilled link carries one answer as ``val``, standard base64 over UTF-8.
That only keeps the value out of plain sight; it is not a security boundary.
"""
import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import urlencode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Prefill:
    field_id: str
    value: str


@dataclass(frozen=True)
class ReservationQuery:
    ref: Optional[str]
    prefill: Optional[Prefill]


def encode_value(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_value(encoded: Optional[str]) -> Optional[str]:
    """Decode a ``val`` parameter; ``None`` when it is not valid base64 UTF-8."""
    if not encoded:
        return None
    # an unescaped "+" arrives as a space after query-string decoding
    candidate = encoded.strip().replace(" ", "+")
    try:
        return base64.b64decode(candidate, validate=True).decode("utf-8")
    except (binascii.Error, ValueError) as e:
        logger.warning("Failed to decode prefill value %r: %s", encoded, e)
        return None


def _event_url(base_url: str, kind: str, event_id: str) -> str:
    return f"{base_url.rstrip('/')}/{kind}/{event_id}"


def reservation_link(base_url: str, event_id: str, ref: Optional[str] = None) -> str:
    url = _event_url(base_url, "reservation", event_id)
    if ref:
        url += "?" + urlencode({"ref": ref})
    return url


def prefilled_link(base_url: str, event_id: str, field_id, value: str,
                   ref: Optional[str] = None) -> str:
    params = {}
    if ref:
        params["ref"] = ref
    params["field_id"] = str(field_id)
    params["val"] = encode_value(value)
    return _event_url(base_url, "reservation", event_id) + "?" + urlencode(params)


def invite_link(base_url: str, event_id: str) -> str:
    return _event_url(base_url, "join", event_id)


def parse_prefill(args: Mapping[str, str]) -> Optional[Prefill]:
    field_id = args.get("field_id")
    if not field_id:
        return None
    value = decode_value(args.get("val")) if args.get("val") else None
    if value is None:
        # legacy links carried the raw answer
        value = args.get("field_value")
    if not value:
        return None
    return Prefill(field_id=str(field_id), value=value)


def parse_reservation_query(args: Mapping[str, str]) -> ReservationQuery:
    return ReservationQuery(ref=args.get("ref") or None, prefill=parse_prefill(args))
