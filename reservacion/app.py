import logging
from datetime import datetime, UTC
from functools import wraps
from typing import Optional

from flask import Flask, Response, g, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from . import config
from .cognito_auth import build_verifier_from_env, CognitoVerifier
from .cognito_client import build_cognito_client, CognitoClient
from .errors import (
    NotFoundError, PermissionDenied, ReservacionError, ReservationsClosed,
    UploadFailed, ValidationError,
)
from .export import export_csv
from .fields import (
    DEFAULT_FIELDS, check_field_edit, find_field, internal_fields, parse_fields,
    public_fields, validate_primary_field,
)
from .forms import render_form, validate_submission
from .links import invite_link, parse_reservation_query, prefilled_link, reservation_link
from .models import Event, EventStatus, Reservation, Role, User
from .preview import render_page
from .session import (
    Session, can_change_role, can_delete_reservation, can_manage_event, visible_reservations,
)
from .sorting import (
    ASC, CREATED_AT_KEY, DESC, sort_events, sort_options, sort_reservations, split_active,
)
from .storage import ImageStorage
from .store import ReservationStore, build_store

logger = logging.getLogger(__name__)

# -------------------------
# Config
# -------------------------
app = Flask(__name__, static_folder=None)
app.config["HOSTING_DIR"] = config.HOSTING_DIR
CORS(app)

store: ReservationStore = build_store()
image_storage: ImageStorage = ImageStorage()
cognito_client: Optional[CognitoClient] = build_cognito_client()
cognito_verifier: Optional[CognitoVerifier] = build_verifier_from_env()

EDITABLE_ATTRIBUTES = ("title", "description", "time", "place", "address", "note")


# -------------------------
# Helpers: session + auth
# -------------------------
def current_session() -> Session:
    session = g.get("session")
    if session is None:
        session = Session().resolve(cognito_verifier, store, request.headers.get("Authorization"))
        g.session = session
    return session


def require_auth(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        session = current_session()
        session.require_user()
        return f(*args, session=session, **kwargs)
    return wrapper


def require_admin(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        session = current_session()
        session.require_admin()
        return f(*args, session=session, **kwargs)
    return wrapper


def require_cognito() -> CognitoClient:
    if not cognito_client:
        raise ReservacionError("Cognito not configured")
    return cognito_client


# -------------------------
# Helpers: requests
# -------------------------
def _json() -> dict:
    data = request.get_json(force=True, silent=True)
    return data if isinstance(data, dict) else {}


def _require(data: dict, *names: str) -> None:
    for name in names:
        if data.get(name) in (None, ""):
            raise ValidationError(f"Missing field: {name}")


def _base_url() -> str:
    return config.PUBLIC_BASE_URL or request.host_url.rstrip("/")


def _upload_image(data: dict):
    """Returns ``(image_url, warning)``; a failed upload never blocks the save."""
    if not data.get("image"):
        return None, None
    try:
        return image_storage.upload_data_url(data["image"], data.get("image_name")), None
    except UploadFailed as e:
        logger.warning("Saving event without image: %s", e.message)
        return None, "Failed to upload image. The event was saved without it."


def _event_form(data: dict, existing: Optional[Event] = None):
    """Editable attributes, field schema and primary field from a request body."""
    attrs = {}
    for name in EDITABLE_ATTRIBUTES:
        fallback = getattr(existing, name) if existing else ""
        attrs[name] = str(data.get(name, fallback) or "")
    if not attrs["title"].strip():
        raise ValidationError("Missing required field: title")

    if "fields" in data:
        fields = parse_fields(data["fields"])
    else:
        fields = existing.fields if existing else DEFAULT_FIELDS
    if existing:
        check_field_edit(existing.fields, fields)

    fallback_primary = existing.primary_field if existing else None
    primary = validate_primary_field(fields, data.get("primary_field", fallback_primary))
    return attrs, fields, primary


def _ensure_open(event: Event) -> None:
    if event.is_disabled:
        raise ReservationsClosed("This event is no longer accepting reservations.")
    if not event.accepting_reservations:
        raise ReservationsClosed("Reservations for this event are currently paused. Please check back later.")


def _event_summary(event: Event, count: int) -> dict:
    d = event.to_dict()
    d["reservation_count"] = count
    return d


# -------------------------
# Errors
# -------------------------
@app.errorhandler(ReservacionError)
def handle_reservacion_error(e: ReservacionError):
    return jsonify({"error": e.message}), e.status_code


@app.errorhandler(Exception)
def handle_unexpected_error(e: Exception):
    if isinstance(e, HTTPException):
        return e
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    return jsonify({"error": "Something went wrong. Please try again."}), 500


# -------------------------
# Health
# -------------------------
@app.route("/healthz", methods=["GET"])
def healthz():
    return jsonify({
        "status": "ok",
        "service": "reservacion",
        "time": datetime.now(UTC).isoformat(),
        "cognito_enabled": cognito_client is not None,
    }), 200


# -------------------------
# API: auth
# POST /api/auth/signup {email, password, username, join_event_id?}
# -> {uid, email, username, role, events}
# -------------------------
@app.route("/api/auth/signup", methods=["POST"])
def signup():
    client = require_cognito()
    data = _json()
    _require(data, "email", "password", "username")
    join_event_id = data.get("join_event_id")
    if join_event_id:
        store.require_event(join_event_id)

    created = client.create_user(
        email=data["email"], username=data["username"], password=data["password"]
    )
    user = store.put_user(User.new(created["uid"], created["email"], created["username"], Role.PROMOTER))

    if join_event_id:
        store.attach_promoter(join_event_id, user.uid)
        user = store.get_user(user.uid) or user

    return jsonify(user.to_dict()), 201


@app.route("/api/auth/login", methods=["POST"])
def login():
    client = require_cognito()
    data = _json()
    _require(data, "email", "password")
    return jsonify(client.authenticate_user(data["email"], data["password"])), 200


@app.route("/api/session", methods=["GET"])
@require_auth
def get_session(session: Session):
    return jsonify(session.to_dict()), 200


# -------------------------
# API: account settings
# -------------------------
@app.route("/api/account/password", methods=["PUT"])
@require_auth
def change_password(session: Session):
    data = _json()
    _require(data, "password")
    if data["password"] != data.get("confirm_password"):
        raise ValidationError("Passwords do not match")
    session.require_recent_login(config.RECENT_LOGIN_SECONDS)

    require_cognito().set_password(session.user.email, data["password"])
    return jsonify({"message": "Password updated successfully"}), 200


@app.route("/api/account", methods=["DELETE"])
@require_auth
def delete_account(session: Session):
    session.require_recent_login(config.RECENT_LOGIN_SECONDS)
    client = require_cognito()

    store.delete_user(session.uid)
    client.delete_user(session.user.email)
    logger.info("Deleted account %s", session.uid)
    return jsonify({"message": "Account deleted"}), 200


# -------------------------
# ADMIN: users
# -------------------------
@app.route("/api/users", methods=["GET"])
@require_admin
def list_users(session: Session):
    users = sorted(store.list_users(), key=lambda u: u.email)
    return jsonify([u.to_dict() for u in users]), 200


@app.route("/api/users/<uid>/role", methods=["PUT"])
@require_admin
def change_role(uid: str, session: Session):
    data = _json()
    try:
        role = Role(data.get("role"))
    except ValueError:
        raise ValidationError(f"Invalid role: {data.get('role')}")
    if not can_change_role(session, uid, role):
        raise PermissionDenied("You cannot remove your own admin role")

    store.set_user_role(uid, role)
    return jsonify({"uid": uid, "role": role.value}), 200


# -------------------------
# API: events
# -------------------------
@app.route("/api/events", methods=["GET"])
@require_auth
def list_events(session: Session):
    if session.is_admin:
        events = store.list_events()
    else:
        events = store.list_events_for_promoter(session.uid)

    counts = {e.event_id: store.count_reservations(e.event_id) for e in events}
    ordered = sort_events(events, request.args.get("sort", "date"), counts)
    active, past = split_active(ordered)
    return jsonify({
        "active": [_event_summary(e, counts[e.event_id]) for e in active],
        "past": [_event_summary(e, counts[e.event_id]) for e in past],
    }), 200


@app.route("/api/events", methods=["POST"])
@require_admin
def create_event(session: Session):
    data = _json()
    attrs, fields, primary = _event_form(data)
    image_url, warning = _upload_image(data)

    event = store.create_event(Event.new(
        image_url=image_url, fields=fields, primary_field=primary, **attrs
    ))
    body = event.to_dict()
    if warning:
        body["warning"] = warning
    return jsonify(body), 201


@app.route("/api/events/<event_id>", methods=["GET"])
@require_auth
def get_event(event_id: str, session: Session):
    event = store.require_event(event_id)
    base = _base_url()
    ref = session.uid if session.is_promoter else None

    body = event.to_dict()
    body["links"] = {"reservation": reservation_link(base, event_id, ref)}
    if can_manage_event(session):
        body["links"]["invite"] = invite_link(base, event_id)
    body["internal_fields"] = [f.to_dict() for f in internal_fields(event.fields)]
    body["can_manage"] = can_manage_event(session)
    return jsonify(body), 200


@app.route("/api/events/<event_id>", methods=["PUT"])
@require_admin
def update_event(event_id: str, session: Session):
    existing = store.require_event(event_id)
    data = _json()
    attrs, fields, primary = _event_form(data, existing)
    image_url, warning = _upload_image(data)

    changes = dict(attrs)
    changes["fields"] = [f.to_dict() for f in fields]
    changes["primary_field"] = primary
    changes["image_url"] = image_url  # None keeps the stored image
    remove = ("primary_field",) if primary is None else ()

    event = store.update_event(event_id, changes, remove=remove)
    body = event.to_dict()
    if warning:
        body["warning"] = warning
    return jsonify(body), 200


@app.route("/api/events/<event_id>/status", methods=["POST"])
@require_admin
def toggle_event_status(event_id: str, session: Session):
    event = store.require_event(event_id)
    status = EventStatus.ACTIVE if event.is_disabled else EventStatus.DISABLED
    event = store.update_event(event_id, {"status": status.value})
    return jsonify({"event_id": event_id, "status": event.status.value}), 200


@app.route("/api/events/<event_id>/accepting", methods=["POST"])
@require_admin
def toggle_accepting_reservations(event_id: str, session: Session):
    event = store.require_event(event_id)
    event = store.update_event(
        event_id, {"accepting_reservations": not event.accepting_reservations}
    )
    return jsonify({
        "event_id": event_id,
        "accepting_reservations": event.accepting_reservations,
    }), 200


@app.route("/api/events/<event_id>/links", methods=["POST"])
@require_auth
def create_prefilled_link(event_id: str, session: Session):
    event = store.require_event(event_id)
    data = _json()
    _require(data, "field_id", "value")

    field = find_field(internal_fields(event.fields), data["field_id"])
    if field is None:
        raise ValidationError("Prefilled links can only target internal fields")

    ref = session.uid if session.is_promoter else None
    return jsonify({
        "field_id": field.id,
        "link": prefilled_link(_base_url(), event_id, field.id, str(data["value"]), ref),
    }), 200


@app.route("/api/events/<event_id>/join", methods=["POST"])
@require_auth
def join_event(event_id: str, session: Session):
    store.attach_promoter(event_id, session.uid)
    return jsonify({"message": "Joined event", "event_id": event_id}), 200


# -------------------------
# API: reservations
# -------------------------
@app.route("/api/events/<event_id>/reservations", methods=["GET"])
@require_auth
def list_reservations(event_id: str, session: Session):
    event = store.require_event(event_id)
    direction = request.args.get("direction", DESC)
    if direction not in (ASC, DESC):
        raise ValidationError(f"Invalid sort direction: {direction}")
    key = request.args.get("sort", CREATED_AT_KEY)

    reservations = store.list_reservations(event_id)
    names = store.display_names(r.promoter_id for r in reservations)
    rows = sort_reservations(visible_reservations(session, reservations), key, direction,
                             event.fields, names)

    def row(r: Reservation) -> dict:
        d = r.to_dict()
        d["promoter_name"] = names.get(r.promoter_id) or ("Unknown" if r.promoter_id else None)
        d["can_delete"] = can_delete_reservation(session, r)
        return d

    return jsonify({
        "total": len(reservations),
        "count": len(rows),
        "columns": [f.label for f in event.fields] + ["Promoter", "Time"],
        "sort_options": sort_options(event.fields),
        "reservations": [row(r) for r in rows],
    }), 200


@app.route("/api/events/<event_id>/reservations/<reservation_id>", methods=["DELETE"])
@require_auth
def delete_reservation(event_id: str, reservation_id: str, session: Session):
    reservation = store.get_reservation(event_id, reservation_id)
    if reservation is None:
        raise NotFoundError("Reservation not found")
    if not can_delete_reservation(session, reservation):
        raise PermissionDenied()

    store.delete_reservation(event_id, reservation_id)
    return jsonify({"message": "Reservation deleted"}), 200


@app.route("/api/events/<event_id>/export", methods=["GET"])
@require_admin
def export_reservations(event_id: str, session: Session):
    event = store.require_event(event_id)
    reservations = store.list_reservations(event_id)
    names = store.display_names(r.promoter_id for r in reservations)

    filename, content = export_csv(event, reservations, names)
    return Response(
        content,
        status=200,
        content_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# -------------------------
# Public: reservation form + join page
# -------------------------
@app.route("/api/public/events/<event_id>/form", methods=["GET"])
def public_form(event_id: str):
    event = store.get_event(event_id)
    if event is None:
        raise NotFoundError("Event not found.")
    _ensure_open(event)

    query = parse_reservation_query(request.args)
    return jsonify({
        "event": event.to_public(),
        "ref": query.ref,
        "form": render_form(event, query.prefill),
    }), 200


@app.route("/api/public/events/<event_id>/reservations", methods=["POST"])
def submit_reservation(event_id: str):
    event = store.get_event(event_id)
    if event is None:
        raise NotFoundError("Event not found.")
    _ensure_open(event)

    data = _json()
    answers = validate_submission(event.fields, data.get("form_data"))
    reservation = store.create_reservation(Reservation.new(event_id, answers, data.get("ref")))

    return jsonify({
        "reservation": reservation.to_dict(),
        "details": [
            {"label": f.label, "value": answers.get(f.label, "")}
            for f in public_fields(event.fields)
        ],
    }), 201


@app.route("/api/public/events/<event_id>/join", methods=["GET"])
def public_join_page(event_id: str):
    event = store.get_event(event_id)
    if event is None:
        raise NotFoundError("Event not found")
    return jsonify({"event_id": event.event_id, "title": event.title, "time": event.time}), 200


# -------------------------
# Single-page app + social previews
# -------------------------
@app.route("/", defaults={"path": ""})
@app.route("/<path:path>")
def serve_app(path: str):
    if path.startswith("api/"):
        raise NotFoundError()
    body, status, content_type = render_page(
        "/" + path,
        request.headers.get("User-Agent"),
        app.config["HOSTING_DIR"],
        store.get_event,
        config.CRAWLER_USER_AGENTS,
    )
    return Response(body, status=status, content_type=content_type)
