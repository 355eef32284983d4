import pytest

from reservacion.errors import AuthenticationRequired, PermissionDenied, RecentLoginRequired
from reservacion.models import Reservation, Role
from reservacion.session import (
    Session, SessionState, can_change_role, can_delete_reservation, can_manage_event,
    visible_reservations,
)


def _bearer(token):
    return f"Bearer {token}"


def test_anonymous_without_header(verifier, store):
    session = Session().resolve(verifier, store, None)
    assert session.state is SessionState.RESOLVED
    assert not session.is_authenticated
    with pytest.raises(AuthenticationRequired):
        session.require_user()


def test_resolves_existing_profile(verifier, store, promoter, make_token):
    session = Session().resolve(verifier, store, _bearer(make_token(promoter.uid, promoter.email)))
    assert session.state is SessionState.RESOLVED
    assert session.uid == promoter.uid
    assert session.is_promoter
    assert not session.is_admin


def test_first_login_creates_promoter_profile(verifier, store, make_token):
    token = make_token("new-uid", "New.Person@Example.com", preferred_username="Newbie")
    session = Session().resolve(verifier, store, _bearer(token))

    assert session.role is Role.PROMOTER
    stored = store.get_user("new-uid")
    assert stored.email == "new.person@example.com"
    assert stored.username == "Newbie"


def test_invalid_token_stays_anonymous_with_reason(verifier, store, make_token):
    expired = make_token("someone", exp=1)
    session = Session().resolve(verifier, store, _bearer(expired))
    assert not session.is_authenticated
    assert session.error == "Token has expired"
    with pytest.raises(AuthenticationRequired) as exc:
        session.require_user()
    assert exc.value.message == "Token has expired"


def test_wrong_audience_is_rejected(verifier, store, make_token):
    session = Session().resolve(verifier, store, _bearer(make_token("someone", aud="other-client")))
    assert session.error == "Invalid token audience"


def test_require_admin(admin, promoter):
    assert Session.for_user(admin).require_admin() is admin
    with pytest.raises(PermissionDenied):
        Session.for_user(promoter).require_admin()


def test_recent_login(promoter):
    import time

    Session.for_user(promoter, {"auth_time": time.time() - 10}).require_recent_login(300)
    with pytest.raises(RecentLoginRequired):
        Session.for_user(promoter, {"auth_time": time.time() - 600}).require_recent_login(300)
    with pytest.raises(RecentLoginRequired):
        Session.for_user(promoter, {}).require_recent_login(300)


def test_visibility_and_delete_gates(admin, promoter, other_promoter):
    mine = Reservation.new("evt", {"Nombre": "Ana"}, promoter_id=promoter.uid)
    theirs = Reservation.new("evt", {"Nombre": "Luis"}, promoter_id=other_promoter.uid)
    direct = Reservation.new("evt", {"Nombre": "Eva"})
    rows = [mine, theirs, direct]

    as_admin = Session.for_user(admin)
    as_promoter = Session.for_user(promoter)

    assert visible_reservations(as_admin, rows) == rows
    assert visible_reservations(as_promoter, rows) == [mine]
    assert visible_reservations(Session.anonymous(), rows) == []

    assert can_delete_reservation(as_admin, theirs)
    assert can_delete_reservation(as_promoter, mine)
    assert not can_delete_reservation(as_promoter, theirs)
    assert not can_delete_reservation(as_promoter, direct)

    assert can_manage_event(as_admin)
    assert not can_manage_event(as_promoter)


def test_role_change_gate(admin, promoter):
    as_admin = Session.for_user(admin)
    assert can_change_role(as_admin, promoter.uid, Role.ADMIN)
    assert can_change_role(as_admin, admin.uid, Role.ADMIN)
    assert not can_change_role(as_admin, admin.uid, Role.PROMOTER)
    assert not can_change_role(Session.for_user(promoter), promoter.uid, Role.ADMIN)
