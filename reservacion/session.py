"""
Per-request identity and the role checks built on it.

A ``Session`` starts UNINITIALIZED, is RESOLVING while the bearer token and
profile are looked up, and ends RESOLVED holding either a ``User`` or nobody.
Views receive it explicitly instead of reading shared state.
"""
import logging
import time
from enum import Enum
from typing import Iterable, List, Optional

from .errors import AuthenticationRequired, PermissionDenied, RecentLoginRequired
from .models import Reservation, Role, User

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    RESOLVING = "resolving"
    RESOLVED = "resolved"


class Session:

    def __init__(self):
        self.state = SessionState.UNINITIALIZED
        self.user: Optional[User] = None
        self.claims: Optional[dict] = None
        self.error: Optional[str] = None

    @classmethod
    def anonymous(cls) -> "Session":
        session = cls()
        session.state = SessionState.RESOLVED
        return session

    @classmethod
    def for_user(cls, user: User, claims: Optional[dict] = None) -> "Session":
        session = cls()
        session.user = user
        session.claims = claims or {}
        session.state = SessionState.RESOLVED
        return session

    def resolve(self, verifier, store, auth_header: Optional[str]) -> "Session":
        if self.state is SessionState.RESOLVED:
            return self
        self.state = SessionState.RESOLVING
        try:
            if verifier is None or not auth_header:
                return self

            claims, error = verifier.verify_authorization_header(auth_header)
            if error:
                logger.info("Rejected bearer token: %s", error)
                self.error = error
                return self

            uid = claims.get("sub")
            if not uid:
                self.error = "Invalid token"
                return self

            user = store.get_user(uid)
            if user is None:
                # First federated login: no profile yet
                user = store.put_user(User.new(
                    uid=uid,
                    email=claims.get("email", ""),
                    username=claims.get("preferred_username") or claims.get("name"),
                    role=Role.PROMOTER,
                ))
                logger.info("Created profile for %s", uid)
            self.claims = claims
            self.user = user
            return self
        finally:
            self.state = SessionState.RESOLVED

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def uid(self) -> Optional[str]:
        return self.user.uid if self.user else None

    @property
    def role(self) -> Optional[Role]:
        return self.user.role if self.user else None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @property
    def is_promoter(self) -> bool:
        return self.role is Role.PROMOTER

    def require_user(self) -> User:
        if not self.is_authenticated:
            raise AuthenticationRequired(self.error or "Unauthorized")
        return self.user

    def require_admin(self) -> User:
        user = self.require_user()
        if not self.is_admin:
            raise PermissionDenied()
        return user

    def require_recent_login(self, max_age_seconds: int) -> None:
        """Elevated operations need a login newer than ``max_age_seconds``."""
        self.require_user()
        auth_time = (self.claims or {}).get("auth_time")
        if auth_time is None or time.time() - float(auth_time) > max_age_seconds:
            raise RecentLoginRequired()

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "authenticated": self.is_authenticated,
            "user": self.user.to_dict() if self.user else None,
        }


# -------------------------
# Gates
# -------------------------
def can_manage_event(session: Session) -> bool:
    return session.is_admin


def can_delete_reservation(session: Session, reservation: Reservation) -> bool:
    if session.is_admin:
        return True
    return session.is_authenticated and reservation.promoter_id == session.uid


def visible_reservations(session: Session, reservations: Iterable[Reservation]) -> List[Reservation]:
    """Promoters see only the reservations attributed to them."""
    if session.is_promoter:
        return [r for r in reservations if r.promoter_id == session.uid]
    if session.is_admin:
        return list(reservations)
    return []


def can_change_role(session: Session, uid: str, role: Role) -> bool:
    if not session.is_admin:
        return False
    # no self-demotion
    return not (uid == session.uid and Role(role) is not Role.ADMIN)
