from __future__ import annotations

import datetime as dt
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Protocol

from clean_madurai.domain import AccessType, Account, AdmissionStatus, Identity, Role, parse_timestamp, utcnow
from clean_madurai.errors import (
    AccountPending,
    AccountRejected,
    AuthorizationError,
    CollaboratorError,
    ProfileMissing,
    RoleMismatch,
    ValidationError,
    ZoneWardMismatch,
)
from clean_madurai.services.document_store import DocumentStore
from clean_madurai.zones import zone_by_ward

logger = logging.getLogger(__name__)

PUBLIC_ROUTE = "/"

DEFAULT_ROUTES: dict[Role, str] = {
    Role.CITIZEN: "/user",
    Role.OFFICER: "/officer",
    Role.ADMIN: "/admin",
}

ALL_ROLES = frozenset(Role)

# Application areas and who may enter them.
AREA_ROLES: dict[str, frozenset[Role]] = {
    "/user": frozenset({Role.CITIZEN}),
    "/report": frozenset({Role.CITIZEN}),
    "/officer": frozenset({Role.OFFICER}),
    "/admin": frozenset({Role.ADMIN}),
    "/complaints/": frozenset({Role.OFFICER, Role.ADMIN}),
    "/profile": ALL_ROLES,
}
PUBLIC_ONLY_AREAS = frozenset({"/", "/register"})


def default_route(account: Account | None) -> str:
    if account is None:
        return PUBLIC_ROUTE
    return DEFAULT_ROUTES[account.role]


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    redirect_to: str | None = None


def authorize(account: Account | None, roles: Iterable[Role]) -> AccessDecision:
    if account is None:
        return AccessDecision(False, PUBLIC_ROUTE)
    if account.role in set(roles):
        return AccessDecision(True)
    # Soft redirect to the actor's own area instead of a hard denial.
    return AccessDecision(False, default_route(account))


def resolve_path(path: str, account: Account | None) -> AccessDecision:
    path = "/" + (path or "").strip().strip("/")
    if path in PUBLIC_ONLY_AREAS:
        return AccessDecision(True) if account is None else AccessDecision(False, default_route(account))
    for area, roles in AREA_ROLES.items():
        if area.endswith("/"):
            if path.startswith(area) and len(path) > len(area):
                return authorize(account, roles)
        elif path == area:
            return authorize(account, roles)
    return AccessDecision(False, default_route(account))


@dataclass(frozen=True)
class Session:
    """The authenticated actor for one client, passed explicitly into every guarded operation."""

    account: Account
    identity: Identity

    @property
    def role(self) -> Role:
        return self.account.role

    def to_record(self) -> dict[str, Any]:
        return {
            "uid": self.identity.uid,
            "email": self.identity.email,
            "tokenId": self.identity.token_id,
            "expiresAt": self.identity.expires_at.isoformat(),
            "account": self.account.to_public(),
        }


def require(session: Session | None, *roles: Role) -> Account:
    account = session.account if session is not None else None
    decision = authorize(account, roles)
    if not decision.allowed:
        allowed = ", ".join(r.value for r in roles)
        raise AuthorizationError(
            f"This action is limited to: {allowed}.",
            redirect_to=decision.redirect_to or PUBLIC_ROUTE,
            authenticated=account is not None,
        )
    return account


# ---------- Session stores ----------


class SessionStore(Protocol):
    def save(self, key: str, record: dict[str, Any]) -> None: ...

    def load(self, key: str) -> dict[str, Any] | None: ...

    def clear(self, key: str) -> None: ...


def _expired(record: dict[str, Any], now: dt.datetime) -> bool:
    expires_at = parse_timestamp(record.get("expiresAt"))
    return expires_at is not None and expires_at <= now


class MemorySessionStore:
    """Process-local sessions. Records past their expiresAt are dropped on every save and load."""

    def __init__(self, now: Callable[[], dt.datetime] = utcnow) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, dict[str, Any]] = {}
        self._now = now

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _prune(self) -> None:
        now = self._now()
        for key in [k for k, rec in self._records.items() if _expired(rec, now)]:
            del self._records[key]

    def save(self, key: str, record: dict[str, Any]) -> None:
        with self._lock:
            self._prune()
            self._records[key] = dict(record)

    def load(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            self._prune()
            rec = self._records.get(key)
            return dict(rec) if rec is not None else None

    def clear(self, key: str) -> None:
        with self._lock:
            self._records.pop(key, None)


class DocumentSessionStore:
    collection = "sessions"

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def save(self, key: str, record: dict[str, Any]) -> None:
        if self.store.get(self.collection, key) is None:
            self.store.create(self.collection, record, doc_id=key)
        else:
            self.store.update(self.collection, key, record)

    def load(self, key: str) -> dict[str, Any] | None:
        return self.store.get(self.collection, key)

    def clear(self, key: str) -> None:
        self.store.delete(self.collection, key)


class TieredSessionStore:
    """
    Durable primary store backed by a process-local fallback.
    Writes go to both; reads prefer the primary and promote fallback-only sessions into it.
    Primary failures are logged and tolerated so a flaky store never logs anyone out.
    """

    def __init__(self, primary: SessionStore, fallback: SessionStore) -> None:
        self.primary = primary
        self.fallback = fallback

    def save(self, key: str, record: dict[str, Any]) -> None:
        try:
            self.primary.save(key, record)
        except CollaboratorError as ex:
            logger.warning("Primary session store unavailable, keeping session in memory only: %s", ex.code)
        self.fallback.save(key, record)

    def load(self, key: str) -> dict[str, Any] | None:
        primary_ok = True
        try:
            rec = self.primary.load(key)
            if rec is not None:
                return rec
        except CollaboratorError as ex:
            primary_ok = False
            logger.warning("Primary session store unavailable on load: %s", ex.code)
        rec = self.fallback.load(key)
        if rec is not None and primary_ok:
            try:
                self.primary.save(key, rec)
            except CollaboratorError as ex:
                logger.warning("Failed to migrate session into primary store: %s", ex.code)
        return rec

    def clear(self, key: str) -> None:
        try:
            self.primary.clear(key)
        except CollaboratorError as ex:
            logger.warning("Failed to clear session from primary store: %s", ex.code)
        self.fallback.clear(key)


# ---------- Guard ----------


class AuthProvider(Protocol):
    def sign_in(self, email: str, password: str) -> Identity: ...

    def sign_up(self, email: str, password: str) -> Identity: ...

    def sign_out(self, identity: Identity) -> None: ...

    def verify(self, token: str) -> Identity: ...


@dataclass(frozen=True)
class Credential:
    email: str
    password: str
    access_type: AccessType = AccessType.CITIZEN
    zone_id: str | None = None
    ward: str | None = None


class SessionGuard:
    users_collection = "users"

    def __init__(self, auth: AuthProvider, store: DocumentStore, sessions: SessionStore) -> None:
        self.auth = auth
        self.store = store
        self.sessions = sessions

    def login(self, credential: Credential) -> Session:
        email = (credential.email or "").strip().lower()
        is_citizen = credential.access_type is AccessType.CITIZEN
        missing = [name for name, value in (("email", email), ("password", credential.password)) if not value]
        if is_citizen:
            missing += [name for name, value in (("zoneId", credential.zone_id), ("ward", credential.ward)) if not value]
        if missing:
            raise ValidationError(missing)

        identity = self.auth.sign_in(email, credential.password)
        try:
            account = self._check_profile(identity, credential)
        except Exception:
            self._revoke_quietly(identity)
            raise

        session = Session(account=account, identity=identity)
        self.sessions.save(identity.token_id, session.to_record())
        logger.info("Signed in %s as %s", account.id, account.role.value)
        return session

    def _check_profile(self, identity: Identity, credential: Credential) -> Account:
        data = self.store.get(self.users_collection, identity.uid)
        if data is None:
            raise ProfileMissing()
        account = Account.from_record(identity.uid, {"email": identity.email, **data})

        is_citizen = credential.access_type is AccessType.CITIZEN
        if is_citizen and account.role is not Role.CITIZEN:
            raise RoleMismatch("This account is registered as an officer/admin. Choose Officer access type.")
        if not is_citizen and account.role is Role.CITIZEN:
            raise RoleMismatch("This account belongs to a citizen. Choose Public access type.")

        if account.role is Role.OFFICER:
            if account.admission is AdmissionStatus.PENDING:
                raise AccountPending()
            if account.admission is AdmissionStatus.REJECTED:
                raise AccountRejected()

        if is_citizen:
            stored_zone = account.zone_id or (zone_by_ward(account.ward).id if zone_by_ward(account.ward) else "")
            if stored_zone and stored_zone != credential.zone_id:
                raise ZoneWardMismatch("Selected zone does not match your registered profile.")
            if account.ward and account.ward != credential.ward:
                raise ZoneWardMismatch("Selected ward does not match your registered profile.")
        return account

    def restore(self, token: str | None) -> Session:
        if not token:
            raise AuthorizationError("Not authenticated", redirect_to=PUBLIC_ROUTE, authenticated=False)
        identity = self.auth.verify(token)
        record = self.sessions.load(identity.token_id)
        if record is None:
            raise AuthorizationError("Session expired. Please sign in again.", redirect_to=PUBLIC_ROUTE, authenticated=False)
        account = Account.from_record(identity.uid, record.get("account") or {})
        return Session(account=account, identity=identity)

    def refresh(self, session: Session, account: Account) -> Session:
        updated = Session(account=account, identity=session.identity)
        self.sessions.save(session.identity.token_id, updated.to_record())
        return updated

    def logout(self, session: Session) -> None:
        self.sessions.clear(session.identity.token_id)
        self._revoke_quietly(session.identity)
        logger.info("Signed out %s", session.account.id)

    def _revoke_quietly(self, identity: Identity) -> None:
        try:
            self.auth.sign_out(identity)
        except Exception as ex:
            logger.warning("Failed to revoke identity token for %s: %s", identity.uid, ex)
