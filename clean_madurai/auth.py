"""Authentication for the Clean Madurai backend: local credential provider plus FastAPI guards."""
from __future__ import annotations

import datetime as dt
import logging
import re
import uuid
from typing import Annotated

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from clean_madurai.config import settings
from clean_madurai.database import get_store
from clean_madurai.domain import Identity, Role, parse_timestamp, utcnow
from clean_madurai.errors import CollaboratorError, EngineError
from clean_madurai.http_errors import to_http_exception
from clean_madurai.services.document_store import DocumentStore
from clean_madurai.services.session_service import (
    DocumentSessionStore,
    MemorySessionStore,
    Session,
    SessionGuard,
    TieredSessionStore,
    require,
)

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def hash_password(plain_password: str) -> str:
    return pwd_context.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    return pwd_context.verify(plain_password, password_hash)


class LocalAuthProvider:
    """
    Email/password identities kept in the document store.
    credentials/<uid>: {email, passwordHash, failedAttempts, lockedUntil, createdAt}
    credential_emails/<email>: {uid}  (claimed with create, so one email maps to one uid)
    revoked_tokens/<jti>: {uid, revokedAt, expiresAt}  (dropped once the token has expired)
    """

    credentials_collection = "credentials"
    emails_collection = "credential_emails"
    revoked_collection = "revoked_tokens"

    def __init__(
        self,
        store: DocumentStore,
        *,
        secret: str = settings.jwt_secret,
        algorithm: str = settings.jwt_algorithm,
        exp_minutes: int = settings.jwt_exp_minutes,
        max_failed_attempts: int = settings.auth_max_failed_attempts,
        lockout_minutes: int = settings.auth_lockout_minutes,
        min_password_length: int = settings.auth_min_password_length,
    ) -> None:
        self.store = store
        self.secret = secret
        self.algorithm = algorithm
        self.exp_minutes = exp_minutes
        self.max_failed_attempts = max_failed_attempts
        self.lockout_minutes = lockout_minutes
        self.min_password_length = min_password_length

    def _check_input(self, email: str, password: str) -> str:
        email = (email or "").strip().lower()
        if not email:
            raise CollaboratorError("auth/missing-email")
        if not password:
            raise CollaboratorError("auth/missing-password")
        if not _EMAIL_RE.match(email):
            raise CollaboratorError("auth/invalid-email")
        return email

    def _find(self, email: str) -> tuple[str, dict] | None:
        rows = self.store.query(self.credentials_collection, "email", "==", email)
        return rows[0] if rows else None

    def sign_up(self, email: str, password: str) -> Identity:
        email = self._check_input(email, password)
        if len(password) < self.min_password_length:
            raise CollaboratorError("auth/weak-password")
        if self._find(email) is not None:
            raise CollaboratorError("auth/email-already-in-use")
        uid = uuid.uuid4().hex
        self._claim_email(email, uid)
        try:
            self.store.create(
                self.credentials_collection,
                {
                    "email": email,
                    "passwordHash": hash_password(password),
                    "failedAttempts": 0,
                    "lockedUntil": None,
                    "createdAt": utcnow().isoformat(),
                },
                doc_id=uid,
            )
        except CollaboratorError:
            self.store.delete(self.emails_collection, email)
            raise
        return self._issue(uid, email)

    def _claim_email(self, email: str, uid: str) -> None:
        # create() fails on an existing id, so concurrent sign-ups cannot both claim the email.
        try:
            self.store.create(self.emails_collection, {"uid": uid}, doc_id=email)
        except CollaboratorError as ex:
            if ex.code == "already-exists":
                raise CollaboratorError("auth/email-already-in-use") from ex
            raise

    def sign_in(self, email: str, password: str) -> Identity:
        email = self._check_input(email, password)
        found = self._find(email)
        if found is None:
            raise CollaboratorError("auth/invalid-credential")
        uid, cred = found

        locked_until = parse_timestamp(cred.get("lockedUntil"))
        now = utcnow()
        if locked_until and locked_until > now:
            raise CollaboratorError("auth/too-many-requests")

        if not verify_password(password, cred.get("passwordHash", "")):
            failed = int(cred.get("failedAttempts") or 0) + 1
            patch: dict = {"failedAttempts": failed}
            if failed >= self.max_failed_attempts:
                patch = {
                    "failedAttempts": 0,
                    "lockedUntil": (now + dt.timedelta(minutes=self.lockout_minutes)).isoformat(),
                }
                logger.warning("Locking credentials for %s after %d failed sign-ins", uid, failed)
            self.store.update(self.credentials_collection, uid, patch)
            raise CollaboratorError("auth/invalid-credential")

        if cred.get("failedAttempts") or cred.get("lockedUntil"):
            self.store.update(self.credentials_collection, uid, {"failedAttempts": 0, "lockedUntil": None})
        return self._issue(uid, email)

    def _issue(self, uid: str, email: str) -> Identity:
        jti = uuid.uuid4().hex
        now = utcnow()
        exp = now + dt.timedelta(minutes=self.exp_minutes)
        payload = {"sub": uid, "email": email, "jti": jti, "iat": now, "exp": exp}
        token = jwt.encode(payload, self.secret, algorithm=self.algorithm)
        return Identity(uid=uid, email=email, token=token, token_id=jti, expires_at=exp)

    def verify(self, token: str) -> Identity:
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except ExpiredSignatureError as e:
            raise CollaboratorError("auth/id-token-expired", "Identity token expired") from e
        except JWTError as e:
            raise CollaboratorError("auth/invalid-credential", "Invalid identity token") from e
        uid, jti = payload.get("sub"), payload.get("jti")
        if not uid or not jti:
            raise CollaboratorError("auth/invalid-credential", "Invalid identity token")
        if self.store.get(self.revoked_collection, jti) is not None:
            raise CollaboratorError("auth/id-token-revoked", "Identity token revoked")
        exp = dt.datetime.fromtimestamp(int(payload.get("exp", 0)), tz=dt.timezone.utc)
        return Identity(uid=uid, email=payload.get("email") or "", token=token, token_id=jti, expires_at=exp)

    def sign_out(self, identity: Identity) -> None:
        if self.store.get(self.revoked_collection, identity.token_id) is not None:
            return
        self.store.create(
            self.revoked_collection,
            {"uid": identity.uid, "revokedAt": utcnow().isoformat(), "expiresAt": identity.expires_at.isoformat()},
            doc_id=identity.token_id,
        )
        try:
            self.purge_revoked()
        except CollaboratorError as ex:
            logger.warning("Could not purge expired revocations: %s", ex.code)

    def purge_revoked(self) -> int:
        """Expired tokens fail verification on their own, so their revocation records can go."""
        now = utcnow()
        expired = []
        for jti, doc in self.store.all(self.revoked_collection):
            expires_at = parse_timestamp(doc.get("expiresAt"))
            if expires_at is not None and expires_at <= now:
                expired.append(jti)
        for jti in expired:
            self.store.delete(self.revoked_collection, jti)
        if expired:
            logger.info("Purged %d expired token revocations", len(expired))
        return len(expired)


# ---------- FastAPI dependencies ----------

# Process-local fallback shared by every request; the document store is the primary.
_memory_sessions = MemorySessionStore()


def get_auth_provider(store: Annotated[DocumentStore, Depends(get_store)]) -> LocalAuthProvider:
    return LocalAuthProvider(store)


def get_session_guard(
    store: Annotated[DocumentStore, Depends(get_store)],
    auth: Annotated[LocalAuthProvider, Depends(get_auth_provider)],
) -> SessionGuard:
    sessions = TieredSessionStore(DocumentSessionStore(store), _memory_sessions)
    return SessionGuard(auth, store, sessions)


def get_current_session(
    token: Annotated[str | None, Depends(oauth2_scheme)],
    guard: Annotated[SessionGuard, Depends(get_session_guard)],
) -> Session:
    try:
        return guard.restore(token)
    except EngineError as ex:
        raise to_http_exception(ex, fallback="Please sign in again.") from ex


def get_optional_session(
    token: Annotated[str | None, Depends(oauth2_scheme)],
    guard: Annotated[SessionGuard, Depends(get_session_guard)],
) -> Session | None:
    if not token:
        return None
    try:
        return guard.restore(token)
    except EngineError:
        return None


def require_role(*allowed: Role):
    def _dep(session: Annotated[Session, Depends(get_current_session)]) -> Session:
        try:
            require(session, *allowed)
        except EngineError as ex:
            raise to_http_exception(ex) from ex
        return session

    return _dep
