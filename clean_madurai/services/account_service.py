from __future__ import annotations

import logging

from clean_madurai.domain import Account, AdmissionStatus, Role, Upload, utcnow
from clean_madurai.errors import CollaboratorError, RecordNotFound, ValidationError
from clean_madurai.services.blob_store import BlobStore, safe_filename
from clean_madurai.services.document_store import DocumentStore
from clean_madurai.services.session_service import AuthProvider, Session, SessionGuard, require
from clean_madurai.zones import zone_by_id

logger = logging.getLogger(__name__)

USERS = "users"
SELF_REGISTRATION_ROLES = (Role.CITIZEN, Role.OFFICER)


class AccountService:
    """Registration, profile maintenance and admin seeding."""

    def __init__(self, store: DocumentStore, auth: AuthProvider, blobs: BlobStore) -> None:
        self.store = store
        self.auth = auth
        self.blobs = blobs

    def get(self, account_id: str) -> Account | None:
        data = self.store.get(USERS, account_id)
        return Account.from_record(account_id, data) if data is not None else None

    def register(
        self,
        *,
        email: str,
        password: str,
        role: Role | str,
        name: str = "",
        phone: str = "",
        zone_id: str = "",
        ward: str = "",
        address: str = "",
        badge: Upload | None = None,
    ) -> Account:
        try:
            role = Role.parse(role)
        except ValueError:
            raise ValidationError(["role"]) from None
        if role not in SELF_REGISTRATION_ROLES:
            raise ValidationError(["role"], "Only citizens and ward officers can register.")

        missing = [f for f, v in (("email", (email or "").strip()), ("password", password)) if not v]
        if role is Role.CITIZEN and not (name or "").strip():
            missing.append("name")
        zone = zone_by_id(zone_id)
        if zone is None:
            missing.append("zoneId")
        if not ward or (zone is not None and ward not in zone.wards):
            missing.append("ward")
        if missing:
            raise ValidationError(missing)

        identity = self.auth.sign_up(email, password)

        record = {
            "email": identity.email,
            "role": role.value,
            "name": (name or "").strip(),
            "phone": (phone or "").strip(),
            "address": (address or "").strip(),
            "zoneId": zone.id,
            "zoneName": zone.name,
            "ward": ward,
            "photoURL": "",
            "createdAt": utcnow(),
        }
        if role is Role.OFFICER:
            record["status"] = AdmissionStatus.PENDING.value
            record["badgeUrl"] = ""
            if badge is not None and badge.content:
                path = f"badges/{identity.uid}/{safe_filename(badge.filename, 'badge')}"
                record["badgeUrl"] = self.blobs.url_of(self.blobs.upload(path, badge.content))

        self.store.create(USERS, record, doc_id=identity.uid)
        logger.info("Registered %s account %s in %s", role.value, identity.uid, ward)
        return Account.from_record(identity.uid, record)

    def get_profile(self, session: Session) -> Account:
        require(session, *Role)
        account = self.get(session.account.id)
        if account is None:
            raise RecordNotFound("Profile record missing. Please contact the civic helpdesk.")
        return account

    def update_profile(
        self,
        session: Session,
        guard: SessionGuard,
        *,
        name: str | None = None,
        phone: str | None = None,
        address: str | None = None,
        photo: Upload | None = None,
    ) -> tuple[Account, Session]:
        current = self.get_profile(session)
        patch: dict = {}
        for key, value in (("name", name), ("phone", phone), ("address", address)):
            if value is not None:
                patch[key] = value.strip()
        if current.role is Role.CITIZEN and "name" in patch and not patch["name"]:
            raise ValidationError(["name"])
        if photo is not None and photo.content:
            ref = self.blobs.upload(f"profiles/{current.id}", photo.content)
            patch["photoURL"] = self.blobs.url_of(ref)
        if patch:
            self.store.update(USERS, current.id, patch)
        updated = self.get(current.id) or current
        return updated, guard.refresh(session, updated)

    def ensure_admin(self, email: str, password: str, name: str = "") -> Account:
        """Create the configured admin on first start; later starts leave it untouched."""
        email = (email or "").strip().lower()
        for uid, data in self.store.query(USERS, "email", "==", email):
            account = Account.from_record(uid, data)
            if account.role is not Role.ADMIN:
                logger.warning("Configured admin email %s belongs to a %s account", email, account.role.value)
            return account
        try:
            identity = self.auth.sign_up(email, password)
        except CollaboratorError as ex:
            if ex.code != "auth/email-already-in-use":
                raise
            identity = self.auth.sign_in(email, password)
        record = {
            "email": identity.email,
            "role": Role.ADMIN.value,
            "name": name,
            "phone": "",
            "address": "",
            "zoneId": "",
            "zoneName": "",
            "ward": "",
            "photoURL": "",
            "createdAt": utcnow(),
        }
        self.store.create(USERS, record, doc_id=identity.uid)
        logger.info("Seeded admin account %s", identity.uid)
        return Account.from_record(identity.uid, record)
