from __future__ import annotations

import logging

from clean_madurai.domain import Account, AdmissionStatus, Role, utcnow
from clean_madurai.errors import InvalidTransition, RecordNotFound
from clean_madurai.services.document_store import DocumentStore
from clean_madurai.services.session_service import Session, require
from clean_madurai.zones import ward_sort_key

logger = logging.getLogger(__name__)

USERS = "users"


class AdmissionService:
    """Officer admission: pending -> approved | rejected, decided by an admin."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def _officers(self) -> list[Account]:
        return [Account.from_record(uid, data) for uid, data in self.store.query(USERS, "role", "==", Role.OFFICER.value)]

    def approve(self, session: Session, officer_id: str) -> Account:
        return self._decide(session, officer_id, AdmissionStatus.APPROVED)

    def reject(self, session: Session, officer_id: str) -> Account:
        return self._decide(session, officer_id, AdmissionStatus.REJECTED)

    def _decide(self, session: Session, officer_id: str, target: AdmissionStatus) -> Account:
        admin = require(session, Role.ADMIN)
        data = self.store.get(USERS, officer_id)
        if data is None:
            raise RecordNotFound(f"No account with id {officer_id}.")
        account = Account.from_record(officer_id, data)
        if account.role is not Role.OFFICER:
            raise InvalidTransition(f"Account {officer_id} is a {account.role.value}; only officers go through admission.")

        current = account.admission
        if current is target:
            return account
        if current is not AdmissionStatus.PENDING:
            raise InvalidTransition(f"Officer {officer_id} is already {current.value}; cannot mark {target.value}.")

        patch = {"status": target.value, "reviewedAt": utcnow(), "reviewedBy": admin.id}
        self.store.update(USERS, officer_id, patch)
        logger.info("Officer %s %s by %s", officer_id, target.value, admin.id)
        return Account.from_record(officer_id, {**data, **patch})

    def list_officers(self, session: Session, status: AdmissionStatus | None = None) -> list[Account]:
        require(session, Role.ADMIN)
        officers = [o for o in self._officers() if status is None or o.admission is status]
        return sorted(officers, key=lambda o: ward_sort_key(o.ward))

    def eligible_officers(self, ward: str | None = None) -> list[Account]:
        return [o for o in self._officers() if o.is_eligible_officer and (ward is None or o.ward == ward)]
