from __future__ import annotations

import logging
import math

from clean_madurai.domain import (
    Account,
    Category,
    Complaint,
    ComplaintStatus,
    GeoPoint,
    Role,
    Upload,
    newest_first,
    utcnow,
)
from clean_madurai.errors import AuthorizationError, InvalidTransition, OfficerNotEligible, RecordNotFound, ValidationError
from clean_madurai.services.blob_store import BlobStore, safe_filename
from clean_madurai.services.classifier import ComplaintClassifier, KeywordClassifier
from clean_madurai.services.document_store import DocumentStore
from clean_madurai.services.session_service import Session, default_route, require
from clean_madurai.zones import zone_by_id, zone_by_ward

logger = logging.getLogger(__name__)

COMPLAINTS = "complaints"
USERS = "users"


def _valid_coordinates(location: GeoPoint | None) -> bool:
    if location is None:
        return False
    lat, lng = location.latitude, location.longitude
    if lat is None or lng is None or not all(math.isfinite(v) for v in (lat, lng)):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0


class ComplaintService:
    """Complaint lifecycle: submission, assignment, forward-only status changes and queries."""

    def __init__(
        self,
        store: DocumentStore,
        blobs: BlobStore,
        classifier: ComplaintClassifier | None = None,
    ) -> None:
        self.store = store
        self.blobs = blobs
        self.classifier = classifier or KeywordClassifier()

    # ---------- helpers ----------

    def _load(self, complaint_id: str) -> Complaint:
        data = self.store.get(COMPLAINTS, complaint_id)
        if data is None:
            raise RecordNotFound("Complaint not found.")
        return Complaint.from_record(complaint_id, data)

    def _complaints(self, field: str | None = None, value: str | None = None) -> list[Complaint]:
        rows = self.store.all(COMPLAINTS) if field is None else self.store.query(COMPLAINTS, field, "==", value)
        return newest_first([Complaint.from_record(k, v) for k, v in rows])

    def _can_triage(self, account: Account, complaint: Complaint) -> bool:
        if account.role is Role.ADMIN:
            return True
        return account.role is Role.OFFICER and (
            complaint.ward == account.ward or complaint.assigned_officer_id == account.id
        )

    # ---------- operations ----------

    def submit(
        self,
        session: Session,
        *,
        category: str,
        description: str,
        ward: str,
        location: GeoPoint | None,
        evidence: Upload | None = None,
        zone_id: str | None = None,
    ) -> Complaint:
        reporter = require(session, Role.CITIZEN)

        bad: list[str] = []
        if category not in {c.value for c in Category}:
            bad.append("category")
        if not (description or "").strip():
            bad.append("description")
        zone = zone_by_ward(ward)
        if zone is None:
            bad.append("ward")
        elif zone_id and zone_by_id(zone_id) is not zone:
            bad.append("zoneId")
        if not _valid_coordinates(location):
            bad.append("coordinates")
        if bad:
            raise ValidationError(bad)

        image_url = ""
        if evidence is not None and evidence.content:
            stamp = int(utcnow().timestamp() * 1000)
            path = f"complaints/{reporter.id}/{stamp}-{safe_filename(evidence.filename, 'evidence')}"
            image_url = self.blobs.url_of(self.blobs.upload(path, evidence.content))

        record = {
            "userId": reporter.id,
            "zoneId": zone.id,
            "zoneName": zone.name,
            "category": category,
            "description": description.strip(),
            "imageUrl": image_url,
            "latitude": location.latitude,
            "longitude": location.longitude,
            "ward": ward,
            "status": ComplaintStatus.PENDING.value,
            "aiVerified": bool(self.classifier.classify(description)),
            "createdAt": utcnow(),
        }
        complaint_id = self.store.create(COMPLAINTS, record)
        logger.info("Complaint %s filed in %s by %s (aiVerified=%s)", complaint_id, ward, reporter.id, record["aiVerified"])
        return Complaint.from_record(complaint_id, record)

    def assign(self, session: Session, complaint_id: str, officer_id: str) -> Complaint:
        require(session, Role.ADMIN)
        complaint = self._load(complaint_id)

        data = self.store.get(USERS, officer_id) if officer_id else None
        officer = Account.from_record(officer_id, data) if data is not None else None
        if officer is None or not officer.is_eligible_officer:
            raise OfficerNotEligible("Officer record not found or not approved for assignment.")

        # Last assignment wins; there is no version check against concurrent writers.
        patch = {
            "assignedOfficerId": officer.id,
            "assignedOfficerName": officer.name or "",
            "assignedAt": utcnow(),
        }
        self.store.update(COMPLAINTS, complaint.id, patch)
        if complaint.is_assigned and complaint.assigned_officer_id != officer.id:
            logger.info("Complaint %s reassigned from %s to %s", complaint.id, complaint.assigned_officer_id, officer.id)
        return self._load(complaint.id)

    def advance_status(self, session: Session, complaint_id: str, target: ComplaintStatus | str) -> Complaint:
        actor = require(session, Role.OFFICER, Role.ADMIN)
        try:
            target = ComplaintStatus.parse(target)
        except ValueError:
            raise ValidationError(["status"]) from None

        complaint = self._load(complaint_id)
        if not self._can_triage(actor, complaint):
            raise AuthorizationError("This complaint belongs to another ward.", redirect_to=default_route(actor))

        if target is complaint.status:
            return complaint
        if target.rank < complaint.status.rank:
            raise InvalidTransition(f"Cannot move a complaint from {complaint.status.value} back to {target.value}.")

        self.store.update(COMPLAINTS, complaint.id, {"status": target.value})
        logger.info("Complaint %s %s -> %s by %s", complaint.id, complaint.status.value, target.value, actor.id)
        return self._load(complaint.id)

    # ---------- queries ----------

    def get(self, session: Session, complaint_id: str) -> Complaint:
        actor = require(session, *Role)
        complaint = self._load(complaint_id)
        if actor.role is Role.CITIZEN and complaint.user_id != actor.id:
            raise AuthorizationError("You can only view complaints you filed.", redirect_to=default_route(actor))
        if actor.role is Role.OFFICER and not self._can_triage(actor, complaint):
            raise AuthorizationError("This complaint belongs to another ward.", redirect_to=default_route(actor))
        return complaint

    def by_reporter(self, session: Session, reporter_id: str) -> list[Complaint]:
        actor = require(session, Role.CITIZEN, Role.ADMIN)
        if actor.role is Role.CITIZEN and reporter_id != actor.id:
            raise AuthorizationError("You can only list your own complaints.", redirect_to=default_route(actor))
        return self._complaints("userId", reporter_id)

    def by_ward(self, session: Session, ward: str) -> list[Complaint]:
        actor = require(session, Role.OFFICER, Role.ADMIN)
        if actor.role is Role.OFFICER and ward != actor.ward:
            raise AuthorizationError("Officers can only list their own ward.", redirect_to=default_route(actor))
        return self._complaints("ward", ward)

    def all(self, session: Session) -> list[Complaint]:
        require(session, Role.ADMIN)
        return self._complaints()
