import datetime as dt

import pytest

from clean_madurai.domain import AccessType, ComplaintStatus, GeoPoint, Upload
from clean_madurai.errors import (
    AccountPending,
    AuthorizationError,
    InvalidTransition,
    OfficerNotEligible,
    RecordNotFound,
    ValidationError,
)
from clean_madurai.services.session_service import Credential

from conftest import PASSWORD

MADURAI = GeoPoint(9.92, 78.12)


def _submit(complaints, session, **overrides):
    fields = dict(
        category="Garbage Accumulation",
        description="overflowing garbage bin",
        ward=session.account.ward,
        location=MADURAI,
    )
    fields.update(overrides)
    return complaints.submit(session, **fields)


def test_garbage_complaint_end_to_end(make_citizen, make_officer, admin_session, complaints, guard):
    citizen = make_citizen("meena@example.com", ward="Ward 12", zone_id="zone-1")
    complaint = _submit(complaints, citizen)
    assert complaint.status is ComplaintStatus.PENDING
    assert complaint.ai_verified is True
    assert complaint.zone_id == "zone-1"
    assert complaint.is_assigned is False

    officer = make_officer("raj@example.com", ward="Ward 12", zone_id="zone-1")
    assigned = complaints.assign(admin_session, complaint.id, officer.account.id)
    assert assigned.assigned_officer_id == officer.account.id
    assert assigned.assigned_officer_name == "Officer Raj"
    assert assigned.assigned_at is not None

    assert complaints.advance_status(officer, complaint.id, ComplaintStatus.IN_PROGRESS).status is ComplaintStatus.IN_PROGRESS
    assert complaints.advance_status(officer, complaint.id, "Resolved").status is ComplaintStatus.RESOLVED
    with pytest.raises(InvalidTransition):
        complaints.advance_status(officer, complaint.id, ComplaintStatus.PENDING)
    assert complaints.get(citizen, complaint.id).status is ComplaintStatus.RESOLVED


def test_officer_admission_scenario(accounts, admissions, admin_session, guard):
    officer = accounts.register(email="new@example.com", password=PASSWORD, role="officer", zone_id="zone-1", ward="Ward 12")
    with pytest.raises(AccountPending):
        guard.login(Credential("new@example.com", PASSWORD, AccessType.STAFF))

    admissions.approve(admin_session, officer.id)
    session = guard.login(Credential("new@example.com", PASSWORD, AccessType.STAFF))
    assert session.account.id == officer.id
    assert officer.id in {o.id for o in admissions.eligible_officers()}


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"description": "   "}, "description"),
        ({"ward": "Ward 999"}, "ward"),
        ({"location": None}, "coordinates"),
        ({"location": GeoPoint(float("nan"), 78.1)}, "coordinates"),
        ({"location": GeoPoint(95.0, 78.1)}, "coordinates"),
        ({"category": "Potholes"}, "category"),
        ({"zone_id": "zone-3"}, "zoneId"),
    ],
)
def test_submit_validation_names_the_field(make_citizen, complaints, store, overrides, field):
    citizen = make_citizen("meena@example.com")
    with pytest.raises(ValidationError) as ex:
        _submit(complaints, citizen, **overrides)
    assert field in ex.value.fields
    assert store.all("complaints") == []


def test_submit_collects_every_bad_field(make_citizen, complaints):
    citizen = make_citizen("meena@example.com")
    with pytest.raises(ValidationError) as ex:
        _submit(complaints, citizen, description="", ward="", location=None)
    assert ex.value.fields == ("description", "ward", "coordinates")


def test_only_citizens_submit(make_officer, complaints):
    officer = make_officer("raj@example.com")
    with pytest.raises(AuthorizationError) as ex:
        _submit(complaints, officer)
    assert ex.value.redirect_to == "/officer"


def test_evidence_is_uploaded_under_reporter(make_citizen, complaints, blobs):
    citizen = make_citizen("meena@example.com")
    complaint = _submit(complaints, citizen, evidence=Upload("bin photo.jpg", b"jpeg-bytes"))
    prefix = f"/api/blobs/complaints/{citizen.account.id}/"
    assert complaint.image_url.startswith(prefix)
    assert complaint.image_url.endswith("-bin_photo.jpg")
    ref = complaint.image_url[len("/api/blobs/"):]
    assert blobs.open(ref).read_bytes() == b"jpeg-bytes"


def test_non_sanitation_text_is_not_verified(make_citizen, complaints):
    citizen = make_citizen("meena@example.com")
    complaint = _submit(complaints, citizen, category="Stray Animal Issue", description="Stray dogs chasing kids")
    assert complaint.ai_verified is False


def test_assign_requires_approved_officer(make_citizen, make_officer, admin_session, complaints):
    citizen = make_citizen("meena@example.com")
    complaint = _submit(complaints, citizen)
    pending = make_officer("pending@example.com", approve=False)

    for candidate in (pending.id, citizen.account.id, admin_session.account.id, "missing"):
        with pytest.raises(OfficerNotEligible):
            complaints.assign(admin_session, complaint.id, candidate)
    assert complaints.get(admin_session, complaint.id).is_assigned is False


def test_reassignment_last_write_wins(make_citizen, make_officer, admin_session, complaints):
    citizen = make_citizen("meena@example.com")
    complaint = _submit(complaints, citizen)
    first = make_officer("one@example.com")
    second = make_officer("two@example.com", name="Officer Two")
    complaints.assign(admin_session, complaint.id, first.account.id)
    again = complaints.assign(admin_session, complaint.id, second.account.id)
    assert again.assigned_officer_id == second.account.id
    assert again.assigned_officer_name == "Officer Two"


def test_assign_missing_complaint(admin_session, make_officer, complaints):
    officer = make_officer("raj@example.com")
    with pytest.raises(RecordNotFound):
        complaints.assign(admin_session, "nope", officer.account.id)


def test_same_status_is_idempotent(make_citizen, make_officer, complaints, store):
    citizen = make_citizen("meena@example.com")
    officer = make_officer("raj@example.com")
    complaint = _submit(complaints, citizen)
    complaints.advance_status(officer, complaint.id, "In Progress")
    before = store.get("complaints", complaint.id)
    assert complaints.advance_status(officer, complaint.id, "InProgress").status is ComplaintStatus.IN_PROGRESS
    assert store.get("complaints", complaint.id) == before


def test_pending_to_resolved_skips_ahead(make_citizen, admin_session, complaints):
    citizen = make_citizen("meena@example.com")
    complaint = _submit(complaints, citizen)
    assert complaints.advance_status(admin_session, complaint.id, "Resolved").status is ComplaintStatus.RESOLVED


def test_unknown_status_is_a_validation_error(make_citizen, admin_session, complaints):
    complaint = _submit(complaints, make_citizen("meena@example.com"))
    with pytest.raises(ValidationError) as ex:
        complaints.advance_status(admin_session, complaint.id, "Closed")
    assert ex.value.fields == ("status",)


def test_officer_cannot_triage_another_ward(make_citizen, make_officer, admin_session, complaints):
    complaint = _submit(complaints, make_citizen("meena@example.com", ward="Ward 5"))
    outsider = make_officer("far@example.com", ward="Ward 60", zone_id="zone-3")
    with pytest.raises(AuthorizationError):
        complaints.advance_status(outsider, complaint.id, "In Progress")

    complaints.assign(admin_session, complaint.id, outsider.account.id)
    assert complaints.advance_status(outsider, complaint.id, "In Progress").status is ComplaintStatus.IN_PROGRESS


def test_citizen_sees_only_own_complaints(make_citizen, complaints):
    mine = make_citizen("meena@example.com")
    other = make_citizen("kumar@example.com", ward="Ward 7")
    complaint = _submit(complaints, other)
    with pytest.raises(AuthorizationError):
        complaints.get(mine, complaint.id)
    with pytest.raises(AuthorizationError):
        complaints.by_reporter(mine, other.account.id)
    assert complaints.by_reporter(mine, mine.account.id) == []


def test_queries_are_newest_first_with_id_tiebreak(make_citizen, admin_session, complaints, store):
    citizen = make_citizen("meena@example.com")
    base = dt.datetime(2026, 10, 1, 9, 0, tzinfo=dt.timezone.utc)
    for doc_id, minutes in (("c", 0), ("b", 5), ("a", 5), ("d", 10)):
        store.create(
            "complaints",
            {
                "userId": citizen.account.id,
                "ward": "Ward 5",
                "zoneId": "zone-1",
                "category": "Drain Overflow",
                "description": "drain",
                "status": "Pending",
                "createdAt": base + dt.timedelta(minutes=minutes),
            },
            doc_id=doc_id,
        )
    assert [c.id for c in complaints.by_reporter(citizen, citizen.account.id)] == ["d", "a", "b", "c"]
    assert [c.id for c in complaints.all(admin_session)] == ["d", "a", "b", "c"]


def test_officer_ward_listing(make_citizen, make_officer, complaints):
    _submit(complaints, make_citizen("a@example.com", ward="Ward 5"))
    _submit(complaints, make_citizen("b@example.com", ward="Ward 6"))
    officer = make_officer("raj@example.com", ward="Ward 5")
    assert [c.ward for c in complaints.by_ward(officer, "Ward 5")] == ["Ward 5"]
    with pytest.raises(AuthorizationError):
        complaints.by_ward(officer, "Ward 6")
