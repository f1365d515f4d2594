import datetime as dt

from clean_madurai.domain import Account, AdmissionStatus, Complaint, ComplaintStatus, GeoPoint, Role
from clean_madurai.services.analytics_service import (
    EXPORT_COLUMNS,
    build_dashboard,
    export_frame,
    export_rows,
    format_ist,
    officer_performance,
    status_counts,
    unassigned_queue,
    ward_breakdown,
)

T0 = dt.datetime(2026, 10, 19, 9, 35, tzinfo=dt.timezone.utc)


def _complaint(cid, ward="Ward 5", status=ComplaintStatus.PENDING, officer=None, minutes=0, **extra):
    return Complaint(
        id=cid,
        user_id="u1",
        zone_id="zone-1",
        zone_name="Zone 1 — Arasaradi Zone",
        ward=ward,
        category="Garbage Accumulation",
        description="garbage",
        status=status,
        ai_verified=True,
        created_at=T0 + dt.timedelta(minutes=minutes),
        assigned_officer_id=officer,
        **extra,
    )


def _officer(oid, ward="Ward 5", status=AdmissionStatus.APPROVED, name="", phone=""):
    return Account(id=oid, email=f"{oid}@example.com", role=Role.OFFICER, ward=ward, name=name, phone=phone, status=status)


COMPLAINTS = [
    _complaint("c1", status=ComplaintStatus.PENDING, minutes=1),
    _complaint("c2", status=ComplaintStatus.IN_PROGRESS, officer="o2", minutes=2),
    _complaint("c3", ward="Ward 80", status=ComplaintStatus.RESOLVED, officer="o2", minutes=3),
    _complaint("c4", ward="Ward 2", status=ComplaintStatus.PENDING, officer="o1", minutes=4),
]


def test_status_counts():
    assert status_counts(COMPLAINTS) == {"total": 4, "pending": 2, "in_progress": 1, "resolved": 1, "assigned": 3}
    assert status_counts([]) == {"total": 0, "pending": 0, "in_progress": 0, "resolved": 0, "assigned": 0}


def test_officer_performance_rows():
    officers = [
        _officer("o1", name="Anand", phone="98400"),
        _officer("o2", ward="", name="Bala"),
        _officer("o3", status=AdmissionStatus.PENDING),
        _officer("o4"),
    ]
    rows = officer_performance(COMPLAINTS, officers)
    assert [r["officer_id"] for r in rows] == ["o2", "o1", "o4"]

    bala, anand, unnamed = rows
    assert bala["actively_handled"] == 2
    assert bala["ward"] == "—"
    assert bala["total"] == 0
    assert anand["actively_handled"] == 1
    assert (anand["pending"], anand["in_progress"], anand["resolved"], anand["total"]) == (1, 1, 0, 2)
    assert unnamed["name"] == "Unnamed Officer"
    assert unnamed["phone"] == "—"


def test_officer_performance_ties_keep_input_order():
    officers = [_officer("z"), _officer("a"), _officer("m")]
    rows = officer_performance([], officers)
    assert [r["officer_id"] for r in rows] == ["z", "a", "m"]


def test_unassigned_queue_and_ward_breakdown():
    assert [c.id for c in unassigned_queue(COMPLAINTS)] == ["c1"]
    wards = ward_breakdown(COMPLAINTS)
    assert [w["ward"] for w in wards] == ["Ward 2", "Ward 5", "Ward 80"]
    assert wards[1] == {"ward": "Ward 5", "total": 2, "pending": 1, "in_progress": 1, "resolved": 0}


def test_build_dashboard_latest_slice():
    dashboard = build_dashboard(COMPLAINTS, [_officer("o1")], latest=2)
    assert [c["id"] for c in dashboard["latest"]] == ["c4", "c3"]
    assert dashboard["stats"]["total"] == 4
    assert [c["id"] for c in dashboard["unassigned"]] == ["c1"]


def test_format_ist():
    assert format_ist(T0) == "19 Oct 2026, 3:05 PM"
    assert format_ist(None) == "—"


def test_export_rows_and_frame():
    complaint = _complaint(
        "c9",
        officer="o1",
        location=GeoPoint(9.92, 78.12),
        image_url="/api/blobs/x.jpg",
        assigned_officer_name="Anand",
        assigned_at=T0,
    )
    row = export_rows([complaint, _complaint("c0", minutes=-5)])[0]
    assert list(row) == list(EXPORT_COLUMNS)
    assert row["AI_Verified"] == "Yes"
    assert row["Assigned_Officer"] == "Anand"
    assert row["Latitude"] == 9.92
    assert row["Assigned_At"] == "19 Oct 2026, 3:05 PM"

    frame = export_frame([complaint])
    assert list(frame.columns) == list(EXPORT_COLUMNS)
    assert frame.iloc[0]["ID"] == "c9"
    assert export_frame([]).empty
