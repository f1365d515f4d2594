from __future__ import annotations

import datetime as dt
from collections import Counter, defaultdict
from typing import Any, Iterable
from zoneinfo import ZoneInfo

import pandas as pd

from clean_madurai.domain import Account, Complaint, ComplaintStatus, newest_first
from clean_madurai.zones import ward_sort_key

IST = ZoneInfo("Asia/Kolkata")
MISSING = "—"

EXPORT_COLUMNS = (
    "ID",
    "Ward",
    "Category",
    "Description",
    "Status",
    "AI_Verified",
    "Assigned_Officer",
    "Latitude",
    "Longitude",
    "Image_URL",
    "Created_At",
    "Assigned_At",
)


def _by_status(complaints: Iterable[Complaint]) -> dict[str, int]:
    c = Counter(x.status for x in complaints)
    return {
        "pending": c[ComplaintStatus.PENDING],
        "in_progress": c[ComplaintStatus.IN_PROGRESS],
        "resolved": c[ComplaintStatus.RESOLVED],
    }


def status_counts(complaints: list[Complaint]) -> dict[str, int]:
    return {
        "total": len(complaints),
        **_by_status(complaints),
        "assigned": sum(1 for c in complaints if c.is_assigned),
    }


def officer_performance(complaints: list[Complaint], accounts: list[Account]) -> list[dict[str, Any]]:
    """
    One row per approved officer.
    Ward counts are the load of the officer's ward; actively_handled counts complaints
    assigned to the officer personally, wherever they are. Rows are ordered by
    actively_handled descending and keep the input order on ties.
    """
    by_ward: dict[str, list[Complaint]] = defaultdict(list)
    handled: Counter[str] = Counter()
    for c in complaints:
        by_ward[c.ward].append(c)
        if c.assigned_officer_id:
            handled[c.assigned_officer_id] += 1

    rows = []
    for officer in accounts:
        if not officer.is_eligible_officer:
            continue
        load = by_ward.get(officer.ward, []) if officer.ward else []
        rows.append(
            {
                "officer_id": officer.id,
                "name": officer.name or "Unnamed Officer",
                "ward": officer.ward or MISSING,
                "phone": officer.phone or MISSING,
                **_by_status(load),
                "total": len(load),
                "actively_handled": handled[officer.id],
            }
        )
    # sorted() is stable, which keeps ties in officer input order.
    return sorted(rows, key=lambda r: r["actively_handled"], reverse=True)


def unassigned_queue(complaints: list[Complaint]) -> list[Complaint]:
    return newest_first([c for c in complaints if not c.is_assigned])


def ward_breakdown(complaints: list[Complaint]) -> list[dict[str, Any]]:
    by_ward: dict[str, list[Complaint]] = defaultdict(list)
    for c in complaints:
        by_ward[c.ward].append(c)
    return [
        {"ward": ward, "total": len(items), **_by_status(items)}
        for ward, items in sorted(by_ward.items(), key=lambda kv: ward_sort_key(kv[0]))
    ]


def build_dashboard(complaints: list[Complaint], accounts: list[Account], *, latest: int = 8) -> dict[str, Any]:
    ordered = newest_first(complaints)
    return {
        "stats": status_counts(ordered),
        "officer_performance": officer_performance(ordered, accounts),
        "unassigned": [c.to_public() for c in unassigned_queue(ordered)],
        "wards": ward_breakdown(ordered),
        "latest": [c.to_public() for c in ordered[: max(0, latest)]],
    }


def format_ist(value: dt.datetime | None) -> str:
    """19 Oct 2026, 3:05 PM"""
    if value is None:
        return MISSING
    local = value.astimezone(IST)
    hour = local.hour % 12 or 12
    return f"{local.day} {local:%b %Y}, {hour}:{local:%M %p}"


def export_rows(complaints: list[Complaint]) -> list[dict[str, Any]]:
    rows = []
    for c in newest_first(complaints):
        rows.append(
            {
                "ID": c.id,
                "Ward": c.ward,
                "Category": c.category,
                "Description": c.description,
                "Status": c.status.value,
                "AI_Verified": "Yes" if c.ai_verified else "No",
                "Assigned_Officer": c.assigned_officer_name or "",
                "Latitude": c.location.latitude if c.location else "",
                "Longitude": c.location.longitude if c.location else "",
                "Image_URL": c.image_url or "",
                "Created_At": format_ist(c.created_at),
                "Assigned_At": format_ist(c.assigned_at),
            }
        )
    return rows


def export_frame(complaints: list[Complaint]) -> pd.DataFrame:
    return pd.DataFrame(export_rows(complaints), columns=list(EXPORT_COLUMNS))
