"""Accounts and complaints as the engine sees them, plus their wire-record mapping."""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from enum import Enum
from typing import Any


class Role(str, Enum):
    CITIZEN = "citizen"
    OFFICER = "officer"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        if isinstance(value, cls):
            return value
        raw = str(getattr(value, "value", value) or "").strip().lower()
        if raw == "user":
            # Citizen accounts created before the role rename.
            return cls.CITIZEN
        return cls(raw)


class AccessType(str, Enum):
    CITIZEN = "citizen"
    STAFF = "staff"

    @classmethod
    def parse(cls, value: Any) -> "AccessType":
        if isinstance(value, cls):
            return value
        raw = str(getattr(value, "value", value) or "").strip().lower()
        if raw in ("user", "citizen", "public"):
            return cls.CITIZEN
        if raw in ("staff", "officer", "admin"):
            return cls.STAFF
        raise ValueError(f"Unknown access type: {value!r}")


class AdmissionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ComplaintStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)

    @classmethod
    def parse(cls, value: Any) -> "ComplaintStatus":
        if isinstance(value, cls):
            return value
        raw = str(value or "").strip()
        for status in cls:
            if raw.lower() in (status.value.lower(), status.name.lower(), status.value.replace(" ", "").lower()):
                return status
        raise ValueError(f"Unknown complaint status: {value!r}")


_STATUS_ORDER = (ComplaintStatus.PENDING, ComplaintStatus.IN_PROGRESS, ComplaintStatus.RESOLVED)


class Category(str, Enum):
    GARBAGE_ACCUMULATION = "Garbage Accumulation"
    SEWAGE_BLOCKAGE = "Sewage Blockage"
    DRAIN_OVERFLOW = "Drain Overflow"
    RIVER_POLLUTION = "River Pollution"
    STRAY_ANIMAL_ISSUE = "Stray Animal Issue"


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def parse_timestamp(value: Any) -> dt.datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        ts = value
    elif isinstance(value, (int, float)):
        ts = dt.datetime.fromtimestamp(value / 1000.0, tz=dt.timezone.utc)
    else:
        ts = dt.datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=dt.timezone.utc)
    return ts


def _float_or_none(value: Any) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Identity:
    """What the auth provider hands back after a successful sign-in or sign-up."""

    uid: str
    email: str
    token: str
    token_id: str
    expires_at: dt.datetime


@dataclass(frozen=True)
class Upload:
    """A file handed in by the actor (evidence photo, badge document, profile photo)."""

    filename: str
    content: bytes
    content_type: str | None = None


@dataclass(frozen=True)
class Account:
    id: str
    email: str
    role: Role
    ward: str = ""
    zone_id: str = ""
    zone_name: str = ""
    name: str = ""
    phone: str = ""
    address: str = ""
    photo_url: str = ""
    status: AdmissionStatus | None = None
    badge_url: str = ""
    created_at: dt.datetime | None = None

    @property
    def admission(self) -> AdmissionStatus:
        # Citizens and admins never enter admission and count as approved.
        if self.role is not Role.OFFICER:
            return AdmissionStatus.APPROVED
        return self.status or AdmissionStatus.PENDING

    @property
    def is_eligible_officer(self) -> bool:
        return self.role is Role.OFFICER and self.admission is AdmissionStatus.APPROVED

    @classmethod
    def from_record(cls, doc_id: str, data: dict[str, Any]) -> "Account":
        role = Role.parse(data.get("role"))
        status = None
        if role is Role.OFFICER:
            status = AdmissionStatus(data.get("status") or AdmissionStatus.PENDING.value)
        return cls(
            id=doc_id,
            email=data.get("email") or "",
            role=role,
            ward=data.get("ward") or "",
            zone_id=data.get("zoneId") or "",
            zone_name=data.get("zoneName") or "",
            name=data.get("name") or "",
            phone=data.get("phone") or "",
            address=data.get("address") or "",
            photo_url=data.get("photoURL") or "",
            status=status,
            badge_url=data.get("badgeUrl") or "",
            created_at=parse_timestamp(data.get("createdAt")),
        )

    def to_public(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "email": self.email,
            "role": self.role.value,
            "ward": self.ward,
            "zoneId": self.zone_id,
            "zoneName": self.zone_name,
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "photoURL": self.photo_url,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
        if self.role is Role.OFFICER:
            out["status"] = self.admission.value
            out["badgeUrl"] = self.badge_url
        return out


@dataclass(frozen=True)
class Complaint:
    id: str
    user_id: str
    zone_id: str
    zone_name: str
    ward: str
    category: str
    description: str
    status: ComplaintStatus
    ai_verified: bool
    created_at: dt.datetime | None
    location: GeoPoint | None = None
    image_url: str = ""
    assigned_officer_id: str | None = None
    assigned_officer_name: str | None = None
    assigned_at: dt.datetime | None = None

    @property
    def is_assigned(self) -> bool:
        return bool(self.assigned_officer_id)

    @classmethod
    def from_record(cls, doc_id: str, data: dict[str, Any]) -> "Complaint":
        lat = _float_or_none(data.get("latitude"))
        lng = _float_or_none(data.get("longitude"))
        return cls(
            id=doc_id,
            user_id=data.get("userId") or "",
            zone_id=data.get("zoneId") or "",
            zone_name=data.get("zoneName") or "",
            ward=data.get("ward") or "",
            category=data.get("category") or "",
            description=data.get("description") or "",
            status=ComplaintStatus.parse(data.get("status") or ComplaintStatus.PENDING.value),
            ai_verified=bool(data.get("aiVerified")),
            created_at=parse_timestamp(data.get("createdAt")),
            location=GeoPoint(lat, lng) if lat is not None and lng is not None else None,
            image_url=data.get("imageUrl") or "",
            assigned_officer_id=data.get("assignedOfficerId") or None,
            assigned_officer_name=data.get("assignedOfficerName") or None,
            assigned_at=parse_timestamp(data.get("assignedAt")),
        )

    def to_public(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "zoneId": self.zone_id,
            "zoneName": self.zone_name,
            "ward": self.ward,
            "category": self.category,
            "description": self.description,
            "imageUrl": self.image_url,
            "latitude": self.location.latitude if self.location else None,
            "longitude": self.location.longitude if self.location else None,
            "status": self.status.value,
            "aiVerified": self.ai_verified,
            "assignedOfficerId": self.assigned_officer_id,
            "assignedOfficerName": self.assigned_officer_name,
            "assignedAt": self.assigned_at.isoformat() if self.assigned_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


def newest_first(complaints: list[Complaint]) -> list[Complaint]:
    """Newest createdAt first; equal timestamps fall back to id ascending."""
    by_id = sorted(complaints, key=lambda c: c.id)
    floor = dt.datetime.min.replace(tzinfo=dt.timezone.utc)
    return sorted(by_id, key=lambda c: c.created_at or floor, reverse=True)
