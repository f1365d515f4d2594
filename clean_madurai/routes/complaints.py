from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel

from clean_madurai.auth import require_role
from clean_madurai.domain import GeoPoint, Role
from clean_madurai.errors import EngineError
from clean_madurai.http_errors import to_http_exception
from clean_madurai.routes.common import get_complaint_service, to_upload
from clean_madurai.services.complaint_service import ComplaintService
from clean_madurai.services.session_service import Session

router = APIRouter(prefix="/api/complaints", tags=["complaints"])


class AssignRequest(BaseModel):
    officer_id: str = ""


class StatusRequest(BaseModel):
    status: str = ""


@router.post("", status_code=201)
def submit_complaint(
    session: Annotated[Session, Depends(require_role(Role.CITIZEN))],
    svc: Annotated[ComplaintService, Depends(get_complaint_service)],
    category: str = Form(""),
    description: str = Form(""),
    ward: str = Form(""),
    zone_id: str | None = Form(None),
    latitude: float | None = Form(None),
    longitude: float | None = Form(None),
    image: UploadFile | None = File(None),
):
    location = GeoPoint(latitude, longitude) if latitude is not None and longitude is not None else None
    try:
        complaint = svc.submit(
            session,
            category=category,
            description=description,
            ward=ward,
            location=location,
            evidence=to_upload(image),
            zone_id=zone_id,
        )
    except EngineError as ex:
        raise to_http_exception(ex, fallback="Unable to submit complaint.") from ex
    return complaint.to_public()


@router.get("")
def list_all(
    session: Annotated[Session, Depends(require_role(Role.ADMIN))],
    svc: Annotated[ComplaintService, Depends(get_complaint_service)],
):
    try:
        complaints = svc.all(session)
    except EngineError as ex:
        raise to_http_exception(ex, fallback="Unable to load complaints right now.") from ex
    return {"complaints": [c.to_public() for c in complaints]}


@router.get("/mine")
def list_mine(
    session: Annotated[Session, Depends(require_role(Role.CITIZEN))],
    svc: Annotated[ComplaintService, Depends(get_complaint_service)],
):
    try:
        complaints = svc.by_reporter(session, session.account.id)
    except EngineError as ex:
        raise to_http_exception(ex, fallback="Unable to load your complaints right now.") from ex
    return {"complaints": [c.to_public() for c in complaints]}


@router.get("/ward")
def list_ward(
    session: Annotated[Session, Depends(require_role(Role.OFFICER, Role.ADMIN))],
    svc: Annotated[ComplaintService, Depends(get_complaint_service)],
    ward: str | None = None,
):
    target = ward or session.account.ward
    try:
        complaints = svc.by_ward(session, target)
    except EngineError as ex:
        raise to_http_exception(ex, fallback="Unable to load ward complaints right now.") from ex
    return {"ward": target, "complaints": [c.to_public() for c in complaints]}


@router.get("/{complaint_id}")
def get_complaint(
    complaint_id: str,
    session: Annotated[Session, Depends(require_role(*Role))],
    svc: Annotated[ComplaintService, Depends(get_complaint_service)],
):
    try:
        return svc.get(session, complaint_id).to_public()
    except EngineError as ex:
        raise to_http_exception(ex) from ex


@router.post("/{complaint_id}/assign")
def assign_officer(
    complaint_id: str,
    req: AssignRequest,
    session: Annotated[Session, Depends(require_role(Role.ADMIN))],
    svc: Annotated[ComplaintService, Depends(get_complaint_service)],
):
    try:
        return svc.assign(session, complaint_id, req.officer_id).to_public()
    except EngineError as ex:
        raise to_http_exception(ex, fallback="Unable to assign officer right now.") from ex


@router.post("/{complaint_id}/status")
def update_status(
    complaint_id: str,
    req: StatusRequest,
    session: Annotated[Session, Depends(require_role(Role.OFFICER, Role.ADMIN))],
    svc: Annotated[ComplaintService, Depends(get_complaint_service)],
):
    try:
        return svc.advance_status(session, complaint_id, req.status).to_public()
    except EngineError as ex:
        raise to_http_exception(ex, fallback="Unable to update complaint status.") from ex
