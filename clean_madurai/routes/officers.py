from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from clean_madurai.auth import require_role
from clean_madurai.domain import AdmissionStatus, Role
from clean_madurai.errors import EngineError, ValidationError
from clean_madurai.http_errors import to_http_exception
from clean_madurai.routes.common import get_admission_service
from clean_madurai.services.admission_service import AdmissionService
from clean_madurai.services.session_service import Session

router = APIRouter(prefix="/api/officers", tags=["officers"])


@router.get("")
def list_officers(
    session: Annotated[Session, Depends(require_role(Role.ADMIN))],
    svc: Annotated[AdmissionService, Depends(get_admission_service)],
    status: str | None = None,
):
    try:
        try:
            wanted = AdmissionStatus(status.strip().lower()) if status else None
        except ValueError:
            raise ValidationError(["status"]) from None
        officers = svc.list_officers(session, wanted)
    except EngineError as ex:
        raise to_http_exception(ex, fallback="Unable to load admin data right now.") from ex
    return {"officers": [o.to_public() for o in officers]}


@router.get("/eligible")
def list_eligible(
    _: Annotated[Session, Depends(require_role(Role.ADMIN))],
    svc: Annotated[AdmissionService, Depends(get_admission_service)],
    ward: str | None = None,
):
    try:
        officers = svc.eligible_officers(ward)
    except EngineError as ex:
        raise to_http_exception(ex, fallback="Unable to load admin data right now.") from ex
    return {"officers": [o.to_public() for o in officers]}


@router.post("/{officer_id}/approve")
def approve_officer(
    officer_id: str,
    session: Annotated[Session, Depends(require_role(Role.ADMIN))],
    svc: Annotated[AdmissionService, Depends(get_admission_service)],
):
    try:
        return svc.approve(session, officer_id).to_public()
    except EngineError as ex:
        raise to_http_exception(ex) from ex


@router.post("/{officer_id}/reject")
def reject_officer(
    officer_id: str,
    session: Annotated[Session, Depends(require_role(Role.ADMIN))],
    svc: Annotated[AdmissionService, Depends(get_admission_service)],
):
    try:
        return svc.reject(session, officer_id).to_public()
    except EngineError as ex:
        raise to_http_exception(ex) from ex
