from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile

from clean_madurai.auth import get_session_guard, require_role
from clean_madurai.domain import Role
from clean_madurai.errors import EngineError
from clean_madurai.http_errors import to_http_exception
from clean_madurai.routes.common import get_account_service, to_upload
from clean_madurai.services.account_service import AccountService
from clean_madurai.services.session_service import Session, SessionGuard

router = APIRouter(prefix="/api/profile", tags=["profile"])


@router.get("")
def get_profile(
    session: Annotated[Session, Depends(require_role(*Role))],
    svc: Annotated[AccountService, Depends(get_account_service)],
):
    try:
        return svc.get_profile(session).to_public()
    except EngineError as ex:
        raise to_http_exception(ex) from ex


@router.put("")
def update_profile(
    session: Annotated[Session, Depends(require_role(*Role))],
    svc: Annotated[AccountService, Depends(get_account_service)],
    guard: Annotated[SessionGuard, Depends(get_session_guard)],
    name: str | None = Form(None),
    phone: str | None = Form(None),
    address: str | None = Form(None),
    photo: UploadFile | None = File(None),
):
    try:
        account, _ = svc.update_profile(session, guard, name=name, phone=phone, address=address, photo=to_upload(photo))
    except EngineError as ex:
        raise to_http_exception(ex, fallback="Failed to update profile.") from ex
    return account.to_public()
