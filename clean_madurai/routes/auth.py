from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel

from clean_madurai.auth import get_current_session, get_optional_session, get_session_guard
from clean_madurai.domain import AccessType
from clean_madurai.errors import EngineError, ValidationError
from clean_madurai.http_errors import to_http_exception
from clean_madurai.routes.common import get_account_service, to_upload
from clean_madurai.services.account_service import AccountService
from clean_madurai.services.session_service import Credential, Session, SessionGuard, default_route, resolve_path

router = APIRouter(prefix="/api/auth", tags=["auth"])

LOGIN_OVERRIDES = {
    "auth/user-not-found": "We could not find an account with that email.",
    "auth/wrong-password": "Email or password is incorrect.",
    "auth/invalid-credential": "Email or password is incorrect.",
    "auth/too-many-requests": "Too many failed attempts. Please wait and try again.",
}


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""
    access_type: str = "citizen"
    zone_id: str | None = None
    ward: str | None = None


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: str
    redirect: str
    account: dict


@router.post("/register", status_code=201)
def register(
    svc: Annotated[AccountService, Depends(get_account_service)],
    email: str = Form(""),
    password: str = Form(""),
    role: str = Form("citizen"),
    name: str = Form(""),
    phone: str = Form(""),
    zone_id: str = Form(""),
    ward: str = Form(""),
    address: str = Form(""),
    badge: UploadFile | None = File(None),
):
    try:
        account = svc.register(
            email=email,
            password=password,
            role=role,
            name=name,
            phone=phone,
            zone_id=zone_id,
            ward=ward,
            address=address,
            badge=to_upload(badge),
        )
    except EngineError as ex:
        raise to_http_exception(ex, fallback="Unable to register right now.") from ex
    return {"account": account.to_public(), "redirect": "/"}


@router.post("/login", response_model=LoginResponse)
def login(req: LoginRequest, guard: Annotated[SessionGuard, Depends(get_session_guard)]) -> LoginResponse:
    try:
        try:
            access_type = AccessType.parse(req.access_type)
        except ValueError:
            raise ValidationError(["access_type"]) from None
        session = guard.login(
            Credential(
                email=req.email,
                password=req.password,
                access_type=access_type,
                zone_id=req.zone_id,
                ward=req.ward,
            )
        )
    except EngineError as ex:
        raise to_http_exception(ex, fallback="Unable to sign in right now.", overrides=LOGIN_OVERRIDES) from ex
    return LoginResponse(
        access_token=session.identity.token,
        expires_at=session.identity.expires_at.isoformat(),
        redirect=default_route(session.account),
        account=session.account.to_public(),
    )


@router.post("/logout")
def logout(
    session: Annotated[Session, Depends(get_current_session)],
    guard: Annotated[SessionGuard, Depends(get_session_guard)],
):
    guard.logout(session)
    return {"ok": True, "redirect": "/"}


@router.get("/me")
def me(session: Annotated[Session, Depends(get_current_session)]):
    return {"account": session.account.to_public(), "redirect": default_route(session.account)}


@router.get("/access")
def access(path: str, session: Annotated[Session | None, Depends(get_optional_session)]):
    decision = resolve_path(path, session.account if session else None)
    return {"path": path, "allowed": decision.allowed, "redirect": decision.redirect_to}
