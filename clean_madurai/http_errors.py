from __future__ import annotations

from typing import Mapping

from fastapi import HTTPException, status

from clean_madurai.errors import (
    AdmissionError,
    AuthorizationError,
    CollaboratorError,
    EngineError,
    LoginError,
    ProfileMissing,
    RecordNotFound,
    StateTransitionError,
    ValidationError,
)
from clean_madurai.services.error_messages import DEFAULT_MESSAGE, normalize

_COLLABORATOR_STATUS: dict[str, int] = {
    "auth/invalid-credential": status.HTTP_401_UNAUTHORIZED,
    "auth/wrong-password": status.HTTP_401_UNAUTHORIZED,
    "auth/user-not-found": status.HTTP_401_UNAUTHORIZED,
    "auth/id-token-expired": status.HTTP_401_UNAUTHORIZED,
    "auth/id-token-revoked": status.HTTP_401_UNAUTHORIZED,
    "auth/too-many-requests": status.HTTP_429_TOO_MANY_REQUESTS,
    "auth/email-already-in-use": status.HTTP_409_CONFLICT,
    "already-exists": status.HTTP_409_CONFLICT,
    "aborted": status.HTTP_409_CONFLICT,
    "auth/weak-password": status.HTTP_400_BAD_REQUEST,
    "auth/invalid-email": status.HTTP_400_BAD_REQUEST,
    "auth/missing-email": status.HTTP_400_BAD_REQUEST,
    "auth/missing-password": status.HTTP_400_BAD_REQUEST,
    "storage/invalid-argument": status.HTTP_400_BAD_REQUEST,
    "storage/quota-exceeded": status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    "storage/unauthorized": status.HTTP_403_FORBIDDEN,
    "permission-denied": status.HTTP_403_FORBIDDEN,
    "storage/object-not-found": status.HTTP_404_NOT_FOUND,
    "not-found": status.HTTP_404_NOT_FOUND,
    "unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
    "deadline-exceeded": status.HTTP_504_GATEWAY_TIMEOUT,
}


def to_http_exception(
    ex: EngineError,
    *,
    fallback: str = DEFAULT_MESSAGE,
    overrides: Mapping[str, str] | None = None,
) -> HTTPException:
    """Map an engine failure onto the HTTP response the acting user sees."""
    if isinstance(ex, CollaboratorError):
        return HTTPException(
            status_code=_COLLABORATOR_STATUS.get(ex.code, status.HTTP_502_BAD_GATEWAY),
            detail={"code": ex.code, "message": normalize(ex, fallback, overrides)},
        )
    if isinstance(ex, ValidationError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": ex.code, "message": ex.message, "fields": list(ex.fields)},
        )
    if isinstance(ex, AuthorizationError):
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN if ex.authenticated else status.HTTP_401_UNAUTHORIZED,
            detail={"code": ex.code, "message": ex.message, "redirect": ex.redirect_to},
        )
    if isinstance(ex, (ProfileMissing, RecordNotFound)):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(ex, (LoginError, AdmissionError)):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(ex, StateTransitionError):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail={"code": ex.code, "message": ex.message})
