"""Failure taxonomy shared by the engine, its collaborators and the HTTP layer."""
from __future__ import annotations

from typing import Iterable


class EngineError(Exception):
    code = "engine/error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(EngineError):
    code = "validation/invalid-input"

    def __init__(self, fields: Iterable[str], message: str | None = None) -> None:
        self.fields = tuple(fields)
        super().__init__(message or f"Missing or invalid: {', '.join(self.fields)}")


class AuthorizationError(EngineError):
    """The actor may not use the resource; callers send them to `redirect_to` instead."""

    code = "access/redirect"

    def __init__(self, message: str, redirect_to: str = "/", authenticated: bool = True) -> None:
        super().__init__(message)
        self.redirect_to = redirect_to
        self.authenticated = authenticated


class LoginError(EngineError):
    code = "login/failed"


class ProfileMissing(LoginError):
    code = "login/profile-missing"

    def __init__(self, message: str = "Profile record missing. Please contact the civic helpdesk.") -> None:
        super().__init__(message)


class RoleMismatch(LoginError):
    code = "login/role-mismatch"


class ZoneWardMismatch(LoginError):
    code = "login/zone-ward-mismatch"


class AdmissionError(EngineError):
    code = "admission/blocked"


class AccountPending(AdmissionError):
    code = "admission/pending"

    def __init__(self, message: str = "Your officer account is awaiting admin approval.") -> None:
        super().__init__(message)


class AccountRejected(AdmissionError):
    code = "admission/rejected"

    def __init__(self, message: str = "Your officer account request was rejected. Contact the administrator.") -> None:
        super().__init__(message)


class StateTransitionError(EngineError):
    code = "state/invalid"


class InvalidTransition(StateTransitionError):
    code = "state/invalid-transition"


class OfficerNotEligible(StateTransitionError):
    code = "state/officer-not-eligible"


class RecordNotFound(EngineError):
    code = "not-found"


class CollaboratorError(EngineError):
    """Failure raised by the auth provider, document store or blob store.

    `code` is a categorical code such as ``auth/invalid-credential`` or ``unavailable``;
    the message may carry backend text and is never shown without normalization.
    """

    def __init__(self, code: str, message: str | None = None) -> None:
        super().__init__(message or code)
        self.code = code
