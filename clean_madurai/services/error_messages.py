from __future__ import annotations

import logging
import re
from typing import Any, Mapping

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE = "Something went wrong. Please try again."

BUILTIN_MESSAGES: dict[str, str] = {
    "auth/invalid-credential": "Email or password is incorrect.",
    "auth/invalid-email": "Enter a valid email address.",
    "auth/user-disabled": "This account has been disabled. Contact support.",
    "auth/user-not-found": "No account exists for this email address.",
    "auth/wrong-password": "Email or password is incorrect.",
    "auth/too-many-requests": "Too many attempts. Try again in a few minutes.",
    "auth/network-request-failed": "Network error. Check your connection and try again.",
    "auth/email-already-in-use": "An account already exists with this email.",
    "auth/weak-password": "Password should be at least 6 characters.",
    "auth/missing-email": "Email cannot be empty.",
    "auth/missing-password": "Password cannot be empty.",
    "auth/operation-not-allowed": "This sign-in method is disabled for now.",
    "auth/id-token-expired": "Your session has expired. Please sign in again.",
    "auth/id-token-revoked": "You have been signed out. Please sign in again.",
    "storage/canceled": "Upload was cancelled before it completed.",
    "storage/unauthorized": "You do not have permission to upload this file.",
    "storage/quota-exceeded": "Storage quota exceeded. Remove files or try later.",
    "storage/retry-limit-exceeded": "Upload took too long. Try again.",
    "storage/object-not-found": "The requested file does not exist.",
    "storage/invalid-argument": "The file could not be stored. Choose another file.",
    "permission-denied": "You do not have permission to perform this action.",
    "unavailable": "Service is temporarily unavailable. Please retry shortly.",
    "cancelled": "Request was cancelled before completing.",
    "deadline-exceeded": "Request timed out. Please retry.",
    "not-found": "Requested record was not found.",
    "resource-exhausted": "Quota exceeded. Please try again later.",
    "aborted": "Operation aborted due to a conflicting change. Reload the page.",
    "already-exists": "A record with this identifier already exists.",
}

# Backend-brand decoration, e.g. "Firebase: Error (auth/invalid-email)." or "(sqlite3.OperationalError) ...".
_BRAND_PREFIX = re.compile(r"^(?:Firebase|SQLAlchemy|Gemini)(?:\s*Error)?:\s*(?:Error\s*)?", re.IGNORECASE)
_DRIVER_PREFIX = re.compile(r"^\((?:sqlite3|psycopg2?|pymysql|sqlalchemy)[\w.]*\)\s*", re.IGNORECASE)
_CODE_SUFFIX = re.compile(r"\s*\((?:auth|firestore|storage|functions|messaging|database)/[^()]+\)\.?$", re.IGNORECASE)
_SQL_TRAILER = re.compile(r"\s*\[SQL:.*$", re.IGNORECASE | re.DOTALL)


def _code_of(error: Any) -> str:
    code = error.get("code") if isinstance(error, Mapping) else getattr(error, "code", None)
    return code.strip().lower() if isinstance(code, str) else ""


def _message_of(error: Any) -> str:
    if isinstance(error, str):
        return error
    if isinstance(error, Mapping):
        msg = error.get("message")
    else:
        msg = getattr(error, "message", None)
        if msg is None and isinstance(error, BaseException) and error.args:
            msg = error.args[0]
    return msg if isinstance(msg, str) else ""


def clean_backend_message(message: str) -> str:
    if not isinstance(message, str) or not message.strip():
        return ""
    text = message.strip()
    text = _SQL_TRAILER.sub("", text)
    branded = bool(_BRAND_PREFIX.match(text) or _DRIVER_PREFIX.match(text))
    if not branded:
        return text.strip()
    text = _DRIVER_PREFIX.sub("", _BRAND_PREFIX.sub("", text))
    return _CODE_SUFFIX.sub("", text).strip()


def normalize(
    error: Any,
    fallback_message: str = DEFAULT_MESSAGE,
    overrides: Mapping[str, str] | None = None,
) -> str:
    """Turn any collaborator failure into a message fit for the acting user.

    Resolution order: caller overrides by code, the built-in table by code, the
    error's own message with backend decoration stripped, then the fallback.
    """
    try:
        if error is None:
            return fallback_message
        code = _code_of(error)
        if code:
            for key, text in (overrides or {}).items():
                if key.lower() == code and text:
                    return text
            if code in BUILTIN_MESSAGES:
                return BUILTIN_MESSAGES[code]
        message = _message_of(error)
        if code and message.strip().lower() == code:
            message = ""
        return clean_backend_message(message) or fallback_message
    except Exception:
        logger.exception("Error normalization failed; using fallback message")
        return fallback_message
