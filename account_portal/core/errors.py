"""
Exceptions raised by collaborator clients and the message catalog used to
present identity-provider failures to people.
"""

from __future__ import annotations

from typing import Optional


class IdentityProviderError(Exception):
    """Raised when the identity provider rejects a call.

    ``code`` is the provider's stable error code (``EMAIL_EXISTS``,
    ``USER_NOT_FOUND`` ...). Any detail after the code, such as the
    ``WEAK_PASSWORD : Password should be ...`` suffix, is kept in ``message``.
    """

    def __init__(self, code: str, message: Optional[str] = None) -> None:
        self.code = code
        self.message = message or code
        super().__init__(self.message)

    @classmethod
    def from_payload(cls, payload: object, fallback: str) -> "IdentityProviderError":
        """Build an error from an Identity Toolkit ``{"error": {...}}`` body."""
        raw = ""
        if isinstance(payload, dict):
            error = payload.get("error")
            if isinstance(error, dict):
                raw = str(error.get("message") or "")
        if not raw:
            return cls("UNKNOWN", fallback)
        code, _, detail = raw.partition(":")
        code = code.strip()
        return cls(code, detail.strip() or code)

    @property
    def is_not_found(self) -> bool:
        return self.code in {"USER_NOT_FOUND", "EMAIL_NOT_FOUND"}


class DocumentStoreError(Exception):
    """Raised when the profile document store call fails."""


class EmailDeliveryError(Exception):
    """Raised when the transactional email provider rejects a message."""


_AUTH_ERROR_MESSAGES = {
    "EMAIL_EXISTS": "This email is already registered",
    "INVALID_EMAIL": "Invalid email address",
    "WEAK_PASSWORD": "Password is too weak",
    "USER_NOT_FOUND": "User not found",
    "EMAIL_NOT_FOUND": "No account found with this email",
    "INVALID_PASSWORD": "Incorrect password",
    "INVALID_LOGIN_CREDENTIALS": "Invalid email or password",
    "USER_DISABLED": "This account has been disabled",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "Too many attempts. Please try again later",
    "INVALID_OOB_CODE": "This link is invalid or has already been used",
    "EXPIRED_OOB_CODE": "This link has expired",
    "TOKEN_EXPIRED": "Your session has expired. Please sign in again",
    "FEDERATED_USER_ID_ALREADY_LINKED": "This account is already linked to another user",
}


def describe_auth_error(code: str, default: str = "An unknown error occurred") -> str:
    """Return the fixed human-readable message for a provider error code."""
    return _AUTH_ERROR_MESSAGES.get(code, default)


__all__ = [
    "DocumentStoreError",
    "EmailDeliveryError",
    "IdentityProviderError",
    "describe_auth_error",
]
