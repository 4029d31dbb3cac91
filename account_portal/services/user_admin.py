"""
Administrative user operations against the identity provider, mirrored into
the profile document store.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional, Protocol

from account_portal.clients.identity_toolkit import AdminUserRecord
from account_portal.core.errors import (
    DocumentStoreError,
    IdentityProviderError,
    describe_auth_error,
)
from account_portal.models.profile import UserProfile
from account_portal.services.profiles import ProfileRepository
from account_portal.services.verification_email import VerificationMailer

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6
ROLES = ("user", "admin")
NOT_IN_PROVIDER = "User not found in authentication provider"


class UserAdminError(Exception):
    """Base error carrying the HTTP status it maps to."""

    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidUserRequest(UserAdminError):
    status_code = 400


class UserNotFound(UserAdminError):
    status_code = 404


class EmailAlreadyRegistered(UserAdminError):
    status_code = 409


class UserAdminFailure(UserAdminError):
    status_code = 500


class IdentityAdmin(Protocol):
    async def create_user(
        self,
        *,
        email: str,
        password: str,
        display_name: Optional[str] = None,
        email_verified: bool = False,
    ) -> AdminUserRecord:
        ...

    async def get_user(self, uid: str) -> AdminUserRecord:
        ...

    async def get_user_by_email(self, email: str) -> AdminUserRecord:
        ...

    async def update_user(
        self,
        uid: str,
        *,
        disabled: Optional[bool] = None,
        email_verified: Optional[bool] = None,
    ) -> None:
        ...

    async def delete_user(self, uid: str) -> None:
        ...

    async def generate_email_verification_link(self, email: str) -> str:
        ...

    async def generate_password_reset_link(self, email: str) -> str:
        ...


@dataclass(frozen=True)
class CreatedUser:
    uid: str
    email: str
    username: str
    role: str
    email_sent: bool
    verification_link: Optional[str] = None
    email_error: Optional[str] = None


@dataclass(frozen=True)
class DeletionOutcome:
    auth_deleted: bool
    profile_deleted: bool


_CREATE_ERRORS = {
    "EMAIL_EXISTS": EmailAlreadyRegistered,
    "INVALID_EMAIL": InvalidUserRequest,
    "WEAK_PASSWORD": InvalidUserRequest,
}


def _provider_failure(exc: IdentityProviderError, fallback: str) -> UserAdminError:
    if exc.is_not_found:
        return UserNotFound(NOT_IN_PROVIDER)
    return UserAdminFailure(exc.message or fallback)


class UserAdminService:
    """Create, delete, enable/disable and verify accounts; issue reset links."""

    def __init__(
        self,
        identity: IdentityAdmin,
        profiles: ProfileRepository,
        mailer: VerificationMailer,
    ) -> None:
        self._identity = identity
        self._profiles = profiles
        self._mailer = mailer

    async def create_user(
        self,
        *,
        email: Optional[str],
        password: Optional[str],
        username: Optional[str],
        role: Optional[str] = None,
    ) -> CreatedUser:
        """Create an unverified password account and email its verification link.

        A failed email send does not fail the operation: the account exists,
        so the link is returned for manual distribution instead.
        """
        if not email or not password or not username:
            raise InvalidUserRequest("Email, password, and username are required")
        if not EMAIL_PATTERN.match(email):
            raise InvalidUserRequest("Invalid email format")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidUserRequest(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )
        role = role or "user"
        if role not in ROLES:
            raise InvalidUserRequest(f"Role must be one of: {', '.join(ROLES)}")

        try:
            record = await self._identity.create_user(
                email=email, password=password, display_name=username, email_verified=False
            )
        except IdentityProviderError as exc:
            error_cls = _CREATE_ERRORS.get(exc.code)
            if error_cls is not None:
                raise error_cls(describe_auth_error(exc.code)) from exc
            raise UserAdminFailure(exc.message or "Failed to create user") from exc

        try:
            await self._profiles.save(
                UserProfile(
                    uid=record.uid,
                    username=username,
                    email=email,
                    provider="email",
                    role=role,  # type: ignore[arg-type]
                    disabled=False,
                    email_verified=False,
                )
            )
            link = await self._identity.generate_email_verification_link(email)
        except (IdentityProviderError, DocumentStoreError) as exc:
            logger.error("User %s created but follow-up failed: %s", record.uid, exc)
            raise UserAdminFailure(str(exc) or "Failed to create user") from exc

        logger.info("User created: %s", record.uid)
        result = await self._mailer.send_verification_email(email, username, link)
        if not result.success:
            return CreatedUser(
                uid=record.uid,
                email=record.email or email,
                username=username,
                role=role,
                email_sent=False,
                verification_link=link,
                email_error=result.error,
            )
        return CreatedUser(
            uid=record.uid,
            email=record.email or email,
            username=username,
            role=role,
            email_sent=True,
        )

    async def delete_user(self, uid: Optional[str]) -> DeletionOutcome:
        """Delete the account and its profile independently.

        A missing provider account counts as already deleted. Any other
        provider error is reported only after the profile deletion has been
        attempted. Succeeds when either deletion removed something.
        """
        if not uid:
            raise InvalidUserRequest("UID is required")

        auth_deleted = False
        auth_error: Optional[IdentityProviderError] = None
        try:
            await self._identity.delete_user(uid)
            auth_deleted = True
        except IdentityProviderError as exc:
            if exc.is_not_found:
                logger.warning("User %s already absent from authentication provider", uid)
            else:
                auth_error = exc

        try:
            profile_deleted = await self._profiles.delete_if_exists(uid)
        except DocumentStoreError as exc:
            raise UserAdminFailure(str(exc) or "Failed to delete user.") from exc

        if auth_error is not None:
            logger.error(
                "Provider delete failed for %s (profile deleted: %s)", uid, profile_deleted
            )
            raise UserAdminFailure(
                auth_error.message or "Failed to delete user."
            ) from auth_error

        if not auth_deleted and not profile_deleted:
            raise UserNotFound("User not found")
        return DeletionOutcome(auth_deleted=auth_deleted, profile_deleted=profile_deleted)

    async def _require_user(self, uid: str) -> AdminUserRecord:
        try:
            return await self._identity.get_user(uid)
        except IdentityProviderError as exc:
            raise _provider_failure(exc, "Failed to look up user") from exc

    async def _mirror(self, uid: str, fields: dict) -> bool:
        try:
            return await self._profiles.update_if_exists(uid, fields)
        except DocumentStoreError as exc:
            raise UserAdminFailure(str(exc) or "Failed to update profile") from exc

    async def set_disabled(self, uid: Optional[str], disabled: Optional[bool]) -> AdminUserRecord:
        if not uid:
            raise InvalidUserRequest("UID is required")
        if not isinstance(disabled, bool):
            raise InvalidUserRequest("Disabled status must be a boolean")

        record = await self._require_user(uid)
        try:
            await self._identity.update_user(uid, disabled=disabled)
        except IdentityProviderError as exc:
            raise _provider_failure(exc, "Failed to update user status") from exc
        await self._mirror(uid, {"disabled": disabled})
        logger.info("User %s %s", uid, "disabled" if disabled else "enabled")
        return record

    async def verify_email(self, uid: Optional[str]) -> str:
        if not uid:
            raise InvalidUserRequest("UID is required")

        await self._require_user(uid)
        try:
            await self._identity.update_user(uid, email_verified=True)
        except IdentityProviderError as exc:
            raise _provider_failure(exc, "Failed to verify email") from exc
        await self._mirror(uid, {"emailVerified": True})
        logger.info("Email verified for user %s", uid)
        return uid

    async def generate_password_reset_link(self, email: Optional[str]) -> str:
        if not email:
            raise InvalidUserRequest("Email is required")
        try:
            await self._identity.get_user_by_email(email)
            return await self._identity.generate_password_reset_link(email)
        except IdentityProviderError as exc:
            raise _provider_failure(exc, "Failed to generate reset link") from exc

    async def list_users(self) -> list[UserProfile]:
        try:
            return await self._profiles.list_profiles()
        except DocumentStoreError as exc:
            raise UserAdminFailure(str(exc) or "Failed to list users") from exc


__all__ = [
    "CreatedUser",
    "DeletionOutcome",
    "EmailAlreadyRegistered",
    "IdentityAdmin",
    "InvalidUserRequest",
    "UserAdminError",
    "UserAdminFailure",
    "UserAdminService",
    "UserNotFound",
]
