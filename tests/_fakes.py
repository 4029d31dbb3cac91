"""In-memory collaborators for the admin service and endpoint tests."""

from __future__ import annotations

from typing import Dict, Optional

from account_portal.clients.identity_toolkit import AdminUserRecord
from account_portal.core.errors import EmailDeliveryError, IdentityProviderError


class FakeIdentityAdmin:
    def __init__(self) -> None:
        self.users: Dict[str, AdminUserRecord] = {}
        self.create_error: Optional[IdentityProviderError] = None
        self.delete_error: Optional[IdentityProviderError] = None
        self._next_uid = 1

    def add(self, uid: str, email: str, **fields) -> AdminUserRecord:
        record = AdminUserRecord(uid=uid, email=email, **fields)
        self.users[uid] = record
        return record

    async def create_user(self, *, email, password, display_name=None, email_verified=False):
        if self.create_error is not None:
            raise self.create_error
        if any(user.email == email for user in self.users.values()):
            raise IdentityProviderError("EMAIL_EXISTS")
        uid = f"uid-{self._next_uid}"
        self._next_uid += 1
        return self.add(
            uid, email, display_name=display_name, email_verified=email_verified
        )

    async def get_user(self, uid):
        if uid not in self.users:
            raise IdentityProviderError("USER_NOT_FOUND")
        return self.users[uid]

    async def get_user_by_email(self, email):
        for user in self.users.values():
            if user.email == email:
                return user
        raise IdentityProviderError("EMAIL_NOT_FOUND")

    async def update_user(self, uid, *, disabled=None, email_verified=None):
        current = await self.get_user(uid)
        self.users[uid] = AdminUserRecord(
            uid=uid,
            email=current.email,
            email_verified=current.email_verified if email_verified is None else email_verified,
            disabled=current.disabled if disabled is None else disabled,
            display_name=current.display_name,
        )

    async def delete_user(self, uid):
        if self.delete_error is not None:
            raise self.delete_error
        if self.users.pop(uid, None) is None:
            raise IdentityProviderError("USER_NOT_FOUND")

    async def generate_email_verification_link(self, email):
        return f"https://auth.example/verify?email={email}"

    async def generate_password_reset_link(self, email):
        return f"https://auth.example/reset?email={email}"


class FakeEmailSender:
    def __init__(self, *, fail_with: Optional[str] = None) -> None:
        self.fail_with = fail_with
        self.sent: list[dict] = []

    async def send_email(self, *, to, subject, html):
        if self.fail_with is not None:
            raise EmailDeliveryError(self.fail_with)
        self.sent.append({"to": to, "subject": subject, "html": html})
        return {"messageId": "msg-1"}
