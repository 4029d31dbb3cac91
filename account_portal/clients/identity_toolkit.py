"""
Admin-side client for the hosted identity provider (Identity Toolkit REST API).

These calls run with service-account credentials and back the administrative
user-management endpoints.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from account_portal.clients.google_credentials import GoogleCredentialsProvider
from account_portal.core.config import IdentitySettings
from account_portal.core.errors import IdentityProviderError
from account_portal.utils.http import json_or_empty, request_with_retry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdminUserRecord:
    """Account as seen by the identity provider's admin API."""

    uid: str
    email: Optional[str]
    email_verified: bool = False
    disabled: bool = False
    display_name: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "AdminUserRecord":
        return cls(
            uid=payload["localId"],
            email=payload.get("email"),
            email_verified=bool(payload.get("emailVerified", False)),
            disabled=bool(payload.get("disabled", False)),
            display_name=payload.get("displayName"),
        )


class IdentityToolkitAdminClient:
    """Create, look up, update and delete accounts; generate action links."""

    BASE_URL = "https://identitytoolkit.googleapis.com/v1"

    def __init__(
        self,
        settings: IdentitySettings,
        credentials: GoogleCredentialsProvider,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._credentials = credentials
        self._timeout = timeout
        self._transport = transport

    def _url(self, suffix: str) -> str:
        return f"{self.BASE_URL}/projects/{self._settings.project_id}/accounts{suffix}"

    async def _post(self, suffix: str, body: Dict[str, Any]) -> Dict[str, Any]:
        headers = await self._credentials.authorization_header()
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await request_with_retry(
                client.post, self._url(suffix), json=body, headers=headers
            )
        payload = json_or_empty(response)
        if response.status_code != httpx.codes.OK:
            raise IdentityProviderError.from_payload(
                payload, fallback=f"HTTP {response.status_code}: {response.reason_phrase}"
            )
        return payload

    async def create_user(
        self,
        *,
        email: str,
        password: str,
        display_name: Optional[str] = None,
        email_verified: bool = False,
    ) -> AdminUserRecord:
        body: Dict[str, Any] = {
            "email": email,
            "password": password,
            "emailVerified": email_verified,
        }
        if display_name:
            body["displayName"] = display_name
        payload = await self._post("", body)
        return AdminUserRecord(
            uid=payload["localId"],
            email=payload.get("email", email),
            email_verified=email_verified,
            display_name=display_name,
        )

    async def _lookup(self, body: Dict[str, Any], missing: str) -> AdminUserRecord:
        payload = await self._post(":lookup", body)
        users = payload.get("users") or []
        if not users:
            raise IdentityProviderError(missing, "There is no user record corresponding to the identifier.")
        return AdminUserRecord.from_payload(users[0])

    async def get_user(self, uid: str) -> AdminUserRecord:
        """Return the account for ``uid`` or raise ``USER_NOT_FOUND``."""
        return await self._lookup({"localId": [uid]}, "USER_NOT_FOUND")

    async def get_user_by_email(self, email: str) -> AdminUserRecord:
        return await self._lookup({"email": [email]}, "EMAIL_NOT_FOUND")

    async def update_user(
        self,
        uid: str,
        *,
        disabled: Optional[bool] = None,
        email_verified: Optional[bool] = None,
    ) -> None:
        body: Dict[str, Any] = {"localId": uid}
        if disabled is not None:
            body["disableUser"] = disabled
        if email_verified is not None:
            body["emailVerified"] = email_verified
        await self._post(":update", body)

    async def delete_user(self, uid: str) -> None:
        await self._post(":delete", {"localId": uid})

    async def _action_link(self, request_type: str, email: str) -> str:
        payload = await self._post(
            ":sendOobCode",
            {"requestType": request_type, "email": email, "returnOobLink": True},
        )
        link = payload.get("oobLink")
        if not link:
            raise IdentityProviderError("UNKNOWN", "Identity provider returned no action link.")
        return link

    async def generate_email_verification_link(self, email: str) -> str:
        return await self._action_link("VERIFY_EMAIL", email)

    async def generate_password_reset_link(self, email: str) -> str:
        return await self._action_link("PASSWORD_RESET", email)


__all__ = ["AdminUserRecord", "IdentityToolkitAdminClient"]
