"""
Service-account bearer tokens for the admin-side Google REST APIs.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import google.auth
from google.auth.credentials import Credentials
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from account_portal.core.config import IdentitySettings

SCOPES = (
    "https://www.googleapis.com/auth/cloud-platform",
    "https://www.googleapis.com/auth/identitytoolkit",
    "https://www.googleapis.com/auth/datastore",
)


class GoogleCredentialsProvider:
    """Lazily load credentials and hand out fresh access tokens."""

    _REFRESH_WINDOW = timedelta(minutes=5)

    def __init__(self, settings: IdentitySettings) -> None:
        self._settings = settings
        self._credentials: Optional[Credentials] = None
        self._lock = asyncio.Lock()

    def _load(self) -> Credentials:
        if self._settings.credentials_file:
            return service_account.Credentials.from_service_account_file(
                self._settings.credentials_file, scopes=list(SCOPES)
            )
        credentials, _ = google.auth.default(scopes=list(SCOPES))
        return credentials

    def _is_stale(self, credentials: Credentials) -> bool:
        if not credentials.token or credentials.expiry is None:
            return True
        # google-auth reports expiry as a naive UTC datetime.
        expiry = credentials.expiry.replace(tzinfo=timezone.utc)
        return expiry <= datetime.now(timezone.utc) + self._REFRESH_WINDOW

    async def access_token(self) -> str:
        """Return a bearer token, refreshing it off the event loop when stale."""
        async with self._lock:
            if self._credentials is None:
                self._credentials = self._load()
            if self._is_stale(self._credentials):
                await asyncio.to_thread(self._credentials.refresh, Request())
            return self._credentials.token

    async def authorization_header(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {await self.access_token()}"}


__all__ = ["GoogleCredentialsProvider", "SCOPES"]
