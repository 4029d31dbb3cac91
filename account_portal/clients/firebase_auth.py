"""
Client-side identity provider access: sign-in, ID token issuance and the
auth-state stream.

Talks to the Identity Toolkit and Secure Token REST endpoints with the
project's web API key, the same calls the browser SDK makes.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Set
from urllib.parse import urlencode

import httpx

from account_portal.core.config import IdentitySettings
from account_portal.core.errors import IdentityProviderError
from account_portal.models.profile import AuthUser
from account_portal.utils.http import json_or_empty, request_with_retry

logger = logging.getLogger(__name__)

AuthStateListener = Callable[[Optional[AuthUser]], Awaitable[None]]


@dataclass
class _ClientSession:
    user: AuthUser
    id_token: str
    refresh_token: str
    expires_at: datetime


@dataclass(frozen=True)
class OAuthSignIn:
    """Result of an OAuth sign-in: the user and the provider's access token."""

    user: AuthUser
    oauth_access_token: Optional[str]


def _user_from_payload(payload: Dict[str, Any], provider_id: Optional[str] = None) -> AuthUser:
    providers = payload.get("providerUserInfo") or []
    if provider_id is None:
        provider_id = providers[0].get("providerId") if providers else "password"
    return AuthUser(
        uid=payload["localId"],
        email=payload.get("email"),
        email_verified=bool(payload.get("emailVerified", False)),
        provider_id=provider_id or "password",
        display_name=payload.get("displayName"),
        photo_url=payload.get("photoUrl"),
    )


class FirebaseAuthClient:
    """Holds at most one signed-in session and notifies auth-state listeners."""

    IDENTITY_URL = "https://identitytoolkit.googleapis.com/v1/accounts"
    SECURE_TOKEN_URL = "https://securetoken.googleapis.com/v1/token"
    _REFRESH_WINDOW = timedelta(minutes=5)

    def __init__(
        self,
        settings: IdentitySettings,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not settings.api_key:
            raise ValueError("IDENTITY_API_KEY is required for client-side sign-in.")
        self._settings = settings
        self._timeout = timeout
        self._transport = transport
        self._session: Optional[_ClientSession] = None
        self._listeners: list[AuthStateListener] = []
        self._pending: Set[asyncio.Task] = set()

    @property
    def current_user(self) -> Optional[AuthUser]:
        return self._session.user if self._session else None

    # -- auth-state stream -------------------------------------------------

    def on_auth_state_changed(self, listener: AuthStateListener) -> Callable[[], None]:
        """Register ``listener``; it is called with the current user right away.

        Each notification runs as its own task, so a slow listener can see a
        new event arrive before it finished handling the previous one.
        """
        self._listeners.append(listener)
        self._dispatch(listener, self.current_user)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _dispatch(self, listener: AuthStateListener, user: Optional[AuthUser]) -> None:
        task = asyncio.get_running_loop().create_task(listener(user))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _emit(self) -> None:
        user = self.current_user
        for listener in list(self._listeners):
            self._dispatch(listener, user)

    # -- REST plumbing -----------------------------------------------------

    async def _post(self, url: str, **kwargs: Any) -> Dict[str, Any]:
        params = {"key": self._settings.api_key}
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await request_with_retry(client.post, url, params=params, **kwargs)
        payload = json_or_empty(response)
        if response.status_code != httpx.codes.OK:
            raise IdentityProviderError.from_payload(
                payload, fallback=f"HTTP {response.status_code}: {response.reason_phrase}"
            )
        return payload

    async def _identity(self, method: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._post(f"{self.IDENTITY_URL}:{method}", json=body)

    async def _lookup(self, id_token: str, provider_id: Optional[str] = None) -> AuthUser:
        payload = await self._identity("lookup", {"idToken": id_token})
        users = payload.get("users") or []
        if not users:
            raise IdentityProviderError("USER_NOT_FOUND")
        return _user_from_payload(users[0], provider_id)

    async def _establish(self, payload: Dict[str, Any], provider_id: str) -> AuthUser:
        id_token = payload["idToken"]
        user = await self._lookup(id_token, provider_id)
        self._session = _ClientSession(
            user=user,
            id_token=id_token,
            refresh_token=payload["refreshToken"],
            expires_at=datetime.now(timezone.utc)
            + timedelta(seconds=int(payload.get("expiresIn", 3600))),
        )
        self._emit()
        return user

    # -- account flows -----------------------------------------------------

    async def create_account(
        self, *, email: str, password: str, display_name: Optional[str] = None
    ) -> AuthUser:
        """Register a password account and send its verification email.

        The new account is not signed in; it must verify before its first
        session.
        """
        payload = await self._identity(
            "signUp", {"email": email, "password": password, "returnSecureToken": True}
        )
        id_token = payload["idToken"]
        if display_name:
            await self._identity(
                "update",
                {"idToken": id_token, "displayName": display_name, "returnSecureToken": False},
            )
        await self._identity("sendOobCode", {"requestType": "VERIFY_EMAIL", "idToken": id_token})
        return AuthUser(
            uid=payload["localId"],
            email=payload.get("email", email),
            email_verified=False,
            provider_id="password",
            display_name=display_name,
        )

    async def sign_in_with_password(self, email: str, password: str) -> AuthUser:
        payload = await self._identity(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        return await self._establish(payload, "password")

    async def sign_in_with_idp(self, provider_id: str, access_token: str) -> OAuthSignIn:
        """Sign in with an OAuth access token from ``provider_id`` (e.g. ``github.com``)."""
        payload = await self._identity(
            "signInWithIdp",
            {
                "postBody": urlencode({"access_token": access_token, "providerId": provider_id}),
                "requestUri": self._settings.oauth_request_uri,
                "returnSecureToken": True,
                "returnIdpCredential": True,
            },
        )
        user = await self._establish(payload, provider_id)
        return OAuthSignIn(user=user, oauth_access_token=payload.get("oauthAccessToken", access_token))

    async def send_password_reset_email(self, email: str) -> None:
        await self._identity("sendOobCode", {"requestType": "PASSWORD_RESET", "email": email})

    async def apply_email_verification(self, oob_code: str) -> None:
        await self._identity("update", {"oobCode": oob_code})
        if self._session is not None:
            await self.reload()

    async def update_profile(
        self, *, display_name: Optional[str] = None, photo_url: Optional[str] = None
    ) -> None:
        session = self._require_session()
        body: Dict[str, Any] = {"idToken": session.id_token, "returnSecureToken": False}
        if display_name is not None:
            body["displayName"] = display_name
        if photo_url is not None:
            body["photoUrl"] = photo_url
        await self._identity("update", body)
        await self.reload()

    async def reload(self) -> AuthUser:
        """Re-read the signed-in user from the provider."""
        session = self._require_session()
        session.user = await self._lookup(session.id_token, session.user.provider_id)
        return session.user

    async def sign_out(self) -> None:
        if self._session is None:
            return
        logger.info("Signing out %s", self._session.user.uid)
        self._session = None
        self._emit()

    # -- tokens ------------------------------------------------------------

    def _require_session(self) -> _ClientSession:
        if self._session is None:
            raise IdentityProviderError("NO_CURRENT_USER", "No user is signed in.")
        return self._session

    async def get_id_token(self, force_refresh: bool = False) -> str:
        """Return the session's ID token, exchanging the refresh token when due."""
        session = self._require_session()
        now = datetime.now(timezone.utc)
        if not force_refresh and session.expires_at > now + self._REFRESH_WINDOW:
            return session.id_token

        payload = await self._post(
            self.SECURE_TOKEN_URL,
            data={"grant_type": "refresh_token", "refresh_token": session.refresh_token},
        )
        session.id_token = payload["id_token"]
        session.refresh_token = payload.get("refresh_token", session.refresh_token)
        session.expires_at = now + timedelta(seconds=int(payload.get("expires_in", 3600)))
        return session.id_token


__all__ = ["AuthStateListener", "FirebaseAuthClient", "OAuthSignIn"]
