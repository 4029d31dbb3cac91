"""
Session controller: the single subscription to the identity provider's
auth-state stream, reconciling local session state on every event.

States are ``signed-out`` -> ``reconciling`` -> ``ready``. Reconciliation is
guarded by a latch: an event that arrives while a previous one is still being
reconciled is dropped, not queued. A rapid sign-out/sign-in pair can therefore
lose its second event; ``dropped_events`` counts these.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional, Protocol

from account_portal.clients.firebase_auth import AuthStateListener, OAuthSignIn
from account_portal.core.errors import IdentityProviderError, describe_auth_error
from account_portal.models.profile import AuthUser, UserProfile
from account_portal.models.tokens import StoredLedger
from account_portal.services.notices import Notice, OneShotNotices
from account_portal.services.profiles import ProfileRepository
from account_portal.services.token_monitor import RefreshResult, TokenLifecycleMonitor

logger = logging.getLogger(__name__)

VERIFY_BEFORE_SIGN_IN = "Please verify your email before signing in"


class SessionPhase(str, Enum):
    SIGNED_OUT = "signed-out"
    RECONCILING = "reconciling"
    READY = "ready"


@dataclass(frozen=True)
class SessionState:
    user: Optional[AuthUser] = None
    profile: Optional[UserProfile] = None
    loading: bool = True
    token_expired: bool = False
    ledger: Optional[StoredLedger] = None
    phase: SessionPhase = SessionPhase.SIGNED_OUT


@dataclass(frozen=True)
class AuthResult:
    success: bool
    user: Optional[AuthUser] = None
    error: Optional[str] = None


class AuthClient(Protocol):
    @property
    def current_user(self) -> Optional[AuthUser]:
        ...

    def on_auth_state_changed(self, listener: AuthStateListener) -> Callable[[], None]:
        ...

    async def sign_out(self) -> None:
        ...

    async def get_id_token(self, force_refresh: bool = False) -> str:
        ...

    async def create_account(
        self, *, email: str, password: str, display_name: Optional[str] = None
    ) -> AuthUser:
        ...

    async def sign_in_with_password(self, email: str, password: str) -> AuthUser:
        ...

    async def sign_in_with_idp(self, provider_id: str, access_token: str) -> OAuthSignIn:
        ...

    async def send_password_reset_email(self, email: str) -> None:
        ...

    async def apply_email_verification(self, oob_code: str) -> None:
        ...

    async def update_profile(
        self, *, display_name: Optional[str] = None, photo_url: Optional[str] = None
    ) -> None:
        ...


SessionListener = Callable[[SessionState], None]


def _needs_verification(user: AuthUser) -> bool:
    return user.is_password_account and not user.email_verified


def _failure(exc: IdentityProviderError) -> AuthResult:
    return AuthResult(success=False, error=describe_auth_error(exc.code, exc.message))


class SessionController:
    """Own the auth-state subscription and the session's derived state."""

    def __init__(
        self,
        auth: AuthClient,
        profiles: ProfileRepository,
        monitor: TokenLifecycleMonitor,
        notices: OneShotNotices,
    ) -> None:
        self._auth = auth
        self._profiles = profiles
        self._monitor = monitor
        self._notices = notices
        self._state = SessionState()
        self._listeners: list[SessionListener] = []
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._reconciling = False
        self.dropped_events = 0
        self.previous_session_expired = False

    # -- observable state --------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)
        listener(self._state)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, **changes: object) -> None:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            listener(self._state)

    # -- lifetime ----------------------------------------------------------

    def start(self) -> None:
        """Subscribe to the auth-state stream and begin token monitoring."""
        if self._unsubscribe is not None:
            return
        self.previous_session_expired = self._monitor.start()
        self._unsubscribe = self._auth.on_auth_state_changed(self.handle_auth_state)

    async def close(self) -> None:
        """Unsubscribe and cancel every timer together."""
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()
        await self._monitor.stop()

    @property
    def is_subscribed(self) -> bool:
        return self._unsubscribe is not None

    # -- reconciliation ----------------------------------------------------

    async def handle_auth_state(self, user: Optional[AuthUser]) -> None:
        if self._reconciling:
            self.dropped_events += 1
            logger.warning(
                "Dropping auth-state event (%s): reconciliation already in progress",
                user.uid if user else "signed out",
            )
            return

        self._reconciling = True
        try:
            if user is None:
                await self._enter_signed_out(
                    token_expired=self._monitor.consume_termination()
                )
                return

            self._set_state(phase=SessionPhase.RECONCILING, loading=True)
            if _needs_verification(user):
                logger.warning("Rejecting unverified password session for %s", user.uid)
                await self._enter_signed_out()
                try:
                    await self._auth.sign_out()
                except Exception:
                    logger.exception("Sign-out failed while rejecting %s", user.uid)
                return

            await self._reconcile(user)
        except Exception:
            logger.exception("Reconciliation failed")
            self._recover(user)
        finally:
            self._reconciling = False

    def _recover(self, user: Optional[AuthUser]) -> None:
        """Settle state after a failed reconciliation."""
        if user is None or _needs_verification(user):
            self._set_state(
                user=None,
                profile=None,
                loading=False,
                ledger=None,
                phase=SessionPhase.SIGNED_OUT,
            )
            return

        profile = self._state.profile
        if profile is not None and profile.uid != user.uid:
            profile = None
        self._monitor.start_refresh_checks()
        self._set_state(
            user=user,
            profile=profile,
            loading=False,
            ledger=self._monitor.ledger.read(),
            phase=SessionPhase.READY,
        )

    async def _enter_signed_out(self, *, token_expired: bool = False) -> None:
        await self._monitor.stop_refresh_checks()
        self._monitor.ledger.clear()
        self._set_state(
            user=None,
            profile=None,
            loading=False,
            token_expired=token_expired,
            ledger=None,
            phase=SessionPhase.SIGNED_OUT,
        )

    async def _load_profile(self, user: AuthUser) -> Optional[UserProfile]:
        try:
            profile = await self._profiles.get_or_create(user)
        except Exception:
            logger.exception("Could not load profile for %s", user.uid)
            return None

        if profile.email_verified != user.email_verified:
            logger.info(
                "Correcting profile emailVerified for %s to %s", user.uid, user.email_verified
            )
            profile = profile.model_copy(update={"email_verified": user.email_verified})
            try:
                await self._profiles.update_fields(
                    user.uid, {"emailVerified": user.email_verified}
                )
            except Exception:
                logger.exception("Could not persist emailVerified for %s", user.uid)
        return profile

    async def _reconcile(self, user: AuthUser) -> None:
        await self._monitor.stop_refresh_checks()
        profile = await self._load_profile(user)

        stored = self._monitor.ledger.read()
        if stored is None or stored.primary is None:
            await self._monitor.store_primary_token()

        check = await self._monitor.check_expiration()
        if check.expired:
            self._monitor.consume_termination()
            self._set_state(
                user=None,
                profile=None,
                loading=False,
                token_expired=True,
                ledger=None,
                phase=SessionPhase.SIGNED_OUT,
            )
            return

        self._monitor.start_refresh_checks()
        self._set_state(
            user=user,
            profile=profile,
            loading=False,
            token_expired=False,
            ledger=self._monitor.ledger.read(),
            phase=SessionPhase.READY,
        )

    # -- account actions ---------------------------------------------------

    async def sign_up(self, email: str, password: str, username: str) -> AuthResult:
        """Register a password account; it stays signed out until verified."""
        try:
            user = await self._auth.create_account(
                email=email, password=password, display_name=username
            )
        except IdentityProviderError as exc:
            return _failure(exc)

        try:
            await self._profiles.save(UserProfile.for_user(user))
        except Exception:
            # Reconciliation creates the profile on first verified sign-in.
            logger.exception("Could not write profile for new account %s", user.uid)
        return AuthResult(success=True, user=user)

    async def sign_in_with_password(self, email: str, password: str) -> AuthResult:
        try:
            user = await self._auth.sign_in_with_password(email, password)
        except IdentityProviderError as exc:
            return _failure(exc)

        if _needs_verification(user):
            await self._auth.sign_out()
            self._notices.raise_flag(Notice.VERIFICATION_REQUIRED)
            return AuthResult(success=False, user=user, error=VERIFY_BEFORE_SIGN_IN)
        return AuthResult(success=True, user=user)

    async def sign_in_with_oauth(self, provider_id: str, access_token: str) -> AuthResult:
        try:
            result = await self._auth.sign_in_with_idp(provider_id, access_token)
        except IdentityProviderError as exc:
            return _failure(exc)

        if result.oauth_access_token:
            self._monitor.store_secondary_token(result.oauth_access_token)
        return AuthResult(success=True, user=result.user)

    async def send_password_reset(self, email: str) -> AuthResult:
        try:
            await self._auth.send_password_reset_email(email)
        except IdentityProviderError as exc:
            return _failure(exc)
        return AuthResult(success=True)

    async def confirm_email_verification(self, oob_code: str) -> AuthResult:
        try:
            await self._auth.apply_email_verification(oob_code)
        except IdentityProviderError as exc:
            return _failure(exc)

        self._notices.raise_flag(Notice.EMAIL_VERIFIED)
        user = self._auth.current_user
        if user is not None:
            await self._profiles.update_if_exists(user.uid, {"emailVerified": True})
        return AuthResult(success=True, user=user)

    async def update_profile(
        self, *, username: Optional[str] = None, photo_url: Optional[str] = None
    ) -> AuthResult:
        user = self._state.user
        if user is None:
            return AuthResult(success=False, error="No user is signed in")

        fields: dict[str, object] = {}
        if username is not None and username.strip():
            fields["username"] = username.strip()
        if photo_url:
            fields["photoURL"] = photo_url
        if not fields:
            return AuthResult(success=True, user=user)

        try:
            await self._profiles.update_if_exists(user.uid, fields)
            await self._auth.update_profile(
                display_name=fields.get("username"),  # type: ignore[arg-type]
                photo_url=photo_url,
            )
        except IdentityProviderError as exc:
            return _failure(exc)

        self._set_state(profile=await self._profiles.get(user.uid))
        return AuthResult(success=True, user=user)

    async def refresh_tokens(self) -> RefreshResult:
        result = await self._monitor.force_refresh()
        self._set_state(ledger=self._monitor.ledger.read())
        return result

    async def sign_out(self) -> None:
        await self._monitor.stop_refresh_checks()
        self._monitor.ledger.clear()
        await self._auth.sign_out()


__all__ = [
    "AuthClient",
    "AuthResult",
    "SessionController",
    "SessionPhase",
    "SessionState",
]
