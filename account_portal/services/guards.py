"""
Route guards: read-only views over session state deciding whether a screen
may render.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from account_portal.services.navigation import LOGIN_PATH, VERIFY_EMAIL_PATH, Navigator
from account_portal.services.notices import Notice, OneShotNotices
from account_portal.services.session import SessionState


@dataclass(frozen=True)
class GuardDecision:
    can_access: bool
    redirect_to: Optional[str] = None
    is_authenticated: bool = False
    is_verified: bool = False
    needs_verification: bool = False


def is_verified(state: SessionState) -> bool:
    """OAuth accounts always count as verified."""
    user = state.user
    if user is None:
        return False
    if not user.is_password_account:
        return True
    profile_verified = state.profile.email_verified if state.profile else False
    return user.email_verified or profile_verified


def can_access(state: SessionState, *, require_verification: bool = True) -> bool:
    if state.loading or state.user is None:
        return False
    return not require_verification or is_verified(state) or not state.user.is_password_account


class _RedirectingGuard:
    def __init__(self, navigator: Navigator) -> None:
        self._navigator = navigator
        self._redirected = False

    def _deny(self, target: str, **flags: bool) -> GuardDecision:
        if not self._redirected:
            self._redirected = True
            self._navigator.navigate(target)
        return GuardDecision(can_access=False, redirect_to=target, **flags)

    def _allow(self, **flags: bool) -> GuardDecision:
        self._redirected = False
        return GuardDecision(can_access=True, **flags)


class AuthGuard(_RedirectingGuard):
    """Require a signed-in user, optionally with a verified email."""

    def __init__(
        self,
        navigator: Navigator,
        *,
        redirect_to: str = LOGIN_PATH,
        require_email_verified: bool = False,
    ) -> None:
        super().__init__(navigator)
        self.redirect_to = redirect_to
        self.require_email_verified = require_email_verified

    def evaluate(self, state: SessionState) -> GuardDecision:
        if state.loading:
            return GuardDecision(can_access=False)
        user = state.user
        if user is None:
            return self._deny(self.redirect_to)
        verified = is_verified(state)
        if self.require_email_verified and not verified:
            return self._deny(VERIFY_EMAIL_PATH, is_authenticated=True)
        return self._allow(is_authenticated=True, is_verified=verified)


class EmailVerificationGuard(_RedirectingGuard):
    """Send unverified password accounts back to the login screen."""

    def __init__(
        self,
        navigator: Navigator,
        notices: OneShotNotices,
        *,
        redirect_to: str = LOGIN_PATH,
        require_verification: bool = True,
    ) -> None:
        super().__init__(navigator)
        self._notices = notices
        self.redirect_to = redirect_to
        self.require_verification = require_verification

    def evaluate(self, state: SessionState) -> GuardDecision:
        if state.loading:
            return GuardDecision(can_access=False)
        user = state.user
        if user is None:
            return self._deny(self.redirect_to)

        verified = is_verified(state)
        needs_verification = user.is_password_account and not verified
        if self.require_verification and needs_verification:
            if not self._redirected:
                self._notices.raise_flag(Notice.VERIFICATION_REQUIRED)
            return self._deny(LOGIN_PATH, is_authenticated=True, needs_verification=True)
        return self._allow(is_authenticated=True, is_verified=verified)


__all__ = [
    "AuthGuard",
    "EmailVerificationGuard",
    "GuardDecision",
    "can_access",
    "is_verified",
]
