"""
Token lifecycle monitoring: periodic and visibility-driven expiration checks,
proactive refresh, and forced sign-out of expired sessions.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Awaitable, Callable, Dict, Optional, Protocol

from account_portal.models.tokens import TokenProvider, TokenRecord
from account_portal.services.navigation import LOGIN_PATH, Navigator
from account_portal.services.notices import Notice, OneShotNotices
from account_portal.services.token_ledger import TokenLedger, TokenStatus

logger = logging.getLogger(__name__)

_PROVIDER_LABELS = {
    TokenProvider.PRIMARY: "Session",
    TokenProvider.SECONDARY: "OAuth authorization",
}


class TokenIssuer(Protocol):
    async def get_id_token(self, force_refresh: bool = False) -> str:
        ...

    async def sign_out(self) -> None:
        ...


@dataclass(frozen=True)
class ExpirationCheck:
    expired: bool
    provider: Optional[TokenProvider] = None


@dataclass
class RefreshResult:
    success: bool
    errors: list[str] = field(default_factory=list)


def run_periodically(
    interval: timedelta, tick: Callable[[], Awaitable[object]], name: str
) -> asyncio.Task:
    """Start a task calling ``tick`` every ``interval`` until cancelled."""

    async def _loop() -> None:
        while True:
            await asyncio.sleep(interval.total_seconds())
            try:
                await tick()
            except Exception:  # pragma: no cover - keeps the timer alive
                logger.exception("Periodic task %s failed", name)

    return asyncio.get_running_loop().create_task(_loop(), name=name)


class TokenLifecycleMonitor:
    """Decide when a session is expired or due for refresh, and act on it."""

    def __init__(
        self,
        ledger: TokenLedger,
        issuer: TokenIssuer,
        notices: OneShotNotices,
        navigator: Navigator,
        *,
        expiration_check_interval: timedelta = timedelta(minutes=30),
        refresh_check_interval: timedelta = timedelta(minutes=5),
    ) -> None:
        self.ledger = ledger
        self._issuer = issuer
        self._notices = notices
        self._navigator = navigator
        self._expiration_check_interval = expiration_check_interval
        self._refresh_check_interval = refresh_check_interval
        self._sweep_task: Optional[asyncio.Task] = None
        self._refresh_task: Optional[asyncio.Task] = None
        self._terminated = False

    # -- scheduling --------------------------------------------------------

    def start(self) -> bool:
        """Begin the expiration sweep.

        Returns whether the previous session ended by expiring; that notice is
        reported once and then cleared.
        """
        previous_expired = self._notices.consume(Notice.SESSION_EXPIRED)
        if previous_expired:
            logger.info("Previous session expired")
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = run_periodically(
                self._expiration_check_interval, self.check_expiration, "token-expiration-sweep"
            )
        return previous_expired

    def start_refresh_checks(self) -> None:
        """Arm the faster refresh check for an active session."""
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = run_periodically(
                self._refresh_check_interval, self.refresh_if_needed, "token-refresh-check"
            )

    async def stop_refresh_checks(self) -> None:
        task, self._refresh_task = self._refresh_task, None
        await _cancel(task)

    async def stop(self) -> None:
        task, self._sweep_task = self._sweep_task, None
        await _cancel(task)
        await self.stop_refresh_checks()

    @property
    def refresh_checks_active(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    async def on_visibility_change(self, visible: bool) -> Optional[ExpirationCheck]:
        if not visible:
            return None
        return await self.check_expiration()

    # -- checks ------------------------------------------------------------

    async def check_expiration(self) -> ExpirationCheck:
        stored = self.ledger.read()
        if stored is None:
            return ExpirationCheck(expired=False)

        for provider in (TokenProvider.PRIMARY, TokenProvider.SECONDARY):
            record = stored.get(provider)
            if record is not None and self.ledger.is_expired(record):
                logger.info("%s token expired", provider.value)
                await self.terminate_session()
                return ExpirationCheck(expired=True, provider=provider)
        return ExpirationCheck(expired=False)

    async def terminate_session(self) -> None:
        """Clear tokens, sign out and send the user to the login screen."""
        logger.info("Handling expired session")
        self._terminated = True
        self.ledger.clear()
        try:
            await self._issuer.sign_out()
        except Exception:
            logger.exception("Sign-out failed while ending an expired session")
        self._notices.raise_flag(Notice.SESSION_EXPIRED)
        self._navigator.navigate(LOGIN_PATH)

    def consume_termination(self) -> bool:
        """Whether a session was ended by expiry since the last call."""
        terminated, self._terminated = self._terminated, False
        return terminated

    # -- issuing and refresh -----------------------------------------------

    async def store_primary_token(self, *, force: bool = False) -> bool:
        """Fetch an ID token from the identity provider and record it."""
        try:
            token = await self._issuer.get_id_token(force_refresh=force)
        except Exception:
            logger.exception("Could not obtain an ID token (force=%s)", force)
            return False
        self.ledger.store(self.ledger.issue(token, TokenProvider.PRIMARY))
        return True

    def store_secondary_token(self, access_token: str) -> TokenRecord:
        record = self.ledger.issue(access_token, TokenProvider.SECONDARY)
        self.ledger.store(record)
        return record

    async def refresh_if_needed(self) -> bool:
        """Refresh the primary token once it is inside the refresh window."""
        stored = self.ledger.read()
        if stored is None or stored.primary is None:
            return False
        if not self.ledger.needs_refresh(stored.primary):
            return False
        logger.info("Primary token inside refresh window; refreshing")
        return await self.store_primary_token(force=True)

    async def force_refresh(self) -> RefreshResult:
        """Refresh every token that can be refreshed without the user.

        The secondary OAuth token needs an interactive re-authentication, so it
        is left untouched and is not reported as an error. Never raises.
        """
        result = RefreshResult(success=True)
        try:
            if not await self.store_primary_token(force=True):
                result.success = False
                result.errors.append("Failed to refresh primary token")
        except Exception:
            logger.exception("Unexpected error during token refresh")
            result.success = False
            result.errors.append("Unexpected error during token refresh")
        return result

    # -- reporting ---------------------------------------------------------

    def token_report(self) -> Dict[TokenProvider, TokenStatus]:
        stored = self.ledger.read()
        return {
            provider: self.ledger.status(stored.get(provider) if stored else None)
            for provider in TokenProvider
        }

    def expiration_warning(self, threshold_minutes: int = 60) -> Optional[str]:
        messages = [
            f"{_PROVIDER_LABELS[provider]} expires in {status.expires_in_minutes} minutes"
            for provider, status in self.token_report().items()
            if status.valid and status.expires_in_minutes <= threshold_minutes
        ]
        return ". ".join(messages) or None


async def _cancel(task: Optional[asyncio.Task]) -> None:
    if task is None or task.done():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


__all__ = [
    "ExpirationCheck",
    "RefreshResult",
    "TokenIssuer",
    "TokenLifecycleMonitor",
    "run_periodically",
]
