"""
Client-persisted record of issued session tokens and their expiry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from pydantic import ValidationError

from account_portal.clients.local_storage import LocalStorage
from account_portal.models.tokens import StoredLedger, TokenProvider, TokenRecord
from account_portal.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)

STORAGE_KEY = "auth_tokens"
EXPIRATION_KEY = "token_expiration"

TOKEN_TTL = timedelta(days=7)
REFRESH_THRESHOLD = timedelta(days=1)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TokenStatus:
    """Display-oriented view of one ledger slot."""

    valid: bool
    needs_refresh: bool
    expires_in_minutes: int
    expires_at: Optional[datetime]


class TokenLedger:
    """Read, write and evaluate the stored token ledger.

    Malformed or undecryptable persisted data reads as absent; the ledger never
    raises on read.
    """

    def __init__(
        self,
        storage: LocalStorage,
        cipher: TokenCipherService,
        *,
        ttl: timedelta = TOKEN_TTL,
        refresh_threshold: timedelta = REFRESH_THRESHOLD,
        clock: Clock = utc_now,
    ) -> None:
        self._storage = storage
        self._cipher = cipher
        self.ttl = ttl
        self.refresh_threshold = refresh_threshold
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    def read(self) -> Optional[StoredLedger]:
        sealed = self._storage.get_item(STORAGE_KEY)
        if not sealed:
            return None
        try:
            return StoredLedger.model_validate(self._cipher.open(sealed))
        except (ValueError, ValidationError) as exc:
            logger.warning("Discarding unreadable token ledger: %s", exc)
            return None

    def write(self, ledger: StoredLedger) -> None:
        self._storage.set_item(STORAGE_KEY, self._cipher.seal(ledger.model_dump(mode="json")))
        marker = "0"
        if ledger.primary is not None:
            marker = str(int(ledger.primary.expires_at.timestamp() * 1000))
        self._storage.set_item(EXPIRATION_KEY, marker)

    def clear(self) -> None:
        self._storage.remove_item(STORAGE_KEY)
        self._storage.remove_item(EXPIRATION_KEY)

    def issue(self, token: str, provider: TokenProvider) -> TokenRecord:
        return TokenRecord.issue(token, provider, now=self.now(), ttl=self.ttl)

    def store(self, record: TokenRecord) -> StoredLedger:
        """Put ``record`` in its slot, keeping the other slot as persisted."""
        now = self.now()
        current = self.read() or StoredLedger(last_refresh=now)
        ledger = current.with_record(record, now=now)
        self.write(ledger)
        return ledger

    def is_expired(self, record: Optional[TokenRecord]) -> bool:
        if record is None:
            return True
        return self.now() >= record.expires_at

    def needs_refresh(self, record: Optional[TokenRecord]) -> bool:
        if record is None:
            return False
        return self.now() >= record.expires_at - self.refresh_threshold

    def minutes_until_expiration(self, record: Optional[TokenRecord]) -> int:
        if record is None:
            return 0
        remaining = (record.expires_at - self.now()).total_seconds()
        return max(0, int(remaining // 60))

    def status(self, record: Optional[TokenRecord]) -> TokenStatus:
        return TokenStatus(
            valid=record is not None and not self.is_expired(record),
            needs_refresh=self.needs_refresh(record),
            expires_in_minutes=self.minutes_until_expiration(record),
            expires_at=record.expires_at if record else None,
        )


__all__ = [
    "EXPIRATION_KEY",
    "REFRESH_THRESHOLD",
    "STORAGE_KEY",
    "TOKEN_TTL",
    "TokenLedger",
    "TokenStatus",
    "utc_now",
]
