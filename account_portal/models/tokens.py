"""
Domain models for the client-side token ledger.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TokenProvider(str, Enum):
    """Which issuer a ledger slot belongs to."""

    PRIMARY = "primary"  # identity provider ID token
    SECONDARY = "secondary"  # OAuth provider access token


class TokenRecord(BaseModel):
    """One issued token and its expiration bookkeeping."""

    model_config = ConfigDict(frozen=True)

    token: str
    issued_at: datetime
    expires_at: datetime
    provider: TokenProvider

    @classmethod
    def issue(
        cls,
        token: str,
        provider: TokenProvider,
        *,
        now: datetime,
        ttl: timedelta,
    ) -> "TokenRecord":
        """Create a record whose expiry is ``now + ttl``."""
        return cls(token=token, issued_at=now, expires_at=now + ttl, provider=provider)


class StoredLedger(BaseModel):
    """The persisted set of token records, one slot per provider."""

    model_config = ConfigDict(frozen=True)

    primary: Optional[TokenRecord] = None
    secondary: Optional[TokenRecord] = None
    last_refresh: datetime = Field(...)

    def get(self, provider: TokenProvider) -> Optional[TokenRecord]:
        if provider is TokenProvider.PRIMARY:
            return self.primary
        return self.secondary

    def with_record(self, record: TokenRecord, *, now: datetime) -> "StoredLedger":
        """Return a copy with ``record`` in its provider slot."""
        return self.model_copy(update={record.provider.value: record, "last_refresh": now})

    def records(self) -> list[TokenRecord]:
        return [record for record in (self.primary, self.secondary) if record is not None]


__all__ = ["StoredLedger", "TokenProvider", "TokenRecord"]
