"""One-shot flags that carry a message across a full page navigation."""

from __future__ import annotations

from enum import Enum

from account_portal.clients.local_storage import LocalStorage


class Notice(str, Enum):
    SESSION_EXPIRED = "session_expired"
    EMAIL_VERIFIED = "email_verified"
    VERIFICATION_REQUIRED = "verification_required"


class OneShotNotices:
    """Raise a flag now, surface it exactly once later."""

    def __init__(self, storage: LocalStorage) -> None:
        self._storage = storage

    def raise_flag(self, notice: Notice) -> None:
        self._storage.set_item(notice.value, "true")

    def consume(self, notice: Notice) -> bool:
        """Return whether ``notice`` was raised, clearing it either way."""
        raised = self._storage.get_item(notice.value) is not None
        if raised:
            self._storage.remove_item(notice.value)
        return raised


__all__ = ["Notice", "OneShotNotices"]
