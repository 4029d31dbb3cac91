"""Client-side navigation seam used by the session components."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"
VERIFY_EMAIL_PATH = "/verify-email"


class Navigator(Protocol):
    def navigate(self, path: str) -> None:
        ...


class HistoryNavigator:
    """Remember requested locations for a host shell to act on."""

    def __init__(self) -> None:
        self.history: list[str] = []

    @property
    def location(self) -> Optional[str]:
        return self.history[-1] if self.history else None

    def navigate(self, path: str) -> None:
        logger.info("Navigating to %s", path)
        self.history.append(path)


__all__ = ["HistoryNavigator", "LOGIN_PATH", "Navigator", "VERIFY_EMAIL_PATH"]
