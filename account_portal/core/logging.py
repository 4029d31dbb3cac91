"""
Logging utilities for the API process and the client-side session components.
"""

import logging
import sys


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with the shared line format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    # httpx logs every request at INFO, including URLs carrying API keys.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def redact_email(email: str) -> str:
    """Shorten an address for log lines."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


__all__ = ["configure_logging", "redact_email"]
