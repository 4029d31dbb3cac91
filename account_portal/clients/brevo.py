"""
Transactional email delivery through the Brevo (Sendinblue) HTTP API.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

import httpx

from account_portal.core.config import EmailSettings
from account_portal.core.errors import EmailDeliveryError
from account_portal.core.logging import redact_email
from account_portal.utils.http import json_or_empty, request_with_retry

logger = logging.getLogger(__name__)

_ANGLE_ADDRESS = re.compile(r"<(.+)>")


class BrevoEmailClient:
    """Send HTML email through ``POST /v3/smtp/email``."""

    SEND_URL = "https://api.brevo.com/v3/smtp/email"
    DEFAULT_SENDER = "noreply@brevo.com"

    def __init__(
        self,
        settings: EmailSettings,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._timeout = timeout
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self._settings.brevo_api_key)

    @property
    def sender_address(self) -> str:
        raw = (self._settings.email_from or "").strip()
        match = _ANGLE_ADDRESS.search(raw)
        if match:
            return match.group(1).strip()
        return raw if "@" in raw else self.DEFAULT_SENDER

    async def send_email(self, *, to: str, subject: str, html: str) -> Dict[str, Any]:
        """Send one message; raises ``EmailDeliveryError`` on any failure."""
        if not self.is_configured:
            raise EmailDeliveryError(
                "Email service not configured. Please set BREVO_API_KEY."
            )

        payload = {
            "sender": {"name": self._settings.sender_name, "email": self.sender_address},
            "to": [{"email": to}],
            "subject": subject,
            "htmlContent": html,
        }
        headers = {"api-key": self._settings.brevo_api_key or "", "Content-Type": "application/json"}

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await request_with_retry(
                    client.post, self.SEND_URL, json=payload, headers=headers
                )
        except httpx.HTTPError as exc:
            logger.warning("Brevo request failed for %s: %s", redact_email(to), exc)
            raise EmailDeliveryError(str(exc) or "Failed to send email") from exc

        body = json_or_empty(response)
        if not response.is_success:
            message = body.get("message") or (
                f"HTTP {response.status_code}: {response.reason_phrase}"
            )
            logger.warning("Brevo rejected email to %s: %s", redact_email(to), message)
            raise EmailDeliveryError(message)

        logger.info("Email sent to %s (%s)", redact_email(to), subject)
        return body


__all__ = ["BrevoEmailClient"]
