"""Verification email rendering and delivery."""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol

from account_portal.core.errors import EmailDeliveryError
from account_portal.core.logging import redact_email

logger = logging.getLogger(__name__)

VERIFICATION_SUBJECT = "Verify Your Email Address"


class EmailSender(Protocol):
    async def send_email(self, *, to: str, subject: str, html: str) -> dict:
        ...


@dataclass(frozen=True)
class EmailResult:
    success: bool
    error: Optional[str] = None


def render_verification_email(username: str, link: str) -> str:
    name = html.escape(username)
    href = html.escape(link, quote=True)
    year = datetime.now(timezone.utc).year
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><meta name="viewport" content="width=device-width, initial-scale=1.0"></head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="background: #667eea; color: white; padding: 30px; text-align: center; border-radius: 10px 10px 0 0;">
    <h1 style="margin: 0; font-size: 28px;">Welcome aboard!</h1>
  </div>
  <div style="background: #f9fafb; padding: 30px; border: 1px solid #e5e7eb; border-radius: 0 0 10px 10px;">
    <p>Hi <strong>{name}</strong>,</p>
    <p>Please verify your email address to finish setting up your account.</p>
    <p style="text-align: center; margin: 30px 0;">
      <a href="{href}" style="background: #667eea; color: white; padding: 15px 40px; text-decoration: none; border-radius: 8px; font-weight: bold;">Verify Email Address</a>
    </p>
    <p style="color: #666; font-size: 14px;">Or paste this link into your browser:<br><a href="{href}">{href}</a></p>
    <p style="color: #888; font-size: 13px;">This link expires in 1 hour. If you didn't create an account, you can ignore this email.</p>
  </div>
  <p style="text-align: center; color: #888; font-size: 12px;">&copy; {year}</p>
</body>
</html>
"""


class VerificationMailer:
    """Send verification links; reports failure instead of raising."""

    def __init__(self, sender: EmailSender) -> None:
        self._sender = sender

    async def send_verification_email(self, email: str, username: str, link: str) -> EmailResult:
        try:
            await self._sender.send_email(
                to=email,
                subject=VERIFICATION_SUBJECT,
                html=render_verification_email(username, link),
            )
        except EmailDeliveryError as exc:
            logger.warning("Verification email to %s failed: %s", redact_email(email), exc)
            return EmailResult(success=False, error=str(exc) or "Failed to send verification email")
        return EmailResult(success=True)


__all__ = ["EmailResult", "VerificationMailer", "render_verification_email"]
