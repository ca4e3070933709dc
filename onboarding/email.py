"""
Email module using Resend for sending emails.

Includes reliable delivery with retry logic.
"""
import asyncio
import hashlib
import html
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional
from zoneinfo import ZoneInfo

import httpx

from onboarding.config import get_settings, Settings
from onboarding.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


# Retry configuration
MAX_RETRY_ATTEMPTS = 3
RETRY_DELAYS_SECONDS = [0, 2, 4]  # Exponential backoff: immediate, 2s, 4s

NOTIFICATION_TIMEZONE = ZoneInfo("America/New_York")


class EmailDeliveryStatus(str, Enum):
    """Email delivery status for tracking."""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"  # Email not configured or disabled


@dataclass
class EmailAttempt:
    """Record of a single email send attempt."""
    attempt_number: int
    success: bool
    error: Optional[str] = None
    message_id: Optional[str] = None


@dataclass
class EmailResult:
    """Result of email send operation with delivery tracking."""
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    delivery_status: EmailDeliveryStatus = EmailDeliveryStatus.PENDING
    attempts: List[EmailAttempt] = field(default_factory=list)
    total_attempts: int = 0

    @property
    def is_delivered(self) -> bool:
        return self.delivery_status == EmailDeliveryStatus.SENT

    @property
    def is_failed(self) -> bool:
        return self.delivery_status == EmailDeliveryStatus.FAILED


def format_submitted_at(value: Optional[datetime] = None) -> str:
    """e.g. "March 4, 2026 at 02:15 PM" in US Eastern time."""
    dt = (value or utc_now()).astimezone(NOTIFICATION_TIMEZONE)
    return f"{dt.strftime('%B')} {dt.day}, {dt.year} at {dt.strftime('%I:%M %p')}"


def render_background_check_notification(
    first_name: str,
    last_name: str,
    user_email: str,
    submitted_at: str,
) -> tuple:
    """Build (subject, html) for the admin notification."""
    name = html.escape(f"{first_name} {last_name}".strip())
    subject = f"New Background Check Submitted - {first_name} {last_name}".strip()
    body = f"""<!DOCTYPE html>
<html>
<head><meta charset="UTF-8"><title>{html.escape(subject)}</title></head>
<body style="margin: 0; padding: 0; font-family: Arial, sans-serif; background-color: #f5f5f5;">
  <table cellpadding="0" cellspacing="0" border="0" width="100%" style="padding: 40px 0;">
    <tr><td align="center">
      <table cellpadding="0" cellspacing="0" border="0" width="600" style="background-color: #ffffff; border-radius: 8px;">
        <tr><td style="background-color: #667eea; padding: 40px 30px; text-align: center;">
          <h1 style="color: #ffffff; margin: 0; font-size: 26px;">New Background Check Submitted</h1>
          <p style="color: #e6e6ff; margin: 10px 0 0 0;">A user has completed their background check forms</p>
        </td></tr>
        <tr><td style="padding: 40px 30px; color: #333333;">
          <p>A new background check form has been submitted and is ready for your review.</p>
          <table cellpadding="8" cellspacing="0" border="0" width="100%" style="background-color: #f8f9fa; border: 2px solid #667eea; border-radius: 8px;">
            <tr><td><strong>Name:</strong></td><td align="right">{name}</td></tr>
            <tr><td><strong>Email:</strong></td><td align="right">{html.escape(user_email)}</td></tr>
            <tr><td><strong>Submitted:</strong></td><td align="right">{html.escape(submitted_at)}</td></tr>
          </table>
          <p style="margin-top: 30px;"><strong>Next steps:</strong></p>
          <ol>
            <li>Log in to the admin dashboard</li>
            <li>Open the Background Checks page</li>
            <li>Review the submitted documents and approve the check</li>
          </ol>
        </td></tr>
      </table>
    </td></tr>
  </table>
</body>
</html>"""
    return subject, body


class EmailService:
    """Email service using the Resend HTTP API."""

    RESEND_API_URL = "https://api.resend.com/emails"

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def is_configured(self) -> bool:
        """Check if email service is properly configured."""
        return bool(self.settings.resend_api_key)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text: Optional[str] = None,
    ) -> EmailResult:
        """
        Send email via Resend HTTP API with retry logic.

        3 attempts with exponential backoff (0s, 2s, 4s).

        Returns:
            EmailResult with delivery_status and attempt history
        """
        # Fingerprint for logging (no PII)
        email_fp = hashlib.sha256(to_email.encode()).hexdigest()[:8]

        if not self.is_configured():
            logger.warning(f"Resend API key not configured, skipping email to {email_fp}")
            return EmailResult(
                success=False,
                error="Email service not configured",
                delivery_status=EmailDeliveryStatus.SKIPPED,
            )

        payload = {
            "from": self.settings.resend_from_email,
            "to": [to_email],
            "subject": subject,
            "html": html_body,
        }
        if text:
            payload["text"] = text

        headers = {
            "Authorization": f"Bearer {self.settings.resend_api_key}",
            "Content-Type": "application/json",
        }

        attempts: List[EmailAttempt] = []
        last_error: Optional[str] = None

        for attempt_num in range(1, MAX_RETRY_ATTEMPTS + 1):
            # Wait before retry (skip delay for first attempt)
            if attempt_num > 1:
                delay = RETRY_DELAYS_SECONDS[attempt_num - 1] if attempt_num - 1 < len(RETRY_DELAYS_SECONDS) else 4
                logger.info(f"Email retry {attempt_num}/{MAX_RETRY_ATTEMPTS} to {email_fp}, waiting {delay}s")
                await asyncio.sleep(delay)

            try:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        self.RESEND_API_URL,
                        json=payload,
                        headers=headers,
                        timeout=30.0,
                    )

                if response.status_code in (200, 201):
                    message_id = response.json().get("id")
                    attempts.append(EmailAttempt(
                        attempt_number=attempt_num,
                        success=True,
                        message_id=message_id,
                    ))
                    logger.info(
                        f"Email sent to {email_fp} on attempt {attempt_num}, "
                        f"message_id: {message_id}"
                    )
                    return EmailResult(
                        success=True,
                        message_id=message_id,
                        delivery_status=EmailDeliveryStatus.SENT,
                        attempts=attempts,
                        total_attempts=attempt_num,
                    )

                last_error = f"API error {response.status_code}: {response.text[:200]}"

            except httpx.TimeoutException as e:
                last_error = f"Timeout: {e}"
            except Exception as e:
                last_error = str(e)

            attempts.append(EmailAttempt(
                attempt_number=attempt_num,
                success=False,
                error=last_error,
            ))
            logger.warning(
                f"Email attempt {attempt_num}/{MAX_RETRY_ATTEMPTS} to {email_fp} "
                f"failed: {last_error}"
            )

        # All attempts failed
        logger.error(
            f"Email to {email_fp} failed after {MAX_RETRY_ATTEMPTS} attempts. "
            f"Last error: {last_error}"
        )
        return EmailResult(
            success=False,
            error=last_error,
            delivery_status=EmailDeliveryStatus.FAILED,
            attempts=attempts,
            total_attempts=MAX_RETRY_ATTEMPTS,
        )

    async def send_background_check_notification(
        self,
        user_email: Optional[str],
        first_name: Optional[str],
        last_name: Optional[str],
        submitted_at: Optional[datetime] = None,
    ) -> EmailResult:
        """Notify the admin inbox that a user finished their background check forms."""
        to_email = self.settings.admin_notification_email
        if not to_email:
            logger.warning("ADMIN_NOTIFICATION_EMAIL not configured, skipping notification")
            return EmailResult(
                success=False,
                error="Admin notification address not configured",
                delivery_status=EmailDeliveryStatus.SKIPPED,
            )

        subject, body = render_background_check_notification(
            first_name or "User",
            last_name or "",
            user_email or "N/A",
            format_submitted_at(submitted_at),
        )
        return await self.send_email(to_email, subject, body)


_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Get the email service singleton."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service


__all__ = [
    "EmailService",
    "EmailResult",
    "EmailDeliveryStatus",
    "EmailAttempt",
    "get_email_service",
    "render_background_check_notification",
    "MAX_RETRY_ATTEMPTS",
    "RETRY_DELAYS_SECONDS",
]
