"""
Notification Service - transactional email via the Resend API.
"""
from typing import Optional, Union

import httpx

from chesapeake.core.config import settings
from chesapeake.core.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Email sender.

    Never raises: a failed send is logged and reported as False so callers
    can treat email as best effort.
    """

    RESEND_API_URL = "https://api.resend.com/emails"

    def __init__(
        self,
        api_key: Optional[str] = None,
        from_email: Optional[str] = None,
        reply_to: Optional[str] = None,
    ) -> None:
        self.resend_api_key = api_key if api_key is not None else settings.resend_api_key
        self.from_email = from_email or settings.resend_from
        self.reply_to = reply_to or settings.resend_reply_to

    async def send_email(
        self,
        to: Union[str, list[str]],
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        reply_to: Optional[str] = None,
    ) -> bool:
        """
        Send email via Resend API.

        Args:
            to: Recipient address or addresses
            subject: Email subject
            html_content: HTML email body
            text_content: Plain text fallback
            reply_to: Overrides the configured reply-to address

        Returns:
            True if sent successfully
        """
        if not self.resend_api_key:
            logger.warning("Resend API key not configured, skipping email", subject=subject)
            return False

        recipients = to if isinstance(to, list) else [to]
        if not recipients or not all(recipients):
            logger.warning("Email has no recipient, skipping", subject=subject)
            return False

        payload = {
            "from": self.from_email,
            "to": recipients,
            "subject": subject,
            "html": html_content,
            "text": text_content or subject,
        }
        if reply_to or self.reply_to:
            payload["reply_to"] = reply_to or self.reply_to

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.RESEND_API_URL,
                    headers={
                        "Authorization": f"Bearer {self.resend_api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                    timeout=10.0,
                )

                if response.status_code == 200:
                    logger.info("Email sent", to=recipients, subject=subject)
                    return True
                else:
                    logger.error(
                        "Email send failed",
                        status=response.status_code,
                        response=response.text,
                    )
                    return False

        except Exception as e:
            logger.error("Email send error", error=str(e))
            return False


def get_notification_service() -> NotificationService:
    return NotificationService()
