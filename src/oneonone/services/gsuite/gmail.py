"""Async Gmail API sender.

Google API client calls are blocking, so each send runs in
asyncio.to_thread(). Errors from the API are re-raised as
ExternalServiceError; deciding whether a failed email matters is the
caller's job.
"""

from __future__ import annotations

import asyncio
import base64
from email.message import EmailMessage as StdlibEmailMessage

import structlog
from googleapiclient.errors import HttpError

from src.oneonone.core.errors import ExternalServiceError
from src.oneonone.services.gsuite.auth import GSuiteAuthManager
from src.oneonone.services.gsuite.models import EmailMessage, SentEmailResult

logger = structlog.get_logger(__name__)


class GmailService:
    """Async wrapper around the Gmail API for sending notification emails."""

    def __init__(
        self,
        auth_manager: GSuiteAuthManager,
        default_user_email: str,
    ) -> None:
        self._auth = auth_manager
        self._default_user_email = default_user_email

    def _build_mime_message(self, email: EmailMessage, sender: str) -> str:
        """Build a base64url-encoded RFC 2822 message for the Gmail API."""
        msg = StdlibEmailMessage()
        msg["From"] = sender
        msg["To"] = ", ".join(email.to)
        msg["Subject"] = email.subject
        if email.reply_to:
            msg["Reply-To"] = email.reply_to
        msg.set_content(email.body_html, subtype="html")

        return base64.urlsafe_b64encode(msg.as_bytes()).decode()

    async def send_email(self, email: EmailMessage) -> SentEmailResult:
        """Send an email from the configured sender mailbox.

        Raises:
            ExternalServiceError: If the Gmail API rejects the message.
        """
        sender = self._default_user_email
        service = self._auth.get_gmail_service(sender)
        body = {"raw": self._build_mime_message(email, sender)}

        def _send() -> dict:
            return (
                service.users()
                .messages()
                .send(userId="me", body=body)
                .execute()
            )

        logger.info("gmail.sending", kind=email.kind.value, to=email.to)
        try:
            result = await asyncio.to_thread(_send)
        except HttpError as exc:
            raise ExternalServiceError(f"Email delivery failed: {exc}") from exc

        return SentEmailResult(
            message_id=result.get("id", ""),
            thread_id=result.get("threadId", ""),
        )
