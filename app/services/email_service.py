# file: app/services/email_service.py

import asyncio
import logging
from typing import List, Optional

import httpx

from app.config import Settings
from app.models.email import (
    BroadcastResult, EmailResult, EmailTemplate, Recipient, RecipientResult, RenderedEmail,
)
from app.services.email_templates import (
    EMAIL_TEMPLATES, html_to_plain_text, render_template, substitute_name, substitute_name_html,
)

logger = logging.getLogger(__name__)

DEFAULT_RECIPIENT_NAME = "Dear User"
BACKOFF_BASE_SECONDS = 0.5


class EmailProviderError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitedError(EmailProviderError):
    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


def _parse_retry_after(value) -> Optional[float]:
    try:
        return max(0.0, float(value))
    except (TypeError, ValueError):
        return None


class EmailService:
    """Renders the Santvaani templates and sends them through Brevo's transactional API."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def _headers(self) -> dict:
        return {
            "accept": "application/json",
            "content-type": "application/json",
            "api-key": self.settings.brevo_api_key or "",
        }

    def build_payload(self, to_email: str, to_name: str, rendered: RenderedEmail) -> dict:
        return {
            "sender": {"name": self.settings.email_sender_name, "email": self.settings.email_sender_address},
            "replyTo": {"name": self.settings.email_reply_to_name, "email": self.settings.email_reply_to_address},
            "to": [{"email": to_email, "name": to_name}],
            "subject": rendered.subject,
            "htmlContent": rendered.html_content,
            "textContent": rendered.text_content,
            "headers": {
                "X-Priority": "3",
                "X-Mailer": "Santvaani",
                "Precedence": "bulk",
                "List-Unsubscribe": f"<mailto:{self.settings.email_reply_to_address}?subject=unsubscribe>",
                "List-Unsubscribe-Post": "List-Unsubscribe=One-Click",
            },
        }

    async def _post(self, payload: dict) -> Optional[str]:
        if not self.settings.brevo_api_key:
            raise EmailProviderError("BREVO_API_KEY is not configured")

        async with httpx.AsyncClient(timeout=self.settings.http_timeout) as client:
            response = await client.post(self.settings.brevo_api_url, json=payload, headers=self._headers())

        if response.status_code == 429:
            raise RateLimitedError(
                f"Brevo rate limit hit: {response.text}",
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
            )
        if response.status_code >= 400:
            raise EmailProviderError(
                f"Brevo responded with {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        return response.json().get("messageId")

    async def _post_with_backoff(self, payload: dict) -> Optional[str]:
        attempt = 0
        while True:
            try:
                return await self._post(payload)
            except RateLimitedError as e:
                if attempt >= self.settings.email_max_retries:
                    raise
                delay = e.retry_after if e.retry_after is not None else BACKOFF_BASE_SECONDS * (2 ** attempt)
                logger.warning(f"Brevo rate limited, retrying in {delay:.1f}s (attempt {attempt + 1})")
                await asyncio.sleep(delay)
                attempt += 1

    async def send_template(self, template: EmailTemplate, to_email: str, to_name: str, label: str) -> EmailResult:
        try:
            rendered = render_template(template, to_name)
            message_id = await self._post(self.build_payload(to_email, to_name, rendered))
            logger.info(f"{label} email sent to {to_email}: {message_id}")
            return EmailResult(success=True, message_id=message_id)
        except Exception as e:
            logger.error(f"Error sending {label} email to {to_email}: {e}")
            return EmailResult(success=False, error=str(e))

    async def send_welcome_email(self, to_email: str, to_name: str) -> EmailResult:
        return await self.send_template(EMAIL_TEMPLATES["welcome"], to_email, to_name, "Welcome")

    async def send_seven_day_email(self, to_email: str, to_name: str) -> EmailResult:
        return await self.send_template(EMAIL_TEMPLATES["seven_days"], to_email, to_name, "7-day")

    async def send_thirty_day_email(self, to_email: str, to_name: str) -> EmailResult:
        return await self.send_template(EMAIL_TEMPLATES["thirty_days"], to_email, to_name, "30-day")

    async def send_broadcast_email(self, recipients: List[Recipient], subject: str, html_content: str) -> BroadcastResult:
        """
        Sends one personalised copy per recipient. A failure for one recipient
        is recorded in its result and does not stop the others.
        """
        semaphore = asyncio.Semaphore(self.settings.email_broadcast_concurrency)
        delay = self.settings.email_send_delay_ms / 1000

        async def send_one(recipient: Recipient) -> RecipientResult:
            name = recipient.name or DEFAULT_RECIPIENT_NAME
            rendered = RenderedEmail(
                subject=substitute_name(subject, name),
                html_content=substitute_name_html(html_content, name),
                text_content=html_to_plain_text(html_content, name),
            )
            async with semaphore:
                try:
                    message_id = await self._post_with_backoff(self.build_payload(recipient.email, name, rendered))
                    result = RecipientResult(email=recipient.email, success=True, message_id=message_id)
                except Exception as e:
                    logger.error(f"Broadcast to {recipient.email} failed: {e}")
                    result = RecipientResult(email=recipient.email, success=False, error=str(e))
                if delay:
                    await asyncio.sleep(delay)
                return result

        results = await asyncio.gather(*(send_one(r) for r in recipients))
        sent = sum(1 for r in results if r.success)
        failed = len(results) - sent
        logger.info(f"Broadcast sent to {sent} recipients, {failed} failed")
        return BroadcastResult(success=failed == 0, sent=sent, failed=failed, results=list(results))
