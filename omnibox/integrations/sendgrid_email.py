"""
Email channel over SendGrid
"""
import asyncio
import base64
import logging
from typing import Optional, List

import httpx
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import (
    Mail, Attachment as SendGridAttachment, FileContent, FileName, FileType, Disposition, CustomArg
)

from omnibox.core.config import Settings, settings as default_settings
from omnibox.core.exceptions import ChannelConfigurationError
from omnibox.integrations.types import ChannelSender, MessagePayload, MessageResponse, Attachment
from omnibox.models.models import Channel, MessageStatus

logger = logging.getLogger(__name__)

SUBJECT_FALLBACK_LENGTH = 50


def build_sendgrid_client(config: Settings) -> SendGridAPIClient:
    if not config.sendgrid_configured:
        raise ChannelConfigurationError("SendGrid is not configured. Please set SENDGRID_API_KEY.")
    return SendGridAPIClient(api_key=config.SENDGRID_API_KEY)


def derive_subject(subject: Optional[str], body: Optional[str]) -> str:
    if subject:
        return subject
    if body:
        return body[:SUBJECT_FALLBACK_LENGTH]
    return "No Subject"


def body_to_html(body: Optional[str]) -> str:
    html = (body or "").replace("\n", "<br>")
    return f"<p>{html}</p>"


class SendGridEmailSender(ChannelSender):
    channel = Channel.EMAIL

    def __init__(
        self,
        client: Optional[SendGridAPIClient] = None,
        config: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.settings = config or default_settings
        self.client = client or build_sendgrid_client(self.settings)
        self.http_client = http_client

    async def _fetch_attachment(self, url: str) -> str:
        """Download a remote attachment; SendGrid only accepts inline content."""
        if self.http_client is not None:
            response = await self.http_client.get(url)
        else:
            async with httpx.AsyncClient(timeout=30.0, follow_redirects=True) as http:
                response = await http.get(url)
        response.raise_for_status()
        return base64.b64encode(response.content).decode("ascii")

    async def _build_attachments(self, attachments: List[Attachment]) -> List[SendGridAttachment]:
        built = []
        for attachment in attachments:
            if attachment.base64:
                content = "".join(attachment.base64.split())
            elif attachment.url:
                content = await self._fetch_attachment(attachment.url)
            else:
                continue
            built.append(SendGridAttachment(
                FileContent(content),
                FileName(attachment.filename),
                FileType(attachment.content_type),
                Disposition("attachment")
            ))
        return built

    async def send(self, payload: MessagePayload) -> MessageResponse:
        channel = self.channel.value
        validation = self.validate(payload)
        if not validation.valid:
            return MessageResponse.failure(channel, validation.error)

        from_email = payload.from_address or self.settings.SENDGRID_FROM_EMAIL
        subject = derive_subject(payload.subject, payload.body)

        try:
            mail = Mail(
                from_email=from_email,
                to_emails=payload.to,
                subject=subject,
                plain_text_content=payload.body or None,
                html_content=payload.html_body or body_to_html(payload.body),
            )
            for attachment in await self._build_attachments(payload.attachments or []):
                mail.add_attachment(attachment)
            for key, value in (payload.metadata or {}).items():
                mail.add_custom_arg(CustomArg(key, str(value)))

            # SendGrid's client is synchronous
            response = await asyncio.to_thread(self.client.send, mail)
        except Exception as e:
            logger.error(f"Failed to send email to {payload.to}: {str(e)}")
            return MessageResponse.failure(channel, f"SendGrid email error: {str(e)}")

        if not 200 <= response.status_code < 300:
            logger.error(f"SendGrid rejected email to {payload.to}. Status: {response.status_code}")
            return MessageResponse.failure(channel, f"SendGrid API error: {response.status_code}")

        message_id = response.headers.get("X-Message-Id")
        logger.info(f"Email sent successfully to {payload.to}. Status: {response.status_code}")
        return MessageResponse(
            success=True,
            message_id=message_id,
            external_id=message_id,
            status=MessageStatus.SENT.value,
            channel=channel,
            metadata={"from": from_email, "subject": subject},
        )
