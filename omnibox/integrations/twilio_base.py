"""
Shared plumbing for the Twilio-backed senders (SMS and WhatsApp)
"""
import asyncio
import logging
from abc import abstractmethod
from typing import Optional, Dict, Any

from twilio.rest import Client as TwilioClient

from omnibox.core.config import Settings, settings as default_settings
from omnibox.core.exceptions import ChannelConfigurationError
from omnibox.integrations.types import (
    ChannelSender, MessagePayload, MessageResponse, CHANNEL_LABELS
)
from omnibox.models.models import MessageStatus

logger = logging.getLogger(__name__)

# Twilio message status -> internal status
TWILIO_STATUS_MAP = {
    "queued": MessageStatus.PENDING.value,
    "sending": MessageStatus.PENDING.value,
    "sent": MessageStatus.SENT.value,
    "delivered": MessageStatus.DELIVERED.value,
    "undelivered": MessageStatus.FAILED.value,
    "failed": MessageStatus.FAILED.value,
    "received": MessageStatus.READ.value,
}


def build_twilio_client(config: Settings) -> TwilioClient:
    if not config.twilio_configured:
        raise ChannelConfigurationError(
            "Twilio credentials not configured. Set TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN"
        )
    client = TwilioClient(config.TWILIO_ACCOUNT_SID, config.TWILIO_AUTH_TOKEN)
    logger.info("✅ Twilio client initialized")
    return client


def provider_error_message(exc: Exception) -> str:
    # TwilioRestException carries the API message separately from its formatted str()
    return getattr(exc, "msg", None) or str(exc)


class TwilioChannelSender(ChannelSender):
    """Sends through the Twilio Messages API; subclasses fix the address format."""

    status_map: Dict[str, str] = TWILIO_STATUS_MAP
    error_prefix = "Twilio error"

    def __init__(self, client: Optional[TwilioClient] = None, config: Optional[Settings] = None):
        self.settings = config or default_settings
        self.client = client or build_twilio_client(self.settings)

    def map_status(self, twilio_status: Optional[str]) -> str:
        return self.status_map.get((twilio_status or "").lower(), MessageStatus.PENDING.value)

    @abstractmethod
    def default_from(self) -> Optional[str]:
        """Sender address used when the payload has none."""

    def format_address(self, address: str) -> str:
        return address

    def build_metadata(self, message) -> Dict[str, Any]:
        return {
            "account_sid": getattr(message, "account_sid", None),
            "price": getattr(message, "price", None),
            "price_unit": getattr(message, "price_unit", None),
        }

    async def send(self, payload: MessagePayload) -> MessageResponse:
        channel = self.channel.value
        validation = self.validate(payload)
        if not validation.valid:
            return MessageResponse.failure(channel, validation.error)

        from_address = payload.from_address or self.default_from()
        if not from_address:
            return MessageResponse.failure(
                channel, f"No {CHANNEL_LABELS[self.channel]} sender number configured"
            )

        params: Dict[str, Any] = {
            "body": payload.body,
            "from_": self.format_address(from_address),
            "to": self.format_address(payload.to),
        }
        media_urls = [a.url for a in payload.attachments or [] if a.url]
        if media_urls:
            params["media_url"] = media_urls
        if self.settings.TWILIO_STATUS_CALLBACK_URL:
            params["status_callback"] = self.settings.TWILIO_STATUS_CALLBACK_URL

        try:
            # The Twilio SDK is synchronous
            message = await asyncio.to_thread(self.client.messages.create, **params)
        except Exception as e:
            logger.error(f"❌ {self.error_prefix} sending to {params['to']}: {e}")
            return MessageResponse.failure(channel, f"{self.error_prefix}: {provider_error_message(e)}")

        logger.info(f"📤 {CHANNEL_LABELS[self.channel]} sent to {params['to']}: {message.sid} ({message.status})")
        metadata = self.build_metadata(message)
        metadata["from"] = params["from_"]
        return MessageResponse(
            success=True,
            message_id=message.sid,
            external_id=message.sid,
            status=self.map_status(message.status),
            channel=channel,
            metadata=metadata,
        )
