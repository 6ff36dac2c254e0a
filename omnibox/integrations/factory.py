import logging
from typing import Optional

from fastapi import Request
from sendgrid import SendGridAPIClient
from twilio.rest import Client as TwilioClient

from omnibox.core.config import Settings, settings as default_settings
from omnibox.core.exceptions import UnsupportedChannelError
from omnibox.integrations.sendgrid_email import SendGridEmailSender, build_sendgrid_client
from omnibox.integrations.twilio_base import build_twilio_client
from omnibox.integrations.twilio_sms import TwilioSMSSender
from omnibox.integrations.twilio_whatsapp import TwilioWhatsAppSender
from omnibox.integrations.types import ChannelSender, MessagePayload, MessageResponse
from omnibox.models.models import Channel

logger = logging.getLogger(__name__)


class SenderFactory:
    """Builds channel senders and owns the provider clients they share."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        twilio_client: Optional[TwilioClient] = None,
        sendgrid_client: Optional[SendGridAPIClient] = None
    ):
        self.settings = config or default_settings
        self._twilio_client = twilio_client
        self._sendgrid_client = sendgrid_client

    @property
    def twilio_client(self) -> TwilioClient:
        if self._twilio_client is None:
            self._twilio_client = build_twilio_client(self.settings)
        return self._twilio_client

    @property
    def sendgrid_client(self) -> SendGridAPIClient:
        if self._sendgrid_client is None:
            self._sendgrid_client = build_sendgrid_client(self.settings)
        return self._sendgrid_client

    def create_sender(self, channel: str) -> ChannelSender:
        if channel == Channel.SMS.value:
            return TwilioSMSSender(client=self.twilio_client, config=self.settings)
        if channel == Channel.WHATSAPP.value:
            return TwilioWhatsAppSender(client=self.twilio_client, config=self.settings)
        if channel == Channel.EMAIL.value:
            return SendGridEmailSender(client=self.sendgrid_client, config=self.settings)
        raise UnsupportedChannelError(channel)

    async def send(self, payload: MessagePayload) -> MessageResponse:
        sender = self.create_sender(payload.channel)
        return await sender.send(payload)


def create_sender(channel: str) -> ChannelSender:
    return SenderFactory().create_sender(channel)


async def send_message(payload: MessagePayload) -> MessageResponse:
    """Send a payload with senders built from the process settings."""
    return await SenderFactory().send(payload)


def get_sender_factory(request: Request) -> SenderFactory:
    """FastAPI dependency returning the application's factory."""
    factory = getattr(request.app.state, "sender_factory", None)
    if factory is None:
        factory = SenderFactory()
        request.app.state.sender_factory = factory
    return factory
