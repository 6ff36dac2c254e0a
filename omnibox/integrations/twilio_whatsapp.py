from typing import Optional, Dict, Any

from omnibox.integrations.twilio_base import TwilioChannelSender, TWILIO_STATUS_MAP
from omnibox.integrations.types import WHATSAPP_PREFIX
from omnibox.models.models import Channel, MessageStatus


class TwilioWhatsAppSender(TwilioChannelSender):
    """WhatsApp over Twilio; both addresses carry the whatsapp: prefix on the wire."""

    channel = Channel.WHATSAPP
    error_prefix = "Twilio WhatsApp error"
    status_map = {**TWILIO_STATUS_MAP, "read": MessageStatus.READ.value}

    def default_from(self) -> Optional[str]:
        return self.settings.TWILIO_WHATSAPP_NUMBER

    def format_address(self, address: str) -> str:
        if address.startswith(WHATSAPP_PREFIX):
            return address
        return f"{WHATSAPP_PREFIX}{address}"

    def build_metadata(self, message) -> Dict[str, Any]:
        metadata = super().build_metadata(message)
        metadata["num_media"] = getattr(message, "num_media", None)
        return metadata
