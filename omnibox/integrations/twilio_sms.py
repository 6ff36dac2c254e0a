from typing import Optional

from omnibox.integrations.twilio_base import TwilioChannelSender
from omnibox.models.models import Channel


class TwilioSMSSender(TwilioChannelSender):
    channel = Channel.SMS
    error_prefix = "Twilio SMS error"

    def default_from(self) -> Optional[str]:
        return self.settings.TWILIO_PHONE_NUMBER
