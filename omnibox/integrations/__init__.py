from .types import (
    Attachment,
    MessagePayload,
    MessageResponse,
    ValidationResult,
    ChannelSender,
    validate_payload
)
from .twilio_sms import TwilioSMSSender
from .twilio_whatsapp import TwilioWhatsAppSender
from .sendgrid_email import SendGridEmailSender
from .factory import SenderFactory, create_sender, send_message, get_sender_factory

__all__ = [
    "Attachment",
    "MessagePayload",
    "MessageResponse",
    "ValidationResult",
    "ChannelSender",
    "validate_payload",
    "TwilioSMSSender",
    "TwilioWhatsAppSender",
    "SendGridEmailSender",
    "SenderFactory",
    "create_sender",
    "send_message",
    "get_sender_factory"
]
