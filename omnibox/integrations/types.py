"""
Channel-agnostic message types and payload validation shared by every sender.
"""
import re
import base64
import binascii
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any

from omnibox.models.models import Channel, MessageStatus

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{1,14}$")
WHATSAPP_PREFIX = "whatsapp:"

CHANNEL_LABELS = {
    Channel.SMS: "SMS",
    Channel.WHATSAPP: "WhatsApp",
    Channel.EMAIL: "Email",
}


@dataclass
class Attachment:
    filename: str
    content_type: str
    url: Optional[str] = None
    base64: Optional[str] = None
    size: Optional[int] = None


@dataclass
class MessagePayload:
    channel: str
    to: str
    body: str
    from_address: Optional[str] = None
    subject: Optional[str] = None
    html_body: Optional[str] = None
    attachments: List[Attachment] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    external_id: Optional[str] = None
    scheduled_for: Optional[datetime] = None


@dataclass
class MessageResponse:
    success: bool
    status: str
    channel: str
    message_id: Optional[str] = None
    external_id: Optional[str] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failure(cls, channel: str, error: str) -> "MessageResponse":
        return cls(success=False, status=MessageStatus.FAILED.value, channel=channel, error=error)


@dataclass
class ValidationResult:
    valid: bool
    error: Optional[str] = None


def strip_whatsapp_prefix(address: str) -> str:
    if address and address.startswith(WHATSAPP_PREFIX):
        return address[len(WHATSAPP_PREFIX):]
    return address


def is_email(value: str) -> bool:
    return bool(value) and bool(EMAIL_PATTERN.match(value))


def is_phone(value: str) -> bool:
    return bool(value) and bool(PHONE_PATTERN.match(value))


def _validate_attachment(attachment: Attachment) -> Optional[str]:
    if not attachment.filename:
        return "Attachment filename is required"
    if not attachment.content_type:
        return f"Attachment {attachment.filename} is missing a content type"
    if attachment.url and not attachment.url.lower().startswith(("http://", "https://")):
        return f"Attachment {attachment.filename} url must be http(s)"
    if attachment.base64:
        try:
            base64.b64decode(attachment.base64, validate=True)
        except (binascii.Error, ValueError):
            return f"Attachment {attachment.filename} has invalid base64 content"
    return None


def validate_payload(payload: MessagePayload) -> ValidationResult:
    """
    Check a payload before any provider call.

    Structural rules run first, then the channel-specific ones. The first
    failing rule is reported.
    """
    channels = [c.value for c in Channel]
    if payload.channel not in channels:
        return ValidationResult(False, f"Invalid channel: {payload.channel}. Expected one of {', '.join(channels)}")

    to = payload.to or ""
    if payload.channel == Channel.WHATSAPP.value:
        to = strip_whatsapp_prefix(to)

    if not to:
        return ValidationResult(False, "Recipient is required")
    if not (is_email(to) or is_phone(to)):
        return ValidationResult(False, "Invalid recipient: must be an email address or E.164 phone number")

    body = payload.body or ""
    if payload.channel == Channel.EMAIL.value:
        if not body and not payload.subject:
            return ValidationResult(False, "Email requires either subject or body")
    elif len(body) < 1:
        return ValidationResult(False, "Message body is required")

    for attachment in payload.attachments or []:
        error = _validate_attachment(attachment)
        if error:
            return ValidationResult(False, error)

    if payload.channel in (Channel.SMS.value, Channel.WHATSAPP.value):
        if "@" in to or not is_phone(to):
            return ValidationResult(False, "Invalid phone number format. Use E.164 format (e.g., +1234567890)")
    else:
        if is_phone(to) or not is_email(to):
            return ValidationResult(False, "Invalid email address format")

    return ValidationResult(True)


class ChannelSender(ABC):
    """Common interface over the provider SDKs."""

    channel: Channel

    def get_channel(self) -> Channel:
        return self.channel

    def validate(self, payload: MessagePayload) -> ValidationResult:
        result = validate_payload(payload)
        if not result.valid:
            return result
        if payload.channel != self.channel.value:
            return ValidationResult(False, f"Channel mismatch: expected {CHANNEL_LABELS[self.channel]}")
        return result

    @abstractmethod
    async def send(self, payload: MessagePayload) -> MessageResponse:
        """Send the payload; never raises, failures come back as a failed response."""
