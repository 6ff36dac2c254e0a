"""
Helpers for Twilio's form-encoded message webhooks: signature checks,
channel detection, media extraction and status mapping.
"""
import logging
from typing import Optional, Dict, Any, List, Mapping

from fastapi import Request
from twilio.request_validator import RequestValidator

from omnibox.integrations.types import WHATSAPP_PREFIX
from omnibox.models.models import Channel, MessageStatus

logger = logging.getLogger(__name__)

# Twilio allows at most 10 media items per message
MAX_MEDIA_ITEMS = 10

WEBHOOK_STATUS_MAP = {
    "queued": MessageStatus.PENDING.value,
    "sending": MessageStatus.PENDING.value,
    "sent": MessageStatus.SENT.value,
    "delivered": MessageStatus.DELIVERED.value,
    "undelivered": MessageStatus.FAILED.value,
    "failed": MessageStatus.FAILED.value,
    "read": MessageStatus.READ.value,
    "received": MessageStatus.DELIVERED.value,
}


def public_request_url(request: Request) -> str:
    """Rebuild the URL Twilio signed, honouring reverse-proxy headers."""
    url = request.url
    proto = request.headers.get("x-forwarded-proto", url.scheme).split(",")[0].strip()
    host = request.headers.get("x-forwarded-host", request.headers.get("host", url.netloc)).split(",")[0].strip()
    full_url = f"{proto}://{host}{url.path}"
    if url.query:
        full_url = f"{full_url}?{url.query}"
    return full_url


def validate_twilio_signature(
    auth_token: Optional[str],
    signature: Optional[str],
    url: str,
    params: Mapping[str, Any]
) -> bool:
    if not signature or not auth_token:
        return False
    try:
        return RequestValidator(auth_token).validate(url, dict(params), signature)
    except Exception as e:
        logger.error(f"Twilio webhook validation error: {e}")
        return False


def get_channel_from_number(address: str) -> str:
    if address and address.startswith(WHATSAPP_PREFIX):
        return Channel.WHATSAPP.value
    return Channel.SMS.value


def extract_media_attachments(form: Mapping[str, Any]) -> List[Dict[str, str]]:
    try:
        num_media = int(form.get("NumMedia") or 0)
    except (TypeError, ValueError):
        num_media = 0

    attachments = []
    for i in range(min(num_media, MAX_MEDIA_ITEMS)):
        media_url = form.get(f"MediaUrl{i}")
        content_type = form.get(f"MediaContentType{i}")
        if media_url and content_type:
            attachments.append({"url": media_url, "content_type": content_type})
    return attachments


def map_twilio_status(twilio_status: Optional[str]) -> str:
    return WEBHOOK_STATUS_MAP.get((twilio_status or "").lower(), MessageStatus.PENDING.value)


def is_status_callback(form: Mapping[str, Any]) -> bool:
    """
    Status callbacks carry MessageStatus/SmsStatus. Inbound messages are also
    stamped "received", so a received status alongside content is inbound.
    """
    status = form.get("MessageStatus") or form.get("SmsStatus")
    if not status:
        return False
    if status.lower() == "received" and (form.get("Body") is not None or form.get("NumMedia") is not None):
        return False
    return True
