"""
Twilio webhook ingress for inbound SMS/WhatsApp messages and delivery status callbacks.

Configure the number's messaging webhook and status callback URL as
https://<host>/api/webhooks/twilio
"""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime, timezone
from typing import Dict, Any
import logging

from omnibox.db.database import get_db
from omnibox.integrations.factory import SenderFactory, get_sender_factory
from omnibox.integrations.twilio_webhook import (
    public_request_url, validate_twilio_signature, get_channel_from_number,
    extract_media_attachments, map_twilio_status, is_status_callback
)
from omnibox.integrations.types import strip_whatsapp_prefix
from omnibox.models.models import MessageStatus
from omnibox.services.message_service import message_service

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
logger = logging.getLogger(__name__)


async def handle_inbound_message(db: AsyncSession, form: Dict[str, Any]):
    channel = get_channel_from_number(form.get("From", ""))
    from_number = strip_whatsapp_prefix(form.get("From", ""))
    to_number = strip_whatsapp_prefix(form.get("To", ""))
    attachments = extract_media_attachments(form)

    logger.info(
        f"📨 Inbound {channel} message {form.get('MessageSid')} from {from_number} "
        f"({len(attachments)} media)"
    )

    message = await message_service.store_inbound_message(
        db,
        channel=channel,
        from_address=from_number,
        to_address=to_number,
        body=form.get("Body") or None,
        external_id=form.get("MessageSid"),
        attachments=attachments,
    )
    logger.info(f"✅ Inbound message stored: {message.id} in thread {message.thread_id}")


async def handle_status_callback(db: AsyncSession, form: Dict[str, Any]):
    twilio_status = form.get("MessageStatus") or form.get("SmsStatus") or ""
    message_sid = form.get("MessageSid")
    status = map_twilio_status(twilio_status)

    logger.info(f"📬 Status callback for {message_sid}: {twilio_status} -> {status}")

    await message_service.update_message_status(
        db,
        external_id=message_sid,
        status=status,
        error_code=form.get("ErrorCode") or None,
        error_message=form.get("ErrorMessage") or None,
        read_at=datetime.now(timezone.utc) if status == MessageStatus.READ.value else None,
    )


@router.post("/twilio")
async def twilio_webhook(
    request: Request,
    factory: SenderFactory = Depends(get_sender_factory),
    db: AsyncSession = Depends(get_db)
):
    """Handle Twilio message webhooks (inbound messages and status callbacks)"""
    form_data = await request.form()
    form = {key: value for key, value in form_data.items()}
    config = factory.settings

    if config.should_validate_webhook_signature:
        is_valid = validate_twilio_signature(
            config.TWILIO_AUTH_TOKEN,
            request.headers.get("x-twilio-signature"),
            public_request_url(request),
            form,
        )
        if not is_valid:
            logger.error("❌ Invalid Twilio webhook signature")
            return JSONResponse(status_code=401, content={"error": "Invalid signature"})

    if not form.get("MessageSid"):
        return JSONResponse(status_code=400, content={"error": "Missing MessageSid"})

    try:
        if is_status_callback(form):
            await handle_status_callback(db, form)
        else:
            await handle_inbound_message(db, form)
    except Exception as e:
        logger.error(f"❌ Twilio webhook error: {e}")
        await db.rollback()
        return JSONResponse(status_code=500, content={"error": "Webhook processing failed"})

    return {"received": True}


@router.get("/twilio")
async def twilio_webhook_check():
    """Twilio may probe the webhook URL with a GET"""
    return {"message": "Twilio webhook endpoint is active"}
