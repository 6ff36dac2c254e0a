"""
Outbound messaging endpoints
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from omnibox.auth.auth import Session, get_session
from omnibox.core.exceptions import UnsupportedChannelError, ChannelConfigurationError
from omnibox.db.database import get_db
from omnibox.integrations.factory import SenderFactory, get_sender_factory
from omnibox.integrations.types import Attachment, MessagePayload, MessageResponse
from omnibox.schemas.schemas import SendMessageRequest, SendMessageResponse
from omnibox.services.message_service import message_service

router = APIRouter(prefix="/messages", tags=["messages"])
logger = logging.getLogger(__name__)


def build_payload(request: SendMessageRequest) -> MessagePayload:
    if not request.channel or not request.to or not request.body:
        raise HTTPException(status_code=400, detail="Missing required fields: channel, to, body")

    return MessagePayload(
        channel=request.channel,
        to=request.to,
        body=request.body,
        from_address=request.from_,
        subject=request.subject or None,
        html_body=request.html_body,
        attachments=[
            Attachment(
                filename=a.filename,
                content_type=a.content_type,
                url=a.url,
                base64=a.base64,
                size=a.size
            )
            for a in request.attachments
        ],
        metadata=request.metadata,
    )


async def dispatch(factory: SenderFactory, payload: MessagePayload) -> MessageResponse:
    try:
        sender = factory.create_sender(payload.channel)
    except UnsupportedChannelError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ChannelConfigurationError as e:
        logger.error(f"❌ {payload.channel} sender unavailable: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return await sender.send(payload)


def to_response(result: MessageResponse) -> SendMessageResponse:
    return SendMessageResponse(
        success=result.success,
        message_id=result.message_id,
        status=result.status,
        channel=result.channel,
        error=result.error,
    )


@router.post("/send", response_model=SendMessageResponse)
async def send_message(
    request: SendMessageRequest,
    factory: SenderFactory = Depends(get_sender_factory),
    session: Optional[Session] = Depends(get_session),
    db: AsyncSession = Depends(get_db)
):
    """Send a message on any channel and record it in the inbox"""
    payload = build_payload(request)
    result = await dispatch(factory, payload)

    if result.success and result.external_id:
        try:
            await message_service.store_outbound_message(
                db,
                channel=payload.channel,
                to_address=payload.to,
                from_address=payload.from_address or result.metadata.get("from") or "",
                body=payload.body,
                subject=payload.subject,
                html_body=payload.html_body,
                external_id=result.external_id,
                status=result.status,
                user_id=session.user.id if session else None,
                attachments=[
                    {"filename": a.filename, "content_type": a.content_type, "url": a.url, "size": a.size}
                    for a in payload.attachments
                ],
                thread_id=request.thread_id,
            )
        except Exception as e:
            # Provider already accepted the message
            logger.error(f"❌ Failed to store outbound message {result.external_id}: {e}")
            await db.rollback()
    elif not result.success:
        logger.warning(f"⚠️  {payload.channel} send to {payload.to} failed: {result.error}")

    return to_response(result)


@router.post("/test", response_model=SendMessageResponse)
async def send_test_message(
    request: SendMessageRequest,
    factory: SenderFactory = Depends(get_sender_factory)
):
    """Send through a provider without touching the inbox"""
    payload = build_payload(request)
    result = await dispatch(factory, payload)
    return to_response(result)
