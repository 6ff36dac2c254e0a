"""
Message store: persists inbound and outbound messages, applies provider
status callbacks and appends the matching analytics events.
"""
import logging
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
from urllib.parse import urlparse
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from omnibox.integrations.types import strip_whatsapp_prefix
from omnibox.models.models import (
    Message, MessageAttachment, Thread, AnalyticsEvent, Contact,
    Channel, MessageDirection, MessageStatus, AnalyticsEventType, ThreadStatus
)
from omnibox.services.contact_service import contact_service

logger = logging.getLogger(__name__)

# Status transitions that produce an analytics event; pending produces none
STATUS_EVENT_TYPES = {
    MessageStatus.SENT.value: AnalyticsEventType.MESSAGE_SENT.value,
    MessageStatus.DELIVERED.value: AnalyticsEventType.MESSAGE_DELIVERED.value,
    MessageStatus.READ.value: AnalyticsEventType.MESSAGE_READ.value,
    MessageStatus.FAILED.value: AnalyticsEventType.MESSAGE_FAILED.value,
}


def filename_from_url(url: Optional[str]) -> str:
    if not url:
        return "attachment"
    segment = urlparse(url).path.rstrip("/").split("/")[-1]
    return segment or "attachment"


def _build_attachments(attachments: Optional[List[Dict[str, Any]]]) -> List[MessageAttachment]:
    built = []
    for attachment in attachments or []:
        url = attachment.get("url")
        built.append(MessageAttachment(
            filename=attachment.get("filename") or filename_from_url(url),
            content_type=attachment.get("content_type") or "application/octet-stream",
            url=url,
            size=attachment.get("size"),
        ))
    return built


class MessageService:
    """Service for storing messages and tracking their delivery"""

    async def _resolve_contact(self, db: AsyncSession, channel: str, address: str) -> Contact:
        if channel == Channel.EMAIL.value:
            return await contact_service.find_or_create_contact_by_email(db, address, auto_merge=True)
        return await contact_service.find_or_create_contact_by_phone(
            db, strip_whatsapp_prefix(address), auto_merge=True
        )

    async def store_inbound_message(
        self,
        db: AsyncSession,
        channel: str,
        from_address: str,
        to_address: str,
        external_id: Optional[str],
        body: Optional[str] = None,
        subject: Optional[str] = None,
        html_body: Optional[str] = None,
        attachments: Optional[List[Dict[str, Any]]] = None
    ) -> Message:
        contact = await self._resolve_contact(db, channel, from_address)
        thread = await contact_service.find_or_create_thread(db, contact.id, channel)
        now = datetime.now(timezone.utc)

        message = Message(
            thread_id=thread.id,
            channel=channel,
            direction=MessageDirection.INBOUND.value,
            from_address=from_address,
            to_address=to_address,
            body=body,
            subject=subject,
            html_body=html_body,
            status=MessageStatus.DELIVERED.value,
            external_id=external_id,
            attachments=_build_attachments(attachments),
        )
        db.add(message)

        await db.execute(
            update(Thread)
            .where(Thread.id == thread.id)
            .values(unread_count=Thread.unread_count + 1, last_message_at=now)
        )
        await db.flush()

        db.add(AnalyticsEvent(
            contact_id=contact.id,
            message_id=message.id,
            event_type=AnalyticsEventType.RESPONSE_RECEIVED.value,
            channel=channel,
        ))
        await db.commit()

        logger.info(f"📥 Stored inbound {channel} message {external_id} in thread {thread.id}")
        return message

    async def store_outbound_message(
        self,
        db: AsyncSession,
        channel: str,
        to_address: str,
        from_address: str,
        body: Optional[str],
        external_id: str,
        status: str,
        user_id: Optional[UUID] = None,
        subject: Optional[str] = None,
        html_body: Optional[str] = None,
        attachments: Optional[List[Dict[str, Any]]] = None,
        thread_id: Optional[UUID] = None
    ) -> Message:
        thread = None
        if thread_id is not None:
            thread = await db.get(Thread, thread_id)
            if thread is not None and (
                thread.channel != channel or thread.status == ThreadStatus.ARCHIVED.value
            ):
                logger.warning(
                    f"Thread {thread_id} is {thread.status} {thread.channel}, not a live {channel} thread; "
                    f"resolving by recipient"
                )
                thread = None

        if thread is None:
            contact = await self._resolve_contact(db, channel, to_address)
            thread = await contact_service.find_or_create_thread(db, contact.id, channel)
        contact_id = thread.contact_id
        now = datetime.now(timezone.utc)

        message = Message(
            thread_id=thread.id,
            channel=channel,
            direction=MessageDirection.OUTBOUND.value,
            from_address=from_address,
            to_address=to_address,
            body=body,
            subject=subject,
            html_body=html_body,
            status=status,
            external_id=external_id,
            user_id=user_id,
            sent_at=now if status == MessageStatus.SENT.value else None,
            attachments=_build_attachments(attachments),
        )
        db.add(message)

        await db.execute(
            update(Thread).where(Thread.id == thread.id).values(last_message_at=now)
        )
        await db.flush()

        db.add(AnalyticsEvent(
            contact_id=contact_id,
            message_id=message.id,
            user_id=user_id,
            event_type=AnalyticsEventType.MESSAGE_SENT.value,
            channel=channel,
        ))
        await db.commit()

        logger.info(f"📤 Stored outbound {channel} message {external_id} in thread {thread.id}")
        return message

    async def update_message_status(
        self,
        db: AsyncSession,
        external_id: str,
        status: str,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
        read_at: Optional[datetime] = None
    ) -> Optional[Message]:
        result = await db.execute(
            select(Message)
            .options(selectinload(Message.thread))
            .where(Message.external_id == external_id)
            .order_by(Message.created_at)
            .limit(1)
        )
        message = result.scalars().first()
        if message is None:
            logger.warning(f"⚠️  Status update for unknown message {external_id}")
            return None

        message.status = status
        # A later callback without error fields keeps the recorded error
        if error_code is not None:
            message.error_code = error_code
        if error_message is not None:
            message.error_message = error_message
        if status == MessageStatus.READ.value:
            message.read_at = read_at or datetime.now(timezone.utc)
        elif read_at is not None:
            message.read_at = read_at
        if status == MessageStatus.SENT.value:
            message.sent_at = datetime.now(timezone.utc)

        event_type = STATUS_EVENT_TYPES.get(status)
        if event_type:
            db.add(AnalyticsEvent(
                contact_id=message.thread.contact_id,
                message_id=message.id,
                event_type=event_type,
                channel=message.channel,
                event_metadata={"messageId": str(message.id), "externalId": external_id, "status": status},
            ))

        await db.commit()
        logger.info(f"📬 Message {external_id} -> {status}")
        return message


message_service = MessageService()
