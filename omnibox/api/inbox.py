"""
Inbox endpoints: thread list and thread detail
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, desc, and_, or_
from sqlalchemy.orm import selectinload
from typing import Optional
from uuid import UUID
import logging

from omnibox.db.database import get_db
from omnibox.models.models import Thread, Contact, Message, Channel, ThreadStatus
from omnibox.schemas.schemas import (
    ContactResponse, MessageResponse, ThreadSummaryResponse, ThreadDetailResponse,
    ThreadListResponse, PaginationInfo
)

router = APIRouter(prefix="/inbox", tags=["inbox"])
logger = logging.getLogger(__name__)


async def _latest_message(db: AsyncSession, thread_id: UUID) -> Optional[Message]:
    result = await db.execute(
        select(Message)
        .options(selectinload(Message.attachments))
        .where(Message.thread_id == thread_id)
        .order_by(desc(Message.created_at))
        .limit(1)
    )
    return result.scalars().first()


@router.get("/threads", response_model=ThreadListResponse)
async def list_threads(
    status: Optional[ThreadStatus] = Query(None),
    channel: Optional[Channel] = Query(None),
    unread_only: bool = Query(False, alias="unreadOnly"),
    search: Optional[str] = Query(None, description="Search in contact name, phone, or email"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db)
):
    """List threads, most recently active first, with contact and latest message"""
    query = select(Thread).join(Contact, Thread.contact_id == Contact.id)
    conditions = []

    if status:
        conditions.append(Thread.status == status.value)

    if channel:
        conditions.append(Thread.channel == channel.value)

    if unread_only:
        conditions.append(Thread.unread_count > 0)

    if search:
        search_term = f"%{search}%"
        conditions.append(
            or_(
                Contact.name.ilike(search_term),
                Contact.phone.ilike(search_term),
                Contact.email.ilike(search_term)
            )
        )

    if conditions:
        query = query.where(and_(*conditions))

    try:
        total = await db.scalar(select(func.count()).select_from(query.subquery()))

        query = (
            query.options(selectinload(Thread.contact))
            .order_by(Thread.last_message_at.desc().nulls_last(), desc(Thread.created_at))
            .offset(offset)
            .limit(limit)
        )
        result = await db.execute(query)
        threads = result.scalars().all()

        summaries = []
        for thread in threads:
            latest = await _latest_message(db, thread.id)
            summaries.append(ThreadSummaryResponse(
                id=thread.id,
                channel=thread.channel,
                status=thread.status,
                unread_count=thread.unread_count,
                last_message_at=thread.last_message_at,
                created_at=thread.created_at,
                contact=ContactResponse.model_validate(thread.contact),
                messages=[MessageResponse.model_validate(latest)] if latest else [],
            ))
    except Exception as e:
        logger.error(f"Error fetching threads: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch threads")

    total = total or 0
    return ThreadListResponse(
        threads=summaries,
        pagination=PaginationInfo(
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + limit < total,
        ),
    )


@router.get("/threads/{thread_id}", response_model=ThreadDetailResponse)
async def get_thread(
    thread_id: UUID,
    db: AsyncSession = Depends(get_db)
):
    """Fetch a thread with its full history and mark it read"""
    result = await db.execute(
        select(Thread)
        .options(
            selectinload(Thread.contact),
            selectinload(Thread.messages).selectinload(Message.attachments),
            selectinload(Thread.messages).selectinload(Message.user),
        )
        .where(Thread.id == thread_id)
    )
    thread = result.scalars().first()
    if thread is None:
        raise HTTPException(status_code=404, detail="Thread not found")

    if thread.unread_count:
        thread.unread_count = 0
        await db.commit()

    return ThreadDetailResponse.model_validate(thread)
