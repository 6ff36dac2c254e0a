"""
Contact resolution: normalization, lookup-or-create, fuzzy dedup and merge,
plus per-channel thread resolution.
"""
import re
import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from omnibox.core.exceptions import ContactNotFoundError
from omnibox.models.models import (
    Contact, Thread, Note, ScheduledMessage, AnalyticsEvent, ContactStatus, ThreadStatus
)

logger = logging.getLogger(__name__)

FUZZY_MATCH_DIGITS = 10

# Contact fields where a merge keeps the target's value unless it is empty
MERGED_FIELDS = (
    "name", "phone", "email",
    "twitter_handle", "facebook_handle", "instagram_handle", "linkedin_handle",
)


def normalize_phone(phone: str) -> str:
    """Normalize to E.164; bare 10-digit numbers are assumed to be US."""
    normalized = re.sub(r"[^\d+]", "", phone or "")
    if not re.search(r"\d", normalized):
        raise ValueError(f"Invalid phone number: {phone!r}")

    if not normalized.startswith("+"):
        if len(normalized) == 10:
            normalized = "+1" + normalized
        else:
            normalized = "+" + normalized
    return normalized


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class ContactService:
    """Service for resolving message addresses to contacts and threads"""

    async def _find_by_phone(self, db: AsyncSession, phone: str) -> Optional[Contact]:
        result = await db.execute(
            select(Contact).where(Contact.phone == phone).order_by(Contact.created_at).limit(1)
        )
        return result.scalars().first()

    async def _find_by_email(self, db: AsyncSession, email: str) -> Optional[Contact]:
        result = await db.execute(
            select(Contact).where(Contact.email == email).order_by(Contact.created_at).limit(1)
        )
        return result.scalars().first()

    async def find_by_fuzzy_match(
        self,
        db: AsyncSession,
        phone: Optional[str] = None,
        email: Optional[str] = None
    ) -> Optional[Contact]:
        """
        Look for a likely duplicate. A phone resolves only when exactly one
        contact shares its last 10 digits; otherwise fall back to email.
        """
        if not phone and not email:
            return None

        if phone:
            last_digits = phone[-FUZZY_MATCH_DIGITS:]
            result = await db.execute(
                select(Contact).where(Contact.phone.contains(last_digits, autoescape=True)).limit(2)
            )
            candidates = result.scalars().all()
            if len(candidates) == 1:
                logger.info(f"🔗 Fuzzy matched {phone} to contact {candidates[0].id}")
                return candidates[0]

        if email:
            return await self._find_by_email(db, normalize_email(email))

        return None

    async def find_or_create_contact_by_phone(
        self,
        db: AsyncSession,
        phone: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        auto_merge: bool = False
    ) -> Contact:
        normalized_phone = normalize_phone(phone)
        normalized_email = normalize_email(email) if email else None

        contact = await self._find_by_phone(db, normalized_phone)
        if contact is None and auto_merge:
            contact = await self.find_by_fuzzy_match(db, normalized_phone, normalized_email)

        now = datetime.now(timezone.utc)
        if contact is None:
            contact = Contact(
                phone=normalized_phone,
                email=normalized_email,
                name=name or normalized_phone,
                status=ContactStatus.LEAD.value,
                merged_from_ids=[],
                last_contacted_at=now,
            )
            db.add(contact)
            logger.info(f"👤 Created contact for {normalized_phone}")
        else:
            if name:
                contact.name = name
            if normalized_email:
                contact.email = normalized_email
            contact.last_contacted_at = now

        await db.commit()
        await db.refresh(contact)
        return contact

    async def find_or_create_contact_by_email(
        self,
        db: AsyncSession,
        email: str,
        name: Optional[str] = None,
        phone: Optional[str] = None,
        auto_merge: bool = False
    ) -> Contact:
        normalized_email = normalize_email(email)
        if not normalized_email:
            raise ValueError("Email address is required")
        normalized_phone = normalize_phone(phone) if phone else None

        contact = await self._find_by_email(db, normalized_email)
        if contact is None and auto_merge and normalized_phone:
            contact = await self.find_by_fuzzy_match(db, normalized_phone, normalized_email)

        now = datetime.now(timezone.utc)
        if contact is None:
            contact = Contact(
                email=normalized_email,
                phone=normalized_phone,
                name=name or normalized_email,
                status=ContactStatus.LEAD.value,
                merged_from_ids=[],
                last_contacted_at=now,
            )
            db.add(contact)
            logger.info(f"👤 Created contact for {normalized_email}")
        else:
            if name:
                contact.name = name
            if normalized_phone and not contact.phone:
                contact.phone = normalized_phone
            contact.last_contacted_at = now

        await db.commit()
        await db.refresh(contact)
        return contact

    async def merge_contacts(self, db: AsyncSession, target_id: UUID, source_id: UUID) -> Contact:
        """Fold source into target in one transaction and delete source."""
        if target_id == source_id:
            raise ValueError("Cannot merge a contact into itself")

        target = await db.get(Contact, target_id)
        source = await db.get(Contact, source_id)
        if target is None:
            raise ContactNotFoundError(target_id)
        if source is None:
            raise ContactNotFoundError(source_id)

        try:
            for model in (Thread, Note, ScheduledMessage, AnalyticsEvent):
                await db.execute(
                    update(model)
                    .where(model.contact_id == source_id)
                    .values(contact_id=target_id)
                )

            for field_name in MERGED_FIELDS:
                if not getattr(target, field_name) and getattr(source, field_name):
                    setattr(target, field_name, getattr(source, field_name))
            target.merged_from_ids = list(target.merged_from_ids or []) + [str(source_id)]

            db.expunge(source)
            await db.execute(delete(Contact).where(Contact.id == source_id))
            await db.commit()
        except Exception as e:
            logger.error(f"❌ Failed to merge contact {source_id} into {target_id}: {e}")
            await db.rollback()
            raise

        await db.refresh(target)
        logger.info(f"🔀 Merged contact {source_id} into {target_id}")
        return target

    async def find_or_create_thread(self, db: AsyncSession, contact_id: UUID, channel: str) -> Thread:
        result = await db.execute(
            select(Thread)
            .where(
                Thread.contact_id == contact_id,
                Thread.channel == channel,
                Thread.status.in_([ThreadStatus.OPEN.value, ThreadStatus.CLOSED.value])
            )
            .order_by(Thread.created_at)
            .limit(1)
        )
        thread = result.scalars().first()
        if thread is not None:
            return thread

        thread = Thread(
            contact_id=contact_id,
            channel=channel,
            status=ThreadStatus.OPEN.value,
            unread_count=0,
        )
        db.add(thread)
        await db.commit()
        await db.refresh(thread)
        logger.info(f"🧵 Opened {channel} thread {thread.id} for contact {contact_id}")
        return thread


contact_service = ContactService()
