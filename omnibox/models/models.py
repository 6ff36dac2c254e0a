from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, Uuid, JSON, Index
from sqlalchemy.orm import relationship, declarative_base
from datetime import datetime, timezone
import uuid
import enum

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Channel(str, enum.Enum):
    SMS = "sms"
    WHATSAPP = "whatsapp"
    EMAIL = "email"

class MessageDirection(str, enum.Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"

class MessageStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"
    READ = "read"

class ThreadStatus(str, enum.Enum):
    OPEN = "open"
    CLOSED = "closed"
    ARCHIVED = "archived"

class ContactStatus(str, enum.Enum):
    LEAD = "lead"
    PROSPECT = "prospect"
    CUSTOMER = "customer"
    INACTIVE = "inactive"

class AnalyticsEventType(str, enum.Enum):
    MESSAGE_SENT = "message_sent"
    MESSAGE_DELIVERED = "message_delivered"
    MESSAGE_READ = "message_read"
    MESSAGE_FAILED = "message_failed"
    RESPONSE_RECEIVED = "response_received"

class ScheduledMessageStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    CANCELLED = "cancelled"
    FAILED = "failed"


class User(Base):
    """Account row resolved by the session lookup; owned by the auth service."""
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=True)
    image = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    messages = relationship("Message", back_populates="user")

    def __repr__(self):
        return f"<User {self.email}>"

class Contact(Base):
    __tablename__ = "contacts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=True)
    phone = Column(String, nullable=True)  # E.164
    email = Column(String, nullable=True)  # lower-cased

    status = Column(String, default=ContactStatus.LEAD.value)

    # Social handles
    twitter_handle = Column(String, nullable=True)
    facebook_handle = Column(String, nullable=True)
    instagram_handle = Column(String, nullable=True)
    linkedin_handle = Column(String, nullable=True)

    # Ids of contacts folded into this one
    merged_from_ids = Column(JSON, default=list)

    last_contacted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    threads = relationship("Thread", back_populates="contact")
    notes = relationship("Note", back_populates="contact")
    scheduled_messages = relationship("ScheduledMessage", back_populates="contact")

    def __repr__(self):
        return f"<Contact {self.name} - {self.phone or self.email}>"

class Thread(Base):
    __tablename__ = "threads"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    contact_id = Column(Uuid, ForeignKey("contacts.id"), nullable=False)
    channel = Column(String, nullable=False)
    status = Column(String, default=ThreadStatus.OPEN.value, nullable=False)
    unread_count = Column(Integer, default=0, nullable=False)
    last_message_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    contact = relationship("Contact", back_populates="threads")
    messages = relationship(
        "Message", back_populates="thread", cascade="all, delete-orphan", order_by="Message.created_at"
    )

    def __repr__(self):
        return f"<Thread {self.channel} {self.id}>"

class Message(Base):
    __tablename__ = "messages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    thread_id = Column(Uuid, ForeignKey("threads.id", ondelete="CASCADE"), nullable=False)
    channel = Column(String, nullable=False)
    direction = Column(String, nullable=False)

    from_address = Column(String, nullable=False)
    to_address = Column(String, nullable=False)
    body = Column(Text, nullable=True)
    subject = Column(String, nullable=True)
    html_body = Column(Text, nullable=True)

    status = Column(String, default=MessageStatus.PENDING.value, nullable=False)
    external_id = Column(String, nullable=True)  # provider message id (Twilio SID, SendGrid X-Message-Id)
    error_code = Column(String, nullable=True)
    error_message = Column(Text, nullable=True)

    user_id = Column(Uuid, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    read_at = Column(DateTime(timezone=True), nullable=True)

    thread = relationship("Thread", back_populates="messages")
    user = relationship("User", back_populates="messages")
    attachments = relationship("MessageAttachment", back_populates="message", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Message {self.direction} {self.channel} {self.external_id}>"

class MessageAttachment(Base):
    __tablename__ = "message_attachments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    message_id = Column(Uuid, ForeignKey("messages.id", ondelete="CASCADE"), nullable=False)
    filename = Column(String, nullable=False)
    content_type = Column(String, nullable=False)
    url = Column(String, nullable=True)
    size = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    message = relationship("Message", back_populates="attachments")

class AnalyticsEvent(Base):
    """Append-only delivery and engagement log."""
    __tablename__ = "analytics_events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    contact_id = Column(Uuid, ForeignKey("contacts.id"), nullable=False)
    message_id = Column(Uuid, ForeignKey("messages.id", ondelete="SET NULL"), nullable=True)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=True)
    event_type = Column(String, nullable=False)
    channel = Column(String, nullable=True)
    # "metadata" is reserved on declarative classes
    event_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

class Note(Base):
    __tablename__ = "notes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    contact_id = Column(Uuid, ForeignKey("contacts.id"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=True)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    contact = relationship("Contact", back_populates="notes")

class ScheduledMessage(Base):
    __tablename__ = "scheduled_messages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    contact_id = Column(Uuid, ForeignKey("contacts.id"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=True)
    channel = Column(String, nullable=False)
    body = Column(Text, nullable=False)
    subject = Column(String, nullable=True)
    scheduled_for = Column(DateTime(timezone=True), nullable=False)
    status = Column(String, default=ScheduledMessageStatus.PENDING.value, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    contact = relationship("Contact", back_populates="scheduled_messages")


# Contact indexes
Index('idx_contacts_phone', Contact.phone)
Index('idx_contacts_email', Contact.email)

# Inbox indexes
Index('idx_threads_contact_channel_status', Thread.contact_id, Thread.channel, Thread.status)
Index('idx_threads_last_message_at', Thread.last_message_at)
Index('idx_messages_thread_id', Message.thread_id)
Index('idx_messages_external_id', Message.external_id)
Index('idx_message_attachments_message_id', MessageAttachment.message_id)

# Analytics indexes
Index('idx_analytics_events_contact_id', AnalyticsEvent.contact_id)
Index('idx_analytics_events_event_type', AnalyticsEvent.event_type)
Index('idx_notes_contact_id', Note.contact_id)
Index('idx_scheduled_messages_contact_id', ScheduledMessage.contact_id)
