from .models import (
    Base,
    Channel,
    MessageDirection,
    MessageStatus,
    ThreadStatus,
    ContactStatus,
    AnalyticsEventType,
    ScheduledMessageStatus,
    User,
    Contact,
    Thread,
    Message,
    MessageAttachment,
    AnalyticsEvent,
    Note,
    ScheduledMessage
)

__all__ = [
    "Base",
    "Channel",
    "MessageDirection",
    "MessageStatus",
    "ThreadStatus",
    "ContactStatus",
    "AnalyticsEventType",
    "ScheduledMessageStatus",
    "User",
    "Contact",
    "Thread",
    "Message",
    "MessageAttachment",
    "AnalyticsEvent",
    "Note",
    "ScheduledMessage"
]
