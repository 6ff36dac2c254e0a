from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any
from datetime import datetime
from uuid import UUID


class CamelModel(BaseModel):
    """JSON in and out uses camelCase; Python code uses snake_case."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# Send
class AttachmentInput(CamelModel):
    filename: str
    content_type: str
    url: Optional[str] = None
    base64: Optional[str] = None
    size: Optional[int] = None

class SendMessageRequest(CamelModel):
    # Required fields are checked in the route so the error message stays uniform
    channel: Optional[str] = None
    to: Optional[str] = None
    body: Optional[str] = None
    subject: Optional[str] = None
    from_: Optional[str] = Field(default=None, alias="from")
    thread_id: Optional[UUID] = None
    html_body: Optional[str] = None
    attachments: List[AttachmentInput] = []
    metadata: Dict[str, Any] = {}

class SendMessageResponse(CamelModel):
    success: bool
    message_id: Optional[str] = None
    status: str
    channel: str
    error: Optional[str] = None


# Inbox
class ContactResponse(CamelModel):
    id: UUID
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    status: Optional[str] = None
    twitter_handle: Optional[str] = None
    facebook_handle: Optional[str] = None
    last_contacted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

class AttachmentResponse(CamelModel):
    id: UUID
    filename: str
    content_type: str
    url: Optional[str] = None
    size: Optional[int] = None

class MessageUserResponse(CamelModel):
    id: UUID
    name: Optional[str] = None
    image: Optional[str] = None

class MessageResponse(CamelModel):
    id: UUID
    thread_id: UUID
    channel: str
    direction: str
    from_address: str
    to_address: str
    body: Optional[str] = None
    subject: Optional[str] = None
    html_body: Optional[str] = None
    status: str
    external_id: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    read_at: Optional[datetime] = None
    attachments: List[AttachmentResponse] = []

class ThreadMessageResponse(MessageResponse):
    user: Optional[MessageUserResponse] = None

class ThreadSummaryResponse(CamelModel):
    id: UUID
    channel: str
    status: str
    unread_count: int
    last_message_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    contact: ContactResponse
    messages: List[MessageResponse] = []

class ThreadDetailResponse(CamelModel):
    id: UUID
    channel: str
    status: str
    unread_count: int
    last_message_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    contact: ContactResponse
    messages: List[ThreadMessageResponse] = []

class PaginationInfo(CamelModel):
    total: int
    limit: int
    offset: int
    has_more: bool

class ThreadListResponse(CamelModel):
    threads: List[ThreadSummaryResponse]
    pagination: PaginationInfo
