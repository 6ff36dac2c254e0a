from .schemas import (
    AttachmentInput,
    SendMessageRequest,
    SendMessageResponse,
    ContactResponse,
    AttachmentResponse,
    MessageUserResponse,
    MessageResponse,
    ThreadMessageResponse,
    ThreadSummaryResponse,
    ThreadDetailResponse,
    PaginationInfo,
    ThreadListResponse
)

__all__ = [
    "AttachmentInput",
    "SendMessageRequest",
    "SendMessageResponse",
    "ContactResponse",
    "AttachmentResponse",
    "MessageUserResponse",
    "MessageResponse",
    "ThreadMessageResponse",
    "ThreadSummaryResponse",
    "ThreadDetailResponse",
    "PaginationInfo",
    "ThreadListResponse"
]
