from inbox.schemas.chat import ChatRoom, Message, SenderRole
from inbox.schemas.conversation import (
    BuyerProfile,
    ConversationStatus,
    EnrichedConversation,
    InboxStats,
    InboxTab,
    ReadState,
)
from inbox.schemas.inquiry import InquiryRecord

__all__ = [
    "BuyerProfile",
    "ChatRoom",
    "ConversationStatus",
    "EnrichedConversation",
    "InboxStats",
    "InboxTab",
    "InquiryRecord",
    "Message",
    "ReadState",
    "SenderRole",
]
