"""Store adapters for the inbox engine."""

from inbox.adapters.base import BuyerDirectory, ChatStore, InquiryStore
from inbox.adapters.buyer_profile_client import BuyerProfileClient
from inbox.adapters.memory_chat_store import InMemoryChatStore
from inbox.adapters.redis_chat_store import RedisChatStore
from inbox.adapters.sql_inquiry_store import SqlInquiryStore

__all__ = [
    "BuyerDirectory",
    "BuyerProfileClient",
    "ChatStore",
    "InMemoryChatStore",
    "InquiryStore",
    "RedisChatStore",
    "SqlInquiryStore",
]
