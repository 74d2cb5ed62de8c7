"""
Derived conversation contracts.

EnrichedConversation is recomputed on every reconciliation pass; identity is
the conversation key, never the object.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from inbox.core.conversation_key import ConversationKey
from inbox.utils.timestamps import ensure_utc


class ConversationStatus(str, Enum):
    """Per-user conversation status."""

    NEW = "new"
    READ = "read"
    REPLIED = "replied"

    @classmethod
    def coerce(cls, value: Any) -> Optional[ConversationStatus]:
        """Return the matching status, or None for unknown values."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return None
        return None


class InboxTab(str, Enum):
    DETAILS = "details"
    CHAT = "chat"


class BuyerProfile(BaseModel):
    """Buyer contact details from the profile lookup."""

    name: str = "Buyer"
    email: str = ""
    phone: str = ""
    avatar_url: Optional[str] = None


class EnrichedConversation(BaseModel):
    """One merged conversation: inquiry display fields plus chat room metadata."""

    model_config = ConfigDict(frozen=True)

    conversation_key: ConversationKey
    inquiry_id: Optional[str] = None
    buyer_id: str
    property_id: str
    buyer_name: str
    buyer_email: str = ""
    buyer_phone: str = ""
    buyer_avatar_url: Optional[str] = None
    property_title: str
    last_message: str = ""
    last_activity: datetime
    status: ConversationStatus = ConversationStatus.NEW
    chat_room_id: Optional[str] = None
    is_chat_only: bool = False
    created_at: datetime

    @field_validator("last_activity", "created_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class ReadState(BaseModel):
    """Last-read timestamp of the current user for one conversation."""

    conversation_key: ConversationKey
    last_read_at: Optional[datetime] = None

    @field_validator("last_read_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None


class InboxStats(BaseModel):
    """Summary counters shown above the conversation list."""

    total: int = 0
    new: int = 0
    read: int = 0
    replied: int = 0
