"""Chat room and message contracts of the realtime chat store."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from inbox.core.conversation_key import ConversationKey, build_conversation_key
from inbox.exceptions import MalformedRecordError
from inbox.schemas.conversation import ConversationStatus
from inbox.utils.timestamps import ensure_utc, parse_timestamp, utc_now


class SenderRole(str, Enum):
    """Author of a chat message. Anything not buyer/agent is UNKNOWN."""

    BUYER = "buyer"
    AGENT = "agent"
    UNKNOWN = "unknown"

    @classmethod
    def normalize(cls, value: Any) -> SenderRole:
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered == cls.BUYER.value:
                return cls.BUYER
            if lowered == cls.AGENT.value:
                return cls.AGENT
        return cls.UNKNOWN


class ChatRoom(BaseModel):
    """One realtime chat room per (buyer, agent, property)."""

    id: str
    buyer_id: str
    receiver_id: str
    receiver_role: str = "agent"
    property_id: str
    last_message: str = ""
    read_status: dict[str, ConversationStatus] = Field(default_factory=dict)
    last_read_at: dict[str, datetime] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("buyer_id", "receiver_id", "property_id", mode="before")
    @classmethod
    def _str_id(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @field_validator("read_status", mode="before")
    @classmethod
    def _known_statuses(cls, value: Any) -> dict[str, ConversationStatus]:
        result: dict[str, ConversationStatus] = {}
        for user_id, status in (value or {}).items():
            coerced = ConversationStatus.coerce(status)
            if coerced is not None:
                result[str(user_id)] = coerced
        return result

    @field_validator("last_read_at", mode="before")
    @classmethod
    def _parse_read_times(cls, value: Any) -> dict[str, datetime]:
        result: dict[str, datetime] = {}
        for user_id, stamp in (value or {}).items():
            parsed = parse_timestamp(stamp)
            if parsed is not None:
                result[str(user_id)] = parsed
        return result

    @field_validator("created_at", "updated_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def conversation_key(self) -> ConversationKey:
        return build_conversation_key(self.buyer_id, self.property_id)

    @property
    def participants(self) -> list[str]:
        return sorted({self.buyer_id, self.receiver_id})

    def status_for(self, user_id: str) -> Optional[ConversationStatus]:
        return self.read_status.get(str(user_id))

    def last_read_for(self, user_id: str) -> Optional[datetime]:
        return self.last_read_at.get(str(user_id))


class Message(BaseModel):
    """A chat message, ordered by timestamp within its room."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    sender_id: Optional[str] = None
    sender_role: SenderRole
    timestamp: datetime
    pending: bool = False

    @field_validator("sender_role", mode="before")
    @classmethod
    def _normalize_role(cls, value: Any) -> SenderRole:
        return SenderRole.normalize(value)

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def renders_as_buyer(self) -> bool:
        return self.sender_role != SenderRole.AGENT

    @property
    def counts_toward_unread(self) -> bool:
        return self.sender_role == SenderRole.BUYER and not self.pending

    @classmethod
    def from_raw(cls, data: dict[str, Any]) -> Message:
        """
        Normalize a raw push event into a Message.

        A missing timestamp (server stamp not yet applied) becomes now.
        Raises MalformedRecordError when the id or the text is missing.
        """
        if not isinstance(data, dict) or not data.get("id"):
            raise MalformedRecordError(f"Message without id: {data!r}")
        if data.get("text") is None:
            raise MalformedRecordError(f"Message {data['id']} has no text")
        sender_id = data.get("sender_id")
        return cls(
            id=str(data["id"]),
            text=str(data["text"]),
            sender_id=str(sender_id) if sender_id is not None else None,
            sender_role=data.get("sender_role"),
            timestamp=parse_timestamp(data.get("timestamp")) or utc_now(),
        )
