"""
Store interfaces consumed by the inbox engine.

Implementations wrap the relational inquiry backend, the realtime chat
store and the buyer profile service. The engine only depends on these
contracts.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional

from inbox.schemas.chat import ChatRoom
from inbox.schemas.conversation import BuyerProfile, ConversationStatus
from inbox.schemas.inquiry import InquiryRecord

RawMessage = dict[str, Any]
SnapshotCallback = Callable[[List[RawMessage]], None]
Unsubscribe = Callable[[], None]


class InquiryStore(ABC):
    """Relational inquiry backend. Read-only except for status updates."""

    @abstractmethod
    async def list(self) -> List[InquiryRecord]:
        """Return every inquiry row visible to the agent (not deduplicated)."""
        ...

    @abstractmethod
    async def update_status(self, inquiry_id: str, status: ConversationStatus) -> None:
        """Persist a status change. Raise if the row is missing or the write fails."""
        ...


class ChatStore(ABC):
    """Push-based store of chat rooms and their message streams."""

    @abstractmethod
    async def list_rooms_for_user(self, user_id: str) -> List[ChatRoom]:
        """Rooms the user participates in, most recently updated first."""
        ...

    @abstractmethod
    async def get_room(self, room_id: str) -> Optional[ChatRoom]:
        ...

    @abstractmethod
    async def create_or_get_room(
        self,
        buyer_id: str,
        agent_id: str,
        property_id: str,
        agent_role: str = "agent",
    ) -> str:
        """Return the room id for (buyer, agent, property), creating it if needed."""
        ...

    @abstractmethod
    def subscribe_messages(self, room_id: str, callback: SnapshotCallback) -> Unsubscribe:
        """
        Push the full, timestamp-ordered message snapshot of the room to
        callback on every change. Return a function that stops the pushes.
        """
        ...

    @abstractmethod
    async def append_message(
        self, room_id: str, sender_id: str, sender_role: str, text: str
    ) -> str:
        """Append a message and return its id."""
        ...

    @abstractmethod
    async def set_read_status(
        self, room_id: str, user_id: str, status: ConversationStatus
    ) -> None:
        """Set the user's status and stamp their last-read time with the store clock."""
        ...


class BuyerDirectory(ABC):
    """Best-effort buyer profile lookup."""

    @abstractmethod
    async def get_buyer(self, buyer_id: str) -> Optional[BuyerProfile]:
        """Return the profile, or None when unknown or unavailable."""
        ...
