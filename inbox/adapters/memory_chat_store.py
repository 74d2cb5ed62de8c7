"""In-process realtime chat store (development, tests and demo mode)."""

from __future__ import annotations

from datetime import datetime
from itertools import count
from typing import Callable, Dict, List, Optional

from inbox.adapters.base import ChatStore, RawMessage, SnapshotCallback, Unsubscribe
from inbox.core.conversation_key import build_chat_room_id
from inbox.exceptions import ChatRoomNotFoundError
from inbox.infra.logging_config import get_logger
from inbox.schemas.chat import ChatRoom
from inbox.schemas.conversation import ConversationStatus
from inbox.utils.timestamps import utc_now

logger = get_logger("memory_chat_store")


class InMemoryChatStore(ChatStore):
    """
    Rooms and messages held in dicts. Subscribers receive the full snapshot
    on subscribe and after every append, like a live query listener.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._clock = clock or utc_now
        self._rooms: Dict[str, ChatRoom] = {}
        self._messages: Dict[str, List[RawMessage]] = {}
        self._subscribers: Dict[str, List[SnapshotCallback]] = {}
        self._ids = count(1)

    async def list_rooms_for_user(self, user_id: str) -> List[ChatRoom]:
        user = str(user_id)
        rooms = [
            room.model_copy(deep=True)
            for room in self._rooms.values()
            if user in room.participants
        ]
        rooms.sort(key=lambda r: r.updated_at, reverse=True)
        return rooms

    async def get_room(self, room_id: str) -> Optional[ChatRoom]:
        room = self._rooms.get(room_id)
        return room.model_copy(deep=True) if room is not None else None

    async def create_or_get_room(
        self,
        buyer_id: str,
        agent_id: str,
        property_id: str,
        agent_role: str = "agent",
    ) -> str:
        room_id = build_chat_room_id(buyer_id, agent_id, property_id)
        now = self._clock()
        existing = self._rooms.get(room_id)
        if existing is not None:
            existing.updated_at = now
            return room_id
        self._rooms[room_id] = ChatRoom(
            id=room_id,
            buyer_id=str(buyer_id),
            receiver_id=str(agent_id),
            receiver_role=agent_role,
            property_id=str(property_id),
            read_status={
                str(buyer_id): ConversationStatus.NEW,
                str(agent_id): ConversationStatus.NEW,
            },
            created_at=now,
            updated_at=now,
        )
        self._messages[room_id] = []
        return room_id

    def subscribe_messages(self, room_id: str, callback: SnapshotCallback) -> Unsubscribe:
        self._subscribers.setdefault(room_id, []).append(callback)
        callback(self._snapshot(room_id))

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(room_id, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    async def append_message(
        self, room_id: str, sender_id: str, sender_role: str, text: str
    ) -> str:
        if not text or not text.strip():
            raise ValueError("Message text is required")
        room = self._rooms.get(room_id)
        if room is None:
            raise ChatRoomNotFoundError(room_id)
        now = self._clock()
        message_id = f"m{next(self._ids)}"
        self._messages[room_id].append(
            {
                "id": message_id,
                "sender_id": str(sender_id),
                "sender_role": sender_role,
                "text": text.strip(),
                "timestamp": now,
            }
        )
        other = room.receiver_id if str(sender_id) == room.buyer_id else room.buyer_id
        room.last_message = text.strip()
        room.updated_at = now
        room.read_status[other] = ConversationStatus.NEW
        self._notify(room_id)
        return message_id

    async def set_read_status(
        self, room_id: str, user_id: str, status: ConversationStatus
    ) -> None:
        room = self._rooms.get(room_id)
        if room is None:
            raise ChatRoomNotFoundError(room_id)
        now = self._clock()
        room.read_status[str(user_id)] = ConversationStatus(status)
        room.last_read_at[str(user_id)] = now
        room.updated_at = now

    def _snapshot(self, room_id: str) -> List[RawMessage]:
        messages = [dict(m) for m in self._messages.get(room_id, [])]
        messages.sort(key=lambda m: m["timestamp"])
        return messages

    def _notify(self, room_id: str) -> None:
        snapshot = self._snapshot(room_id)
        for callback in list(self._subscribers.get(room_id, [])):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Message subscriber for room %s failed", room_id)
