"""Per-conversation read state and unread accounting for the current user."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Dict, Mapping, Optional, Sequence

from inbox.adapters.base import ChatStore
from inbox.core.conversation_key import ConversationKey
from inbox.infra.logging_config import get_logger
from inbox.schemas.chat import ChatRoom, Message
from inbox.schemas.conversation import (
    ConversationStatus,
    EnrichedConversation,
    InboxTab,
    ReadState,
)
from inbox.utils.timestamps import utc_now

logger = get_logger("read_state_tracker")


class ReadStateTracker:
    """
    Tracks the current user's last-read timestamp per conversation.

    The server's read stamp (ChatRoom.last_read_at) is authoritative; local
    values are optimistic placeholders until the next read-back.
    """

    def __init__(
        self,
        chat_store: ChatStore,
        current_user_id: str,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._chat_store = chat_store
        self._user_id = str(current_user_id)
        self._clock = clock or utc_now
        self._states: Dict[ConversationKey, ReadState] = {}
        self._focused_key: Optional[ConversationKey] = None
        self._focused_tab: InboxTab = InboxTab.DETAILS

    def set_focus(self, key: Optional[ConversationKey], tab: InboxTab) -> None:
        self._focused_key = key
        self._focused_tab = tab

    def is_focused(self, key: ConversationKey) -> bool:
        """True while the conversation is open on the chat tab."""
        return self._focused_key == key and self._focused_tab == InboxTab.CHAT

    def get_read_state(self, key: ConversationKey) -> ReadState:
        return self._states.get(key) or ReadState(conversation_key=key)

    def load_from_room(self, key: ConversationKey, room: Optional[ChatRoom]) -> ReadState:
        """Adopt the server's read stamp for the current user, when it has one."""
        if room is not None:
            server_value = room.last_read_for(self._user_id)
            if server_value is not None:
                self._states[key] = ReadState(
                    conversation_key=key, last_read_at=server_value
                )
        return self.get_read_state(key)

    @staticmethod
    def is_unread(message: Message, read_state: ReadState) -> bool:
        if not message.counts_toward_unread:
            return False
        return read_state.last_read_at is None or message.timestamp > read_state.last_read_at

    def unread_count(
        self,
        conversation: EnrichedConversation,
        messages: Sequence[Message],
        read_state: Optional[ReadState] = None,
    ) -> int:
        """Unread buyer messages; always 0 for the conversation open on the chat tab."""
        key = conversation.conversation_key
        if self.is_focused(key):
            return 0
        state = read_state or self.get_read_state(key)
        return sum(1 for m in messages if self.is_unread(m, state))

    def total_unread(self, messages_by_key: Mapping[ConversationKey, Sequence[Message]]) -> int:
        """Badge count over every conversation except the focused one."""
        total = 0
        for key, messages in messages_by_key.items():
            if self.is_focused(key):
                continue
            state = self.get_read_state(key)
            total += sum(1 for m in messages if self.is_unread(m, state))
        return total

    async def mark_read(self, conversation: EnrichedConversation) -> ReadState:
        """
        Mark the conversation read: local stamp first, then the remote write,
        then a read-back that replaces the local stamp with the server's.
        """
        key = conversation.conversation_key
        self._states[key] = ReadState(conversation_key=key, last_read_at=self._clock())
        room_id = conversation.chat_room_id
        if room_id is None:
            return self._states[key]

        status = (
            ConversationStatus.REPLIED
            if conversation.status == ConversationStatus.REPLIED
            else ConversationStatus.READ
        )
        try:
            await self._chat_store.set_read_status(room_id, self._user_id, status)
            room = await self._chat_store.get_room(room_id)
        except Exception as e:
            logger.warning("Failed to sync read state for room %s: %s", room_id, e)
            return self._states[key]
        return self.load_from_room(key, room)
