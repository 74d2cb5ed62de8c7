"""Live message subscription for the open conversation."""

from __future__ import annotations

from typing import Callable, List, Optional

from pydantic import ValidationError

from inbox.adapters.base import ChatStore, RawMessage, Unsubscribe
from inbox.exceptions import MalformedRecordError
from inbox.infra.logging_config import get_logger
from inbox.schemas.chat import Message

logger = get_logger("message_stream")

MessagesCallback = Callable[[List[Message]], None]


def normalize_snapshot(raw_messages: List[RawMessage]) -> List[Message]:
    """Convert raw push events into Messages sorted by timestamp; skip malformed ones."""
    messages: List[Message] = []
    for raw in raw_messages or []:
        try:
            messages.append(Message.from_raw(raw))
        except (MalformedRecordError, ValidationError) as e:
            logger.warning("Skipping malformed message: %s", e)
    messages.sort(key=lambda m: m.timestamp)
    return messages


class MessageStream:
    """
    Holds at most one live subscription. Each callback gets the full
    re-sorted snapshot, so consumers replace their list instead of appending.
    """

    def __init__(self, chat_store: ChatStore) -> None:
        self._chat_store = chat_store
        self._unsubscribe: Optional[Unsubscribe] = None
        self._room_id: Optional[str] = None
        self._generation = 0

    @property
    def active_room_id(self) -> Optional[str]:
        return self._room_id

    def subscribe(self, chat_room_id: str, on_messages: MessagesCallback) -> Unsubscribe:
        """Stop the previous stream, then start pushing snapshots of chat_room_id."""
        self.close()
        self._generation += 1
        generation = self._generation
        self._room_id = chat_room_id

        def handle(raw_messages: List[RawMessage]) -> None:
            if self._generation != generation:
                return
            on_messages(normalize_snapshot(raw_messages))

        def unsubscribe() -> None:
            if self._generation == generation:
                self.close()

        self._unsubscribe = self._chat_store.subscribe_messages(chat_room_id, handle)
        logger.debug("Subscribed to chat room %s", chat_room_id)
        return unsubscribe

    def close(self) -> None:
        if self._unsubscribe is not None:
            logger.debug("Unsubscribing from chat room %s", self._room_id)
            self._unsubscribe()
        self._unsubscribe = None
        self._room_id = None
        self._generation += 1
