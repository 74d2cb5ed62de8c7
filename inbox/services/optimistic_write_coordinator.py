"""
Local-first writes (outgoing messages, status changes) reconciled against
store confirmations.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from inbox.adapters.base import ChatStore, InquiryStore
from inbox.core.conversation_key import ConversationKey
from inbox.core.inbox_state import InboxState
from inbox.exceptions import SendFailureError, SourceUnavailableError, StaleWriteError
from inbox.infra.logging_config import get_logger
from inbox.schemas.chat import Message, SenderRole
from inbox.schemas.conversation import ConversationStatus, EnrichedConversation
from inbox.utils.metrics import INBOX_MESSAGE_SEND_TOTAL, INBOX_STATUS_WRITE_TOTAL
from inbox.utils.timestamps import utc_now

logger = get_logger("optimistic_write_coordinator")

CHAT_SOURCE = "chat_rooms"
INQUIRY_SOURCE = "inquiries"


class OptimisticWriteCoordinator:
    """
    Applies user actions to InboxState immediately, writes the realtime store
    (authoritative) and mirrors status to the relational store best-effort.

    A locally confirmed "replied" is held against stale remote snapshots
    until a snapshot reports "replied" itself.
    """

    def __init__(
        self,
        state: InboxState,
        inquiry_store: InquiryStore,
        chat_store: ChatStore,
        agent_id: str,
        agent_role: str = "agent",
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._state = state
        self._inquiry_store = inquiry_store
        self._chat_store = chat_store
        self._agent_id = str(agent_id)
        self._agent_role = agent_role
        self._clock = clock or utc_now
        self._held: Dict[ConversationKey, ConversationStatus] = {}

    def held_status(self, key: ConversationKey) -> Optional[ConversationStatus]:
        return self._held.get(key)

    def apply_status_guard(
        self, conversations: Sequence[EnrichedConversation]
    ) -> List[EnrichedConversation]:
        """Suppress status regressions from snapshots that predate a local "replied"."""
        guarded: List[EnrichedConversation] = []
        for conversation in conversations:
            key = conversation.conversation_key
            if self._held.get(key) == ConversationStatus.REPLIED:
                if conversation.status == ConversationStatus.REPLIED:
                    self._held.pop(key, None)
                else:
                    logger.debug(
                        "%s",
                        StaleWriteError(
                            f"Ignoring stale status {conversation.status.value} "
                            f"for {key}; holding replied"
                        ),
                    )
                    conversation = conversation.model_copy(
                        update={"status": ConversationStatus.REPLIED}
                    )
            guarded.append(conversation)
        return guarded

    async def send_message(self, conversation: EnrichedConversation, text: str) -> Message:
        """
        Send an agent message.

        The local pending copy is added only after the remote append succeeds.
        On failure the compose text is restored and SendFailureError is raised;
        the status is left untouched.
        """
        text = (text or "").strip()
        if not text:
            raise ValueError("Message text is required")
        key = conversation.conversation_key
        if key.is_guest:
            self._state.set_draft(key, text)
            INBOX_MESSAGE_SEND_TOTAL.labels(status="failure").inc()
            raise SendFailureError("Buyer or property information not available for chat")

        self._state.clear_draft(key)
        try:
            room_id = await self._chat_store.create_or_get_room(
                key.buyer_id, self._agent_id, conversation.property_id, self._agent_role
            )
            await self._chat_store.append_message(
                room_id, self._agent_id, SenderRole.AGENT.value, text
            )
        except Exception as e:
            self._state.set_draft(key, text)
            INBOX_MESSAGE_SEND_TOTAL.labels(status="failure").inc()
            logger.warning("Failed to send message for %s: %s", key, e)
            raise SendFailureError(str(e) or "Failed to send message") from e

        INBOX_MESSAGE_SEND_TOTAL.labels(status="success").inc()
        message = Message(
            id=f"local-{uuid.uuid4().hex}",
            text=text,
            sender_id=self._agent_id,
            sender_role=SenderRole.AGENT,
            timestamp=self._clock(),
            pending=True,
        )
        self._state.append_pending_message(key, message)
        self._set_local_status(key, self._current_status(conversation), chat_room_id=room_id)

        try:
            await self._chat_store.set_read_status(
                room_id, self._agent_id, ConversationStatus.REPLIED
            )
            confirmed = await self._confirm_status(room_id, ConversationStatus.REPLIED)
        except Exception as e:
            INBOX_STATUS_WRITE_TOTAL.labels(store=CHAT_SOURCE, status="failure").inc()
            logger.warning(
                "Message sent but replied status not recorded for room %s: %s",
                room_id,
                e,
            )
            return message

        INBOX_STATUS_WRITE_TOTAL.labels(store=CHAT_SOURCE, status="success").inc()
        self._set_local_status(key, confirmed, chat_room_id=room_id)
        await self._mirror_to_inquiry_store(conversation, ConversationStatus.REPLIED)
        return message

    async def set_status(
        self, conversation: EnrichedConversation, status: ConversationStatus
    ) -> ConversationStatus:
        """
        Change the conversation status: local first, realtime store next,
        then read back the canonical value. Returns the confirmed status.
        """
        status = ConversationStatus(status)
        key = conversation.conversation_key
        previous = self._current_status(conversation)
        self._set_local_status(key, status)

        if key.is_guest:
            # No chat room can exist without a buyer id.
            try:
                if conversation.inquiry_id is not None:
                    await self._inquiry_store.update_status(conversation.inquiry_id, status)
            except Exception as e:
                self._set_local_status(key, previous)
                INBOX_STATUS_WRITE_TOTAL.labels(store=INQUIRY_SOURCE, status="failure").inc()
                raise SourceUnavailableError(INQUIRY_SOURCE, str(e)) from e
            INBOX_STATUS_WRITE_TOTAL.labels(store=INQUIRY_SOURCE, status="success").inc()
            return status

        try:
            room_id = conversation.chat_room_id or await self._chat_store.create_or_get_room(
                key.buyer_id, self._agent_id, conversation.property_id, self._agent_role
            )
            await self._chat_store.set_read_status(room_id, self._agent_id, status)
        except Exception as e:
            self._set_local_status(key, previous)
            INBOX_STATUS_WRITE_TOTAL.labels(store=CHAT_SOURCE, status="failure").inc()
            logger.warning("Status write failed for %s, rolled back: %s", key, e)
            raise SourceUnavailableError(CHAT_SOURCE, str(e)) from e

        INBOX_STATUS_WRITE_TOTAL.labels(store=CHAT_SOURCE, status="success").inc()
        try:
            confirmed = await self._confirm_status(room_id, status)
        except Exception as e:
            logger.warning("Status read-back failed for room %s: %s", room_id, e)
            confirmed = status
        self._set_local_status(key, confirmed, chat_room_id=room_id)
        await self._mirror_to_inquiry_store(conversation, confirmed)
        return confirmed

    async def _confirm_status(
        self, room_id: str, fallback: ConversationStatus
    ) -> ConversationStatus:
        """Read the room back and return the agent's canonical status."""
        room = await self._chat_store.get_room(room_id)
        if room is None:
            return fallback
        return room.status_for(self._agent_id) or fallback

    async def _mirror_to_inquiry_store(
        self, conversation: EnrichedConversation, status: ConversationStatus
    ) -> None:
        """Best-effort relational write; failures are logged and never rolled back."""
        if conversation.inquiry_id is None:
            return
        try:
            await self._inquiry_store.update_status(conversation.inquiry_id, status)
        except Exception as e:
            INBOX_STATUS_WRITE_TOTAL.labels(store=INQUIRY_SOURCE, status="failure").inc()
            logger.warning(
                "Failed to mirror status %s to inquiry %s: %s",
                status.value,
                conversation.inquiry_id,
                e,
            )
            return
        INBOX_STATUS_WRITE_TOTAL.labels(store=INQUIRY_SOURCE, status="success").inc()

    def _current_status(self, conversation: EnrichedConversation) -> ConversationStatus:
        local = self._state.get_conversation(conversation.conversation_key)
        return local.status if local is not None else conversation.status

    def _set_local_status(
        self, key: ConversationKey, status: ConversationStatus, **extra: Any
    ) -> None:
        if status == ConversationStatus.REPLIED:
            self._held[key] = ConversationStatus.REPLIED
        else:
            self._held.pop(key, None)
        local = self._state.get_conversation(key)
        if local is not None:
            self._state.replace_conversation(
                local.model_copy(update={"status": status, **extra})
            )
