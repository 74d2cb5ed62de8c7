"""InboxManager: facade for mount, refresh, select, switch_tab, send, set_status, unread counts and stats."""

from __future__ import annotations

import asyncio
import contextlib
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Set

from sqlalchemy.orm import Session as DBSession

from inbox.adapters.base import BuyerDirectory, ChatStore, InquiryStore
from inbox.adapters.buyer_profile_client import BuyerProfileClient
from inbox.adapters.memory_chat_store import InMemoryChatStore
from inbox.adapters.redis_chat_store import RedisChatStore
from inbox.adapters.sql_inquiry_store import SqlInquiryStore
from inbox.commands.refresh_inbox_command import RefreshInboxCommand, RefreshResult
from inbox.config import Settings, get_settings
from inbox.core.conversation_key import ConversationKey
from inbox.core.inbox_state import InboxState
from inbox.infra.logging_config import LoggingConfig, get_logger
from inbox.schemas.chat import ChatRoom, Message
from inbox.schemas.conversation import (
    ConversationStatus,
    EnrichedConversation,
    InboxStats,
    InboxTab,
)
from inbox.services.conversation_reconciler import ConversationReconciler
from inbox.services.message_stream import MessageStream
from inbox.services.optimistic_write_coordinator import OptimisticWriteCoordinator
from inbox.services.polling_scheduler import PollingScheduler
from inbox.services.read_state_tracker import ReadStateTracker
from inbox.utils.timestamps import utc_now

logger = get_logger("inbox_manager")


class InboxManager:
    def __init__(
        self,
        inquiry_store: InquiryStore,
        chat_store: ChatStore,
        agent_id: str,
        *,
        buyer_directory: Optional[BuyerDirectory] = None,
        poll_interval: float = 30.0,
        match_window: timedelta = timedelta(seconds=120),
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.agent_id = str(agent_id)
        self._chat_store = chat_store
        self._clock = clock or utc_now
        self.state = InboxState(match_window=match_window)
        self.tracker = ReadStateTracker(chat_store, self.agent_id, clock=self._clock)
        self.stream = MessageStream(chat_store)
        self.coordinator = OptimisticWriteCoordinator(
            self.state, inquiry_store, chat_store, self.agent_id, clock=self._clock
        )
        self.refresh_command = RefreshInboxCommand(
            inquiry_store,
            chat_store,
            self.agent_id,
            reconciler=ConversationReconciler(),
            buyer_directory=buyer_directory,
            coordinator=self.coordinator,
        )
        self.scheduler = PollingScheduler(self.refresh, interval=poll_interval)
        self._tasks: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls, db: DBSession, agent_id: str, settings: Optional[Settings] = None
    ) -> InboxManager:
        """Build a manager wired to the configured stores."""
        settings = settings or get_settings()
        LoggingConfig(settings.log_level)
        chat_store: ChatStore
        if settings.uses_redis_chat_store:
            chat_store = RedisChatStore.from_settings(settings)
        else:
            chat_store = InMemoryChatStore()
        buyer_directory = None
        if settings.buyer_profile_api_url:
            buyer_directory = BuyerProfileClient(
                settings.buyer_profile_api_url,
                timeout=settings.buyer_profile_timeout_seconds,
            )
        return cls(
            SqlInquiryStore(db, agent_id),
            chat_store,
            agent_id,
            buyer_directory=buyer_directory,
            poll_interval=settings.inbox_poll_interval_seconds,
            match_window=timedelta(seconds=settings.optimistic_match_window_seconds),
        )

    # Lifecycle -------------------------------------------------------------
    async def mount(self) -> None:
        await self.scheduler.start()

    async def unmount(self) -> None:
        """Stop polling, close the live stream and cancel pending read marks."""
        await self.scheduler.stop()
        self.stream.close()
        tasks, self._tasks = list(self._tasks), set()
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def set_visible(self, visible: bool) -> None:
        await self.scheduler.set_visible(visible)

    async def refresh(self) -> RefreshResult:
        """Run one refresh cycle and publish its result into the inbox state."""
        result = await self.refresh_command.execute()
        if result.conversations is not None:
            self.state.set_conversations(result.conversations)
            self.state.last_refreshed_at = self._clock()
            self._load_read_states(result.rooms)
            self._follow_selected_room()
        self.state.set_banner(result.errors)
        return result

    async def retry(self) -> bool:
        """Re-run the refresh after a banner error. False if one is already running."""
        return await self.scheduler.tick()

    def dismiss_banner(self) -> None:
        self.state.dismiss_banner()

    # Selection -------------------------------------------------------------
    async def select_conversation(self, key: ConversationKey) -> EnrichedConversation:
        """
        Open a conversation on the details tab and start its message stream.

        Selecting never marks the conversation read.
        """
        conversation = self.state.get_conversation(key)
        if conversation is None:
            raise ValueError(f"Unknown conversation {key}")
        self.state.selected_key = key
        self.state.active_tab = InboxTab.DETAILS
        self.tracker.set_focus(key, InboxTab.DETAILS)
        self.stream.close()
        if conversation.chat_room_id is None:
            return conversation

        self._subscribe(conversation)
        try:
            room = await self._chat_store.get_room(conversation.chat_room_id)
        except Exception as e:
            logger.warning("Failed to load read state for room %s: %s", conversation.chat_room_id, e)
        else:
            self.tracker.load_from_room(key, room)
        return conversation

    async def switch_tab(self, tab: InboxTab) -> None:
        tab = InboxTab(tab)
        self.state.active_tab = tab
        self.tracker.set_focus(self.state.selected_key, tab)
        if tab == InboxTab.CHAT and self.state.selected_key is not None:
            await self._mark_read(self.state.selected_key)

    # Writes ----------------------------------------------------------------
    def set_draft(self, text: str) -> None:
        self.state.set_draft(self._require_selected().conversation_key, text)

    async def send_message(self, text: Optional[str] = None) -> Message:
        """Send `text` (or the current draft) to the selected conversation."""
        conversation = self._require_selected()
        key = conversation.conversation_key
        if text is None:
            text = self.state.get_draft(key)
        message = await self.coordinator.send_message(conversation, text)
        self._follow_selected_room()
        return message

    async def set_status(self, status: ConversationStatus) -> ConversationStatus:
        return await self.coordinator.set_status(self._require_selected(), status)

    # Read-only views -------------------------------------------------------
    def unread_badge(self) -> int:
        return self.tracker.total_unread(self.state.messages)

    def unread_count(self, key: ConversationKey) -> int:
        conversation = self.state.get_conversation(key)
        if conversation is None:
            return 0
        return self.tracker.unread_count(conversation, self.state.get_messages(key))

    def stats(self) -> InboxStats:
        stats = InboxStats(total=len(self.state.conversations))
        for conversation in self.state.conversations:
            if conversation.status == ConversationStatus.NEW:
                stats.new += 1
            elif conversation.status == ConversationStatus.READ:
                stats.read += 1
            elif conversation.status == ConversationStatus.REPLIED:
                stats.replied += 1
        return stats

    def filter_conversations(
        self,
        status: Optional[ConversationStatus] = None,
        property_id: Optional[str] = None,
        search: str = "",
    ) -> List[EnrichedConversation]:
        """Filter by status and property; search matches buyer name, last message or property title."""
        needle = (search or "").strip().lower()
        matches: List[EnrichedConversation] = []
        for conversation in self.state.conversations:
            if status is not None and conversation.status != ConversationStatus(status):
                continue
            if property_id is not None and conversation.property_id != str(property_id):
                continue
            if needle and not any(
                needle in (value or "").lower()
                for value in (
                    conversation.buyer_name,
                    conversation.last_message,
                    conversation.property_title,
                )
            ):
                continue
            matches.append(conversation)
        return matches

    # Internals -------------------------------------------------------------
    def _require_selected(self) -> EnrichedConversation:
        conversation = self.state.selected_conversation
        if conversation is None:
            raise ValueError("No conversation selected")
        return conversation

    def _subscribe(self, conversation: EnrichedConversation) -> None:
        key = conversation.conversation_key

        def on_messages(messages: List[Message]) -> None:
            self._on_messages(key, messages)

        self.stream.subscribe(conversation.chat_room_id, on_messages)

    def _load_read_states(self, rooms: List[ChatRoom]) -> None:
        """Adopt server read stamps, including reads made from another session."""
        rooms_by_id = {room.id: room for room in rooms}
        for conversation in self.state.conversations:
            room = rooms_by_id.get(conversation.chat_room_id)
            if room is not None:
                self.tracker.load_from_room(conversation.conversation_key, room)

    def _follow_selected_room(self) -> None:
        """Start streaming the selected conversation once its room exists."""
        conversation = self.state.selected_conversation
        if conversation is None or conversation.chat_room_id is None:
            return
        if self.stream.active_room_id != conversation.chat_room_id:
            self._subscribe(conversation)

    def _on_messages(self, key: ConversationKey, messages: List[Message]) -> None:
        self.state.replace_messages(key, messages)
        if not self.tracker.is_focused(key):
            return
        read_state = self.tracker.get_read_state(key)
        if any(self.tracker.is_unread(m, read_state) for m in messages):
            task = asyncio.get_running_loop().create_task(self._mark_read(key))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _mark_read(self, key: ConversationKey) -> None:
        conversation = self.state.get_conversation(key)
        if conversation is None:
            return
        await self.tracker.mark_read(conversation)
        current = self.state.get_conversation(key)
        if current is not None and current.status == ConversationStatus.NEW:
            self.state.replace_conversation(
                current.model_copy(update={"status": ConversationStatus.READ})
            )
