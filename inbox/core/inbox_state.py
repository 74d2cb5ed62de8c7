"""
InboxState: the single owner of the merged conversation list, the
per-conversation message lists, compose drafts and the error banner.

All mutations happen on the event loop; components receive the state
object instead of sharing module-level caches.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from inbox.core.conversation_key import ConversationKey
from inbox.exceptions import SourceUnavailableError
from inbox.schemas.chat import Message
from inbox.schemas.conversation import EnrichedConversation, InboxTab


def _supersedes(confirmed: Message, pending: Message, window: timedelta) -> bool:
    """True if a stream message is the server copy of a pending local one."""
    return (
        not confirmed.pending
        and confirmed.text == pending.text
        and confirmed.sender_role == pending.sender_role
        and abs(confirmed.timestamp - pending.timestamp) <= window
    )


class InboxState:
    def __init__(self, match_window: timedelta = timedelta(seconds=120)) -> None:
        self.match_window = match_window
        self.conversations: List[EnrichedConversation] = []
        self.messages: dict[ConversationKey, List[Message]] = {}
        self.drafts: dict[ConversationKey, str] = {}
        self.selected_key: Optional[ConversationKey] = None
        self.active_tab: InboxTab = InboxTab.DETAILS
        self.banner_errors: List[SourceUnavailableError] = []
        self.last_refreshed_at: Optional[datetime] = None

    # Conversations ---------------------------------------------------------
    def set_conversations(self, conversations: Iterable[EnrichedConversation]) -> None:
        self.conversations = list(conversations)

    def get_conversation(self, key: ConversationKey) -> Optional[EnrichedConversation]:
        for conversation in self.conversations:
            if conversation.conversation_key == key:
                return conversation
        return None

    def replace_conversation(self, conversation: EnrichedConversation) -> None:
        """Swap in a new version of the conversation with the same key."""
        self.conversations = [
            conversation if c.conversation_key == conversation.conversation_key else c
            for c in self.conversations
        ]

    @property
    def selected_conversation(self) -> Optional[EnrichedConversation]:
        if self.selected_key is None:
            return None
        return self.get_conversation(self.selected_key)

    # Messages --------------------------------------------------------------
    def get_messages(self, key: ConversationKey) -> List[Message]:
        return list(self.messages.get(key, []))

    def replace_messages(self, key: ConversationKey, snapshot: List[Message]) -> None:
        """
        Replace the message list wholesale with a stream snapshot.

        Pending optimistic messages survive until the snapshot carries their
        server copy (same text and role, timestamp within the match window).
        """
        pending = [m for m in self.messages.get(key, []) if m.pending]
        kept = [
            p
            for p in pending
            if not any(_supersedes(m, p, self.match_window) for m in snapshot)
        ]
        self.messages[key] = sorted([*snapshot, *kept], key=lambda m: m.timestamp)

    def append_pending_message(self, key: ConversationKey, message: Message) -> bool:
        """Add a local copy unless the stream already delivered the server copy."""
        current = self.messages.get(key, [])
        if any(_supersedes(m, message, self.match_window) for m in current):
            return False
        self.messages[key] = [*current, message]
        return True

    # Drafts ----------------------------------------------------------------
    def get_draft(self, key: ConversationKey) -> str:
        return self.drafts.get(key, "")

    def set_draft(self, key: ConversationKey, text: str) -> None:
        self.drafts[key] = text

    def clear_draft(self, key: ConversationKey) -> None:
        self.drafts.pop(key, None)

    # Banner ----------------------------------------------------------------
    def set_banner(self, errors: Iterable[SourceUnavailableError]) -> None:
        self.banner_errors = list(errors)

    def dismiss_banner(self) -> None:
        self.banner_errors = []
