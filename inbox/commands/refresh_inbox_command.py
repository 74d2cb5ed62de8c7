"""Command to fetch both conversation sources and merge them."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from inbox.adapters.base import BuyerDirectory, ChatStore, InquiryStore
from inbox.exceptions import SourceUnavailableError
from inbox.schemas.chat import ChatRoom
from inbox.schemas.conversation import BuyerProfile, EnrichedConversation
from inbox.schemas.inquiry import InquiryRecord
from inbox.services.conversation_reconciler import ConversationReconciler
from inbox.services.optimistic_write_coordinator import (
    CHAT_SOURCE,
    INQUIRY_SOURCE,
    OptimisticWriteCoordinator,
)
from inbox.utils.metrics import INBOX_REFRESH_TOTAL, INBOX_SOURCE_FAILURES_TOTAL


@dataclass
class RefreshResult:
    """
    conversations is None when neither source answered. rooms holds the
    chat rooms fetched this cycle, empty when that source failed.
    """

    conversations: Optional[List[EnrichedConversation]]
    errors: List[SourceUnavailableError] = field(default_factory=list)
    rooms: List[ChatRoom] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.errors)


class RefreshInboxCommand:
    """
    Command to fetch inquiries and chat rooms concurrently, resolve missing
    buyer profiles, merge, and apply the status regression guard.
    """

    def __init__(
        self,
        inquiry_store: InquiryStore,
        chat_store: ChatStore,
        agent_id: str,
        reconciler: Optional[ConversationReconciler] = None,
        buyer_directory: Optional[BuyerDirectory] = None,
        coordinator: Optional[OptimisticWriteCoordinator] = None,
    ) -> None:
        self.inquiry_store = inquiry_store
        self.chat_store = chat_store
        self.agent_id = str(agent_id)
        self.reconciler = reconciler or ConversationReconciler()
        self.buyer_directory = buyer_directory
        self.coordinator = coordinator
        self.logger = logging.getLogger(__name__)

    async def execute(self) -> RefreshResult:
        """
        Run one refresh cycle.

        Returns:
            RefreshResult: merged conversations plus one error per source
            that failed. conversations is None if both sources failed, in
            which case the caller keeps its previous list.
        """
        inquiries_result, rooms_result = await asyncio.gather(
            self.inquiry_store.list(),
            self.chat_store.list_rooms_for_user(self.agent_id),
            return_exceptions=True,
        )

        errors: List[SourceUnavailableError] = []
        inquiries: Optional[List[InquiryRecord]] = None
        rooms: Optional[List[ChatRoom]] = None

        if isinstance(inquiries_result, BaseException):
            errors.append(self._source_failed(INQUIRY_SOURCE, inquiries_result))
        else:
            inquiries = list(inquiries_result)

        if isinstance(rooms_result, BaseException):
            errors.append(self._source_failed(CHAT_SOURCE, rooms_result))
        else:
            rooms = list(rooms_result)

        if inquiries is None and rooms is None:
            INBOX_REFRESH_TOTAL.labels(status="failed").inc()
            self.logger.warning(
                "Inbox refresh failed for agent=%s: both sources unavailable",
                self.agent_id,
            )
            return RefreshResult(conversations=None, errors=errors)

        profiles = await self._resolve_buyer_profiles(inquiries or [], rooms or [])
        merged = self.reconciler.reconcile(
            inquiries or [],
            rooms,
            self.agent_id,
            buyer_profiles=profiles,
        )
        if self.coordinator is not None:
            merged = self.coordinator.apply_status_guard(merged)

        INBOX_REFRESH_TOTAL.labels(status="degraded" if errors else "success").inc()
        self.logger.debug(
            "Inbox refreshed for agent=%s: %d conversations", self.agent_id, len(merged)
        )
        return RefreshResult(conversations=merged, errors=errors, rooms=rooms or [])

    def _source_failed(self, source: str, exc: BaseException) -> SourceUnavailableError:
        """Record metric, log, and wrap the failure."""
        INBOX_SOURCE_FAILURES_TOTAL.labels(source=source).inc()
        self.logger.warning("Failed to fetch %s for agent=%s: %s", source, self.agent_id, exc)
        if isinstance(exc, SourceUnavailableError):
            return exc
        return SourceUnavailableError(source, str(exc))

    async def _resolve_buyer_profiles(
        self, inquiries: Sequence[InquiryRecord], rooms: Sequence[ChatRoom]
    ) -> Dict[str, BuyerProfile]:
        """Look up buyers of chat-only rooms; lookups that fail are left out."""
        if self.buyer_directory is None or not rooms:
            return {}
        buyer_ids = self.reconciler.buyers_needing_lookup(inquiries, rooms, self.agent_id)
        if not buyer_ids:
            return {}
        results = await asyncio.gather(
            *(self.buyer_directory.get_buyer(buyer_id) for buyer_id in buyer_ids),
            return_exceptions=True,
        )
        profiles: Dict[str, BuyerProfile] = {}
        for buyer_id, result in zip(buyer_ids, results):
            if isinstance(result, BaseException):
                self.logger.warning("Buyer lookup failed for %s: %s", buyer_id, result)
            elif result is not None:
                profiles[buyer_id] = result
        return profiles
