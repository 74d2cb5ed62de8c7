"""Service for merging inquiry rows and chat rooms into one conversation list."""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Sequence

from inbox.core.conversation_key import ConversationKey
from inbox.exceptions import OwnershipMismatchError
from inbox.infra.logging_config import get_logger
from inbox.schemas.chat import ChatRoom
from inbox.schemas.conversation import (
    BuyerProfile,
    ConversationStatus,
    EnrichedConversation,
)
from inbox.schemas.inquiry import InquiryRecord
from inbox.utils.metrics import INBOX_OWNERSHIP_MISMATCH_TOTAL

logger = get_logger("conversation_reconciler")

PLACEHOLDER_BUYER_NAME = "Buyer"
PLACEHOLDER_PROPERTY_TITLE = "Property"


class ConversationReconciler:
    """
    Merges both sources using most-recent-wins per conversation key, with
    live chat room metadata preferred over stale inquiry rows.
    """

    def reconcile(
        self,
        inquiries: Sequence[InquiryRecord],
        chat_rooms: Optional[Sequence[ChatRoom]],
        current_user_id: str,
        *,
        buyer_profiles: Optional[Mapping[str, BuyerProfile]] = None,
        property_titles: Optional[Mapping[str, str]] = None,
    ) -> List[EnrichedConversation]:
        """
        Build one EnrichedConversation per conversation key.

        chat_rooms=None means the realtime store is unavailable; the output
        is then built from inquiries alone. The result is sorted by last
        activity, most recent first.
        """
        current_user_id = str(current_user_id)
        latest_inquiries = self.latest_inquiries(inquiries)
        rooms = self.rooms_by_key(chat_rooms or [], current_user_id)

        merged: List[EnrichedConversation] = []
        for key, inquiry in latest_inquiries.items():
            room = rooms.get(key)
            if room is not None:
                merged.append(self._merge(inquiry, room, current_user_id))
            else:
                merged.append(self._from_inquiry(inquiry))

        buyer_info = self._buyer_info_from_inquiries(inquiries)
        for key, room in rooms.items():
            if key in latest_inquiries:
                continue
            profile = (buyer_profiles or {}).get(room.buyer_id) or buyer_info.get(
                room.buyer_id
            )
            title = (property_titles or {}).get(room.property_id)
            merged.append(self._from_room(room, current_user_id, profile, title))

        merged.sort(key=lambda c: c.last_activity, reverse=True)
        return merged

    def latest_inquiries(
        self, inquiries: Sequence[InquiryRecord]
    ) -> Dict[ConversationKey, InquiryRecord]:
        """Keep the most recently created inquiry per key (ties keep the first seen)."""
        latest: Dict[ConversationKey, InquiryRecord] = {}
        for inquiry in inquiries:
            key = inquiry.conversation_key
            existing = latest.get(key)
            if existing is None or inquiry.created_at > existing.created_at:
                latest[key] = inquiry
        return latest

    def rooms_by_key(
        self, chat_rooms: Sequence[ChatRoom], current_user_id: str
    ) -> Dict[ConversationKey, ChatRoom]:
        """Index owned rooms by key; duplicates keep the most recently updated room."""
        rooms: Dict[ConversationKey, ChatRoom] = {}
        for room in chat_rooms:
            if room.receiver_id != current_user_id:
                self._log_ownership_mismatch(room, current_user_id)
                continue
            key = room.conversation_key
            existing = rooms.get(key)
            if existing is None or room.updated_at > existing.updated_at:
                rooms[key] = room
        return rooms

    def buyers_needing_lookup(
        self,
        inquiries: Sequence[InquiryRecord],
        chat_rooms: Sequence[ChatRoom],
        current_user_id: str,
    ) -> List[str]:
        """Buyer ids of chat-only rooms whose contact details no inquiry provides."""
        inquiry_keys = {inquiry.conversation_key for inquiry in inquiries}
        known_buyers = {inquiry.buyer_id for inquiry in inquiries if inquiry.buyer_id}
        needed: List[str] = []
        for room in chat_rooms:
            if room.receiver_id != str(current_user_id):
                continue
            if room.conversation_key in inquiry_keys or room.buyer_id in known_buyers:
                continue
            if room.buyer_id not in needed:
                needed.append(room.buyer_id)
        return needed

    def _merge(
        self, inquiry: InquiryRecord, room: ChatRoom, current_user_id: str
    ) -> EnrichedConversation:
        """Inquiry display fields with the room's last message, activity and status."""
        return EnrichedConversation(
            conversation_key=inquiry.conversation_key,
            inquiry_id=inquiry.id,
            buyer_id=inquiry.conversation_key.buyer_id,
            property_id=inquiry.property_id,
            buyer_name=inquiry.buyer_name,
            buyer_email=inquiry.buyer_email,
            buyer_phone=inquiry.buyer_phone,
            buyer_avatar_url=inquiry.buyer_avatar_url,
            property_title=inquiry.property_title,
            last_message=room.last_message or inquiry.message,
            last_activity=room.updated_at,
            status=room.status_for(current_user_id) or inquiry.status,
            chat_room_id=room.id,
            is_chat_only=False,
            created_at=inquiry.created_at,
        )

    def _from_inquiry(self, inquiry: InquiryRecord) -> EnrichedConversation:
        return EnrichedConversation(
            conversation_key=inquiry.conversation_key,
            inquiry_id=inquiry.id,
            buyer_id=inquiry.conversation_key.buyer_id,
            property_id=inquiry.property_id,
            buyer_name=inquiry.buyer_name,
            buyer_email=inquiry.buyer_email,
            buyer_phone=inquiry.buyer_phone,
            buyer_avatar_url=inquiry.buyer_avatar_url,
            property_title=inquiry.property_title,
            last_message=inquiry.message,
            last_activity=inquiry.created_at,
            status=inquiry.status,
            chat_room_id=None,
            is_chat_only=False,
            created_at=inquiry.created_at,
        )

    def _from_room(
        self,
        room: ChatRoom,
        current_user_id: str,
        profile: Optional[BuyerProfile],
        property_title: Optional[str],
    ) -> EnrichedConversation:
        """Synthesize a chat-only conversation for a room with no inquiry."""
        profile = profile or BuyerProfile(name=PLACEHOLDER_BUYER_NAME)
        return EnrichedConversation(
            conversation_key=room.conversation_key,
            inquiry_id=None,
            buyer_id=room.buyer_id,
            property_id=room.property_id,
            buyer_name=profile.name or PLACEHOLDER_BUYER_NAME,
            buyer_email=profile.email,
            buyer_phone=profile.phone,
            buyer_avatar_url=profile.avatar_url,
            property_title=property_title or PLACEHOLDER_PROPERTY_TITLE,
            last_message=room.last_message,
            last_activity=room.updated_at,
            status=room.status_for(current_user_id) or ConversationStatus.NEW,
            chat_room_id=room.id,
            is_chat_only=True,
            created_at=room.created_at,
        )

    def _buyer_info_from_inquiries(
        self, inquiries: Sequence[InquiryRecord]
    ) -> Dict[str, BuyerProfile]:
        """First known contact details per buyer id, across all properties."""
        info: Dict[str, BuyerProfile] = {}
        for inquiry in inquiries:
            if inquiry.buyer_id and inquiry.buyer_id not in info:
                info[inquiry.buyer_id] = BuyerProfile(
                    name=inquiry.buyer_name,
                    email=inquiry.buyer_email,
                    phone=inquiry.buyer_phone,
                    avatar_url=inquiry.buyer_avatar_url,
                )
        return info

    def _log_ownership_mismatch(self, room: ChatRoom, current_user_id: str) -> None:
        INBOX_OWNERSHIP_MISMATCH_TOTAL.inc()
        logger.warning(
            "%s",
            OwnershipMismatchError(room.id, room.receiver_id, current_user_id),
        )
