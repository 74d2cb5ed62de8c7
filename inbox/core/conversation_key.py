"""Conversation identity and chat room id derivation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

GUEST_BUYER_ID = "guest"

IdLike = Union[str, int]


@dataclass(frozen=True)
class ConversationKey:
    """Stable identity of one buyer/property conversation across both stores."""

    buyer_id: str
    property_id: str

    @property
    def is_guest(self) -> bool:
        return self.buyer_id == GUEST_BUYER_ID

    def __str__(self) -> str:
        return f"{self.buyer_id}_{self.property_id}"


def build_conversation_key(
    buyer_id: Optional[IdLike], property_id: IdLike
) -> ConversationKey:
    """
    Build the deduplication key for a conversation.

    A missing buyer id collapses to the literal "guest" component so guest
    inquiries for the same property still deduplicate against each other.
    """
    buyer = str(buyer_id) if buyer_id not in (None, "") else GUEST_BUYER_ID
    return ConversationKey(buyer_id=buyer, property_id=str(property_id))


def build_chat_room_id(buyer_id: IdLike, agent_id: IdLike, property_id: IdLike) -> str:
    """
    Build the deterministic chat room id for (buyer, agent, property).

    Participant ids are ordered so the same pair always maps to one room:
    {min(buyer, agent)}_{max(buyer, agent)}_{property_id}.
    """
    buyer_str = str(buyer_id)
    agent_str = str(agent_id)
    low, high = sorted((buyer_str, agent_str))
    return f"{low}_{high}_{property_id}"
