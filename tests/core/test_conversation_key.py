"""Tests for conversation keys and chat room ids."""

from inbox.core.conversation_key import (
    GUEST_BUYER_ID,
    ConversationKey,
    build_chat_room_id,
    build_conversation_key,
)


def test_build_conversation_key_stringifies_ids():
    key = build_conversation_key(501, 77)
    assert key == ConversationKey(buyer_id="501", property_id="77")
    assert str(key) == "501_77"
    assert not key.is_guest


def test_missing_buyer_collapses_to_guest():
    """None and empty buyer ids both map to the guest component."""
    assert build_conversation_key(None, "77") == build_conversation_key("", "77")
    key = build_conversation_key(None, "77")
    assert key.buyer_id == GUEST_BUYER_ID
    assert key.is_guest
    assert str(key) == "guest_77"


def test_keys_are_hashable_and_compare_by_value():
    keys = {build_conversation_key("1", "2"), build_conversation_key(1, 2)}
    assert len(keys) == 1


def test_chat_room_id_orders_participants():
    """Either participant order yields the same room."""
    assert build_chat_room_id("501", "12", "77") == "12_501_77"
    assert build_chat_room_id("12", "501", "77") == "12_501_77"


def test_chat_room_id_uses_string_ordering():
    assert build_chat_room_id(9, 10, 3) == "10_9_3"
