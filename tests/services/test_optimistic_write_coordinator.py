"""Tests for OptimisticWriteCoordinator."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from inbox.core.conversation_key import build_chat_room_id
from inbox.core.inbox_state import InboxState
from inbox.exceptions import SendFailureError, SourceUnavailableError
from inbox.schemas.chat import SenderRole
from inbox.schemas.conversation import ConversationStatus
from inbox.services.optimistic_write_coordinator import OptimisticWriteCoordinator


@pytest.fixture
def inquiry_store():
    store = MagicMock()
    store.update_status = AsyncMock()
    return store


@pytest.fixture
def state():
    return InboxState()


@pytest.fixture
def coordinator(state, inquiry_store, chat_store, agent_id, clock):
    return OptimisticWriteCoordinator(state, inquiry_store, chat_store, agent_id, clock=clock)


@pytest.mark.asyncio
async def test_send_failure_restores_draft(coordinator, state, chat_store, make_conversation):
    """Remote append fails: draft restored, status unchanged, nothing appended."""
    conversation = make_conversation(status="new")
    state.set_conversations([conversation])
    state.set_draft(conversation.conversation_key, "Can we meet?")
    chat_store.append_message = AsyncMock(side_effect=ConnectionError("offline"))

    with pytest.raises(SendFailureError):
        await coordinator.send_message(conversation, "Can we meet?")

    key = conversation.conversation_key
    assert state.get_draft(key) == "Can we meet?"
    assert state.get_conversation(key).status == ConversationStatus.NEW
    assert state.get_messages(key) == []


@pytest.mark.asyncio
async def test_send_success_creates_room_and_marks_replied(
    coordinator, state, chat_store, inquiry_store, agent_id, make_conversation
):
    conversation = make_conversation(status="new")
    state.set_conversations([conversation])
    state.set_draft(conversation.conversation_key, "Sure, 5pm works")

    message = await coordinator.send_message(conversation, "Sure, 5pm works")

    key = conversation.conversation_key
    assert message.pending
    assert message.sender_role == SenderRole.AGENT
    assert [m.id for m in state.get_messages(key)] == [message.id]
    assert state.get_draft(key) == ""

    local = state.get_conversation(key)
    assert local.status == ConversationStatus.REPLIED
    assert local.chat_room_id == build_chat_room_id("501", agent_id, "77")

    room = await chat_store.get_room(local.chat_room_id)
    assert room.last_message == "Sure, 5pm works"
    assert room.status_for(agent_id) == ConversationStatus.REPLIED
    assert room.status_for("501") == ConversationStatus.NEW
    inquiry_store.update_status.assert_awaited_once_with("inq-1", ConversationStatus.REPLIED)


@pytest.mark.asyncio
async def test_send_blank_text_raises(coordinator, make_conversation):
    with pytest.raises(ValueError):
        await coordinator.send_message(make_conversation(), "   ")


@pytest.mark.asyncio
async def test_send_to_guest_fails(coordinator, state, make_conversation):
    conversation = make_conversation(buyer_id=None)
    state.set_conversations([conversation])

    with pytest.raises(SendFailureError):
        await coordinator.send_message(conversation, "Hello")

    assert state.get_draft(conversation.conversation_key) == "Hello"


@pytest.mark.asyncio
async def test_relational_mirror_failure_is_swallowed(
    coordinator, state, inquiry_store, make_conversation, caplog
):
    conversation = make_conversation()
    state.set_conversations([conversation])
    inquiry_store.update_status.side_effect = RuntimeError("db down")

    await coordinator.send_message(conversation, "Hello")

    assert state.get_conversation(conversation.conversation_key).status == ConversationStatus.REPLIED
    assert "db down" in caplog.text


@pytest.mark.asyncio
async def test_set_status_reads_back_canonical_value(
    coordinator, state, chat_store, inquiry_store, agent_id, make_conversation
):
    room_id = await chat_store.create_or_get_room("501", agent_id, "77")
    conversation = make_conversation(chat_room_id=room_id, status="new")
    state.set_conversations([conversation])

    confirmed = await coordinator.set_status(conversation, ConversationStatus.READ)

    assert confirmed == ConversationStatus.READ
    assert state.get_conversation(conversation.conversation_key).status == ConversationStatus.READ
    room = await chat_store.get_room(room_id)
    assert room.status_for(agent_id) == ConversationStatus.READ
    inquiry_store.update_status.assert_awaited_once_with("inq-1", ConversationStatus.READ)


@pytest.mark.asyncio
async def test_set_status_rolls_back_on_realtime_failure(
    coordinator, state, chat_store, inquiry_store, make_conversation
):
    conversation = make_conversation(chat_room_id="12_501_77", status="read")
    state.set_conversations([conversation])
    chat_store.set_read_status = AsyncMock(side_effect=ConnectionError("offline"))

    with pytest.raises(SourceUnavailableError) as exc_info:
        await coordinator.set_status(conversation, ConversationStatus.REPLIED)

    assert exc_info.value.source == "chat_rooms"
    assert state.get_conversation(conversation.conversation_key).status == ConversationStatus.READ
    inquiry_store.update_status.assert_not_awaited()


@pytest.mark.asyncio
async def test_set_status_guest_writes_relational_only(
    coordinator, state, chat_store, inquiry_store, make_conversation
):
    conversation = make_conversation(buyer_id=None)
    state.set_conversations([conversation])
    chat_store.set_read_status = AsyncMock()

    confirmed = await coordinator.set_status(conversation, ConversationStatus.READ)

    assert confirmed == ConversationStatus.READ
    chat_store.set_read_status.assert_not_awaited()
    inquiry_store.update_status.assert_awaited_once_with("inq-1", ConversationStatus.READ)


@pytest.mark.asyncio
async def test_set_status_guest_failure_is_surfaced(
    coordinator, state, inquiry_store, make_conversation
):
    conversation = make_conversation(buyer_id=None, status="new")
    state.set_conversations([conversation])
    inquiry_store.update_status.side_effect = RuntimeError("db down")

    with pytest.raises(SourceUnavailableError):
        await coordinator.set_status(conversation, ConversationStatus.READ)

    assert state.get_conversation(conversation.conversation_key).status == ConversationStatus.NEW


@pytest.mark.asyncio
async def test_status_guard_holds_replied_until_remote_agrees(
    coordinator, state, make_conversation
):
    """A stale remote snapshot never regresses a locally confirmed reply."""
    conversation = make_conversation(status="new")
    state.set_conversations([conversation])
    await coordinator.send_message(conversation, "Hello")
    key = conversation.conversation_key
    assert coordinator.held_status(key) == ConversationStatus.REPLIED

    [guarded] = coordinator.apply_status_guard([make_conversation(status="new")])
    assert guarded.status == ConversationStatus.REPLIED

    [agreed] = coordinator.apply_status_guard([make_conversation(status="replied")])
    assert agreed.status == ConversationStatus.REPLIED
    assert coordinator.held_status(key) is None

    [later] = coordinator.apply_status_guard([make_conversation(status="new")])
    assert later.status == ConversationStatus.NEW


@pytest.mark.asyncio
async def test_explicit_status_change_releases_hold(coordinator, state, make_conversation):
    conversation = make_conversation()
    state.set_conversations([conversation])
    await coordinator.send_message(conversation, "Hello")
    sent = state.get_conversation(conversation.conversation_key)

    await coordinator.set_status(sent, ConversationStatus.READ)

    assert coordinator.held_status(conversation.conversation_key) is None
