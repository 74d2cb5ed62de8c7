"""Tests for RefreshInboxCommand."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from inbox.commands.refresh_inbox_command import RefreshInboxCommand
from inbox.schemas.conversation import BuyerProfile, ConversationStatus


@pytest.fixture
def inquiry_store():
    store = MagicMock()
    store.list = AsyncMock(return_value=[])
    return store


@pytest.mark.asyncio
async def test_merges_both_sources(inquiry_store, chat_store, agent_id, make_inquiry):
    inquiry_store.list.return_value = [make_inquiry(buyer_id="501", property_id="77")]
    await chat_store.create_or_get_room("501", agent_id, "77")
    await chat_store.create_or_get_room("600", agent_id, "88")

    result = await RefreshInboxCommand(inquiry_store, chat_store, agent_id).execute()

    assert result.errors == []
    assert not result.degraded
    assert len(result.conversations) == 2
    merged = next(c for c in result.conversations if c.buyer_id == "501")
    assert merged.chat_room_id is not None
    assert not merged.is_chat_only


@pytest.mark.asyncio
async def test_inquiry_failure_degrades_to_rooms(inquiry_store, chat_store, agent_id, caplog):
    inquiry_store.list.side_effect = RuntimeError("db down")
    await chat_store.create_or_get_room("501", agent_id, "77")

    result = await RefreshInboxCommand(inquiry_store, chat_store, agent_id).execute()

    assert [e.source for e in result.errors] == ["inquiries"]
    assert len(result.conversations) == 1
    assert result.conversations[0].is_chat_only
    assert "db down" in caplog.text


@pytest.mark.asyncio
async def test_room_failure_degrades_to_inquiries(inquiry_store, agent_id, make_inquiry):
    inquiry_store.list.return_value = [make_inquiry()]
    chat_store = MagicMock()
    chat_store.list_rooms_for_user = AsyncMock(side_effect=ConnectionError("offline"))

    result = await RefreshInboxCommand(inquiry_store, chat_store, agent_id).execute()

    assert [e.source for e in result.errors] == ["chat_rooms"]
    assert len(result.conversations) == 1
    assert result.conversations[0].chat_room_id is None


@pytest.mark.asyncio
async def test_both_sources_failing_returns_none(inquiry_store, agent_id):
    inquiry_store.list.side_effect = RuntimeError("db down")
    chat_store = MagicMock()
    chat_store.list_rooms_for_user = AsyncMock(side_effect=ConnectionError("offline"))

    result = await RefreshInboxCommand(inquiry_store, chat_store, agent_id).execute()

    assert result.conversations is None
    assert {e.source for e in result.errors} == {"inquiries", "chat_rooms"}


@pytest.mark.asyncio
async def test_resolves_chat_only_buyers_best_effort(inquiry_store, chat_store, agent_id):
    await chat_store.create_or_get_room("501", agent_id, "77")
    await chat_store.create_or_get_room("502", agent_id, "77")
    directory = MagicMock()

    async def get_buyer(buyer_id):
        if buyer_id == "501":
            return BuyerProfile(name="Ana Ruiz", email="ana@example.com")
        raise ConnectionError("profile service down")

    directory.get_buyer = AsyncMock(side_effect=get_buyer)

    result = await RefreshInboxCommand(
        inquiry_store, chat_store, agent_id, buyer_directory=directory
    ).execute()

    names = {c.buyer_id: c.buyer_name for c in result.conversations}
    assert names == {"501": "Ana Ruiz", "502": "Buyer"}
    assert directory.get_buyer.await_count == 2


@pytest.mark.asyncio
async def test_status_guard_is_applied(inquiry_store, agent_id, make_inquiry, chat_store):
    inquiry_store.list.return_value = [make_inquiry(status="new")]
    coordinator = MagicMock()
    coordinator.apply_status_guard.side_effect = lambda conversations: [
        c.model_copy(update={"status": ConversationStatus.REPLIED}) for c in conversations
    ]

    result = await RefreshInboxCommand(
        inquiry_store, chat_store, agent_id, coordinator=coordinator
    ).execute()

    coordinator.apply_status_guard.assert_called_once()
    assert result.conversations[0].status == ConversationStatus.REPLIED


@pytest.mark.asyncio
async def test_result_carries_fetched_rooms(inquiry_store, chat_store, agent_id):
    room_id = await chat_store.create_or_get_room("501", agent_id, "77")

    result = await RefreshInboxCommand(inquiry_store, chat_store, agent_id).execute()

    assert [room.id for room in result.rooms] == [room_id]


@pytest.mark.asyncio
async def test_result_has_no_rooms_when_chat_store_fails(inquiry_store, chat_store, agent_id):
    chat_store.list_rooms_for_user = AsyncMock(side_effect=ConnectionError("offline"))

    result = await RefreshInboxCommand(inquiry_store, chat_store, agent_id).execute()

    assert result.rooms == []
