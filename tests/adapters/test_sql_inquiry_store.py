"""Tests for SqlInquiryStore."""

from datetime import datetime, timezone

import pytest

from inbox.adapters.sql_inquiry_store import SqlInquiryStore
from inbox.models.inquiry import Inquiry
from inbox.schemas.conversation import ConversationStatus


def _add_inquiry(db, agent_id, **fields):
    data = {
        "agent_id": agent_id,
        "buyer_id": "501",
        "property_id": "77",
        "created_at": datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
    }
    data.update(fields)
    inquiry = Inquiry(**data)
    db.add(inquiry)
    db.commit()
    db.refresh(inquiry)
    return inquiry


@pytest.mark.asyncio
async def test_list_returns_agent_rows_newest_first(db, agent_id, setup_inquiry):
    newer = _add_inquiry(
        db, agent_id, buyer_id="502", created_at=datetime(2024, 5, 2, tzinfo=timezone.utc)
    )
    _add_inquiry(db, "another-agent")

    records = await SqlInquiryStore(db, agent_id).list()

    assert [r.id for r in records] == [newer.id, setup_inquiry.id]
    record = records[1]
    assert record.buyer_name == setup_inquiry.buyer_name
    assert record.buyer_email == setup_inquiry.buyer_email
    assert record.buyer_phone == setup_inquiry.buyer_phone
    assert record.property_title == setup_inquiry.property_title
    assert record.created_at.tzinfo is not None


@pytest.mark.asyncio
async def test_list_applies_defaults_and_skips_malformed(db, agent_id, caplog):
    guest = _add_inquiry(db, agent_id, buyer_id=None, status="weird")
    _add_inquiry(db, agent_id, property_id=None)

    records = await SqlInquiryStore(db, agent_id).list()

    assert [r.id for r in records] == [guest.id]
    assert records[0].conversation_key.is_guest
    assert records[0].buyer_name == "Unknown"
    assert records[0].property_title == "Unknown Property"
    assert records[0].status == ConversationStatus.NEW
    assert "Skipping malformed inquiry" in caplog.text


@pytest.mark.asyncio
async def test_update_status(db, agent_id, setup_inquiry):
    store = SqlInquiryStore(db, agent_id)

    await store.update_status(setup_inquiry.id, ConversationStatus.REPLIED)

    db.refresh(setup_inquiry)
    assert setup_inquiry.status == "replied"


@pytest.mark.asyncio
async def test_update_status_is_scoped_to_agent(db, setup_inquiry):
    store = SqlInquiryStore(db, "someone-else")

    with pytest.raises(ValueError):
        await store.update_status(setup_inquiry.id, ConversationStatus.READ)


@pytest.mark.asyncio
async def test_update_status_missing_row(db, agent_id):
    with pytest.raises(ValueError):
        await SqlInquiryStore(db, agent_id).update_status("missing", ConversationStatus.READ)
