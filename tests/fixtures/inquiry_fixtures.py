"""Fixtures for inquiry rows and inquiry records."""

from datetime import datetime, timedelta, timezone

import pytest

from inbox.models.inquiry import Inquiry
from inbox.schemas.inquiry import InquiryRecord


@pytest.fixture(scope="function")
def agent_id(faker):
    return f"agent-{faker.lexify('??????').lower()}"


@pytest.fixture(scope="function")
def setup_inquiry(db, faker, agent_id):
    """Persist one inquiry row addressed to the test agent."""
    inquiry = Inquiry(
        agent_id=agent_id,
        buyer_id="501",
        property_id="77",
        property_title=faker.street_address(),
        buyer_name=faker.name(),
        buyer_email=faker.email(),
        buyer_phone=faker.msisdn(),
        message=faker.sentence(),
        status="new",
        created_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
    )
    db.add(inquiry)
    db.commit()
    db.refresh(inquiry)
    return inquiry


@pytest.fixture(scope="function")
def make_inquiry(faker):
    """Factory for InquiryRecord with sensible defaults."""
    base = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def _make(
        inquiry_id=None,
        buyer_id="501",
        property_id="77",
        minutes=0,
        **overrides,
    ) -> InquiryRecord:
        data = {
            "id": inquiry_id or faker.uuid4(),
            "buyer_id": buyer_id,
            "property_id": property_id,
            "buyer_name": faker.name(),
            "buyer_email": faker.email(),
            "buyer_phone": faker.msisdn(),
            "property_title": faker.street_address(),
            "message": faker.sentence(),
            "status": "new",
            "created_at": base + timedelta(minutes=minutes),
        }
        data.update(overrides)
        return InquiryRecord(**data)

    return _make
