"""Inquiry model: one row per buyer inquiry submission (not deduplicated)."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, String, Text

from inbox.db import Base


class Inquiry(Base):
    """
    Buyer inquiry about a property, addressed to one agent.

    Several rows may exist per (buyer, property); the inbox keeps the most
    recent one per conversation.
    """

    __tablename__ = "inquiries"

    __table_args__ = (
        Index("ix_inquiries_agent_created", "agent_id", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    agent_id = Column(String(64), nullable=False, index=True)
    buyer_id = Column(String(64), nullable=True)  # NULL for guest inquiries
    property_id = Column(String(64), nullable=True)
    property_title = Column(String(255), nullable=True)
    buyer_name = Column(String(255), nullable=True)
    buyer_email = Column(String(255), nullable=True)
    buyer_phone = Column(String(64), nullable=True)
    buyer_avatar_url = Column(String(1024), nullable=True)
    message = Column(Text, nullable=True)
    status = Column(String(32), nullable=False, default="new")
    created_at = Column(
        DateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at = Column(
        DateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
