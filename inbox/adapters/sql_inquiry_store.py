"""Relational inquiry store backed by the inquiries table."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List

from pydantic import ValidationError
from sqlalchemy.orm import Session

from inbox.adapters.base import InquiryStore
from inbox.exceptions import MalformedRecordError
from inbox.infra.logging_config import get_logger
from inbox.models.inquiry import Inquiry
from inbox.schemas.conversation import ConversationStatus
from inbox.schemas.inquiry import InquiryRecord

logger = get_logger("sql_inquiry_store")


class SqlInquiryStore(InquiryStore):
    """Inquiries addressed to one agent, newest first."""

    def __init__(self, db: Session, agent_id: str) -> None:
        self.db = db
        self.agent_id = str(agent_id)

    async def list(self) -> List[InquiryRecord]:
        rows = (
            self.db.query(Inquiry)
            .filter(Inquiry.agent_id == self.agent_id)
            .order_by(Inquiry.created_at.desc())
            .all()
        )
        records: List[InquiryRecord] = []
        for row in rows:
            try:
                records.append(self._to_record(row))
            except (MalformedRecordError, ValidationError) as e:
                logger.warning("Skipping malformed inquiry %s: %s", row.id, e)
        return records

    async def update_status(self, inquiry_id: str, status: ConversationStatus) -> None:
        row = (
            self.db.query(Inquiry)
            .filter(Inquiry.id == str(inquiry_id), Inquiry.agent_id == self.agent_id)
            .first()
        )
        if row is None:
            raise ValueError(f"Inquiry {inquiry_id} not found or access denied")
        row.status = ConversationStatus(status).value
        row.updated_at = datetime.now(timezone.utc)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(row)

    def _to_record(self, row: Inquiry) -> InquiryRecord:
        return InquiryRecord.from_raw(
            {
                "id": row.id,
                "buyer_id": row.buyer_id,
                "property_id": row.property_id,
                "property_title": row.property_title,
                "name": row.buyer_name,
                "email": row.buyer_email,
                "mobile": row.buyer_phone,
                "buyer": {"profile_image": row.buyer_avatar_url},
                "message": row.message,
                "status": row.status,
                "created_at": row.created_at,
            }
        )
