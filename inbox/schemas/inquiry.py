"""Inquiry records as read from the relational inquiry store."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from inbox.core.conversation_key import ConversationKey, build_conversation_key
from inbox.exceptions import MalformedRecordError
from inbox.schemas.conversation import ConversationStatus
from inbox.utils.timestamps import ensure_utc, parse_timestamp, utc_now

UNKNOWN_BUYER_NAME = "Unknown"
UNKNOWN_PROPERTY_TITLE = "Unknown Property"


class InquiryRecord(BaseModel):
    """
    One buyer inquiry submission. Immutable once created.

    Several records may share a conversation key; only the most recent one
    is authoritative for display.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    buyer_id: Optional[str] = None
    property_id: str
    buyer_name: str = UNKNOWN_BUYER_NAME
    buyer_email: str = ""
    buyer_phone: str = ""
    buyer_avatar_url: Optional[str] = None
    property_title: str = UNKNOWN_PROPERTY_TITLE
    message: str = ""
    status: ConversationStatus = ConversationStatus.NEW
    created_at: datetime

    @field_validator("id", "property_id", mode="before")
    @classmethod
    def _str_id(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @field_validator("buyer_id", mode="before")
    @classmethod
    def _str_buyer_id(cls, value: Any) -> Any:
        if value in (None, ""):
            return None
        return str(value)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> ConversationStatus:
        return ConversationStatus.coerce(value) or ConversationStatus.NEW

    @field_validator("created_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def conversation_key(self) -> ConversationKey:
        return build_conversation_key(self.buyer_id, self.property_id)

    @classmethod
    def from_raw(cls, data: dict[str, Any]) -> InquiryRecord:
        """
        Parse a backend inquiry row (flat or with nested buyer/property objects).

        Raises MalformedRecordError when the id or the property id is missing.
        """
        if not isinstance(data, dict) or not data.get("id"):
            raise MalformedRecordError(f"Inquiry without id: {data!r}")
        buyer = data.get("buyer") or {}
        prop = data.get("property") or {}
        property_id = data.get("property_id") or prop.get("id")
        if not property_id:
            raise MalformedRecordError(f"Inquiry {data['id']} has no property id")
        return cls(
            id=str(data["id"]),
            buyer_id=data.get("buyer_id") or buyer.get("id"),
            property_id=str(property_id),
            buyer_name=buyer.get("name") or data.get("name") or UNKNOWN_BUYER_NAME,
            buyer_email=buyer.get("email") or data.get("email") or "",
            buyer_phone=buyer.get("phone") or data.get("mobile") or "",
            buyer_avatar_url=buyer.get("profile_image"),
            property_title=(
                prop.get("title") or data.get("property_title") or UNKNOWN_PROPERTY_TITLE
            ),
            message=data.get("message") or "",
            status=data.get("status"),
            created_at=parse_timestamp(data.get("created_at")) or utc_now(),
        )
