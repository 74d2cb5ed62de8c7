"""HTTP lookup of buyer profiles for chat-only conversations."""

from __future__ import annotations

import asyncio
from typing import Dict, Optional

import requests
from pydantic import ValidationError

from inbox.adapters.base import BuyerDirectory
from inbox.infra.logging_config import get_logger
from inbox.schemas.conversation import BuyerProfile

logger = get_logger("buyer_profile_client")

BUYER_PATH = "/buyers/{buyer_id}"
TIMEOUT_SECONDS = 10


class BuyerProfileClient(BuyerDirectory):
    """
    Fetches buyer profiles from the listings backend.

    Best effort: any transport, status or payload error is logged and
    returns None. Successful lookups are cached for the client's lifetime.
    """

    def __init__(self, base_url: str, timeout: int = TIMEOUT_SECONDS) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._cache: Dict[str, BuyerProfile] = {}

    async def get_buyer(self, buyer_id: str) -> Optional[BuyerProfile]:
        buyer_id = str(buyer_id)
        cached = self._cache.get(buyer_id)
        if cached is not None:
            return cached
        profile = await asyncio.to_thread(self._fetch, buyer_id)
        if profile is not None:
            self._cache[buyer_id] = profile
        return profile

    def _fetch(self, buyer_id: str) -> Optional[BuyerProfile]:
        url = f"{self._base_url}{BUYER_PATH.format(buyer_id=buyer_id)}"
        try:
            resp = requests.get(
                url,
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            logger.warning("Buyer lookup failed for %s: %s", buyer_id, e)
            return None

        if resp.status_code != 200:
            logger.warning(
                "Buyer lookup for %s returned HTTP %s", buyer_id, resp.status_code
            )
            return None

        try:
            data = resp.json()
        except ValueError as e:
            logger.warning("Buyer lookup for %s returned invalid JSON: %s", buyer_id, e)
            return None

        buyer = (data.get("data") or {}).get("buyer") if data.get("success") else None
        if not buyer:
            logger.info("Buyer %s not found", buyer_id)
            return None

        try:
            return BuyerProfile(
                name=buyer.get("name") or "Buyer",
                email=buyer.get("email") or "",
                phone=buyer.get("phone") or "",
                avatar_url=buyer.get("profile_image"),
            )
        except ValidationError as e:
            logger.warning("Invalid buyer payload for %s: %s", buyer_id, e)
            return None
