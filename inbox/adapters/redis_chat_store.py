"""
Redis-backed realtime chat store.

Each room is a hash of scalar fields plus two per-user hashes (read status
and last-read stamp). Writes set individual fields, so concurrent writers
only contend on the fields they both touch. Messages are JSON entries in a
list per room, and every append is announced on a per-room pub/sub channel
so subscribers can re-read the snapshot. Timestamps come from the Redis
server clock (TIME), which is the authority for read stamps.
"""

from __future__ import annotations

import asyncio
import json
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from redis.asyncio import Redis

from inbox.adapters.base import ChatStore, RawMessage, SnapshotCallback, Unsubscribe
from inbox.config import Settings
from inbox.core.conversation_key import build_chat_room_id
from inbox.exceptions import ChatRoomNotFoundError
from inbox.infra.logging_config import get_logger
from inbox.schemas.chat import ChatRoom
from inbox.schemas.conversation import ConversationStatus
from inbox.utils.timestamps import parse_timestamp

logger = get_logger("redis_chat_store")


class RedisChatStore(ChatStore):
    def __init__(self, redis_client: Redis, namespace: str = "inbox") -> None:
        self._redis = redis_client
        self._ns = namespace

    @classmethod
    def from_settings(cls, settings: Settings) -> RedisChatStore:
        client = Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            decode_responses=True,
        )
        return cls(client, namespace=settings.redis_namespace)

    # Keys --------------------------------------------------------------------
    def _room_key(self, room_id: str) -> str:
        return f"{self._ns}:chat:room:{room_id}"

    def _read_status_key(self, room_id: str) -> str:
        return f"{self._ns}:chat:room:{room_id}:read_status"

    def _last_read_key(self, room_id: str) -> str:
        return f"{self._ns}:chat:room:{room_id}:last_read_at"

    def _user_rooms_key(self, user_id: str) -> str:
        return f"{self._ns}:chat:user_rooms:{user_id}"

    def _messages_key(self, room_id: str) -> str:
        return f"{self._ns}:chat:messages:{room_id}"

    def _events_channel(self, room_id: str) -> str:
        return f"{self._ns}:chat:events:{room_id}"

    async def _server_now(self) -> datetime:
        seconds, micros = await self._redis.time()
        return datetime.fromtimestamp(int(seconds) + int(micros) / 1_000_000, tz=timezone.utc)

    async def _require_room(self, room_id: str) -> dict:
        fields = await self._redis.hgetall(self._room_key(room_id))
        # a room exists once its identity fields are written
        if not fields or "id" not in fields:
            raise ChatRoomNotFoundError(room_id)
        return fields

    # ChatStore -----------------------------------------------------------------
    async def list_rooms_for_user(self, user_id: str) -> List[ChatRoom]:
        room_ids = await self._redis.smembers(self._user_rooms_key(str(user_id)))
        rooms: List[ChatRoom] = []
        for room_id in room_ids:
            room = await self.get_room(room_id)
            if room is not None:
                rooms.append(room)
        rooms.sort(key=lambda r: r.updated_at, reverse=True)
        return rooms

    async def get_room(self, room_id: str) -> Optional[ChatRoom]:
        fields = await self._redis.hgetall(self._room_key(room_id))
        if not fields or "id" not in fields:
            return None
        read_status = await self._redis.hgetall(self._read_status_key(room_id))
        last_read_at = await self._redis.hgetall(self._last_read_key(room_id))
        return ChatRoom.model_validate(
            {**fields, "read_status": read_status, "last_read_at": last_read_at}
        )

    async def create_or_get_room(
        self,
        buyer_id: str,
        agent_id: str,
        property_id: str,
        agent_role: str = "agent",
    ) -> str:
        buyer_id, agent_id = str(buyer_id), str(agent_id)
        room_id = build_chat_room_id(buyer_id, agent_id, property_id)
        now = (await self._server_now()).isoformat()
        room_key = self._room_key(room_id)
        created = await self._redis.hsetnx(room_key, "created_at", now)
        await self._redis.hset(
            room_key,
            mapping={
                "buyer_id": buyer_id,
                "receiver_id": agent_id,
                "receiver_role": agent_role,
                "property_id": str(property_id),
                "updated_at": now,
                "id": room_id,
            },
        )
        if not created:
            return room_id

        # HSETNX keeps any status a participant wrote in the meantime
        for participant in (buyer_id, agent_id):
            await self._redis.hsetnx(
                self._read_status_key(room_id), participant, ConversationStatus.NEW.value
            )
            await self._redis.sadd(self._user_rooms_key(participant), room_id)
        logger.info("Created chat room %s", room_id)
        return room_id

    def subscribe_messages(self, room_id: str, callback: SnapshotCallback) -> Unsubscribe:
        task = asyncio.get_running_loop().create_task(self._listen(room_id, callback))

        def unsubscribe() -> None:
            task.cancel()

        return unsubscribe

    async def append_message(
        self, room_id: str, sender_id: str, sender_role: str, text: str
    ) -> str:
        if not text or not text.strip():
            raise ValueError("Message text is required")
        room = await self._require_room(room_id)
        now = await self._server_now()
        message_id = uuid.uuid4().hex
        entry = {
            "id": message_id,
            "sender_id": str(sender_id),
            "sender_role": sender_role,
            "text": text.strip(),
            "timestamp": now.isoformat(),
        }
        await self._redis.rpush(self._messages_key(room_id), json.dumps(entry))
        other = room["receiver_id"] if str(sender_id) == room["buyer_id"] else room["buyer_id"]
        await self._redis.hset(
            self._room_key(room_id),
            mapping={"last_message": text.strip(), "updated_at": now.isoformat()},
        )
        await self._redis.hset(
            self._read_status_key(room_id), other, ConversationStatus.NEW.value
        )
        await self._redis.publish(self._events_channel(room_id), message_id)
        return message_id

    async def set_read_status(
        self, room_id: str, user_id: str, status: ConversationStatus
    ) -> None:
        await self._require_room(room_id)
        now = (await self._server_now()).isoformat()
        await self._redis.hset(
            self._read_status_key(room_id), str(user_id), ConversationStatus(status).value
        )
        await self._redis.hset(self._last_read_key(room_id), str(user_id), now)
        await self._redis.hset(self._room_key(room_id), "updated_at", now)

    # Subscriptions -------------------------------------------------------------
    async def _snapshot(self, room_id: str) -> List[RawMessage]:
        entries = await self._redis.lrange(self._messages_key(room_id), 0, -1)
        messages: List[RawMessage] = []
        for entry in entries:
            try:
                messages.append(json.loads(entry))
            except ValueError:
                logger.warning("Skipping undecodable message in room %s", room_id)
        messages.sort(
            key=lambda m: parse_timestamp(m.get("timestamp"))
            or datetime.min.replace(tzinfo=timezone.utc)
        )
        return messages

    async def _push(self, room_id: str, callback: SnapshotCallback) -> None:
        snapshot = await self._snapshot(room_id)
        try:
            callback(snapshot)
        except Exception:
            logger.exception("Message subscriber for room %s failed", room_id)

    async def _listen(self, room_id: str, callback: SnapshotCallback) -> None:
        channel = self._events_channel(room_id)
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(channel)
        try:
            await self._push(room_id, callback)
            async for event in pubsub.listen():
                if event.get("type") != "message":
                    continue
                await self._push(room_id, callback)
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()
