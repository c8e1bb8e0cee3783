"""Bridge between a local hub and Redis pub/sub.

Every server instance publishes client messages to one Redis channel and
delivers whatever arrives on that channel to its own hub, so clients on all
instances see the same traffic.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from chatmesh.hub import Hub

__all__ = ["CHANNEL", "Relay", "RelayError"]

log = logging.getLogger(__name__)

CHANNEL = "chatmesh"


class RelayError(RuntimeError):
    """Raised when the pub/sub subscription ends unexpectedly."""


def _room_of(payload: bytes) -> str:
    """Return the ``room`` field of a JSON payload, or "" when it has none."""
    data = json.loads(payload)
    if data is None:
        return ""
    if not isinstance(data, dict):
        raise ValueError("payload is not a JSON object")
    room = data.get("room")
    if room is None:
        return ""
    if not isinstance(room, str):
        raise ValueError("room is not a string")
    return room


class Relay:
    """Publishes payloads to Redis and feeds received payloads to a hub."""

    def __init__(self, hub: Hub, redis_url: str | None = None, *, client: Any = None) -> None:
        if client is None:
            if redis_url is None:
                raise ValueError("either redis_url or client is required")
            client = aioredis.from_url(redis_url)
        self._hub = hub
        self._client = client
        self._ready = asyncio.Event()

    async def broadcast(self, room: str, payload: bytes) -> None:
        """Publish ``payload`` to Redis; failures are logged, not raised.

        ``room`` is only used for logging: receivers route by the payload's
        own ``room`` field.
        """
        try:
            await self._client.publish(CHANNEL, payload)
        except (RedisError, OSError) as exc:
            log.warning("relay: publish room=%r: %s", room, exc)

    async def wait_ready(self) -> None:
        """Return once the Redis subscription has been confirmed."""
        await self._ready.wait()

    async def run(self) -> None:
        """Subscribe and deliver incoming payloads to the hub until cancelled."""
        pubsub = self._client.pubsub()
        try:
            await pubsub.subscribe(CHANNEL)
            async for message in pubsub.listen():
                kind = message.get("type")
                if kind == "subscribe":
                    self._ready.set()
                elif kind == "message":
                    await self._dispatch(message.get("data"))
            raise RelayError("relay: subscription channel closed unexpectedly")
        finally:
            await pubsub.aclose()

    async def _dispatch(self, data: bytes | str | None) -> None:
        payload = data.encode() if isinstance(data, str) else bytes(data or b"")
        try:
            room = _room_of(payload)
        except ValueError as exc:
            log.warning("relay: parse error: %s", exc)
            return
        if not room:
            log.warning("relay: dropping payload with empty room")
            return
        await self._hub.broadcast(room, payload)

    async def close(self) -> None:
        """Disconnect the Redis client."""
        await self._client.aclose()