"""Room membership and message routing.

All room state is owned by the :meth:`Hub.run` task; other coroutines only
hand it events through a queue.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

__all__ = ["Hub", "Subscriber"]

log = logging.getLogger(__name__)

BROADCAST_QUEUE_SIZE = 256


@runtime_checkable
class Subscriber(Protocol):
    """Something that can receive broadcast payloads and be evicted."""

    def deliver(self, payload: bytes) -> None:
        """Hand a payload to the subscriber without blocking."""
        ...

    def close(self) -> None:
        """Signal that the subscriber has been removed from its room."""
        ...


@dataclass(slots=True)
class _Join:
    sub: Subscriber
    room: str
    done: asyncio.Future[None]


@dataclass(slots=True)
class _Leave:
    sub: Subscriber
    room: str
    done: asyncio.Future[None]


@dataclass(slots=True)
class _Send:
    room: str
    payload: bytes


def _finish(done: asyncio.Future[None]) -> None:
    if not done.done():
        done.set_result(None)


class Hub:
    """Owns all room state and routes broadcast payloads to subscribers.

    :meth:`run` must be running as a task for the other methods to complete.
    """

    def __init__(self, queue_size: int = BROADCAST_QUEUE_SIZE) -> None:
        self._rooms: dict[str, set[Subscriber]] = {}
        self._events: asyncio.Queue[_Join | _Leave | _Send] = asyncio.Queue(maxsize=queue_size)

    async def run(self) -> None:
        """Process hub events until cancelled."""
        while True:
            event = await self._events.get()
            match event:
                case _Join(sub, room, done):
                    members = self._rooms.setdefault(room, set())
                    members.add(sub)
                    log.info("hub: +1 room=%r size=%d", room, len(members))
                    _finish(done)
                case _Leave(sub, room, done):
                    members = self._rooms.get(room)
                    if members is not None and sub in members:
                        members.discard(sub)
                        sub.close()
                        if not members:
                            del self._rooms[room]
                        log.info("hub: -1 room=%r", room)
                    _finish(done)
                case _Send(room, payload):
                    for sub in list(self._rooms.get(room, ())):
                        sub.deliver(payload)

    async def register(self, sub: Subscriber, room: str) -> None:
        """Add ``sub`` to ``room``; returns once the hub has processed it."""
        done = asyncio.get_running_loop().create_future()
        await self._events.put(_Join(sub, room, done))
        await done

    async def unregister(self, sub: Subscriber, room: str) -> None:
        """Remove ``sub`` from ``room`` and close it; returns once processed.

        Removing a subscriber that is not in the room does nothing.
        """
        done = asyncio.get_running_loop().create_future()
        await self._events.put(_Leave(sub, room, done))
        await done

    async def broadcast(self, room: str, payload: bytes) -> None:
        """Queue ``payload`` for every subscriber in ``room``."""
        await self._events.put(_Send(room, bytes(payload)))