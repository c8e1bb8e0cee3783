"""WebSocket clients and the HTTP handler that accepts them."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Any, Awaitable, Callable, Protocol

from aiohttp import WSMsgType, web

from chatmesh.hub import Hub
from chatmesh.models import Message, MessageError, parse_message

__all__ = [
    "Broadcaster",
    "Client",
    "MAX_MESSAGE_SIZE",
    "PING_PERIOD",
    "PONG_WAIT",
    "SEND_BUF_SIZE",
    "WRITE_WAIT",
    "make_handler",
    "valid_message",
]

log = logging.getLogger(__name__)

WRITE_WAIT = 10.0
PONG_WAIT = 60.0
PING_PERIOD = PONG_WAIT * 9 / 10
MAX_MESSAGE_SIZE = 512
SEND_BUF_SIZE = 256

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


class Broadcaster(Protocol):
    """Routes outbound payloads to the subscribers of a room."""

    async def broadcast(self, room: str, payload: bytes) -> None:
        """Send ``payload`` to everyone in ``room``."""
        ...


def valid_message(msg: Message) -> bool:
    """Return True if ``msg`` is a chat message with content."""
    return msg.type == "message" and msg.content != ""


class Client:
    """One connected WebSocket user, subscribed to a single room."""

    def __init__(self, hub: Hub, broadcaster: Broadcaster, conn: Any, room: str, user: str) -> None:
        self._hub = hub
        self._broadcaster = broadcaster
        self._conn = conn
        self.room = room
        self.user = user
        self._send: asyncio.Queue[bytes | None] = asyncio.Queue()
        self._closed = False

    def deliver(self, payload: bytes) -> None:
        """Queue a payload for sending; drops it when the buffer is full."""
        if self._closed:
            log.debug("client: delivery after close ignored user=%r", self.user)
            return
        if self._send.qsize() >= SEND_BUF_SIZE:
            log.warning("client: send buffer full, dropping message for user=%r", self.user)
            return
        self._send.put_nowait(bytes(payload))

    def close(self) -> None:
        """Stop accepting payloads and let the writer finish; idempotent."""
        if self._closed:
            return
        self._closed = True
        self._send.put_nowait(None)

    async def read_loop(self) -> None:
        """Read frames, validate them and hand them to the broadcaster.

        Joins the room first and leaves it (closing the connection) on exit.
        """
        try:
            await self._hub.register(self, self.room)
            async for frame in self._conn:
                if frame.type is WSMsgType.ERROR:
                    log.warning(
                        "client: unexpected close user=%r: %s", self.user, self._conn.exception()
                    )
                    break
                if frame.type in (WSMsgType.TEXT, WSMsgType.BINARY):
                    await self._handle(frame.data)
        finally:
            await self._hub.unregister(self, self.room)
            await self._conn.close()

    async def _handle(self, raw: bytes | str) -> None:
        try:
            msg = parse_message(raw)
        except MessageError as exc:
            log.warning("client: invalid JSON user=%r: %s", self.user, exc)
            return
        if not valid_message(msg):
            log.warning("client: invalid message user=%r: %r", self.user, msg)
            return
        # Identity comes from the connection, so clients cannot impersonate others.
        stamped = dataclasses.replace(msg, user=self.user, room=self.room)
        await self._broadcaster.broadcast(self.room, stamped.to_json())

    async def write_loop(self) -> None:
        """Send queued payloads until the client is closed, then close the connection."""
        try:
            while (payload := await self._send.get()) is not None:
                text = payload.decode("utf-8", "replace")
                try:
                    await asyncio.wait_for(self._conn.send_str(text), WRITE_WAIT)
                except (ConnectionError, RuntimeError, TimeoutError) as exc:
                    log.debug("client: write failed user=%r: %s", self.user, exc)
                    return
        finally:
            await self._conn.close()


def make_handler(hub: Hub, broadcaster: Broadcaster) -> Handler:
    """Build a handler that upgrades requests and serves one client each.

    The ``room`` and ``user`` query parameters are required.
    """

    async def handle(request: web.Request) -> web.StreamResponse:
        room = request.query.get("room", "")
        user = request.query.get("user", "")
        if not room or not user:
            return web.Response(status=400, text="room and user query params are required\n")

        conn = web.WebSocketResponse(max_msg_size=MAX_MESSAGE_SIZE, heartbeat=PING_PERIOD)
        if not conn.can_prepare(request).ok:
            log.warning("handler: upgrade error: not a websocket handshake")
            return web.Response(status=400, text="Bad Request\n")
        await conn.prepare(request)

        client = Client(hub, broadcaster, conn, room, user)
        writer = asyncio.create_task(client.write_loop())
        try:
            await client.read_loop()
            await writer
        finally:
            writer.cancel()
        return conn

    return handle