"""End-to-end check that one client's message reaches another in the same room."""

from __future__ import annotations

import argparse
import asyncio
import logging

import aiohttp
from aiohttp import WSMsgType

from chatmesh.models import Message, MessageError, parse_message

__all__ = ["SERVER_URL", "SmokeError", "dial", "main", "run_check"]

log = logging.getLogger(__name__)

SERVER_URL = "ws://localhost:8080/ws"


class SmokeError(RuntimeError):
    """Raised when the round trip does not deliver the expected message."""


async def dial(session: aiohttp.ClientSession, server_url: str, room: str, user: str):
    """Open a WebSocket to ``server_url`` for ``user`` in ``room``."""
    return await session.ws_connect(server_url, params={"room": room, "user": user})


async def run_check(server_url: str = SERVER_URL) -> Message:
    """Send a message as alice and return what bob receives; raise SmokeError on failure."""
    sent = Message(type="message", room="general", user="alice", content="hello bob")
    async with aiohttp.ClientSession() as session:
        async with await dial(session, server_url, sent.room, "alice") as alice, \
                await dial(session, server_url, sent.room, "bob") as bob:
            # Give the server time to register both clients before broadcasting.
            await asyncio.sleep(0.05)
            await alice.send_str(sent.to_json().decode("utf-8"))
            try:
                frame = await bob.receive(timeout=3.0)
            except asyncio.TimeoutError as exc:
                raise SmokeError("bob read: timed out") from exc

    if frame.type not in (WSMsgType.TEXT, WSMsgType.BINARY):
        raise SmokeError(f"bob read: connection {frame.type.name.lower()}")
    try:
        got = parse_message(frame.data)
    except MessageError as exc:
        raise SmokeError(f"unmarshal: {exc}") from exc

    log.info("bob received: user=%r content=%r room=%r", got.user, got.content, got.room)
    if (got.user, got.content, got.room) != (sent.user, sent.content, sent.room):
        raise SmokeError(f"FAIL: unexpected message {got!r}")
    return got


def main(argv: list[str] | None = None) -> int:
    """Run the round-trip check against a running server."""
    parser = argparse.ArgumentParser(
        prog="chatmesh-smoke", description="Check that a chat server relays messages."
    )
    parser.add_argument("--url", default=SERVER_URL, help="WebSocket endpoint of the server")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")

    try:
        asyncio.run(run_check(args.url))
    except SmokeError as exc:
        log.error("%s", exc)
        return 1
    except (aiohttp.ClientError, OSError) as exc:
        log.error("dial %s: %s", args.url, exc)
        return 1
    log.info("PASS")
    return 0