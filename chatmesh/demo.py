"""Show whether a message sent on one instance reaches clients on another."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from contextlib import AsyncExitStack

import aiohttp
from aiohttp import WSMsgType

from chatmesh.models import Message, MessageError, parse_message

__all__ = ["READ_TIMEOUT", "ROOM", "dial_ws", "get_server_id", "main", "try_read"]

log = logging.getLogger(__name__)

SERVER1 = "http://localhost:8081"
SERVER2 = "http://localhost:8082"
ROOM = "general"
READ_TIMEOUT = 2.0
CONNECT_DELAY = 0.2
SEND_SETTLE = 0.05


async def get_server_id(session: aiohttp.ClientSession, instance_url: str) -> str:
    """Fetch the ``server_id`` reported by an instance endpoint."""
    async with session.get(instance_url) as resp:
        body = await resp.read()
    try:
        result = json.loads(body)
    except ValueError as exc:
        raise ValueError(f"parse /instance response: {exc}") from exc
    if result is None:
        return ""
    if not isinstance(result, dict):
        raise ValueError("parse /instance response: not a JSON object")
    server_id = result.get("server_id")
    if server_id is None:
        return ""
    if not isinstance(server_id, str):
        raise ValueError("parse /instance response: server_id is not a string")
    return server_id


async def dial_ws(
    session: aiohttp.ClientSession, ws_url: str, user: str
) -> aiohttp.ClientWebSocketResponse:
    """Open a WebSocket to ``ws_url`` joined to the demo room as ``user``."""
    return await session.ws_connect(ws_url, params={"room": ROOM, "user": user})


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


async def try_read(conn: aiohttp.ClientWebSocketResponse, label: str) -> str:
    """Wait up to READ_TIMEOUT seconds for one message and describe what arrived."""
    none_line = f"{label:<7} received:  ❌ NONE (timeout after 2s — expected)"
    try:
        frame = await conn.receive(timeout=READ_TIMEOUT)
    except TimeoutError:
        return none_line
    if frame.type not in (WSMsgType.TEXT, WSMsgType.BINARY):
        return none_line
    try:
        msg = parse_message(frame.data)
    except MessageError as exc:
        return f"{label:<7} received:  ❌ parse error: {exc}"
    return (
        f"{label:<7} received:  user={_quote(msg.user)} content={_quote(msg.content)} "
        f"room={_quote(msg.room)} ✅"
    )


def _ws_base(base: str) -> str:
    return "ws" + base[len("http"):] if base.startswith("http") else base


async def _demo(server1: str, server2: str) -> None:
    print("=== Phase 2: Message Inconsistency Demo ===")
    print()

    async with aiohttp.ClientSession() as session:
        id1 = await get_server_id(session, server1 + "/instance")
        id2 = await get_server_id(session, server2 + "/instance")
        ws1, ws2 = _ws_base(server1), _ws_base(server2)

        print("[setup]")
        print(f"Alice   → {id1}  ({ws1})")
        print(f"Bob     → {id2}  ({ws2})")
        print(f"Charlie → {id1}  ({ws1})")
        print()

        print("[expectation]")
        print("Charlie should receive Alice's message ✅  (same instance)")
        print("Bob should NOT receive Alice's message ❌  (different instance)")
        print()

        async with AsyncExitStack() as stack:
            alice = await dial_ws(session, ws1 + "/ws", "alice")
            stack.push_async_callback(alice.close)
            charlie = await dial_ws(session, ws1 + "/ws", "charlie")
            stack.push_async_callback(charlie.close)
            bob = await dial_ws(session, ws2 + "/ws", "bob")
            stack.push_async_callback(bob.close)

            await asyncio.sleep(CONNECT_DELAY)

            payload = Message(type="message", room=ROOM, user="alice", content="hello").to_json()
            text = payload.decode("utf-8")
            print("[sending]")
            print(f"Alice sends: {text}")
            print()

            await alice.send_str(text)
            await asyncio.sleep(SEND_SETTLE)

            print("[result]")
            print(await try_read(charlie, "Charlie"))
            print(await try_read(bob, "Bob"))
            print()

    print("[conclusion]")
    print("Messages are NOT shared across instances.")
    print("In-memory state is isolated per server.")
    print("This system is not horizontally scalable as-is.")
    print("Phase 3 will fix this with Redis Pub/Sub.")


def main(argv: list[str] | None = None) -> int:
    """Run the cross-instance demo against two running servers."""
    parser = argparse.ArgumentParser(
        prog="chatmesh-demo", description="Show message delivery across two instances."
    )
    parser.add_argument("--server1", default=SERVER1, help="base URL of the first instance")
    parser.add_argument("--server2", default=SERVER2, help="base URL of the second instance")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")

    try:
        asyncio.run(_demo(args.server1.rstrip("/"), args.server2.rstrip("/")))
    except (aiohttp.ClientError, OSError, ValueError) as exc:
        log.error("demo: %s", exc)
        return 1
    return 0