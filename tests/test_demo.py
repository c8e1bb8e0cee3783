import asyncio
import socket

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from chatmesh.demo import dial_ws, get_server_id, main, try_read
from chatmesh.hub import Hub
from chatmesh.models import Message
from chatmesh.server import create_app


def closed_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.mark.asyncio
async def test_get_server_id_reads_instance_endpoint():
    async with TestServer(create_app(Hub(), Hub(), "server-1")) as server:
        async with aiohttp.ClientSession() as session:
            got = await get_server_id(session, str(server.make_url("/instance")))
    assert got == "server-1"


@pytest.mark.asyncio
async def test_get_server_id_rejects_non_json():
    async def bad(request):
        return web.Response(text="nope")

    app = web.Application()
    app.router.add_get("/instance", bad)
    async with TestServer(app) as server:
        async with aiohttp.ClientSession() as session:
            with pytest.raises(ValueError, match="parse /instance response"):
                await get_server_id(session, str(server.make_url("/instance")))


@pytest.mark.asyncio
async def test_same_instance_receives_other_instance_does_not():
    hub1, hub2 = Hub(), Hub()
    async with TestServer(create_app(hub1, hub1, "server-1")) as s1:
        async with TestServer(create_app(hub2, hub2, "server-2")) as s2:
            async with aiohttp.ClientSession() as session:
                alice = await dial_ws(session, str(s1.make_url("/ws")), "alice")
                charlie = await dial_ws(session, str(s1.make_url("/ws")), "charlie")
                bob = await dial_ws(session, str(s2.make_url("/ws")), "bob")
                await asyncio.sleep(0.1)
                msg = Message(type="message", room="general", user="alice", content="hello")
                await alice.send_str(msg.to_json().decode())
                charlie_line = await try_read(charlie, "Charlie")
                bob_line = await try_read(bob, "Bob")
                for conn in (alice, charlie, bob):
                    await conn.close()
    assert charlie_line == 'Charlie received:  user="alice" content="hello" room="general" ✅'
    assert bob_line == "Bob     received:  ❌ NONE (timeout after 2s — expected)"


@pytest.mark.asyncio
async def test_try_read_reports_parse_error():
    async def garbage(request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        await ws.send_str("{bad")
        await ws.receive()
        return ws

    app = web.Application()
    app.router.add_get("/ws", garbage)
    async with TestServer(app) as server:
        async with aiohttp.ClientSession() as session:
            conn = await dial_ws(session, str(server.make_url("/ws")), "bob")
            line = await try_read(conn, "Bob")
            await conn.close()
    assert line.startswith("Bob     received:  ❌ parse error:")


def test_main_fails_when_servers_unreachable():
    port = closed_port()
    base = f"http://127.0.0.1:{port}"
    assert main(["--server1", base, "--server2", base]) == 1