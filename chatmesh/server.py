"""HTTP entry point serving the chat WebSocket and instance identity."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os

from aiohttp import web

from chatmesh.client import Broadcaster, make_handler
from chatmesh.hub import Hub
from chatmesh.relay import Relay

__all__ = ["create_app", "instance_handler", "main"]

log = logging.getLogger(__name__)


def instance_handler(server_id: str):
    """Build a handler answering with this instance's ``server_id`` as JSON."""
    body = json.dumps({"server_id": server_id}, separators=(",", ":")).encode("utf-8")

    async def handle(request: web.Request) -> web.Response:
        return web.Response(body=body, content_type="application/json")

    return handle


async def _run_relay(relay: Relay) -> None:
    try:
        await relay.run()
    except asyncio.CancelledError:
        raise
    except Exception as exc:  # a failing relay must not take the server down
        log.error("relay: %s", exc)


def create_app(hub: Hub, broadcaster: Broadcaster, server_id: str) -> web.Application:
    """Build the web application; the hub (and relay, if any) run alongside it."""
    relay = broadcaster if isinstance(broadcaster, Relay) else None

    async def background(app: web.Application):
        tasks = [asyncio.create_task(hub.run())]
        if relay is not None:
            tasks.append(asyncio.create_task(_run_relay(relay)))
        try:
            yield
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            if relay is not None:
                await relay.close()

    app = web.Application()
    app.cleanup_ctx.append(background)
    app.router.add_route("*", "/ws", make_handler(hub, broadcaster))
    app.router.add_route("*", "/instance", instance_handler(server_id))
    return app


def main(argv: list[str] | None = None) -> int:
    """Run the chat server; configured by SERVER_ID and REDIS_URL."""
    parser = argparse.ArgumentParser(prog="chatmesh-server", description="Run a chat server.")
    parser.add_argument("--port", type=int, default=8080, help="port to listen on")
    args = parser.parse_args(argv)

    server_id = os.environ.get("SERVER_ID") or "server-1"
    logging.basicConfig(level=logging.INFO, format=f"[{server_id}] %(asctime)s %(message)s")

    hub = Hub()
    broadcaster: Broadcaster = hub
    redis_url = os.environ.get("REDIS_URL")
    if redis_url:
        try:
            broadcaster = Relay(hub, redis_url)
        except ValueError as exc:
            log.critical("relay: %s", exc)
            return 1
        log.info("relay: starting with %s", redis_url)

    app = create_app(hub, broadcaster, server_id)
    log.info("chatmesh listening on :%d", args.port)
    try:
        web.run_app(app, port=args.port, print=None)
    except OSError as exc:
        log.critical("server error: %s", exc)
        return 1
    return 0