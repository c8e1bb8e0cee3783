# chatmesh

A small room-based chat server over WebSockets, built on aiohttp. Clients
join a room by connecting to `/ws?room=<room>&user=<name>` and send JSON
messages; every client in the same room receives them. When a Redis URL is
configured, messages are published through Redis Pub/Sub so that clients
connected to *different* server instances still see each other's messages.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Running a server

```
chatmesh-server [--port PORT]
```

The server listens on port 8080 unless `--port` is given, and exposes two
endpoints:

- `/ws?room=<room>&user=<name>`: upgrades to a WebSocket. Both query
  parameters are required; a request missing either, or one that is not a
  WebSocket handshake, is answered with `400 Bad Request`.
- `/instance`: returns `{"server_id":"<id>"}` as `application/json`.

It is configured through environment variables:

| Variable    | Meaning                                                             | Default    |
|-------------|---------------------------------------------------------------------|------------|
| `SERVER_ID` | Name reported by `/instance` and used as the log prefix             | `server-1` |
| `REDIS_URL` | If set, e.g. `redis://localhost:6379/0`, messages go through Redis  | unset      |

Without `REDIS_URL` each instance keeps its rooms in memory only, and
messages never leave the instance that received them. With it, every instance
publishes to and subscribes on the Redis channel `chatmesh`. If the Redis
subscription fails, the error is logged and the server keeps serving its
local clients. The command exits with status 1 when the Redis URL is invalid
or the port cannot be bound.

## Wire format

Every message is a JSON object:

```json
{"type": "message", "room": "general", "user": "alice", "content": "hello"}
```

Unknown keys are ignored and missing ones are empty. A message is accepted
only when `type` is `"message"` and `content` is not empty; anything else,
including malformed JSON, is logged and ignored. The server overwrites `user`
and `room` with the values the connection was opened with, so a client cannot
post as somebody else or into another room.

Incoming frames larger than 512 bytes close the connection. The server pings
connections every 54 seconds and drops those that stop answering. Each client
has an outgoing buffer of 256 messages; messages arriving while it is full are
dropped for that client.

## Checking a running server

```
chatmesh-smoke [--url URL]
```

Connects `alice` and `bob` to room `general` on `ws://localhost:8080/ws` (or
`--url`), has alice send `"hello bob"`, and checks that bob receives it within
three seconds with the right user, content and room. It logs `PASS` and exits
with status 0, or logs the failure and exits with status 1.

## Cross-instance demo

```
chatmesh-demo [--server1 URL] [--server2 URL]
```

Expects two instances, by default at `http://localhost:8081` and
`http://localhost:8082`. It asks each for its `/instance` id, connects alice
and charlie to the first and bob to the second, sends one message from alice,
and prints what charlie and bob received within two seconds each. Without
Redis only charlie receives it; with both instances pointed at the same
`REDIS_URL`, bob receives it too. The closing lines of the report are fixed
text describing the in-memory case and are printed either way.

## Using it as a library

- `chatmesh.models.Message` is the wire message; `Message.to_json()` encodes
  it as compact JSON bytes, and `chatmesh.models.parse_message(raw)` decodes
  one, raising `chatmesh.models.MessageError` for bad input.
- `chatmesh.hub.Hub` keeps room membership and delivers payloads to any
  `chatmesh.hub.Subscriber` (an object with `deliver(payload)` and `close()`).
  `Hub.run()` must be running as a task; `register`, `unregister` and
  `broadcast` are coroutines. `unregister` closes the subscriber.
- `chatmesh.relay.Relay(hub, redis_url)` publishes to Redis with `broadcast`
  and, while `run()` is running, feeds received payloads into the hub by their
  `room` field. Await `wait_ready()` before relying on delivery; `run()` raises
  `chatmesh.relay.RelayError` if the subscription ends on its own. A ready
  Redis client can be passed as `client=` instead of a URL.
- `chatmesh.client.Client` serves one WebSocket connection, and
  `chatmesh.client.make_handler(hub, broadcaster)` builds the `/ws` handler.
- `chatmesh.server.create_app(hub, broadcaster, server_id)` builds the aiohttp
  application, where `broadcaster` is either the hub itself or a relay; the
  hub and relay tasks are started and stopped with the application.
- `chatmesh.smoke.run_check(server_url)` runs the smoke check and returns the
  received message, raising `chatmesh.smoke.SmokeError` on failure.

## What it does not do

There is no authentication: the user name is whatever the client puts in the
query string, and WebSocket origins are not checked. Messages are not stored;
a client only sees what is sent while it is connected, and there is no
history. Rooms exist only while someone is in them.