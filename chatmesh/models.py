"""Wire format shared by every chat connection."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields

__all__ = ["Message", "MessageError", "parse_message"]


class MessageError(ValueError):
    """Raised when a payload cannot be decoded into a Message."""


@dataclass(frozen=True, slots=True)
class Message:
    """One chat message as exchanged over WebSocket and pub/sub."""

    type: str = ""
    room: str = ""
    user: str = ""
    content: str = ""

    def to_json(self) -> bytes:
        """Encode the message as compact UTF-8 JSON."""
        text = json.dumps(asdict(self), ensure_ascii=False, separators=(",", ":"))
        return text.encode("utf-8", "replace")


_FIELD_NAMES = frozenset(f.name for f in fields(Message))


def parse_message(raw: bytes | str) -> Message:
    """Decode a JSON payload into a Message; unknown keys are ignored."""
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise MessageError(f"invalid JSON: {exc}") from exc
    if data is None:
        return Message()
    if not isinstance(data, dict):
        raise MessageError("message must be a JSON object")

    values = {k: v for k, v in data.items() if k in _FIELD_NAMES and v is not None}
    for key, value in values.items():
        if not isinstance(value, str):
            raise MessageError(f"field {key!r} must be a string")
    return Message(**values)