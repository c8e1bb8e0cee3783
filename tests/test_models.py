import json

import pytest

from chatmesh.models import Message, MessageError, parse_message


def test_to_json_wire_bytes():
    msg = Message(type="message", room="general", user="bob", content="hi")
    assert msg.to_json() == b'{"type":"message","room":"general","user":"bob","content":"hi"}'


def test_round_trip():
    msg = Message(type="message", room="general", user="alice", content="hello bob")
    assert parse_message(msg.to_json()) == msg


def test_round_trip_non_ascii_and_markup():
    msg = Message(type="message", room="r", user="zoë", content="<b>café & tea</b>")
    encoded = msg.to_json()
    assert b"<" not in encoded and b">" not in encoded and b"&" not in encoded
    assert parse_message(encoded) == msg
    assert json.loads(encoded)["user"] == "zoë"


def test_html_characters_are_escaped():
    encoded = Message(content="<").to_json()
    assert b"\\u003c" in encoded


def test_parse_accepts_str_and_ignores_unknown_keys():
    raw = '{"type":"message","room":"general","user":"alice","content":"hello","extra":5}'
    assert parse_message(raw) == Message("message", "general", "alice", "hello")


def test_parse_missing_and_null_fields_are_empty():
    got = parse_message(b'{"type":"message","content":null}')
    assert got == Message(type="message")


def test_parse_null_document_gives_empty_message():
    assert parse_message(b"null") == Message()


def test_parse_keys_match_without_case():
    got = parse_message(b'{"Type":"message","ROOM":"general"}')
    assert got.type == "message"
    assert got.room == "general"


@pytest.mark.parametrize(
    "raw",
    [
        b"not json",
        b"[1, 2, 3]",
        b'"message"',
        b'{"type": 1}',
        b'{"content": ["x"]}',
        b"\xff\xfe",
    ],
)
def test_parse_errors(raw):
    with pytest.raises(MessageError):
        parse_message(raw)


def test_message_error_is_value_error():
    with pytest.raises(ValueError):
        parse_message(b"{")