"""
Unit tests for schemas.frames module.
Tests boundary validation of inbound frames.
"""
import json

import pytest

from stationv.core.errors import MalformedMessage
from stationv.schemas.frames import (
    AIMessageFrame,
    ChatFrame,
    DisconnectFrame,
    JoinFrame,
    NickFrame,
    RegisterFrame,
    parse_frame,
)
from stationv.schemas.events import MembershipEvent, to_wire


class TestParseValid:
    """Frames that should parse."""

    def test_register(self):
        frame = parse_frame(json.dumps({"type": "register", "nickname": " alice ", "channels": ["#a"]}))
        assert isinstance(frame, RegisterFrame)
        assert frame.nickname == "alice"
        assert frame.channels == ["#a"]
        assert frame.userType == "human"

    def test_config_is_a_register_alias(self):
        frame = parse_frame('{"type": "config", "nickname": "alice"}')
        assert isinstance(frame, RegisterFrame)
        assert frame.type == "config"
        assert frame.channels == []
        assert frame.server is None

    def test_config_with_upstream_server(self):
        frame = parse_frame(
            '{"type": "config", "nickname": "alice", "channels": ["#test"],'
            ' "server": " irc.libera.chat ", "port": 6697, "ssl": true, "realname": "Alice"}'
        )
        assert frame.server == "irc.libera.chat"
        assert frame.port == 6697
        assert frame.ssl is True
        assert frame.realname == "Alice"

    def test_join_without_nickname(self):
        frame = parse_frame('{"type": "join", "channel": "#test"}')
        assert isinstance(frame, JoinFrame)
        assert frame.nickname is None

    def test_message_and_ai_message(self):
        assert isinstance(parse_frame('{"type":"message","channel":"#t","content":"hi"}'), ChatFrame)
        ai = parse_frame('{"type":"ai_message","channel":"#t","content":"beep","nickname":"botty"}')
        assert isinstance(ai, AIMessageFrame)
        assert ai.nickname == "botty"

    def test_nick(self):
        assert parse_frame(b'{"type":"nick","newNickname":"bob"}') == NickFrame(type="nick", newNickname="bob")

    def test_disconnect(self):
        assert isinstance(parse_frame('{"type":"disconnect"}'), DisconnectFrame)

    def test_extra_fields_are_ignored(self):
        frame = parse_frame('{"type":"part","channel":"#t","reason":"bye"}')
        assert frame.channel == "#t"


class TestParseInvalid:
    """Frames that must be rejected as MalformedMessage."""

    @pytest.mark.parametrize("raw", [
        "not json",
        "",
        "[1, 2]",
        '"register"',
        None,
        '{"nickname": "alice"}',
        '{"type": "shout", "content": "hi"}',
        '{"type": "join"}',
        '{"type": "message", "channel": "#t"}',
        '{"type": "message", "channel": "#t", "content": ""}',
        '{"type": "register", "nickname": ""}',
        '{"type": "register", "nickname": "two words"}',
        '{"type": "register", "nickname": "#chan"}',
        '{"type": "register", "nickname": "' + "x" * 40 + '"}',
        '{"type": "nick"}',
        '{"type": "register", "nickname": "a", "userType": "alien"}',
        "[" * 100000,
        '{"type": "config", "nickname": "a", "server": "irc.libera.chat", "port": 0}',
        '{"type": "config", "nickname": "a", "server": "bad host"}',
        '{"type": "register", "nickname": "a", "channels": ' + "[" * 100000 + "]",
    ])
    def test_rejected(self, raw):
        with pytest.raises(MalformedMessage):
            parse_frame(raw)


class TestOutbound:
    """Outbound frame serialisation."""

    def test_user_quit_has_no_channel_key(self):
        assert to_wire(MembershipEvent(type="user_quit", nickname="bob")) == {
            "type": "user_quit",
            "nickname": "bob",
        }

    def test_user_joined_has_channel(self):
        wire = to_wire(MembershipEvent(type="user_joined", nickname="bob", channel="#t"))
        assert wire == {"type": "user_joined", "nickname": "bob", "channel": "#t"}
