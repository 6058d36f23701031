from __future__ import annotations

import json
import logging
from typing import Any, Optional

import pytest

from slashbot.discord.commands import CommandContext, CommandRegistry
from slashbot.discord.dispatcher import GatewayDispatcher
from slashbot.discord.errors import DiscordTransientError, GatewayFrameError
from slashbot.discord.gateway import (
    DEFAULT_GATEWAY_ADDRESS,
    GatewayAddress,
    GatewayHandshake,
    HandshakeState,
    build_identify_payload,
    parse_gateway_address,
    parse_gateway_frame,
    resolve_gateway_address,
)
from slashbot.discord.heartbeat import HeartbeatMonitor
from slashbot.discord.messages import create_message


class RecordingResponder:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error
        self.calls: list[dict[str, Any]] = []

    def create_interaction_response(
        self,
        *,
        interaction_id: str,
        interaction_token: str,
        payload: dict[str, Any],
    ) -> None:
        self.calls.append(
            {
                "interaction_id": interaction_id,
                "interaction_token": interaction_token,
                "payload": payload,
            }
        )
        if self.error is not None:
            raise self.error


class Harness:
    def __init__(self, clock, responder: Optional[RecordingResponder] = None) -> None:
        logger = logging.getLogger("test.dispatch")
        self.sent: list[str] = []
        self.heartbeat = HeartbeatMonitor(clock=clock, logger=logger)
        self.registry = CommandRegistry(capacity=10, logger=logger)
        self.handshake = GatewayHandshake(
            bot_token="T",
            intents=32768,
            heartbeat=self.heartbeat,
            logger=logger,
        )
        self.responder = responder or RecordingResponder()
        self.dispatcher = GatewayDispatcher(
            handshake=self.handshake,
            heartbeat=self.heartbeat,
            registry=self.registry,
            responder=self.responder,
            logger=logger,
        )
        self.dispatcher.connection_established(self.sent.append)

    @property
    def sent_frames(self) -> list[dict[str, Any]]:
        return [json.loads(frame) for frame in self.sent]

    def hello(self, interval_ms: int = 41250) -> None:
        self.dispatcher.handle_frame(
            json.dumps({"op": 10, "d": {"heartbeat_interval": interval_ms}})
        )


def _interaction(name: str = "hello", **overrides: Any) -> str:
    payload: dict[str, Any] = {
        "type": 2,
        "id": "I1",
        "token": "TK1",
        "channel_id": "C1",
        "data": {"name": name},
    }
    payload.update(overrides)
    return json.dumps({"op": 0, "s": 3, "t": "INTERACTION_CREATE", "d": payload})


def test_identify_payload_shape() -> None:
    payload = build_identify_payload(bot_token="T", intents=32768)
    assert payload["op"] == 2
    assert payload["d"]["token"] == "T"
    assert payload["d"]["intents"] == 32768
    assert set(payload["d"]["properties"]) == {"os", "browser", "device"}


def test_parse_gateway_frame_rejects_malformed_input() -> None:
    with pytest.raises(GatewayFrameError):
        parse_gateway_frame('{"op": 10, "d": {')
    with pytest.raises(GatewayFrameError):
        parse_gateway_frame("[1, 2]")
    with pytest.raises(GatewayFrameError):
        parse_gateway_frame('{"op": "10"}')
    with pytest.raises(GatewayFrameError):
        parse_gateway_frame('{"op": true}')

    frame = parse_gateway_frame(b'{"op": 0, "t": "READY", "s": 1, "d": {}}')
    assert (frame.op, frame.t, frame.s, frame.d) == (0, "READY", 1, {})


def test_gateway_address_parsing() -> None:
    assert parse_gateway_address("wss://gateway.discord.gg") == GatewayAddress(
        host="gateway.discord.gg", port=443, path="/?v=10&encoding=json"
    )
    assert parse_gateway_address("wss://example.test:8443/ws?v=9") == GatewayAddress(
        host="example.test", port=8443, path="/ws?v=9"
    )
    assert parse_gateway_address("https://gateway.discord.gg") is None
    assert parse_gateway_address("") is None
    assert parse_gateway_address(None) is None


def test_resolve_gateway_address_falls_back() -> None:
    assert resolve_gateway_address(None) == DEFAULT_GATEWAY_ADDRESS
    assert resolve_gateway_address(
        "not a url", fallback_url="wss://fallback.test"
    ).host == "fallback.test"
    assert resolve_gateway_address("garbage", fallback_url="junk") == (
        DEFAULT_GATEWAY_ADDRESS
    )
    assert (
        DEFAULT_GATEWAY_ADDRESS.url
        == "wss://gateway.discord.gg:443/?v=10&encoding=json"
    )


def test_nothing_is_sent_before_hello(fake_clock) -> None:
    harness = Harness(fake_clock)
    assert harness.handshake.state is HandshakeState.AWAITING_HELLO

    harness.dispatcher.handle_frame(json.dumps({"op": 11}))
    harness.dispatcher.handle_frame(_interaction())
    fake_clock.advance_ms(100_000)
    harness.dispatcher.on_writable()

    assert harness.sent == []
    assert harness.responder.calls == []


def test_hello_sends_exactly_one_identify(fake_clock) -> None:
    harness = Harness(fake_clock)
    harness.hello()
    harness.hello()

    frames = harness.sent_frames
    assert len(frames) == 1
    assert frames[0]["op"] == 2
    assert frames[0]["d"]["token"] == "T"
    assert frames[0]["d"]["intents"] == 32768
    assert harness.handshake.state is HandshakeState.READY
    assert harness.heartbeat.interval_ms == 41250


@pytest.mark.parametrize("interval", [0, -5, "41250", None, True])
def test_hello_with_bad_interval_is_ignored(fake_clock, interval) -> None:
    harness = Harness(fake_clock)
    harness.dispatcher.handle_frame(
        json.dumps({"op": 10, "d": {"heartbeat_interval": interval}})
    )
    assert harness.sent == []
    assert harness.handshake.state is HandshakeState.AWAITING_HELLO


def test_hello_then_heartbeat_then_ack_reports_latency(fake_clock) -> None:
    harness = Harness(fake_clock)
    harness.hello(41250)

    fake_clock.advance_ms(41249)
    assert harness.dispatcher.on_writable() is False
    fake_clock.advance_ms(1)
    assert harness.dispatcher.on_writable() is True
    assert harness.sent_frames[-1] == {"op": 1, "d": None}
    assert harness.heartbeat.latency_ms() is None

    fake_clock.advance_ms(30)
    harness.dispatcher.handle_frame(json.dumps({"op": 11}))
    assert harness.heartbeat.latency_ms() == 30
    assert len(harness.sent_frames) == 2


def test_malformed_frame_is_dropped_and_next_frame_processed(
    fake_clock, caplog: pytest.LogCaptureFixture
) -> None:
    harness = Harness(fake_clock)
    with caplog.at_level(logging.WARNING):
        harness.dispatcher.handle_frame('{"op": 10, "d": {"heartbeat_')
    assert "discord.gateway.frame.malformed" in caplog.text
    assert harness.sent == []

    harness.hello()
    assert harness.sent_frames[0]["op"] == 2


def test_interaction_dispatches_registered_handler(fake_clock) -> None:
    harness = Harness(fake_clock)
    seen: list[CommandContext] = []

    def hello(context: CommandContext):
        seen.append(context)
        return create_message("Hi")

    harness.registry.register("hello", "Say hello", hello)
    harness.hello()
    harness.dispatcher.handle_frame(_interaction())

    assert harness.responder.calls == [
        {
            "interaction_id": "I1",
            "interaction_token": "TK1",
            "payload": {"type": 4, "data": {"content": "Hi"}},
        }
    ]
    assert seen[0].command_name == "hello"
    assert seen[0].channel_id == "C1"
    assert seen[0].latency_ms is None


def test_handler_sees_live_latency(fake_clock) -> None:
    harness = Harness(fake_clock)
    harness.registry.register(
        "ping", "Ping", lambda context: f"latency={context.latency_ms}"
    )
    harness.hello(1000)
    fake_clock.advance_ms(1000)
    harness.dispatcher.on_writable()
    fake_clock.advance_ms(12)
    harness.dispatcher.handle_frame(json.dumps({"op": 11}))

    harness.dispatcher.handle_frame(_interaction("ping"))

    assert harness.responder.calls[0]["payload"]["data"] == {"content": "latency=12"}


@pytest.mark.parametrize(
    "raw",
    [
        _interaction("unknown"),
        _interaction(type=3),
        _interaction(token=None),
        _interaction(id=None),
        json.dumps({"op": 0, "t": "INTERACTION_CREATE", "d": "nope"}),
        json.dumps({"op": 0, "t": "MESSAGE_CREATE", "d": {"content": "hi"}}),
        json.dumps({"op": 1, "d": None}),
        json.dumps({"op": 7}),
    ],
)
def test_unanswerable_or_unrelated_frames_send_nothing(fake_clock, raw: str) -> None:
    harness = Harness(fake_clock)
    harness.registry.register("hello", "Say hello", lambda _context: "Hi")
    harness.hello()
    harness.dispatcher.handle_frame(raw)
    assert harness.responder.calls == []
    assert len(harness.sent) == 1


def test_handler_returning_nothing_sends_no_response(fake_clock) -> None:
    harness = Harness(fake_clock)
    harness.registry.register("hello", "Say hello", lambda _context: None)
    harness.hello()
    harness.dispatcher.handle_frame(_interaction())
    assert harness.responder.calls == []


def test_handler_exception_is_logged_not_raised(
    fake_clock, caplog: pytest.LogCaptureFixture
) -> None:
    harness = Harness(fake_clock)

    def broken(_context: CommandContext):
        raise RuntimeError("kaboom")

    harness.registry.register("hello", "Say hello", broken)
    harness.hello()
    with caplog.at_level(logging.ERROR):
        harness.dispatcher.handle_frame(_interaction())

    assert harness.responder.calls == []
    assert "discord.interaction.handler_failed" in caplog.text
    assert "RuntimeError: kaboom" in caplog.text


def test_callback_failure_is_logged_without_leaking_token(
    fake_clock, caplog: pytest.LogCaptureFixture
) -> None:
    responder = RecordingResponder(error=DiscordTransientError("server error"))
    harness = Harness(fake_clock, responder=responder)
    harness.registry.register("hello", "Say hello", lambda _context: "Hi")
    harness.hello()

    with caplog.at_level(logging.DEBUG):
        harness.dispatcher.handle_frame(_interaction())

    assert len(responder.calls) == 1
    assert "discord.interaction.respond_failed" in caplog.text
    assert "TK1" not in caplog.text
    assert '"T"' not in caplog.text


def test_connection_closed_resets_handshake(fake_clock) -> None:
    harness = Harness(fake_clock)
    harness.hello()
    harness.dispatcher.connection_closed()
    assert harness.handshake.state is HandshakeState.DISCONNECTED
    assert harness.dispatcher.on_writable() is False
