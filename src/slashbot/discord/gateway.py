from __future__ import annotations

import enum
import json
import logging
import platform
from dataclasses import dataclass
from typing import Any, Callable, Optional
from urllib.parse import urlsplit

from ..core.logging_utils import log_event
from .constants import (
    DISCORD_GATEWAY_PORT,
    DISCORD_GATEWAY_QUERY,
    DISCORD_GATEWAY_URL,
    GATEWAY_OP_HELLO,
    GATEWAY_OP_IDENTIFY,
)
from .errors import GatewayFrameError
from .heartbeat import HeartbeatMonitor

CLIENT_NAME = "slashbot"


@dataclass(frozen=True)
class GatewayFrame:
    op: int
    d: Any = None
    s: Optional[int] = None
    t: Optional[str] = None
    raw: dict[str, Any] | None = None


def build_identify_payload(*, bot_token: str, intents: int) -> dict[str, Any]:
    return {
        "op": GATEWAY_OP_IDENTIFY,
        "d": {
            "token": bot_token,
            "intents": intents,
            "properties": {
                "os": platform.system().lower() or "unknown",
                "browser": CLIENT_NAME,
                "device": CLIENT_NAME,
            },
        },
    }


def parse_gateway_frame(frame: str | bytes | dict[str, Any]) -> GatewayFrame:
    try:
        if isinstance(frame, bytes):
            frame = frame.decode("utf-8")
        payload = json.loads(frame) if isinstance(frame, str) else dict(frame)
    except (UnicodeDecodeError, ValueError, TypeError) as exc:
        raise GatewayFrameError(
            f"Discord gateway frame is not valid JSON: {exc}"
        ) from exc
    if not isinstance(payload, dict):
        raise GatewayFrameError("Discord gateway frame must be a JSON object")
    op = payload.get("op")
    if not isinstance(op, int) or isinstance(op, bool):
        raise GatewayFrameError("Discord gateway frame missing numeric op")
    seq = payload.get("s")
    event_type = payload.get("t")
    return GatewayFrame(
        op=op,
        d=payload.get("d"),
        s=seq if isinstance(seq, int) else None,
        t=event_type if isinstance(event_type, str) else None,
        raw=payload,
    )


@dataclass(frozen=True)
class GatewayAddress:
    """Fully resolved TLS endpoint: host, port and path (query included)."""

    host: str
    port: int
    path: str

    @property
    def url(self) -> str:
        return f"wss://{self.host}:{self.port}{self.path}"


DEFAULT_GATEWAY_ADDRESS = GatewayAddress(
    host="gateway.discord.gg",
    port=DISCORD_GATEWAY_PORT,
    path=f"/?{DISCORD_GATEWAY_QUERY}",
)


def parse_gateway_address(url: Optional[str]) -> Optional[GatewayAddress]:
    """Split a ``wss://`` URL into a ``GatewayAddress``.

    Returns ``None`` for anything that does not yield a host; the protocol
    version query is appended when the URL does not pin one.
    """
    if not isinstance(url, str) or not url.strip():
        return None
    try:
        parts = urlsplit(url.strip())
        port = parts.port
    except ValueError:
        return None
    if parts.scheme != "wss" or not parts.hostname:
        return None
    path = parts.path or "/"
    query = parts.query
    if "v=" not in query:
        query = f"{query}&{DISCORD_GATEWAY_QUERY}" if query else DISCORD_GATEWAY_QUERY
    return GatewayAddress(
        host=parts.hostname,
        port=port or DISCORD_GATEWAY_PORT,
        path=f"{path}?{query}",
    )


def resolve_gateway_address(
    url: Optional[str], *, fallback_url: str = DISCORD_GATEWAY_URL
) -> GatewayAddress:
    address = parse_gateway_address(url)
    if address is not None:
        return address
    return parse_gateway_address(fallback_url) or DEFAULT_GATEWAY_ADDRESS


class HandshakeState(enum.Enum):
    DISCONNECTED = "disconnected"
    AWAITING_HELLO = "awaiting_hello"
    IDENTIFYING = "identifying"
    READY = "ready"


class GatewayHandshake:
    """HELLO -> IDENTIFY exchange for one connection.

    The server speaks first. IDENTIFY is sent exactly once per connection,
    immediately after a valid HELLO, and the session is treated as live
    without waiting for READY.
    """

    def __init__(
        self,
        *,
        bot_token: str,
        intents: int,
        heartbeat: HeartbeatMonitor,
        logger: logging.Logger,
    ) -> None:
        self._bot_token = bot_token
        self._intents = intents
        self._heartbeat = heartbeat
        self._logger = logger
        self._state = HandshakeState.DISCONNECTED

    @property
    def state(self) -> HandshakeState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is HandshakeState.READY

    def connection_established(self) -> None:
        self._state = HandshakeState.AWAITING_HELLO

    def connection_closed(self) -> None:
        self._state = HandshakeState.DISCONNECTED

    def forget_credentials(self) -> None:
        self._bot_token = ""

    def handle_hello(self, frame: GatewayFrame, send: Callable[[str], None]) -> bool:
        if frame.op != GATEWAY_OP_HELLO:
            return False
        if self._state is not HandshakeState.AWAITING_HELLO:
            log_event(
                self._logger,
                logging.DEBUG,
                "discord.gateway.hello.ignored",
                state=self._state.value,
            )
            return False
        data = frame.d if isinstance(frame.d, dict) else {}
        interval_ms = data.get("heartbeat_interval")
        if (
            not isinstance(interval_ms, (int, float))
            or isinstance(interval_ms, bool)
            or interval_ms < 1
        ):
            log_event(
                self._logger,
                logging.WARNING,
                "discord.gateway.hello.invalid",
                heartbeat_interval=interval_ms,
            )
            return False

        self._heartbeat.start(int(interval_ms))
        self._state = HandshakeState.IDENTIFYING
        send(
            json.dumps(
                build_identify_payload(bot_token=self._bot_token, intents=self._intents)
            )
        )
        self._state = HandshakeState.READY
        log_event(
            self._logger,
            logging.INFO,
            "discord.gateway.identified",
            heartbeat_interval_ms=int(interval_ms),
            intents=self._intents,
        )
        return True
