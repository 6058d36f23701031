from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Protocol

from ..core.logging_utils import log_event
from .commands import CommandContext, CommandRegistry
from .constants import (
    GATEWAY_EVENT_INTERACTION_CREATE,
    GATEWAY_OP_HEARTBEAT_ACK,
    GATEWAY_OP_HELLO,
)
from .errors import DiscordAPIError, GatewayFrameError
from .gateway import GatewayFrame, GatewayHandshake, parse_gateway_frame
from .heartbeat import HeartbeatMonitor
from .interactions import (
    build_interaction_response,
    extract_channel_id,
    extract_command_name,
    extract_command_options,
    extract_guild_id,
    extract_interaction_id,
    extract_interaction_token,
    extract_user_id,
    is_application_command,
)
from .messages import coerce_reply


class InteractionResponder(Protocol):
    def create_interaction_response(
        self,
        *,
        interaction_id: str,
        interaction_token: str,
        payload: dict[str, Any],
    ) -> None: ...


class GatewayDispatcher:
    """Routes decoded gateway frames for one session.

    Frames arrive one at a time on the driver thread. Priority: HELLO, then
    HEARTBEAT_ACK, then INTERACTION_CREATE; everything else is dropped, as is
    every frame that arrives before HELLO.
    """

    def __init__(
        self,
        *,
        handshake: GatewayHandshake,
        heartbeat: HeartbeatMonitor,
        registry: CommandRegistry,
        responder: InteractionResponder,
        logger: logging.Logger,
    ) -> None:
        self._handshake = handshake
        self._heartbeat = heartbeat
        self._registry = registry
        self._responder = responder
        self._logger = logger
        self._send: Optional[Callable[[str], None]] = None

    @property
    def handshake(self) -> GatewayHandshake:
        return self._handshake

    def connection_established(self, send: Callable[[str], None]) -> None:
        self._send = send
        self._heartbeat.reset()
        self._handshake.connection_established()
        log_event(self._logger, logging.INFO, "discord.gateway.connected")

    def connection_closed(self) -> None:
        self._send = None
        self._handshake.connection_closed()

    def on_writable(self) -> bool:
        """Transport can take a frame; emit a heartbeat if one is due."""
        send = self._send
        if send is None or not self._handshake.is_ready:
            return False
        return self._heartbeat.beat_if_due(send)

    def handle_frame(self, raw: str | bytes) -> None:
        try:
            frame = parse_gateway_frame(raw)
        except GatewayFrameError as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "discord.gateway.frame.malformed",
                exc=exc,
            )
            return
        self.dispatch(frame)

    def dispatch(self, frame: GatewayFrame) -> None:
        send = self._send
        if send is None:
            return
        if frame.op == GATEWAY_OP_HELLO:
            self._handshake.handle_hello(frame, send)
            return
        if not self._handshake.is_ready:
            log_event(
                self._logger,
                logging.DEBUG,
                "discord.gateway.frame.before_hello",
                op=frame.op,
                event_type=frame.t,
            )
            return
        if frame.op == GATEWAY_OP_HEARTBEAT_ACK:
            latency_ms = self._heartbeat.record_ack()
            log_event(
                self._logger,
                logging.DEBUG,
                "discord.gateway.heartbeat.ack",
                latency_ms=latency_ms,
            )
            return
        if frame.t == GATEWAY_EVENT_INTERACTION_CREATE and isinstance(frame.d, dict):
            self.handle_interaction(frame.d)

    def handle_interaction(self, interaction_payload: dict[str, Any]) -> bool:
        """Answer one application-command interaction; True when a reply went out."""
        if not is_application_command(interaction_payload):
            return False
        command_name = extract_command_name(interaction_payload)
        interaction_id = extract_interaction_id(interaction_payload)
        interaction_token = extract_interaction_token(interaction_payload)
        if not command_name or not interaction_id or not interaction_token:
            log_event(
                self._logger,
                logging.DEBUG,
                "discord.interaction.missing_fields",
                has_command=bool(command_name),
                has_interaction_id=bool(interaction_id),
                has_callback=bool(interaction_token),
            )
            return False

        command = self._registry.get(command_name)
        if command is None:
            log_event(
                self._logger,
                logging.INFO,
                "discord.interaction.unknown_command",
                command=command_name,
                interaction_id=interaction_id,
            )
            return False

        context = CommandContext(
            command_name=command_name,
            interaction_id=interaction_id,
            channel_id=extract_channel_id(interaction_payload),
            guild_id=extract_guild_id(interaction_payload),
            user_id=extract_user_id(interaction_payload),
            options=extract_command_options(interaction_payload),
            latency_reader=self._heartbeat.latency_ms,
        )
        try:
            reply = coerce_reply(command.handler(context))
        except Exception as exc:
            log_event(
                self._logger,
                logging.ERROR,
                "discord.interaction.handler_failed",
                command=command_name,
                interaction_id=interaction_id,
                exc=exc,
            )
            return False
        if reply is None:
            log_event(
                self._logger,
                logging.DEBUG,
                "discord.interaction.no_reply",
                command=command_name,
                interaction_id=interaction_id,
            )
            return False

        try:
            self._responder.create_interaction_response(
                interaction_id=interaction_id,
                interaction_token=interaction_token,
                payload=build_interaction_response(reply),
            )
        except DiscordAPIError as exc:
            log_event(
                self._logger,
                logging.ERROR,
                "discord.interaction.respond_failed",
                command=command_name,
                interaction_id=interaction_id,
                exc=exc,
            )
            return False
        log_event(
            self._logger,
            logging.INFO,
            "discord.interaction.responded",
            command=command_name,
            interaction_id=interaction_id,
            ephemeral=reply.ephemeral,
        )
        return True
