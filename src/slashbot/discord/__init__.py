"""Discord slash-command bot: REST client, gateway session and command table."""

from .command_sync import sync_commands
from .commands import (
    CommandContext,
    CommandHandler,
    CommandRegistry,
    SlashCommand,
    static_reply,
)
from .constants import (
    DISCORD_API_BASE_URL,
    DISCORD_GATEWAY_URL,
    DISCORD_INTENT_MESSAGE_CONTENT,
    DISCORD_MAX_MESSAGE_LENGTH,
)
from .dispatcher import GatewayDispatcher
from .driver import GatewayDriver
from .errors import (
    DiscordAPIError,
    DiscordError,
    DiscordPermanentError,
    DiscordTransientError,
    GatewayConnectionClosed,
    GatewayFrameError,
)
from .gateway import (
    GatewayAddress,
    GatewayFrame,
    GatewayHandshake,
    HandshakeState,
    build_identify_payload,
    parse_gateway_frame,
    resolve_gateway_address,
)
from .heartbeat import HeartbeatMonitor, build_heartbeat_payload
from .messages import Embed, Message, create_embed, create_message
from .rest import DiscordRestClient
from .session import BotSession, create_bot_session
from .transport import GatewayTransport, WebSocketTransport

__all__ = [
    "BotSession",
    "CommandContext",
    "CommandHandler",
    "CommandRegistry",
    "DISCORD_API_BASE_URL",
    "DISCORD_GATEWAY_URL",
    "DISCORD_INTENT_MESSAGE_CONTENT",
    "DISCORD_MAX_MESSAGE_LENGTH",
    "DiscordAPIError",
    "DiscordError",
    "DiscordPermanentError",
    "DiscordRestClient",
    "DiscordTransientError",
    "Embed",
    "GatewayAddress",
    "GatewayConnectionClosed",
    "GatewayDispatcher",
    "GatewayDriver",
    "GatewayFrame",
    "GatewayFrameError",
    "GatewayHandshake",
    "GatewayTransport",
    "HandshakeState",
    "HeartbeatMonitor",
    "Message",
    "SlashCommand",
    "WebSocketTransport",
    "build_heartbeat_payload",
    "build_identify_payload",
    "create_bot_session",
    "create_embed",
    "create_message",
    "parse_gateway_frame",
    "resolve_gateway_address",
    "static_reply",
    "sync_commands",
]
