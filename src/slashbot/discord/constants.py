from __future__ import annotations

DISCORD_API_BASE_URL = "https://discord.com/api/v10"
DISCORD_GATEWAY_URL = "wss://gateway.discord.gg/?v=10&encoding=json"
DISCORD_GATEWAY_QUERY = "v=10&encoding=json"
DISCORD_GATEWAY_PORT = 443

# Discord hard limit for message content.
DISCORD_MAX_MESSAGE_LENGTH = 2000

# Gateway opcodes (https://discord.com/developers/docs/topics/opcodes-and-status-codes).
GATEWAY_OP_DISPATCH = 0
GATEWAY_OP_HEARTBEAT = 1
GATEWAY_OP_IDENTIFY = 2
GATEWAY_OP_HELLO = 10
GATEWAY_OP_HEARTBEAT_ACK = 11

GATEWAY_EVENT_INTERACTION_CREATE = "INTERACTION_CREATE"

DISCORD_INTENT_MESSAGE_CONTENT = 1 << 15
DEFAULT_INTENTS = DISCORD_INTENT_MESSAGE_CONTENT

INTERACTION_TYPE_APPLICATION_COMMAND = 2
INTERACTION_CALLBACK_CHANNEL_MESSAGE_WITH_SOURCE = 4
APPLICATION_COMMAND_TYPE_CHAT_INPUT = 1
DISCORD_EPHEMERAL_FLAG = 64

# Discord allows 100 global commands per application.
DEFAULT_MAX_COMMANDS = 100
MAX_COMMANDS_LIMIT = 200

DEFAULT_POLL_INTERVAL_SECONDS = 0.5
DEFAULT_REQUEST_TIMEOUT_SECONDS = 10.0
