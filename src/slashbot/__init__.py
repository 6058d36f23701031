"""slashbot: a small Discord slash-command bot."""

from .discord.messages import Embed, Message, create_embed, create_message
from .discord.session import BotSession, create_bot_session

__all__ = [
    "BotSession",
    "Embed",
    "Message",
    "create_bot_session",
    "create_embed",
    "create_message",
]
