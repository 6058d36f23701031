"""Sample command set used by ``slashbot run``."""

from __future__ import annotations

import time
from datetime import datetime
from typing import Callable, NamedTuple, Protocol

from .discord.commands import CommandContext, CommandHandler
from .discord.messages import Message, create_embed, create_message

EMBED_DEMO_COLOR = 0x00FF00


class CommandSink(Protocol):
    def register(
        self, name: str, description: str, handler: CommandHandler
    ) -> bool: ...


class DemoCommand(NamedTuple):
    name: str
    description: str
    handler: CommandHandler


def ping_command(context: CommandContext) -> Message:
    latency = context.latency_ms
    if latency is None:
        return create_message("🏓 Pong! (Latency unknown)")
    return create_message(f"🏓 Pong! Gateway latency: {latency}ms")


def hello_command(_context: CommandContext) -> Message:
    return create_message("👋 Hello there! I'm a Discord bot written in Python!")


def make_time_command(now: Callable[[], datetime] = datetime.now) -> CommandHandler:
    def time_command(_context: CommandContext) -> Message:
        return create_message(f"🕐 Current server time: {now().strftime('%c')}")

    return time_command


def info_command(_context: CommandContext) -> Message:
    return create_message(
        "ℹ️ **Bot Information**\n"
        "• Language: Python\n"
        "• Library: slashbot\n"
        "• Features: Slash Commands, Embeds, WebSocket Gateway\n"
        "• Status: Online and ready!"
    )


def make_embed_command(clock: Callable[[], float] = time.time) -> CommandHandler:
    def embed_command(_context: CommandContext) -> Message:
        embed = create_embed(
            "Embed Demo",
            "This is an example of a rich embed message sent along with regular text!",
            EMBED_DEMO_COLOR,
        )
        embed.set_footer("Powered by slashbot").set_timestamp(clock())
        return create_message().set_embed(embed)

    return embed_command


def build_demo_commands() -> list[DemoCommand]:
    return [
        DemoCommand("ping", "Check bot latency", ping_command),
        DemoCommand("hello", "Say hello to the bot", hello_command),
        DemoCommand("time", "Get current server time", make_time_command()),
        DemoCommand("info", "Get bot information", info_command),
        DemoCommand("embed", "Demonstrate embed functionality", make_embed_command()),
    ]


def register_demo_commands(sink: CommandSink) -> list[str]:
    """Register every demo command; returns the names that were rejected."""
    rejected: list[str] = []
    for command in build_demo_commands():
        if not sink.register(command.name, command.description, command.handler):
            rejected.append(command.name)
    return rejected
