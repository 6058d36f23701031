from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Mapping, Optional

from ..core.logging_utils import log_event
from .constants import APPLICATION_COMMAND_TYPE_CHAT_INPUT, DEFAULT_MAX_COMMANDS
from .messages import Message, Reply


def _unknown_latency() -> Optional[int]:
    return None


@dataclass(frozen=True)
class CommandContext:
    """What a command handler may know about the interaction it answers."""

    command_name: str
    interaction_id: str
    channel_id: Optional[str] = None
    guild_id: Optional[str] = None
    user_id: Optional[str] = None
    options: Mapping[str, Any] = field(default_factory=dict)
    latency_reader: Callable[[], Optional[int]] = _unknown_latency

    @property
    def latency_ms(self) -> Optional[int]:
        return self.latency_reader()


CommandHandler = Callable[[CommandContext], Reply]


@dataclass(frozen=True)
class SlashCommand:
    name: str
    description: str
    handler: CommandHandler

    def to_application_command(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "type": APPLICATION_COMMAND_TYPE_CHAT_INPUT,
        }


def static_reply(text: str, *, ephemeral: bool = False) -> CommandHandler:
    """Handler that always answers with the same canned text."""

    def _handler(_context: CommandContext) -> Reply:
        return Message(content=text, ephemeral=ephemeral)

    return _handler


class CommandRegistry:
    """Ordered, bounded table of slash commands keyed by unique name.

    Registration is expected to finish before the session driver starts;
    after that the table is only read.
    """

    def __init__(
        self,
        *,
        capacity: int = DEFAULT_MAX_COMMANDS,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._logger = logger or logging.getLogger(__name__)
        self._commands: list[SlashCommand] = []
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._commands)

    def __iter__(self) -> Iterator[SlashCommand]:
        return iter(tuple(self._commands))

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None

    def names(self) -> tuple[str, ...]:
        return tuple(command.name for command in self._commands)

    def register(
        self,
        name: Optional[str],
        description: Optional[str],
        handler: Optional[CommandHandler],
    ) -> bool:
        normalized_name = name.strip() if isinstance(name, str) else ""
        normalized_description = (
            description.strip() if isinstance(description, str) else ""
        )
        if not normalized_name or not normalized_description or not callable(handler):
            log_event(
                self._logger,
                logging.WARNING,
                "discord.commands.register.invalid",
                name=name,
                has_description=bool(normalized_description),
                has_handler=callable(handler),
            )
            return False
        with self._lock:
            if len(self._commands) >= self._capacity:
                log_event(
                    self._logger,
                    logging.WARNING,
                    "discord.commands.register.capacity_exhausted",
                    name=normalized_name,
                    capacity=self._capacity,
                )
                return False
            if any(command.name == normalized_name for command in self._commands):
                log_event(
                    self._logger,
                    logging.WARNING,
                    "discord.commands.register.duplicate",
                    name=normalized_name,
                )
                return False
            self._commands.append(
                SlashCommand(
                    name=normalized_name,
                    description=normalized_description,
                    handler=handler,
                )
            )
        return True

    def get(self, name: str) -> Optional[SlashCommand]:
        for command in self._commands:
            if command.name == name:
                return command
        return None

    def clear(self) -> None:
        with self._lock:
            self._commands.clear()

    def application_commands(self) -> list[dict[str, Any]]:
        return [command.to_application_command() for command in self._commands]
