from __future__ import annotations

import logging
from typing import Iterable, Protocol

from ..core.logging_utils import log_event
from .commands import SlashCommand
from .errors import DiscordAPIError


class ApplicationCommandSink(Protocol):
    def create_application_command(
        self, *, application_id: str, command: dict
    ) -> dict: ...


def sync_commands(
    rest: ApplicationCommandSink,
    *,
    application_id: str,
    commands: Iterable[SlashCommand],
    logger: logging.Logger,
) -> list[str]:
    """Create each command remotely, one request per command.

    A failure is logged and skipped so the remaining commands still get
    registered. Returns the names that failed.
    """
    if not application_id:
        raise ValueError("application_id is required to register commands")

    failed: list[str] = []
    registered = 0
    for command in commands:
        try:
            rest.create_application_command(
                application_id=application_id,
                command=command.to_application_command(),
            )
        except DiscordAPIError as exc:
            failed.append(command.name)
            log_event(
                logger,
                logging.WARNING,
                "discord.commands.sync.failed",
                application_id=application_id,
                command=command.name,
                exc=exc,
            )
            continue
        registered += 1
        log_event(
            logger,
            logging.INFO,
            "discord.commands.sync.created",
            application_id=application_id,
            command=command.name,
        )
    log_event(
        logger,
        logging.INFO,
        "discord.commands.sync.done",
        application_id=application_id,
        registered_count=registered,
        failed_count=len(failed),
    )
    return failed
