from __future__ import annotations

import importlib.metadata
import logging
import signal
import threading
import time
from pathlib import Path
from typing import Callable, NoReturn, Optional

import typer

from .config import SlashbotConfig, load_bot_config
from .core.exceptions import ConfigError
from .core.logging_utils import setup_rotating_logger
from .demo_commands import build_demo_commands, register_demo_commands
from .discord.session import BotSession

LOGGER_NAME = "slashbot"
LATENCY_REPORT_INTERVAL_SECONDS = 30.0
SHUTDOWN_POLL_SECONDS = 1.0

app = typer.Typer(add_completion=False)


def get_version() -> str:
    try:
        return importlib.metadata.version("slashbot")
    except Exception:
        return "unknown"


def raise_exit(message: str, *, cause: Optional[BaseException] = None) -> NoReturn:
    typer.echo(message, err=True)
    if cause is not None:
        raise typer.Exit(code=1) from cause
    raise typer.Exit(code=1)


def _version_callback(value: bool) -> None:
    if not value:
        return
    typer.echo(f"slashbot {get_version()}")
    raise typer.Exit(code=0)


@app.callback()
def _root(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    return


def _load_config(path: Optional[Path]) -> SlashbotConfig:
    try:
        return load_bot_config(path or Path.cwd(), require_token=True)
    except ConfigError as exc:
        raise_exit(str(exc), cause=exc)


def _open_session(config: SlashbotConfig, logger: logging.Logger) -> BotSession:
    try:
        return BotSession.from_config(config.bot, logger=logger)
    except ValueError as exc:
        raise_exit(str(exc), cause=exc)


def wait_for_shutdown(
    session: BotSession,
    shutdown_event: threading.Event,
    *,
    report_interval: float = LATENCY_REPORT_INTERVAL_SECONDS,
    poll_seconds: float = SHUTDOWN_POLL_SECONDS,
    clock: Callable[[], float] = time.monotonic,
    echo: Callable[[str], None] = typer.echo,
) -> None:
    """Block until a shutdown signal arrives or the gateway driver exits."""
    last_report = clock()
    while not shutdown_event.wait(poll_seconds):
        if not session.is_running:
            echo("Gateway connection ended.")
            return
        now = clock()
        if now - last_report >= report_interval:
            last_report = now
            latency = session.get_latency()
            if latency is not None:
                echo(f"Gateway latency: {latency}ms")


@app.command("run")
def run(
    path: Optional[Path] = typer.Option(None, "--path", help="Bot root path"),
    skip_register: bool = typer.Option(
        False, "--skip-register", help="Do not create commands on Discord"
    ),
) -> None:
    """Connect to the gateway and answer the demo slash commands."""
    config = _load_config(path)
    logger = setup_rotating_logger(LOGGER_NAME, config.log)
    session = _open_session(config, logger)
    shutdown_event = threading.Event()

    def _signal_handler(signum: int, _frame: object) -> None:
        typer.echo(f"Received signal {signum}, shutting down...")
        shutdown_event.set()

    previous_handlers = {
        sig: signal.signal(sig, _signal_handler)
        for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        with session:
            rejected = register_demo_commands(session)
            if rejected:
                typer.echo(f"Rejected commands: {', '.join(rejected)}", err=True)
            if config.bot.register_commands and not skip_register:
                typer.echo("Registering commands with Discord...")
                if not session.register_remote():
                    typer.echo(
                        "Failed to register some commands with Discord", err=True
                    )
            if not session.start():
                raise_exit("Failed to start bot")
            typer.echo("Bot is now running! Press Ctrl+C to stop.")
            typer.echo("Available commands:")
            for command in build_demo_commands():
                typer.echo(f"  /{command.name} - {command.description}")
            wait_for_shutdown(
                session, shutdown_event, poll_seconds=SHUTDOWN_POLL_SECONDS
            )
            typer.echo("Cleaning up...")
    finally:
        for sig, handler in previous_handlers.items():
            signal.signal(sig, handler)
    typer.echo("Bot stopped.")


@app.command("register-commands")
def register_commands(
    path: Optional[Path] = typer.Option(None, "--path", help="Bot root path"),
) -> None:
    """Create the demo commands on Discord without connecting to the gateway."""
    config = _load_config(path)
    logger = logging.getLogger(f"{LOGGER_NAME}.commands")
    with _open_session(config, logger) as session:
        register_demo_commands(session)
        if not session.application_id:
            raise_exit(
                "Could not resolve the application id; "
                f"set {config.bot.app_id_env} or check the bot token"
            )
        if not session.register_remote():
            raise_exit("Failed to register some commands with Discord")
    typer.echo("Discord application commands synchronized.")


def main() -> None:
    """Entrypoint for CLI execution."""
    app()
