from __future__ import annotations

import dataclasses
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from .core.exceptions import ConfigError
from .discord.constants import (
    DEFAULT_INTENTS,
    DEFAULT_MAX_COMMANDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DISCORD_API_BASE_URL,
    DISCORD_GATEWAY_URL,
    MAX_COMMANDS_LIMIT,
)

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "slashbot.yml"
STATE_DIRNAME = ".slashbot"
DEFAULT_BOT_TOKEN_ENV = "SLASHBOT_DISCORD_TOKEN"
DEFAULT_APP_ID_ENV = "SLASHBOT_DISCORD_APP_ID"
DEFAULT_LOG_PATH = f"{STATE_DIRNAME}/slashbot.log"
DEFAULT_LOG_MAX_BYTES = 10 * 1024 * 1024
DEFAULT_LOG_BACKUP_COUNT = 3
MAX_POLL_INTERVAL_SECONDS = 5.0


class BotConfigError(ConfigError):
    """Raised when the discord_bot section is invalid."""


@dataclasses.dataclass(frozen=True)
class LogConfig:
    path: Path
    max_bytes: int
    backup_count: int


@dataclasses.dataclass(frozen=True)
class BotConfig:
    root: Path
    bot_token_env: str
    app_id_env: str
    bot_token: Optional[str] = dataclasses.field(repr=False)
    application_id: Optional[str]
    intents: int
    max_commands: int
    poll_interval_seconds: float
    request_timeout_seconds: float
    api_base_url: str
    gateway_fallback_url: str
    register_commands: bool

    @classmethod
    def from_raw(
        cls,
        *,
        root: Path,
        raw: Optional[dict[str, Any]],
        require_token: bool = False,
    ) -> "BotConfig":
        cfg: dict[str, Any] = raw if isinstance(raw, dict) else {}
        bot_token_env = str(cfg.get("bot_token_env", DEFAULT_BOT_TOKEN_ENV)).strip()
        app_id_env = str(cfg.get("app_id_env", DEFAULT_APP_ID_ENV)).strip()
        if not bot_token_env:
            raise BotConfigError("discord_bot.bot_token_env must be non-empty")
        if not app_id_env:
            raise BotConfigError("discord_bot.app_id_env must be non-empty")

        bot_token = (os.environ.get(bot_token_env) or "").strip() or None
        application_id = (os.environ.get(app_id_env) or "").strip() or None

        intents_value = cfg.get("intents", DEFAULT_INTENTS)
        if not isinstance(intents_value, int) or isinstance(intents_value, bool):
            raise BotConfigError("discord_bot.intents must be an integer")
        if intents_value < 0:
            raise BotConfigError("discord_bot.intents must be >= 0")

        max_commands = cfg.get("max_commands", DEFAULT_MAX_COMMANDS)
        if not isinstance(max_commands, int) or isinstance(max_commands, bool):
            raise BotConfigError("discord_bot.max_commands must be an integer")
        if not 1 <= max_commands <= MAX_COMMANDS_LIMIT:
            raise BotConfigError(
                f"discord_bot.max_commands must be between 1 and {MAX_COMMANDS_LIMIT}"
            )

        poll_interval_seconds = _parse_positive_float(
            cfg.get("poll_interval_seconds"),
            default=DEFAULT_POLL_INTERVAL_SECONDS,
            key="discord_bot.poll_interval_seconds",
        )
        if poll_interval_seconds > MAX_POLL_INTERVAL_SECONDS:
            raise BotConfigError(
                "discord_bot.poll_interval_seconds must be <= "
                f"{MAX_POLL_INTERVAL_SECONDS:g}"
            )
        request_timeout_seconds = _parse_positive_float(
            cfg.get("request_timeout_seconds"),
            default=DEFAULT_REQUEST_TIMEOUT_SECONDS,
            key="discord_bot.request_timeout_seconds",
        )

        api_base_url = _parse_url(
            cfg.get("api_base_url"),
            default=DISCORD_API_BASE_URL,
            key="discord_bot.api_base_url",
        )
        gateway_fallback_url = _parse_url(
            cfg.get("gateway_fallback_url"),
            default=DISCORD_GATEWAY_URL,
            key="discord_bot.gateway_fallback_url",
        )

        register_commands = cfg.get("register_commands", True)
        if not isinstance(register_commands, bool):
            raise BotConfigError("discord_bot.register_commands must be a boolean")

        if require_token and not bot_token:
            raise BotConfigError(f"Discord bot token env var {bot_token_env} is unset")

        return cls(
            root=root,
            bot_token_env=bot_token_env,
            app_id_env=app_id_env,
            bot_token=bot_token,
            application_id=application_id,
            intents=intents_value,
            max_commands=max_commands,
            poll_interval_seconds=poll_interval_seconds,
            request_timeout_seconds=request_timeout_seconds,
            api_base_url=api_base_url,
            gateway_fallback_url=gateway_fallback_url,
            register_commands=register_commands,
        )


@dataclasses.dataclass(frozen=True)
class SlashbotConfig:
    root: Path
    config_path: Path
    bot: BotConfig
    log: LogConfig


def _parse_positive_float(value: Any, *, default: float, key: str) -> float:
    if value is None:
        return default
    if isinstance(value, bool):
        raise BotConfigError(f"{key} must be a number")
    try:
        parsed = float(value)
    except (TypeError, ValueError) as exc:
        raise BotConfigError(f"{key} must be a number") from exc
    if parsed <= 0:
        raise BotConfigError(f"{key} must be > 0")
    return parsed


def _parse_url(value: Any, *, default: str, key: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str) or not value.strip():
        raise BotConfigError(f"{key} must be a non-empty string")
    return value.strip()


def _parse_log_config(root: Path, raw: Any) -> LogConfig:
    cfg: dict[str, Any] = raw if isinstance(raw, dict) else {}
    path_value = cfg.get("path", DEFAULT_LOG_PATH)
    if not isinstance(path_value, str) or not path_value.strip():
        raise ConfigError("log.path must be a string path")
    max_bytes = cfg.get("max_bytes", DEFAULT_LOG_MAX_BYTES)
    if not isinstance(max_bytes, int) or isinstance(max_bytes, bool) or max_bytes <= 0:
        raise ConfigError("log.max_bytes must be a positive integer")
    backup_count = cfg.get("backup_count", DEFAULT_LOG_BACKUP_COUNT)
    if (
        not isinstance(backup_count, int)
        or isinstance(backup_count, bool)
        or backup_count < 0
    ):
        raise ConfigError("log.backup_count must be a non-negative integer")
    path = Path(path_value)
    if not path.is_absolute():
        path = root / path
    return LogConfig(path=path, max_bytes=max_bytes, backup_count=backup_count)


def _load_yaml_dict(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a mapping: {path}")
    return data


def load_dotenv_for_root(root: Path) -> None:
    """
    Best-effort load of environment variables for the provided bot root.

    Files are read from fixed locations under the root rather than the
    process CWD; later files win.
    """
    try:
        root = root.resolve()
        candidates = [
            root / ".env",
            root / STATE_DIRNAME / ".env",
        ]
        for candidate in candidates:
            if candidate.exists():
                load_dotenv(dotenv_path=candidate, override=True)
    except OSError as exc:
        logger.debug("Failed to load .env file: %s", exc)


def load_bot_config(
    root: Path,
    config_path: Optional[Path] = None,
    *,
    require_token: bool = False,
) -> SlashbotConfig:
    root = root.resolve()
    load_dotenv_for_root(root)
    path = config_path if config_path is not None else root / CONFIG_FILENAME
    data = _load_yaml_dict(path)
    bot_raw = data.get("discord_bot")
    if bot_raw is not None and not isinstance(bot_raw, dict):
        raise BotConfigError(f"discord_bot must be a mapping in {path}")
    return SlashbotConfig(
        root=root,
        config_path=path,
        bot=BotConfig.from_raw(root=root, raw=bot_raw, require_token=require_token),
        log=_parse_log_config(root, data.get("log")),
    )
