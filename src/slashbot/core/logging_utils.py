from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..config import LogConfig

REDACTED = "***"
_SENSITIVE_MARKERS = ("token", "secret", "authorization", "password")
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in _SENSITIVE_MARKERS)


def _render_value(value: Any) -> Any:
    if isinstance(value, BaseException):
        text = str(value)
        return f"{type(value).__name__}: {text}" if text else type(value).__name__
    if isinstance(value, Path):
        return str(value)
    return value


def format_event(event: str, **fields: Any) -> str:
    """Render an event name and its fields as a single log line."""
    if not fields:
        return event
    rendered = {
        key: REDACTED if _is_sensitive(key) else _render_value(value)
        for key, value in fields.items()
    }
    return f"{event} {json.dumps(rendered, sort_keys=True, default=str)}"


def log_event(
    logger: logging.Logger, level: int, event: str, **fields: Any
) -> None:
    if not logger.isEnabledFor(level):
        return
    logger.log(level, format_event(event, **fields))


def setup_rotating_logger(name: str, log_config: "LogConfig") -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    log_path = Path(log_config.path).resolve()
    for handler in logger.handlers:
        if (
            isinstance(handler, RotatingFileHandler)
            and Path(handler.baseFilename).resolve() == log_path
        ):
            return logger
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_path,
        maxBytes=log_config.max_bytes,
        backupCount=log_config.backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    logger.addHandler(handler)
    return logger
