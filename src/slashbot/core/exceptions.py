from __future__ import annotations

from typing import Optional


class SlashbotError(Exception):
    """Base error for everything raised by slashbot."""

    recoverable = False
    severity = "error"

    def __init__(self, message: str, *, user_message: Optional[str] = None) -> None:
        super().__init__(message)
        self.user_message = user_message


class TransientError(SlashbotError):
    """Failure that may succeed if the same operation is attempted again."""

    recoverable = True
    severity = "warning"


class PermanentError(SlashbotError):
    """Failure that will not go away without operator action."""

    recoverable = False
    severity = "error"


class ConfigError(PermanentError):
    """Invalid or missing configuration."""
