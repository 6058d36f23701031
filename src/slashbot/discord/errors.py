from __future__ import annotations

from typing import Optional

from ..core.exceptions import PermanentError, SlashbotError, TransientError


class DiscordError(SlashbotError):
    """Base Discord client error."""


class DiscordAPIError(DiscordError):
    """Discord API request error."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
        user_message: Optional[str] = None,
    ) -> None:
        if user_message is None:
            user_message = "Discord API error."
        super().__init__(message, user_message=user_message)
        self.status_code = status_code
        self.retry_after = retry_after


class DiscordTransientError(DiscordAPIError, TransientError):
    """Retryable Discord API error (rate limits, server or network issues)."""

    recoverable = TransientError.recoverable
    severity = TransientError.severity


class DiscordPermanentError(DiscordAPIError, PermanentError):
    """Non-retryable Discord API error (bad credentials, missing access)."""

    recoverable = PermanentError.recoverable
    severity = PermanentError.severity


class GatewayConnectionClosed(DiscordError):
    """The gateway socket closed or failed underneath the session driver."""

    def __init__(self, message: str, *, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.code = code


class GatewayFrameError(DiscordError):
    """An inbound gateway frame could not be decoded."""
