from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from .constants import DISCORD_API_BASE_URL, DEFAULT_REQUEST_TIMEOUT_SECONDS
from .errors import DiscordAPIError, DiscordPermanentError, DiscordTransientError

logger = logging.getLogger(__name__)


def _parse_retry_after(response: httpx.Response) -> Optional[float]:
    raw = response.headers.get("Retry-After")
    if raw is None:
        return None
    try:
        return max(float(raw), 0.0)
    except ValueError:
        return None


def _display_path(path: str) -> str:
    # Interaction tokens authorize replies; keep them out of error messages.
    parts = path.split("/")
    if len(parts) > 3 and parts[1] == "interactions":
        parts[3] = "***"
    return "/".join(parts)


class DiscordRestClient:
    """Blocking Discord REST client.

    Every call carries the bot credential. Non-2xx responses are mapped onto
    the Discord error hierarchy; nothing is retried here, callers decide how
    to degrade.
    """

    def __init__(
        self,
        *,
        bot_token: str,
        timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        base_url: str = DISCORD_API_BASE_URL,
    ) -> None:
        self._client = httpx.Client(base_url=base_url, timeout=timeout_seconds)
        self._authorization_header = f"Bot {bot_token}"

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "DiscordRestClient":
        return self

    def __exit__(self, *_exc_info: object) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        payload: dict[str, Any] | list[dict[str, Any]] | None = None,
        expect_json: bool = True,
    ) -> Any:
        try:
            response = self._client.request(
                method,
                path,
                json=payload,
                headers={"Authorization": self._authorization_header},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            path = _display_path(path)
            status_code = exc.response.status_code
            body_preview = (exc.response.text or "").strip().replace("\n", " ")[:200]
            if status_code == 429:
                raise DiscordTransientError(
                    f"Discord API rate limit exceeded for {method} {path}",
                    status_code=status_code,
                    retry_after=_parse_retry_after(exc.response),
                ) from exc
            if 500 <= status_code < 600:
                raise DiscordTransientError(
                    f"Discord API server error for {method} {path}: "
                    f"status={status_code} body={body_preview!r}",
                    status_code=status_code,
                ) from exc
            if status_code in {401, 403}:
                raise DiscordPermanentError(
                    f"Discord API authentication failure for {method} {path}: "
                    f"status={status_code} body={body_preview!r}",
                    status_code=status_code,
                ) from exc
            raise DiscordAPIError(
                f"Discord API request failed for {method} {path}: "
                f"status={status_code} body={body_preview!r}",
                status_code=status_code,
            ) from exc
        except httpx.HTTPError as exc:
            path = _display_path(path)
            logger.debug(
                "Discord network error on %s %s: %s", method, path, type(exc).__name__
            )
            raise DiscordTransientError(
                f"Discord API network error for {method} {path}: {exc}"
            ) from exc

        if not expect_json:
            return None
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise DiscordAPIError(
                "Discord API returned non-JSON success response for "
                f"{method} {_display_path(path)}",
                status_code=response.status_code,
            ) from exc

    def get_current_application(self) -> dict[str, Any]:
        payload = self._request("GET", "/applications/@me")
        return payload if isinstance(payload, dict) else {}

    def get_gateway_bot(self) -> dict[str, Any]:
        payload = self._request("GET", "/gateway/bot")
        return payload if isinstance(payload, dict) else {}

    def create_application_command(
        self,
        *,
        application_id: str,
        command: dict[str, Any],
    ) -> dict[str, Any]:
        response = self._request(
            "POST",
            f"/applications/{application_id}/commands",
            payload=command,
        )
        return response if isinstance(response, dict) else {}

    def create_channel_message(
        self,
        *,
        channel_id: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        response = self._request(
            "POST",
            f"/channels/{channel_id}/messages",
            payload=payload,
        )
        return response if isinstance(response, dict) else {}

    def create_interaction_response(
        self,
        *,
        interaction_id: str,
        interaction_token: str,
        payload: dict[str, Any],
    ) -> None:
        self._request(
            "POST",
            f"/interactions/{interaction_id}/{interaction_token}/callback",
            payload=payload,
            expect_json=False,
        )
