from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from slashbot.discord.errors import (
    DiscordAPIError,
    DiscordPermanentError,
    DiscordTransientError,
)
from slashbot.discord.rest import DiscordRestClient


def _mock_client(
    handler: Callable[[httpx.Request], httpx.Response],
) -> DiscordRestClient:
    client = DiscordRestClient(
        bot_token="abc123", base_url="https://discord.test/api/v10"
    )
    client._client.close()
    client._client = httpx.Client(
        base_url="https://discord.test/api/v10",
        transport=httpx.MockTransport(handler),
        timeout=10.0,
    )
    return client


def test_rest_client_sets_authorization_header() -> None:
    observed: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        observed["authorization"] = request.headers.get("Authorization")
        observed["path"] = request.url.path
        return httpx.Response(200, json={"url": "wss://gateway.discord.gg"})

    with _mock_client(handler) as client:
        payload = client.get_gateway_bot()

    assert payload["url"] == "wss://gateway.discord.gg"
    assert observed["authorization"] == "Bot abc123"
    assert observed["path"] == "/api/v10/gateway/bot"


def test_rest_client_routes() -> None:
    observed: list[tuple[str, str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        observed.append((request.method, request.url.path, body))
        if request.url.path.endswith("/callback"):
            return httpx.Response(204)
        return httpx.Response(200, json={"id": "x"})

    with _mock_client(handler) as client:
        assert client.get_current_application() == {"id": "x"}
        client.create_application_command(
            application_id="app-1",
            command={"name": "ping", "description": "Ping", "type": 1},
        )
        client.create_channel_message(channel_id="c-9", payload={"content": "yo"})
        assert (
            client.create_interaction_response(
                interaction_id="I1",
                interaction_token="TK1",
                payload={"type": 4, "data": {"content": "Hi"}},
            )
            is None
        )

    assert observed == [
        ("GET", "/api/v10/applications/@me", None),
        (
            "POST",
            "/api/v10/applications/app-1/commands",
            {"name": "ping", "description": "Ping", "type": 1},
        ),
        ("POST", "/api/v10/channels/c-9/messages", {"content": "yo"}),
        (
            "POST",
            "/api/v10/interactions/I1/TK1/callback",
            {"type": 4, "data": {"content": "Hi"}},
        ),
    ]


def test_rate_limit_maps_to_transient_error_with_retry_after() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, headers={"Retry-After": "1.5"}, json={})

    with _mock_client(handler) as client:
        with pytest.raises(DiscordTransientError) as exc_info:
            client.get_gateway_bot()

    assert exc_info.value.status_code == 429
    assert exc_info.value.retry_after == 1.5
    assert exc_info.value.recoverable is True


@pytest.mark.parametrize(
    ("status_code", "error_type"),
    [
        (500, DiscordTransientError),
        (401, DiscordPermanentError),
        (403, DiscordPermanentError),
        (404, DiscordAPIError),
    ],
)
def test_status_codes_map_onto_error_hierarchy(
    status_code: int, error_type: type[DiscordAPIError]
) -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, text="nope")

    with _mock_client(handler) as client:
        with pytest.raises(error_type) as exc_info:
            client.get_current_application()

    assert exc_info.value.status_code == status_code


def test_network_error_is_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    with _mock_client(handler) as client:
        with pytest.raises(DiscordTransientError):
            client.get_gateway_bot()


def test_interaction_token_is_masked_in_error_messages() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"message": "bad"})

    with _mock_client(handler) as client:
        with pytest.raises(DiscordAPIError) as exc_info:
            client.create_interaction_response(
                interaction_id="I1",
                interaction_token="very-secret-token",
                payload={"type": 4, "data": {}},
            )

    assert "very-secret-token" not in str(exc_info.value)
    assert "/interactions/I1/***/callback" in str(exc_info.value)


def test_non_json_success_response_is_an_api_error() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>")

    with _mock_client(handler) as client:
        with pytest.raises(DiscordAPIError):
            client.get_gateway_bot()
