from __future__ import annotations

import contextlib
from typing import Any, Optional, Protocol

from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.sync.client import connect

from .errors import GatewayConnectionClosed
from .gateway import GatewayAddress

DEFAULT_OPEN_TIMEOUT_SECONDS = 10.0
# Discord READY/GUILD_CREATE payloads can be large.
DEFAULT_MAX_FRAME_BYTES = 8 * 1024 * 1024


class GatewayTransport(Protocol):
    """Text-frame capability the session driver runs on.

    ``recv`` waits at most ``timeout`` seconds and returns ``None`` when no
    frame arrived. Failures of an open connection surface as
    ``GatewayConnectionClosed``.
    """

    def connect(self, address: GatewayAddress) -> None: ...

    def send(self, text: str) -> None: ...

    def recv(self, timeout: float) -> Optional[str]: ...

    def close(self) -> None: ...


def gateway_close_code(exc: BaseException) -> int | None:
    received = getattr(exc, "rcvd", None)
    received_code = getattr(received, "code", None)
    if isinstance(received_code, int):
        return received_code
    code = getattr(exc, "code", None)
    if isinstance(code, int):
        return code
    return None


class WebSocketTransport:
    def __init__(
        self,
        *,
        open_timeout: float = DEFAULT_OPEN_TIMEOUT_SECONDS,
        max_size: int = DEFAULT_MAX_FRAME_BYTES,
    ) -> None:
        self._open_timeout = open_timeout
        self._max_size = max_size
        self._connection: Any = None

    def connect(self, address: GatewayAddress) -> None:
        try:
            self._connection = connect(
                address.url,
                open_timeout=self._open_timeout,
                max_size=self._max_size,
            )
        except (OSError, TimeoutError, WebSocketException) as exc:
            raise GatewayConnectionClosed(
                "Discord gateway connection to "
                f"{address.host}:{address.port} failed: {exc}"
            ) from exc

    def _require_connection(self) -> Any:
        if self._connection is None:
            raise GatewayConnectionClosed("Discord gateway transport is not connected")
        return self._connection

    def send(self, text: str) -> None:
        connection = self._require_connection()
        try:
            connection.send(text)
        except ConnectionClosed as exc:
            raise GatewayConnectionClosed(
                f"Discord gateway closed while sending: {exc}",
                code=gateway_close_code(exc),
            ) from exc

    def recv(self, timeout: float) -> Optional[str]:
        connection = self._require_connection()
        try:
            message = connection.recv(timeout=timeout)
        except TimeoutError:
            return None
        except ConnectionClosed as exc:
            raise GatewayConnectionClosed(
                f"Discord gateway closed: {exc}", code=gateway_close_code(exc)
            ) from exc
        if isinstance(message, bytes):
            return message.decode("utf-8", errors="replace")
        return message

    def close(self) -> None:
        connection = self._connection
        self._connection = None
        if connection is not None:
            with contextlib.suppress(Exception):
                connection.close()
