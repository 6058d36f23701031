from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from ..core.logging_utils import log_event
from .constants import DEFAULT_POLL_INTERVAL_SECONDS
from .dispatcher import GatewayDispatcher
from .errors import GatewayConnectionClosed
from .gateway import GatewayAddress
from .transport import GatewayTransport, WebSocketTransport

DRIVER_THREAD_NAME = "slashbot-gateway"


class GatewayDriver:
    """Runs one gateway connection on a dedicated thread.

    The loop resolves the gateway address, opens the transport, then
    alternates a bounded ``recv`` with a writable tick until the stop flag is
    set or the connection drops. There is no reconnect: after the loop exits
    the host has to ``stop`` and ``start`` again.
    """

    def __init__(
        self,
        *,
        dispatcher: GatewayDispatcher,
        resolve_address: Callable[[], GatewayAddress],
        transport_factory: Callable[[], GatewayTransport] = WebSocketTransport,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be positive")
        self._dispatcher = dispatcher
        self._resolve_address = resolve_address
        self._transport_factory = transport_factory
        self._poll_interval_seconds = poll_interval_seconds
        self._logger = logger or logging.getLogger(__name__)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._thread_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def start(self) -> bool:
        with self._thread_lock:
            if self._thread is not None and self._thread.is_alive():
                return False
            self._stop_event.clear()
            thread = threading.Thread(
                target=self.run, name=DRIVER_THREAD_NAME, daemon=True
            )
            self._thread = thread
        thread.start()
        return True

    def stop(self, timeout: Optional[float] = None) -> None:
        """Request the loop to stop and wait for the driver thread to exit.

        Safe to call repeatedly and from the driver thread itself (a handler
        calling ``stop`` only sets the flag).
        """
        self._stop_event.set()
        with self._thread_lock:
            thread = self._thread
        if thread is None or thread is threading.current_thread():
            return
        thread.join(timeout)
        if not thread.is_alive():
            with self._thread_lock:
                if self._thread is thread:
                    self._thread = None

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the driver thread exits; True when it has."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def run(self) -> None:
        if self._stop_event.is_set():
            return
        transport: Optional[GatewayTransport] = None
        connected = False
        try:
            address = self._resolve_address()
            transport = self._transport_factory()
            transport.connect(address)
            connected = True
            log_event(
                self._logger,
                logging.INFO,
                "discord.gateway.open",
                host=address.host,
                port=address.port,
            )
            self._dispatcher.connection_established(transport.send)
            while not self._stop_event.is_set():
                raw = transport.recv(self._poll_interval_seconds)
                if raw is not None:
                    self._dispatcher.handle_frame(raw)
                if self._stop_event.is_set():
                    break
                self._dispatcher.on_writable()
        except GatewayConnectionClosed as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "discord.gateway.closed",
                close_code=exc.code,
                connected=connected,
                exc=exc,
            )
        except Exception as exc:
            log_event(
                self._logger,
                logging.ERROR,
                "discord.gateway.driver_failed",
                exc=exc,
            )
        finally:
            if transport is not None:
                transport.close()
            self._dispatcher.connection_closed()
            log_event(
                self._logger,
                logging.INFO,
                "discord.gateway.driver_stopped",
                stop_requested=self._stop_event.is_set(),
            )
