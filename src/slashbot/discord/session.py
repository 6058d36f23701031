from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from ..core.logging_utils import log_event
from .command_sync import sync_commands
from .commands import CommandHandler, CommandRegistry
from .constants import (
    DEFAULT_INTENTS,
    DEFAULT_MAX_COMMANDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DISCORD_API_BASE_URL,
    DISCORD_GATEWAY_URL,
)
from .dispatcher import GatewayDispatcher
from .driver import GatewayDriver
from .errors import DiscordAPIError
from .gateway import GatewayAddress, GatewayHandshake, resolve_gateway_address
from .heartbeat import HeartbeatMonitor
from .messages import Message, coerce_reply
from .rest import DiscordRestClient
from .transport import GatewayTransport, WebSocketTransport

if TYPE_CHECKING:
    from ..config import BotConfig


class BotSession:
    """One bot: credentials, command table, liveness state and gateway driver.

    Register commands before ``start``. ``close`` stops the driver, releases
    the REST client it owns and forgets the credential; it is safe to call
    more than once. Using a session after ``close`` is not supported.
    """

    def __init__(
        self,
        *,
        bot_token: str,
        rest: DiscordRestClient,
        application_id: Optional[str] = None,
        intents: int = DEFAULT_INTENTS,
        max_commands: int = DEFAULT_MAX_COMMANDS,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        gateway_fallback_url: str = DISCORD_GATEWAY_URL,
        transport_factory: Callable[[], GatewayTransport] = WebSocketTransport,
        clock: Callable[[], float] = time.monotonic,
        owns_rest: bool = True,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if not bot_token:
            raise ValueError("bot_token is required")
        self._logger = logger or logging.getLogger(__name__)
        self._rest = rest
        self._owns_rest = owns_rest
        self._application_id = application_id
        self._gateway_fallback_url = gateway_fallback_url
        self._gateway_address: Optional[GatewayAddress] = None
        self._closed = False

        self._heartbeat = HeartbeatMonitor(clock=clock, logger=self._logger)
        self._registry = CommandRegistry(capacity=max_commands, logger=self._logger)
        self._handshake = GatewayHandshake(
            bot_token=bot_token,
            intents=intents,
            heartbeat=self._heartbeat,
            logger=self._logger,
        )
        self._dispatcher = GatewayDispatcher(
            handshake=self._handshake,
            heartbeat=self._heartbeat,
            registry=self._registry,
            responder=rest,
            logger=self._logger,
        )
        self._driver = GatewayDriver(
            dispatcher=self._dispatcher,
            resolve_address=self.resolve_gateway_address,
            transport_factory=transport_factory,
            poll_interval_seconds=poll_interval_seconds,
            logger=self._logger,
        )

    @classmethod
    def from_config(
        cls,
        config: "BotConfig",
        **kwargs: Any,
    ) -> "BotSession":
        if not config.bot_token:
            raise ValueError(
                f"Discord bot token env var {config.bot_token_env} is unset"
            )
        return create_bot_session(
            config.bot_token,
            application_id=config.application_id,
            intents=config.intents,
            max_commands=config.max_commands,
            poll_interval_seconds=config.poll_interval_seconds,
            request_timeout_seconds=config.request_timeout_seconds,
            api_base_url=config.api_base_url,
            gateway_fallback_url=config.gateway_fallback_url,
            **kwargs,
        )

    def __enter__(self) -> "BotSession":
        return self

    def __exit__(self, *_exc_info: object) -> None:
        self.close()

    @property
    def application_id(self) -> Optional[str]:
        return self._application_id

    @property
    def gateway_address(self) -> Optional[GatewayAddress]:
        return self._gateway_address

    @property
    def gateway_url(self) -> Optional[str]:
        address = self._gateway_address
        return address.url if address is not None else None

    @property
    def commands(self) -> CommandRegistry:
        return self._registry

    @property
    def heartbeat(self) -> HeartbeatMonitor:
        return self._heartbeat

    @property
    def dispatcher(self) -> GatewayDispatcher:
        return self._dispatcher

    @property
    def is_running(self) -> bool:
        return self._driver.is_running

    @property
    def closed(self) -> bool:
        return self._closed

    def discover_application_id(self) -> Optional[str]:
        """Look up the application id once; failure leaves it unset."""
        if self._application_id:
            return self._application_id
        try:
            payload = self._rest.get_current_application()
        except DiscordAPIError as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "discord.application.lookup_failed",
                exc=exc,
            )
            return None
        application_id = payload.get("id")
        if isinstance(application_id, (str, int)) and str(application_id).strip():
            self._application_id = str(application_id).strip()
            log_event(
                self._logger,
                logging.INFO,
                "discord.application.resolved",
                application_id=self._application_id,
            )
        else:
            log_event(self._logger, logging.WARNING, "discord.application.missing_id")
        return self._application_id

    def resolve_gateway_address(self) -> GatewayAddress:
        url: Optional[str] = None
        try:
            payload = self._rest.get_gateway_bot()
        except DiscordAPIError as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "discord.gateway.url_lookup_failed",
                fallback_url=self._gateway_fallback_url,
                exc=exc,
            )
        else:
            raw_url = payload.get("url")
            url = raw_url if isinstance(raw_url, str) else None
        address = resolve_gateway_address(url, fallback_url=self._gateway_fallback_url)
        self._gateway_address = address
        return address

    def register(
        self,
        name: Optional[str],
        description: Optional[str],
        handler: Optional[CommandHandler],
    ) -> bool:
        if self._closed:
            return False
        if self._driver.is_running:
            log_event(
                self._logger,
                logging.WARNING,
                "discord.commands.register.while_running",
                name=name,
            )
            return False
        return self._registry.register(name, description, handler)

    def register_remote(self) -> bool:
        """Create every registered command on Discord; True when all succeeded."""
        if self._closed:
            return False
        if not self._application_id:
            log_event(
                self._logger,
                logging.WARNING,
                "discord.commands.sync.skipped",
                reason="missing_application_id",
            )
            return False
        failed = sync_commands(
            self._rest,
            application_id=self._application_id,
            commands=self._registry,
            logger=self._logger,
        )
        return not failed

    def start(self) -> bool:
        if self._closed:
            return False
        return self._driver.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._driver.stop(timeout)

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._driver.wait(timeout)

    def get_latency(self) -> Optional[int]:
        return self._heartbeat.latency_ms()

    def send_message(self, channel_id: str, message: Union[Message, str]) -> bool:
        if self._closed:
            return False
        reply = coerce_reply(message)
        if not channel_id or reply is None:
            log_event(
                self._logger,
                logging.WARNING,
                "discord.message.invalid",
                channel_id=channel_id,
                has_body=reply is not None,
            )
            return False
        try:
            self._rest.create_channel_message(
                channel_id=str(channel_id),
                payload=reply.to_payload(include_flags=False),
            )
        except DiscordAPIError as exc:
            log_event(
                self._logger,
                logging.ERROR,
                "discord.message.send_failed",
                channel_id=channel_id,
                exc=exc,
            )
            return False
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._driver.stop()
        if self._owns_rest:
            self._rest.close()
        self._registry.clear()
        self._heartbeat.reset()
        self._handshake.forget_credentials()
        self._application_id = None
        self._gateway_address = None
        log_event(self._logger, logging.INFO, "discord.session.closed")


def create_bot_session(
    bot_token: str,
    *,
    application_id: Optional[str] = None,
    rest: Optional[DiscordRestClient] = None,
    intents: int = DEFAULT_INTENTS,
    max_commands: int = DEFAULT_MAX_COMMANDS,
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
    api_base_url: str = DISCORD_API_BASE_URL,
    gateway_fallback_url: str = DISCORD_GATEWAY_URL,
    transport_factory: Callable[[], GatewayTransport] = WebSocketTransport,
    clock: Callable[[], float] = time.monotonic,
    discover: bool = True,
    logger: Optional[logging.Logger] = None,
) -> BotSession:
    """Build a session and best-effort resolve its application id.

    A passed-in ``rest`` client stays owned by the caller.
    """
    if not bot_token:
        raise ValueError("bot_token is required")
    owns_rest = rest is None
    if rest is None:
        rest = DiscordRestClient(
            bot_token=bot_token,
            timeout_seconds=request_timeout_seconds,
            base_url=api_base_url,
        )
    session = BotSession(
        bot_token=bot_token,
        rest=rest,
        application_id=application_id,
        intents=intents,
        max_commands=max_commands,
        poll_interval_seconds=poll_interval_seconds,
        gateway_fallback_url=gateway_fallback_url,
        transport_factory=transport_factory,
        clock=clock,
        owns_rest=owns_rest,
        logger=logger,
    )
    if discover and not application_id:
        session.discover_application_id()
    return session
