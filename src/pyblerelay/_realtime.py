"""Internal Socket.IO push-channel runtime."""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import socketio
from socketio import exceptions as socketio_exceptions

from pyblerelay._constants import SOCKETIO_PATH
from pyblerelay.config import RelayConfig
from pyblerelay.exceptions import RelayChannelError


class ChannelState(enum.StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True)
class ChannelSettings:
    """Server/session data required to connect to the push channel."""

    url: str
    device_id: str
    path: str = SOCKETIO_PATH
    connect_timeout: float = 10.0
    reconnect_min_delay: float = 1.0
    reconnect_max_delay: float = 60.0

    @classmethod
    def from_config(cls, config: RelayConfig, device_id: str) -> ChannelSettings:
        return cls(
            url=config.push_url,
            device_id=device_id,
            path=config.realtime_path,
            connect_timeout=config.realtime_connect_timeout,
            reconnect_min_delay=config.reconnect_min_delay,
            reconnect_max_delay=config.reconnect_max_delay,
        )

    @property
    def auth(self) -> dict[str, str]:
        """Handshake payload identifying this device to the server."""
        return {"deviceId": self.device_id}


@dataclass(frozen=True)
class PushMessage:
    """One server-emitted Socket.IO event."""

    label: str
    payload: Any


class PushRuntime:
    """Socket.IO client runtime that reports state and messages on the event loop.

    ``socketio.AsyncClient`` owns reconnection: after a lost connection it
    retries with a backoff between ``reconnect_min_delay`` and
    ``reconnect_max_delay`` seconds until :meth:`stop` is called. A failed
    first connect is reported to the caller instead.
    """

    def __init__(
        self,
        *,
        on_message: Callable[[PushMessage], None],
        on_state: Callable[[ChannelState], None],
        logger: logging.Logger | None = None,
        client_factory: Callable[..., socketio.AsyncClient] | None = None,
    ) -> None:
        self._on_message = on_message
        self._on_state = on_state
        self._logger = logger or logging.getLogger(__name__)
        self._client_factory = client_factory or socketio.AsyncClient
        self._client: socketio.AsyncClient | None = None
        self._running = False
        self._url: str | None = None

    @property
    def is_running(self) -> bool:
        """Whether a connection is up or being retried."""
        return self._running

    def _build_client(self, settings: ChannelSettings) -> socketio.AsyncClient:
        client = self._client_factory(
            reconnection=True,
            reconnection_attempts=0,
            reconnection_delay=settings.reconnect_min_delay,
            reconnection_delay_max=settings.reconnect_max_delay,
            logger=self._logger,
        )
        client.on("connect", self._handle_connect)
        client.on("disconnect", self._handle_disconnect)
        client.on("*", self._handle_message)
        return client

    async def start(self, settings: ChannelSettings) -> None:
        """Connect and wait for the Socket.IO handshake."""
        await self.stop()
        self._logger.debug(
            "Push runtime start requested url=%s path=%s device=%s",
            settings.url,
            settings.path,
            settings.device_id,
        )

        client = self._build_client(settings)
        self._client = client
        self._url = settings.url
        self._running = True
        self._on_state(ChannelState.CONNECTING)

        try:
            await client.connect(
                settings.url,
                auth=settings.auth,
                transports=["websocket"],
                socketio_path=settings.path,
                wait_timeout=settings.connect_timeout,
            )
        except (socketio_exceptions.ConnectionError, ValueError, OSError) as exc:
            self._client = None
            self._running = False
            raise RelayChannelError(f"Push channel connect to {settings.url} failed: {exc}") from exc

    async def stop(self) -> None:
        """Disconnect the current client if any."""
        client = self._client
        self._client = None
        self._running = False

        if client is None:
            return
        try:
            self._logger.debug("Push channel disconnect requested")
            await client.disconnect()
        finally:
            self._on_state(ChannelState.DISCONNECTED)

    def _handle_connect(self) -> None:
        self._logger.info("Push channel connected url=%s", self._url)
        self._on_state(ChannelState.CONNECTED)

    def _handle_disconnect(self, *reason: Any) -> None:
        if self._running:
            self._logger.info("Push channel disconnected (%s); retrying", reason[0] if reason else "unknown")
            self._on_state(ChannelState.CONNECTING)

    def _handle_message(self, label: str, *args: Any) -> None:
        self._logger.debug("Received push message label=%s", label)
        self._on_message(PushMessage(label=label, payload=args[0] if args else None))
