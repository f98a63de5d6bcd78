"""Client configuration for pyblerelay."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pyblerelay._constants import (
    BASE_URL,
    DEVICE_ID_PREFIX,
    EVENTS_BATCH_ENDPOINT,
    EVENTS_ENDPOINT,
    SOCKETIO_PATH,
)
from pyblerelay.exceptions import RelayConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class RelayConfig:
    """Client configuration.

    Parameters
    ----------
    base_url : str
        Ingestion server base URL.
    events_endpoint : str
        Path accepting one JSON-encoded event per request.
    batch_endpoint : str
        Path accepting a JSON array of events in one request.
    request_timeout : float
        Total seconds allowed for a single HTTP request.
    storage_path : str
        SQLite file holding the device identity and the pending-event
        queue. ``":memory:"`` keeps everything in process (no durability).
    device_id_prefix : str
        Provenance namespace prepended to generated device identities.
    flush_interval : float
        Seconds between periodic queue flushes while sync is enabled.
    realtime_enabled : bool
        Connect to the Socket.IO push channel when sync is enabled.
    realtime_url : str or None
        Socket.IO server URL; ``None`` means the ingestion ``base_url``.
    realtime_path : str
        Socket.IO endpoint path on that server.
    realtime_connect_timeout : float
        Seconds to wait for the Socket.IO handshake.
    reconnect_min_delay : float
        Initial delay (seconds) before a lost connection is retried.
    reconnect_max_delay : float
        Upper bound (seconds) of the reconnect backoff.
    """

    base_url: str = BASE_URL
    events_endpoint: str = EVENTS_ENDPOINT
    batch_endpoint: str = EVENTS_BATCH_ENDPOINT
    request_timeout: float = 10.0
    storage_path: str = "pyblerelay.sqlite3"
    device_id_prefix: str = DEVICE_ID_PREFIX
    flush_interval: float = 30.0
    realtime_enabled: bool = True
    realtime_url: str | None = None
    realtime_path: str = SOCKETIO_PATH
    realtime_connect_timeout: float = 10.0
    reconnect_min_delay: float = 1.0
    reconnect_max_delay: float = 60.0

    def __post_init__(self) -> None:
        if self.request_timeout <= 0:
            raise RelayConfigError(f"request_timeout must be positive, got {self.request_timeout}")
        if self.flush_interval <= 0:
            raise RelayConfigError(f"flush_interval must be positive, got {self.flush_interval}")
        if self.realtime_connect_timeout <= 0:
            raise RelayConfigError(
                f"realtime_connect_timeout must be positive, got {self.realtime_connect_timeout}"
            )
        if self.reconnect_min_delay <= 0 or self.reconnect_max_delay < self.reconnect_min_delay:
            raise RelayConfigError(
                "reconnect delays must satisfy 0 < reconnect_min_delay <= reconnect_max_delay, "
                f"got {self.reconnect_min_delay}..{self.reconnect_max_delay}"
            )

    @property
    def events_url(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.events_endpoint}"

    @property
    def batch_url(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.batch_endpoint}"

    @property
    def push_url(self) -> str:
        return self.realtime_url or self.base_url

    @classmethod
    def from_env(cls, **overrides: Any) -> RelayConfig:
        """Create configuration from environment variables.

        Reads optional ``RELAY_*`` variables. Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        RelayConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "RELAY_BASE_URL": "base_url",
            "RELAY_EVENTS_ENDPOINT": "events_endpoint",
            "RELAY_BATCH_ENDPOINT": "batch_endpoint",
            "RELAY_STORAGE_PATH": "storage_path",
            "RELAY_DEVICE_ID_PREFIX": "device_id_prefix",
            "RELAY_REALTIME_URL": "realtime_url",
            "RELAY_REALTIME_PATH": "realtime_path",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_FLOAT_MAP = {
            "RELAY_REQUEST_TIMEOUT": "request_timeout",
            "RELAY_FLUSH_INTERVAL": "flush_interval",
            "RELAY_REALTIME_CONNECT_TIMEOUT": "realtime_connect_timeout",
            "RELAY_RECONNECT_MIN_DELAY": "reconnect_min_delay",
            "RELAY_RECONNECT_MAX_DELAY": "reconnect_max_delay",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = float(val)

        if "realtime_enabled" not in overrides:
            config_kwargs["realtime_enabled"] = _env_bool(env.get("RELAY_REALTIME_ENABLED"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
