"""Custom exception hierarchy for pyblerelay."""

from __future__ import annotations


class RelayError(Exception):
    """Base exception for all pyblerelay errors."""


class RelayConfigError(RelayError):
    """Invalid or missing configuration."""


class RelayTransportError(RelayError):
    """HTTP-level failure (network, timeout, non-2xx)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class RelayStorageError(RelayError):
    """Persisted storage could not be read or written."""


class RelayChannelError(RelayError):
    """Realtime push channel could not be established."""
