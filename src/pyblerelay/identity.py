"""Stable identity of the local device."""

from __future__ import annotations

import logging
import uuid

from pyblerelay._constants import DEVICE_ID_KEY, DEVICE_ID_PREFIX
from pyblerelay.exceptions import RelayStorageError
from pyblerelay.storage import Storage

_logger = logging.getLogger(__name__)


def generate_device_id(prefix: str = DEVICE_ID_PREFIX) -> str:
    """Return a new globally unique identity marked with *prefix*."""
    return f"{prefix}{uuid.uuid4().hex}"


class IdentityProvider:
    """Creates the device identity once and returns it unchanged afterwards.

    The identity is persisted in the storage key/value namespace, so it
    survives restarts. When storage is unavailable a fresh identity is
    produced on every call: the device then looks like a new one each
    session, which is an accepted degradation rather than an error.
    """

    def __init__(self, storage: Storage, *, prefix: str = DEVICE_ID_PREFIX) -> None:
        self._storage = storage
        self._prefix = prefix
        self._cached: str | None = None

    async def get_device_id(self) -> str:
        if self._cached is not None:
            return self._cached

        try:
            stored = await self._storage.get_value(DEVICE_ID_KEY)
        except RelayStorageError:
            _logger.warning("Device identity unreadable; using a per-session identity", exc_info=True)
            return generate_device_id(self._prefix)

        if stored:
            self._cached = stored
            return stored

        device_id = generate_device_id(self._prefix)
        try:
            await self._storage.set_value(DEVICE_ID_KEY, device_id)
        except RelayStorageError:
            _logger.warning("Device identity could not be persisted; using a per-session identity", exc_info=True)
            return device_id

        _logger.info("Created device identity %s", device_id)
        self._cached = device_id
        return device_id

    async def reset(self) -> None:
        """Forget the persisted identity; the next call creates a new one."""
        self._cached = None
        try:
            await self._storage.delete_value(DEVICE_ID_KEY)
        except RelayStorageError:
            _logger.warning("Device identity could not be cleared", exc_info=True)
