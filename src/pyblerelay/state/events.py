"""Producers that feed the state store."""

from __future__ import annotations

from enum import StrEnum


class EventSource(StrEnum):
    LOCAL = "local"
    RELAY = "relay"
    PUSH = "push"
