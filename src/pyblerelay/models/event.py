"""Synchronization event model."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from pyblerelay.ingestion.normalize import safe_float, safe_int, safe_str


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Event(BaseModel):
    """One location observation with device provenance.

    Events are immutable values: once built they are enqueued, sent and
    merged as-is. Field names follow Python conventions; the wire format
    (see :meth:`to_wire`) uses the ingestion server's short keys.

    Parameters
    ----------
    device_id : str
        Identity of the device this observation describes.
    timestamp : datetime
        Instant the reading was taken (UTC).
    latitude : float or None
        Latitude in degrees. ``None`` only for malformed relay data, which
        must never be merged into device state.
    longitude : float or None
        Longitude in degrees.
    signal_strength : int or None
        RSSI of the overheard advert; relayed events only.
    source_device_id : str or None
        Device that originated the reading, when different from the reporter.
    uploader_device_id : str or None
        Device that relayed the event; ``None`` for self-reports.
    relayed : bool
        ``True`` when observed from a third party and forwarded.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    device_id: str = Field(
        validation_alias=AliasChoices("deviceId", "device_id"),
        serialization_alias="deviceId",
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        validation_alias=AliasChoices("ts", "timestamp"),
        serialization_alias="ts",
    )
    latitude: float | None = Field(
        default=None,
        validation_alias=AliasChoices("lat", "latitude"),
        serialization_alias="lat",
    )
    longitude: float | None = Field(
        default=None,
        validation_alias=AliasChoices("lon", "lng", "longitude"),
        serialization_alias="lon",
    )
    signal_strength: int | None = Field(
        default=None,
        validation_alias=AliasChoices("rssi", "signalStrength", "signal_strength"),
        serialization_alias="rssi",
    )
    source_device_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("sourceDeviceId", "source_device_id"),
        serialization_alias="sourceDeviceId",
    )
    uploader_device_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("uploaderDeviceId", "uploader_device_id"),
        serialization_alias="uploaderDeviceId",
    )
    relayed: bool = False

    @field_validator("device_id", mode="before")
    @classmethod
    def _normalize_device_id(cls, value: Any) -> str:
        device_id = safe_str(value)
        if device_id is None:
            raise ValueError("device_id must be non-empty")
        return device_id

    @field_validator("timestamp")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _coerce_coordinates(cls, value: Any) -> float | None:
        return safe_float(value)

    @field_validator("signal_strength", mode="before")
    @classmethod
    def _coerce_signal_strength(cls, value: Any) -> int | None:
        return safe_int(value)

    @field_validator("source_device_id", "uploader_device_id", mode="before")
    @classmethod
    def _coerce_optional_ids(cls, value: Any) -> str | None:
        return safe_str(value)

    @model_validator(mode="after")
    def _check_self_report_fields(self) -> Event:
        if not self.relayed and (self.uploader_device_id is not None or self.signal_strength is not None):
            raise ValueError("self-reported events carry no uploader_device_id or signal_strength")
        return self

    @property
    def has_coordinates(self) -> bool:
        """Whether both coordinates are present."""
        return self.latitude is not None and self.longitude is not None

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict accepted by the ingestion endpoints."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_wire(cls, payload: Any) -> Event:
        """Validate a wire dict (pushed, stored or hand-built) into an event."""
        return cls.model_validate(payload)
