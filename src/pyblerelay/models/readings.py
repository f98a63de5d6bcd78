"""Sensor adapter reading models.

These are the typed samples the (external) geolocation and Bluetooth
adapters hand to the client. They are deliberately loose: beacon adverts
are third-party data and may lack usable coordinates.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from pyblerelay.ingestion.normalize import safe_float, safe_int, safe_str


class LocationSample(BaseModel):
    """A position fix of the local device."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    latitude: float = Field(validation_alias=AliasChoices("lat", "latitude"))
    longitude: float = Field(validation_alias=AliasChoices("lon", "lng", "longitude"))
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        validation_alias=AliasChoices("ts", "timestamp"),
    )


class BeaconRecord(BaseModel):
    """A location advert overheard from a nearby device.

    Numeric fields are ``None`` when the value is absent or unparseable
    from the advert payload.

    Parameters
    ----------
    origin_id : str or None
        Identity the advertising device claims for itself.
    latitude : float or None
        Advertised latitude in degrees.
    longitude : float or None
        Advertised longitude in degrees.
    timestamp : datetime or None
        Advertised reading time.
    signal_strength : int or None
        RSSI measured by the local scanner.
    raw : dict
        Original decoded advert payload.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    origin_id: str | None = Field(default=None, validation_alias=AliasChoices("originId", "origin_id", "id"))
    latitude: float | None = Field(default=None, validation_alias=AliasChoices("lat", "latitude"))
    longitude: float | None = Field(default=None, validation_alias=AliasChoices("lon", "lng", "longitude"))
    timestamp: datetime | None = Field(default=None, validation_alias=AliasChoices("ts", "timestamp"))
    signal_strength: int | None = Field(
        default=None,
        validation_alias=AliasChoices("rssi", "signalStrength", "signal_strength"),
    )
    raw: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _stash_raw(cls, values: Any) -> Any:
        if not isinstance(values, dict) or "raw" in values:
            return values
        merged = dict(values)
        merged["raw"] = dict(values)
        return merged

    @field_validator("origin_id", mode="before")
    @classmethod
    def _coerce_origin_id(cls, value: Any) -> str | None:
        return safe_str(value)

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _coerce_floats(cls, value: Any) -> float | None:
        return safe_float(value)

    @field_validator("signal_strength", mode="before")
    @classmethod
    def _coerce_signal_strength(cls, value: Any) -> int | None:
        return safe_int(value)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        return value

    @field_validator("timestamp")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None
