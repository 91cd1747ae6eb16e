"""Position fix model."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from pymosque._normalize import coerce_datetime, safe_float


class ProviderKind(StrEnum):
    """Physical source of a fix."""

    SATELLITE = "satellite"
    NETWORK = "network"


class PositionFix(BaseModel):
    """One reported position sample.

    Parameters
    ----------
    latitude : float
        Latitude in degrees.
    longitude : float
        Longitude in degrees.
    source : str
        Name of the provider that produced the fix.
    source_kind : ProviderKind
        Kind of that provider.
    timestamp : datetime
        UTC time the fix was taken. Epoch seconds or milliseconds are
        accepted on input.
    accuracy : float or None
        Horizontal accuracy radius in metres, smaller is better.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    latitude: float = Field(..., ge=-90.0, le=90.0, validation_alias=AliasChoices("latitude", "lat"))
    longitude: float = Field(..., ge=-180.0, le=180.0, validation_alias=AliasChoices("longitude", "lon", "lng"))
    source: str
    source_kind: ProviderKind = ProviderKind.SATELLITE
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        validation_alias=AliasChoices("timestamp", "tst", "time"),
    )
    accuracy: float | None = Field(default=None, ge=0.0, validation_alias=AliasChoices("accuracy", "acc"))

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Any:
        return coerce_datetime(value)

    @field_validator("timestamp", mode="after")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        # ISO strings without an offset parse to naive datetimes.
        return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)

    @field_validator("accuracy", mode="before")
    @classmethod
    def _coerce_accuracy(cls, value: Any) -> float | None:
        return safe_float(value)

    def is_better_than(self, other: PositionFix | None) -> bool:
        """Whether this fix orders after *other*.

        Newer timestamps win. On equal timestamps the smaller accuracy wins
        when both fixes carry one.
        """
        if other is None:
            return True
        if self.timestamp != other.timestamp:
            return self.timestamp > other.timestamp
        if self.accuracy is not None and other.accuracy is not None:
            return self.accuracy < other.accuracy
        return False

    def millis_since(self, other: PositionFix) -> float:
        return (self.timestamp - other.timestamp).total_seconds() * 1000.0


def fix_sort_key(fix: PositionFix) -> tuple[datetime, float]:
    """Sort key that puts the best fix last."""
    accuracy = fix.accuracy if fix.accuracy is not None else float("inf")
    return fix.timestamp, -accuracy
