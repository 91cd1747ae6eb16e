"""Tracking events.

Every provider callback and coordinator command is converted into one of
these events. Only :func:`pymosque.state.tracking.apply_event` interprets them.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from pymosque.exceptions import ErrorKind
from pymosque.models.fix import PositionFix


class TrackingEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class StartRequested(TrackingEvent):
    enabled_providers: frozenset[str] = frozenset()


class TrackingEstablished(TrackingEvent):
    """All subscriptions were attempted and at least one succeeded."""


class StopRequested(TrackingEvent):
    pass


class FixReceived(TrackingEvent):
    fix: PositionFix


class ProviderEnabled(TrackingEvent):
    provider: str


class ProviderDisabled(TrackingEvent):
    provider: str


class ProviderFailed(TrackingEvent):
    provider: str
    error: ErrorKind
