"""Tracking state and its pure transition function.

``apply_event(state, event)`` is the only way a :class:`TrackingState`
changes. Given the same event sequence it yields the same states and the same
accepted fixes, independent of any provider or rendering concern.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from pymosque.exceptions import ErrorKind
from pymosque.models.fix import PositionFix
from pymosque.state.events import (
    FixReceived,
    ProviderDisabled,
    ProviderEnabled,
    ProviderFailed,
    StartRequested,
    StopRequested,
    TrackingEstablished,
    TrackingEvent,
)
from pymosque.state.policy import should_accept_fix

_logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE = timedelta(milliseconds=1000)


class TrackingPhase(StrEnum):
    STOPPED = "stopped"
    STARTING = "starting"
    TRACKING = "tracking"


class TrackingState(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    phase: TrackingPhase = TrackingPhase.STOPPED
    enabled_providers: frozenset[str] = frozenset()
    last_fix: PositionFix | None = None
    last_error: ErrorKind | None = None

    @property
    def enabled(self) -> bool:
        return self.phase != TrackingPhase.STOPPED


class Transition(BaseModel):
    """Result of applying one event."""

    model_config = ConfigDict(frozen=True)

    state: TrackingState
    accepted_fix: PositionFix | None = None
    error: ErrorKind | None = None


def apply_event(
    state: TrackingState,
    event: TrackingEvent,
    *,
    debounce: timedelta = DEFAULT_DEBOUNCE,
) -> Transition:
    """Compute the state that follows *event*."""
    if isinstance(event, StartRequested):
        if not event.enabled_providers:
            return Transition(
                state=TrackingState(last_error=ErrorKind.NO_PROVIDER_AVAILABLE),
                error=ErrorKind.NO_PROVIDER_AVAILABLE,
            )
        return Transition(
            state=TrackingState(
                phase=TrackingPhase.STARTING,
                enabled_providers=event.enabled_providers,
            )
        )

    if isinstance(event, StopRequested):
        return Transition(state=TrackingState())

    if state.phase == TrackingPhase.STOPPED:
        _logger.debug("Ignoring %s while stopped", type(event).__name__)
        return Transition(state=state)

    if isinstance(event, TrackingEstablished):
        return Transition(state=state.model_copy(update={"phase": TrackingPhase.TRACKING}))

    if isinstance(event, FixReceived):
        if not should_accept_fix(last_fix=state.last_fix, incoming=event.fix, debounce=debounce):
            _logger.debug("Discarded fix from %s at %s", event.fix.source, event.fix.timestamp)
            return Transition(state=state)
        return Transition(state=state.model_copy(update={"last_fix": event.fix}), accepted_fix=event.fix)

    if isinstance(event, ProviderEnabled):
        update: dict[str, object] = {"enabled_providers": state.enabled_providers | {event.provider}}
        if state.last_error == ErrorKind.NO_PROVIDER_AVAILABLE:
            update["last_error"] = None
        return Transition(state=state.model_copy(update=update))

    if isinstance(event, ProviderDisabled):
        remaining = state.enabled_providers - {event.provider}
        if remaining or event.provider not in state.enabled_providers:
            return Transition(state=state.model_copy(update={"enabled_providers": remaining}))
        # Last provider gone: report, but keep tracking so re-enable resumes.
        return Transition(
            state=state.model_copy(
                update={"enabled_providers": remaining, "last_error": ErrorKind.NO_PROVIDER_AVAILABLE}
            ),
            error=ErrorKind.NO_PROVIDER_AVAILABLE,
        )

    if isinstance(event, ProviderFailed):
        remaining = state.enabled_providers - {event.provider}
        return Transition(
            state=state.model_copy(update={"enabled_providers": remaining, "last_error": event.error}),
            error=event.error,
        )

    raise TypeError(f"Unsupported tracking event: {type(event).__name__}")
