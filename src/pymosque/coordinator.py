"""Merge several position providers into one position stream.

Owns:
- provider subscriptions and re-subscription on re-enable
- the :class:`~pymosque.state.tracking.TrackingState` (via ``apply_event``)
- the single downstream position/error listener pair
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import timedelta
from typing import Any

from pymosque.exceptions import ErrorKind, NoProviderAvailableError, PermissionDeniedError
from pymosque.models.fix import PositionFix
from pymosque.providers.base import PositionProvider, SubscriptionHandle
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
from pymosque.state.policy import select_seed_fix
from pymosque.state.tracking import DEFAULT_DEBOUNCE, TrackingPhase, TrackingState, Transition, apply_event

_logger = logging.getLogger(__name__)

PositionListener = Callable[[PositionFix], None]
ErrorListener = Callable[[ErrorKind], None]


class LocationCoordinator:
    """Reconcile asynchronous, intermittently available providers.

    All methods and provider callbacks must run on the owning event loop;
    no locking is done.

    Usage::

        coordinator = LocationCoordinator([gps, network])
        coordinator.bind(on_position=handle_fix, on_error=handle_error)
        coordinator.start()
    """

    def __init__(
        self,
        providers: Sequence[PositionProvider],
        *,
        debounce: timedelta = DEFAULT_DEBOUNCE,
        on_position: PositionListener | None = None,
        on_error: ErrorListener | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        names = [provider.name for provider in providers]
        if len(names) != len(set(names)):
            raise ValueError(f"provider names must be unique: {names}")
        self._providers: dict[str, PositionProvider] = {provider.name: provider for provider in providers}
        self._debounce = debounce
        self._on_position = on_position
        self._on_error = on_error
        self._logger = logger or _logger
        self._state = TrackingState()
        self._handles: dict[str, SubscriptionHandle] = {}

    @property
    def state(self) -> TrackingState:
        return self._state

    @property
    def phase(self) -> TrackingPhase:
        return self._state.phase

    @property
    def last_fix(self) -> PositionFix | None:
        return self._state.last_fix

    @property
    def providers(self) -> list[PositionProvider]:
        return list(self._providers.values())

    def bind(
        self,
        *,
        on_position: PositionListener | None = None,
        on_error: ErrorListener | None = None,
    ) -> None:
        """Install the downstream listeners (replacing any previous ones)."""
        self._on_position = on_position
        self._on_error = on_error

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> PositionFix | None:
        """Start tracking and return the seeded fix, if any.

        Raises
        ------
        NoProviderAvailableError
            No provider is enabled. Nothing was subscribed.
        PermissionDeniedError
            Every provider refused the subscription.
        """
        if self._state.phase != TrackingPhase.STOPPED:
            self._logger.debug("start() ignored, already %s", self._state.phase)
            return self._state.last_fix

        available = [provider for provider in self._providers.values() if provider.is_available()]
        transition = self._apply(StartRequested(enabled_providers=frozenset(p.name for p in available)))
        if transition.error is not None:
            raise NoProviderAvailableError("No location provider is enabled")

        seed = select_seed_fix(provider.last_known_fix() for provider in available)
        if seed is not None:
            self._logger.debug("Seeding from last known fix of %s", seed.source)
            self._apply(FixReceived(fix=seed))

        refused: list[PermissionDeniedError] = []
        for provider in self._providers.values():
            try:
                self._subscribe(provider)
            except PermissionDeniedError as exc:
                self._logger.warning("Provider %s refused subscription: %s", provider.name, exc)
                refused.append(exc)
                self._apply(ProviderFailed(provider=provider.name, error=ErrorKind.PERMISSION_DENIED))

        if not self._handles:
            self.stop()
            raise refused[0] if refused else NoProviderAvailableError("No location provider could be subscribed")

        self._apply(TrackingEstablished())
        self._logger.info("Tracking started with providers=%s", sorted(self._handles))
        return self._state.last_fix

    def stop(self) -> None:
        """Unsubscribe every provider. Safe to call repeatedly."""
        for name, handle in list(self._handles.items()):
            provider = self._providers.get(name)
            if provider is not None:
                provider.unsubscribe(handle)
        self._handles.clear()
        if self._state.phase != TrackingPhase.STOPPED:
            self._logger.info("Tracking stopped")
        self._state = apply_event(self._state, StopRequested(), debounce=self._debounce).state

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _subscribe(self, provider: PositionProvider) -> None:
        self._handles[provider.name] = provider.subscribe(
            self._handle_fix,
            self._handle_provider_enabled,
            self._handle_provider_disabled,
            self._handle_status,
        )

    def _apply(self, event: TrackingEvent) -> Transition:
        transition = apply_event(self._state, event, debounce=self._debounce)
        self._state = transition.state
        if transition.accepted_fix is not None and self._on_position is not None:
            self._on_position(transition.accepted_fix)
        if transition.error is not None:
            self._logger.debug("Tracking error %s after %s", transition.error, type(event).__name__)
            if self._on_error is not None:
                self._on_error(transition.error)
        return transition

    # ------------------------------------------------------------------
    # Provider callbacks
    # ------------------------------------------------------------------

    def _handle_fix(self, fix: PositionFix) -> None:
        self._apply(FixReceived(fix=fix))

    def _handle_provider_enabled(self, name: str) -> None:
        if self._state.phase == TrackingPhase.STOPPED:
            return
        provider = self._providers.get(name)
        if provider is None:
            return
        handle = self._handles.pop(name, None)
        if handle is not None:
            provider.unsubscribe(handle)
        try:
            self._subscribe(provider)
        except PermissionDeniedError:
            self._logger.warning("Provider %s refused re-subscription", name)
            self._apply(ProviderFailed(provider=name, error=ErrorKind.PERMISSION_DENIED))
            return
        self._apply(ProviderEnabled(provider=name))

    def _handle_provider_disabled(self, name: str) -> None:
        self._apply(ProviderDisabled(provider=name))

    def _handle_status(self, name: str, status: str, extras: dict[str, Any]) -> None:
        self._logger.debug("Provider %s status=%s extras=%s", name, status, extras)
