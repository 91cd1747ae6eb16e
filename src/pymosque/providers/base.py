"""Position provider capability and shared subscription handling."""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from pymosque.config import ProviderProfile
from pymosque.exceptions import PermissionDeniedError
from pymosque.geo import haversine_m
from pymosque.models.fix import PositionFix, ProviderKind

_logger = logging.getLogger(__name__)

FixCallback = Callable[[PositionFix], None]
ProviderCallback = Callable[[str], None]
StatusCallback = Callable[[str, str, dict[str, Any]], None]

_tokens = itertools.count(1)


@dataclass(frozen=True)
class SubscriptionHandle:
    provider: str
    token: int


@dataclass(frozen=True)
class _Subscriber:
    on_fix: FixCallback
    on_provider_enabled: ProviderCallback
    on_provider_disabled: ProviderCallback
    on_status: StatusCallback


def _noop_status(_provider: str, _status: str, _extras: dict[str, Any]) -> None:
    return None


class PositionProvider(Protocol):
    """Structural interface for one physical location source.

    Subscribers are called on the owning event loop. Implementations fed
    from another thread must marshal their callbacks back first.
    """

    @property
    def name(self) -> str: ...

    @property
    def kind(self) -> ProviderKind: ...

    def is_available(self) -> bool: ...

    def last_known_fix(self) -> PositionFix | None: ...

    def subscribe(
        self,
        on_fix: FixCallback,
        on_provider_enabled: ProviderCallback,
        on_provider_disabled: ProviderCallback,
        on_status: StatusCallback = _noop_status,
    ) -> SubscriptionHandle: ...

    def unsubscribe(self, handle: SubscriptionHandle) -> None: ...


class BasePositionProvider:
    """Subscription bookkeeping plus the per-provider cadence filter.

    A fix reaches subscribers only when ``min_interval_ms`` elapsed since the
    previously delivered fix and the position moved at least
    ``min_distance_m``. Every fix still becomes the last known fix.
    """

    def __init__(
        self,
        profile: ProviderProfile,
        *,
        enabled: bool = True,
        logger: logging.Logger | None = None,
    ) -> None:
        self._profile = profile
        self._logger = logger or _logger
        self._subscribers: dict[SubscriptionHandle, _Subscriber] = {}
        self._last_known: PositionFix | None = None
        self._last_delivered: PositionFix | None = None
        self._enabled = enabled
        self._authorized = True

    @property
    def name(self) -> str:
        return self._profile.name

    @property
    def kind(self) -> ProviderKind:
        return self._profile.kind

    @property
    def profile(self) -> ProviderProfile:
        return self._profile

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def is_available(self) -> bool:
        return self._enabled

    def last_known_fix(self) -> PositionFix | None:
        return self._last_known

    def subscribe(
        self,
        on_fix: FixCallback,
        on_provider_enabled: ProviderCallback,
        on_provider_disabled: ProviderCallback,
        on_status: StatusCallback = _noop_status,
    ) -> SubscriptionHandle:
        if not self._authorized:
            raise PermissionDeniedError(
                f"Not authorized to receive positions from {self.name}",
                provider=self.name,
            )
        handle = SubscriptionHandle(provider=self.name, token=next(_tokens))
        self._subscribers[handle] = _Subscriber(on_fix, on_provider_enabled, on_provider_disabled, on_status)
        self._logger.debug("Provider %s subscribed token=%d", self.name, handle.token)
        return handle

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        if self._subscribers.pop(handle, None) is not None:
            self._logger.debug("Provider %s unsubscribed token=%d", self.name, handle.token)
        if not self._subscribers:
            self._last_delivered = None

    # ------------------------------------------------------------------
    # Dispatch (must run on the owning loop)
    # ------------------------------------------------------------------

    def _passes_cadence(self, fix: PositionFix) -> bool:
        previous = self._last_delivered
        if previous is None:
            return True
        if fix.millis_since(previous) < self._profile.min_interval_ms:
            return False
        if self._profile.min_distance_m > 0:
            moved = haversine_m(previous.latitude, previous.longitude, fix.latitude, fix.longitude)
            if moved < self._profile.min_distance_m:
                return False
        return True

    def _dispatch_fix(self, fix: PositionFix) -> None:
        self._last_known = fix
        if not self._enabled or not self._subscribers:
            return
        if not self._passes_cadence(fix):
            self._logger.debug("Provider %s throttled fix at %s", self.name, fix.timestamp)
            return
        self._last_delivered = fix
        for subscriber in list(self._subscribers.values()):
            subscriber.on_fix(fix)

    def _dispatch_enabled(self, enabled: bool) -> None:
        if enabled == self._enabled:
            return
        self._enabled = enabled
        self._logger.info("Provider %s %s", self.name, "enabled" if enabled else "disabled")
        for subscriber in list(self._subscribers.values()):
            if enabled:
                subscriber.on_provider_enabled(self.name)
            else:
                subscriber.on_provider_disabled(self.name)

    def _dispatch_status(self, status: str, extras: dict[str, Any] | None = None) -> None:
        for subscriber in list(self._subscribers.values()):
            subscriber.on_status(self.name, status, dict(extras or {}))
