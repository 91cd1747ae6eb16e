"""Provider driven directly by the host application."""

from __future__ import annotations

from typing import Any

from pymosque.models.fix import PositionFix
from pymosque.providers.base import BasePositionProvider


class ManualPositionProvider(BasePositionProvider):
    """In-process provider whose fixes and availability are pushed by the host.

    The host must call these methods from the owning event loop.
    """

    def push_fix(self, fix: PositionFix) -> None:
        if fix.source != self.name or fix.source_kind != self.kind:
            fix = fix.model_copy(update={"source": self.name, "source_kind": self.kind})
        self._dispatch_fix(fix)

    def report(self, latitude: float, longitude: float, **fields: Any) -> PositionFix:
        """Build a fix for this provider and push it."""
        fix = PositionFix(latitude=latitude, longitude=longitude, source=self.name, source_kind=self.kind, **fields)
        self.push_fix(fix)
        return fix

    def seed(self, fix: PositionFix) -> None:
        """Set the last known fix without notifying subscribers."""
        self._last_known = fix.model_copy(update={"source": self.name, "source_kind": self.kind})

    def set_enabled(self, enabled: bool) -> None:
        self._dispatch_enabled(enabled)

    def set_authorized(self, authorized: bool) -> None:
        self._authorized = authorized

    def push_status(self, status: str, **extras: Any) -> None:
        self._dispatch_status(status, extras)
