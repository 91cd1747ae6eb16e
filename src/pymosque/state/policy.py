"""Deterministic fix acceptance policy.

This module contains no provider I/O. Fixes arrive here already parsed
and carry their provider kind.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import timedelta

from pymosque.models.fix import PositionFix, ProviderKind, fix_sort_key


def provider_priority(kind: ProviderKind) -> int:
    """Higher is finer-grained."""
    priorities: dict[ProviderKind, int] = {
        ProviderKind.SATELLITE: 50,
        ProviderKind.NETWORK: 10,
    }
    return priorities.get(kind, 0)


def should_accept_fix(
    *,
    last_fix: PositionFix | None,
    incoming: PositionFix,
    debounce: timedelta,
) -> bool:
    """Decide whether *incoming* becomes the current position.

    Policy:
    - Fixes older than the last accepted fix are stale.
    - A fix with the same timestamp only wins when strictly more accurate.
    - A fix from a lower-priority provider closer than *debounce* to the last
      accepted fix is discarded. Same or higher priority fixes are never
      debounced, so a coarse source cannot starve a fine one.
    """
    if last_fix is None:
        return True

    if incoming.timestamp < last_fix.timestamp:
        return False
    if incoming.timestamp == last_fix.timestamp and not incoming.is_better_than(last_fix):
        return False

    if provider_priority(incoming.source_kind) < provider_priority(last_fix.source_kind):
        return incoming.timestamp - last_fix.timestamp >= debounce
    return True


def select_seed_fix(candidates: Iterable[PositionFix | None]) -> PositionFix | None:
    """Pick the most recent last-known fix; ties go to the smaller accuracy."""
    fixes = [fix for fix in candidates if fix is not None]
    if not fixes:
        return None
    return max(fixes, key=fix_sort_key)
