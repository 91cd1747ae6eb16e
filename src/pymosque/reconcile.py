"""Overlay reconciliation.

The displayed overlay is an ordered list of markers. The self marker keeps
its slot and key across updates so the map surface can move it instead of
recreating it. POI markers are owned by the backend: every reconciliation
removes the previous set and adds the new one in a single step.
"""

from __future__ import annotations

from collections.abc import Sequence

from pymosque.models.overlay import MarkerRole, OverlayDiff, OverlayMarker
from pymosque.models.poi import PoiRecord


class OverlayReconciler:
    def reconcile(
        self,
        current: Sequence[OverlayMarker],
        new_self: OverlayMarker | None,
        new_pois: Sequence[PoiRecord],
    ) -> list[OverlayMarker]:
        """Return the overlay that should be displayed.

        Markers other than POIs keep their position in the list. The self
        marker is replaced in place when *new_self* is given.
        """
        kept = self.update_self(current, new_self)
        result = [marker for marker in kept if marker.role != MarkerRole.POI]

        seen: set[str] = {marker.key for marker in result}
        for poi in new_pois:
            marker = OverlayMarker.for_poi(poi)
            if marker.key in seen:
                continue
            seen.add(marker.key)
            result.append(marker)
        return result

    def update_self(self, current: Sequence[OverlayMarker], new_self: OverlayMarker | None) -> list[OverlayMarker]:
        """Move the self marker without touching anything else."""
        if new_self is None:
            return list(current)
        if new_self.role != MarkerRole.SELF:
            raise ValueError("new_self must have the self role")

        result: list[OverlayMarker] = []
        placed = False
        for marker in current:
            if marker.role != MarkerRole.SELF:
                result.append(marker)
            elif not placed:
                result.append(new_self)
                placed = True
        if not placed:
            result.insert(0, new_self)
        return result

    def clear_pois(self, current: Sequence[OverlayMarker]) -> list[OverlayMarker]:
        """Drop every POI marker, keeping the rest."""
        return [marker for marker in current if marker.role != MarkerRole.POI]


def diff(old: Sequence[OverlayMarker], new: Sequence[OverlayMarker]) -> OverlayDiff:
    """Compute the add/remove/update changes from *old* to *new* by key."""
    old_by_key = {marker.key: marker for marker in old}
    new_by_key = {marker.key: marker for marker in new}
    return OverlayDiff(
        added=[marker for key, marker in new_by_key.items() if key not in old_by_key],
        removed=[marker for key, marker in old_by_key.items() if key not in new_by_key],
        updated=[marker for key, marker in new_by_key.items() if key in old_by_key and old_by_key[key] != marker],
    )
