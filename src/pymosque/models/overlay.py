"""Map overlay markers."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from pymosque._constants import SELF_MARKER_KEY, SELF_MARKER_TITLE
from pymosque.models.fix import PositionFix
from pymosque.models.poi import PoiRecord


class MarkerRole(StrEnum):
    SELF = "self"
    POI = "poi"


class OverlayMarker(BaseModel):
    """One marker on the external map surface.

    ``key`` is stable across reconciliations: ``"self"`` for the user's own
    position, the POI key otherwise.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    key: str
    latitude: float
    longitude: float
    role: MarkerRole
    title: str = ""

    @classmethod
    def for_self(cls, fix: PositionFix) -> OverlayMarker:
        return cls(
            key=SELF_MARKER_KEY,
            latitude=fix.latitude,
            longitude=fix.longitude,
            role=MarkerRole.SELF,
            title=SELF_MARKER_TITLE,
        )

    @classmethod
    def for_poi(cls, poi: PoiRecord) -> OverlayMarker:
        return cls(
            key=poi.key,
            latitude=poi.latitude,
            longitude=poi.longitude,
            role=MarkerRole.POI,
            title=poi.name,
        )


class OverlayDiff(BaseModel):
    """Changes between two displayed overlay sets."""

    model_config = ConfigDict(frozen=True)

    added: list[OverlayMarker] = Field(default_factory=list)
    removed: list[OverlayMarker] = Field(default_factory=list)
    updated: list[OverlayMarker] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.updated)
