"""Point-of-interest model."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class OsmType(StrEnum):
    NODE = "node"
    WAY = "way"
    RELATION = "relation"


class SourceKind(StrEnum):
    """How the coordinates of a POI were resolved."""

    POINT = "point"
    AREA_CENTER = "area-center"
    AREA_BOUNDARY_APPROX = "area-boundary-approx"


class PoiRecord(BaseModel):
    """A place of worship returned by one search.

    Records are never patched; every search yields a new list.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    external_id: int
    osm_type: OsmType = OsmType.NODE
    name: str
    latitude: float
    longitude: float
    source_kind: SourceKind = SourceKind.POINT
    distance_m: float | None = None
    tags: dict[str, Any] = Field(default_factory=dict)

    @property
    def key(self) -> str:
        """Identity unique within one result (OSM ids are unique per type)."""
        return f"{self.osm_type}/{self.external_id}"

    @property
    def position(self) -> tuple[float, float]:
        return self.latitude, self.longitude
