"""Data models for pymosque."""

from pymosque.models.fix import PositionFix, ProviderKind, fix_sort_key
from pymosque.models.overlay import MarkerRole, OverlayDiff, OverlayMarker
from pymosque.models.poi import OsmType, PoiRecord, SourceKind
from pymosque.models.summary import SearchResult, SearchSummary

__all__ = [
    "MarkerRole",
    "OsmType",
    "OverlayDiff",
    "OverlayMarker",
    "PoiRecord",
    "PositionFix",
    "ProviderKind",
    "SearchResult",
    "SearchSummary",
    "SourceKind",
    "fix_sort_key",
]
