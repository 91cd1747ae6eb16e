"""pymosque - Async location tracking and nearby mosque discovery."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pymosque")
except PackageNotFoundError:
    __version__ = "0+local"
from pymosque.config import MosqueConfig, ProviderProfile
from pymosque.coordinator import LocationCoordinator
from pymosque.exceptions import (
    BackendError,
    EmptyResponseError,
    ErrorKind,
    MalformedResponseError,
    MosqueConfigError,
    MosqueError,
    NetworkUnavailableError,
    NoProviderAvailableError,
    PermissionDeniedError,
    SearchError,
)
from pymosque.finder import NearbyMosqueFinder
from pymosque.geo import haversine_m, qibla_bearing
from pymosque.models import (
    MarkerRole,
    OsmType,
    OverlayDiff,
    OverlayMarker,
    PoiRecord,
    PositionFix,
    ProviderKind,
    SearchResult,
    SearchSummary,
    SourceKind,
)
from pymosque.providers import (
    ManualPositionProvider,
    MqttPositionProvider,
    PositionProvider,
    build_providers,
)
from pymosque.reconcile import OverlayReconciler
from pymosque.search import PoiSearchClient

__all__ = [
    "__version__",
    "BackendError",
    "EmptyResponseError",
    "ErrorKind",
    "LocationCoordinator",
    "MalformedResponseError",
    "ManualPositionProvider",
    "MarkerRole",
    "MosqueConfig",
    "MosqueConfigError",
    "MosqueError",
    "MqttPositionProvider",
    "NearbyMosqueFinder",
    "NetworkUnavailableError",
    "NoProviderAvailableError",
    "OsmType",
    "OverlayDiff",
    "OverlayMarker",
    "OverlayReconciler",
    "PermissionDeniedError",
    "PoiRecord",
    "PoiSearchClient",
    "PositionFix",
    "PositionProvider",
    "ProviderKind",
    "ProviderProfile",
    "SearchError",
    "SearchResult",
    "SearchSummary",
    "SourceKind",
    "build_providers",
    "haversine_m",
    "qibla_bearing",
]
