from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from pymosque.config import ProviderProfile
from pymosque.coordinator import LocationCoordinator
from pymosque.exceptions import BackendError, ErrorKind, PermissionDeniedError
from pymosque.finder import NearbyMosqueFinder
from pymosque.models.fix import PositionFix, ProviderKind
from pymosque.models.overlay import MarkerRole, OverlayDiff, OverlayMarker
from pymosque.models.poi import PoiRecord
from pymosque.models.summary import SearchResult, SearchSummary
from pymosque.providers.manual import ManualPositionProvider


def _dt(offset_ms: int = 0) -> datetime:
    return datetime(2026, 1, 1, tzinfo=UTC) + timedelta(milliseconds=offset_ms)


def _poi(external_id: int) -> PoiRecord:
    return PoiRecord(external_id=external_id, name=f"Mosque {external_id}", latitude=1.0, longitude=2.0)


@dataclass
class ScriptedSearch:
    """Returns the scripted results in call order, after the scripted delays."""

    results: list[SearchResult]
    delays: list[float] = field(default_factory=list)
    centers: list[PositionFix] = field(default_factory=list)

    async def search(self, center: PositionFix, radius_m: int | None = None) -> SearchResult:
        index = len(self.centers)
        self.centers.append(center)
        if index < len(self.delays):
            await asyncio.sleep(self.delays[index])
        return self.results[index]


@dataclass
class RecordingSink:
    renders: list[tuple[list[OverlayMarker], OverlayDiff]] = field(default_factory=list)

    def render(self, markers: list[OverlayMarker], changes: OverlayDiff) -> None:
        self.renders.append((markers, changes))


@dataclass
class _Harness:
    gps: ManualPositionProvider
    search: ScriptedSearch
    sink: RecordingSink
    summaries: list[SearchSummary]
    finder: NearbyMosqueFinder


def _harness(search: ScriptedSearch) -> _Harness:
    gps = ManualPositionProvider(ProviderProfile(name="gps", kind=ProviderKind.SATELLITE, min_interval_ms=0))
    sink = RecordingSink()
    summaries: list[SearchSummary] = []
    finder = NearbyMosqueFinder(
        LocationCoordinator([gps]),
        search,
        overlay_sink=sink,
        on_summary=summaries.append,
    )
    return _Harness(gps=gps, search=search, sink=sink, summaries=summaries, finder=finder)


def _poi_keys(finder: NearbyMosqueFinder) -> list[str]:
    return [marker.key for marker in finder.markers if marker.role == MarkerRole.POI]


@pytest.mark.asyncio
async def test_position_moves_self_marker_then_shows_results() -> None:
    h = _harness(ScriptedSearch([SearchResult.success([_poi(1), _poi(2)])]))
    h.finder.start()

    h.gps.report(1.0, 2.0, timestamp=_dt(0))
    # The self marker is rendered before the search completes.
    assert [m.key for m in h.finder.markers] == ["self"]

    await h.finder.wait_idle()

    assert [m.key for m in h.finder.markers] == ["self", "node/1", "node/2"]
    assert [s.to_event() for s in h.summaries] == [{"mosqueCount": 2, "errorMessage": None}]
    assert len(h.sink.renders) == 2
    assert [m.key for m in h.sink.renders[1][1].added] == ["node/1", "node/2"]


@pytest.mark.asyncio
async def test_superseded_search_result_is_discarded() -> None:
    h = _harness(
        ScriptedSearch(
            [SearchResult.success([_poi(1)]), SearchResult.success([_poi(2)])],
            delays=[0.05, 0.0],
        )
    )
    h.finder.start()

    h.gps.report(1.0, 2.0, timestamp=_dt(0))
    h.gps.report(1.5, 2.5, timestamp=_dt(3000))
    await h.finder.wait_idle()

    assert len(h.search.centers) == 2
    assert _poi_keys(h.finder) == ["node/2"]
    assert h.finder.markers[0].latitude == 1.5
    assert [s.mosque_count for s in h.summaries] == [1]
    assert all("node/1" not in [m.key for m in markers] for markers, _changes in h.sink.renders)


@pytest.mark.asyncio
async def test_backend_error_keeps_self_and_clears_pois() -> None:
    h = _harness(
        ScriptedSearch(
            [
                SearchResult.success([_poi(1)]),
                SearchResult.failure(BackendError("HTTP 500", status_code=500)),
            ]
        )
    )
    h.finder.start()

    h.gps.report(1.0, 2.0, timestamp=_dt(0))
    await h.finder.wait_idle()
    h.gps.report(1.1, 2.1, timestamp=_dt(3000))
    await h.finder.wait_idle()

    assert [m.key for m in h.finder.markers] == ["self"]
    assert h.finder.markers[0].latitude == 1.1
    assert h.finder.poi_count == 0
    assert h.summaries[-1].to_event() == {
        "mosqueCount": 0,
        "errorMessage": "The mosque search service returned an error (HTTP 500).",
    }


@pytest.mark.asyncio
async def test_tracking_error_is_summarized_without_touching_overlay() -> None:
    h = _harness(ScriptedSearch([SearchResult.success([_poi(1)])]))
    h.finder.start()
    h.gps.report(1.0, 2.0, timestamp=_dt(0))
    await h.finder.wait_idle()
    renders = len(h.sink.renders)

    h.gps.set_enabled(False)

    assert h.summaries[-1].error == ErrorKind.NO_PROVIDER_AVAILABLE
    assert h.summaries[-1].mosque_count == 1
    assert _poi_keys(h.finder) == ["node/1"]
    assert len(h.sink.renders) == renders


@pytest.mark.asyncio
async def test_refresh_requires_known_position() -> None:
    h = _harness(ScriptedSearch([SearchResult.success([]), SearchResult.success([_poi(3)])]))
    h.finder.start()

    assert h.finder.refresh() is False

    h.gps.report(1.0, 2.0, timestamp=_dt(0))
    await h.finder.wait_idle()
    assert h.finder.refresh() is True
    await h.finder.wait_idle()

    assert len(h.search.centers) == 2
    assert h.search.centers[1].latitude == 1.0
    assert _poi_keys(h.finder) == ["node/3"]
    assert h.finder.last_summary is not None
    assert h.finder.last_summary.message == "Found 1 mosque nearby."


@pytest.mark.asyncio
async def test_seeded_fix_triggers_initial_search() -> None:
    h = _harness(ScriptedSearch([SearchResult.success([_poi(7)])]))
    h.gps.seed(PositionFix(latitude=3.0, longitude=4.0, source="gps", timestamp=_dt(0)))

    async with h.finder:
        await h.finder.wait_idle()
        assert _poi_keys(h.finder) == ["node/7"]

    assert h.gps.subscriber_count == 0


@pytest.mark.asyncio
async def test_stop_discards_outstanding_search() -> None:
    h = _harness(ScriptedSearch([SearchResult.success([_poi(1)])], delays=[0.05]))
    h.finder.start()
    h.gps.report(1.0, 2.0, timestamp=_dt(0))

    h.finder.stop()
    await h.finder.wait_idle()

    assert _poi_keys(h.finder) == []
    assert h.summaries == []


@dataclass
class BrokenSearch:
    centers: list[PositionFix] = field(default_factory=list)

    async def search(self, center: PositionFix, radius_m: int | None = None) -> SearchResult:
        self.centers.append(center)
        raise RuntimeError("backend adapter bug")


@pytest.mark.asyncio
async def test_unexpected_backend_exception_clears_pois_and_reports() -> None:
    h = _harness(ScriptedSearch([SearchResult.success([_poi(1)])]))
    h.finder.start()
    h.gps.report(1.0, 2.0, timestamp=_dt(0))
    await h.finder.wait_idle()
    assert _poi_keys(h.finder) == ["node/1"]

    h.finder._search = BrokenSearch()
    h.gps.report(1.1, 2.1, timestamp=_dt(3000))
    await h.finder.wait_idle()

    assert [m.key for m in h.finder.markers] == ["self"]
    assert h.summaries[-1].error == ErrorKind.BACKEND_ERROR
    assert h.summaries[-1].to_event() == {
        "mosqueCount": 0,
        "errorMessage": "The mosque search service returned an error.",
    }


@pytest.mark.parametrize("radius_m", [0, -100])
def test_non_positive_radius_rejected(radius_m: int) -> None:
    gps = ManualPositionProvider(ProviderProfile(name="gps", kind=ProviderKind.SATELLITE))

    with pytest.raises(ValueError):
        NearbyMosqueFinder(LocationCoordinator([gps]), ScriptedSearch([]), radius_m=radius_m)


@pytest.mark.asyncio
async def test_failed_start_discards_search_from_seed() -> None:
    h = _harness(ScriptedSearch([SearchResult.success([_poi(1)])], delays=[0.01]))
    h.gps.seed(PositionFix(latitude=3.0, longitude=4.0, source="gps", timestamp=_dt(0)))
    h.gps.set_authorized(False)

    with pytest.raises(PermissionDeniedError):
        h.finder.start()
    await h.finder.wait_idle()

    assert _poi_keys(h.finder) == []
    assert [s.error for s in h.summaries] == [ErrorKind.PERMISSION_DENIED]
    assert h.gps.subscriber_count == 0
