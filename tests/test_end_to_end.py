from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import aiohttp
import pytest
from aiohttp import test_utils, web

from pymosque import (
    LocationCoordinator,
    ManualPositionProvider,
    MosqueConfig,
    NearbyMosqueFinder,
    PoiSearchClient,
    ProviderProfile,
    SearchSummary,
)
from pymosque.models.fix import ProviderKind


@dataclass
class FakeOverpass:
    """Overpass stand-in answering from a queue of (status, body) pairs."""

    responses: list[tuple[int, Any]] = field(default_factory=list)
    queries: list[str] = field(default_factory=list)

    async def handle(self, request: web.Request) -> web.Response:
        self.queries.append(request.query["data"])
        status, body = self.responses.pop(0)
        text = body if isinstance(body, str) else json.dumps(body)
        return web.Response(status=status, text=text, content_type="application/json")


def _dt(offset_ms: int = 0) -> datetime:
    return datetime(2026, 1, 1, tzinfo=UTC) + timedelta(milliseconds=offset_ms)


@pytest.mark.asyncio
async def test_tracking_search_and_backend_failure_end_to_end() -> None:
    backend = FakeOverpass(
        responses=[
            (
                200,
                {
                    "elements": [
                        {"type": "node", "id": 1, "lat": 1.0, "lon": 2.0, "tags": {"name": "A"}},
                        {"type": "way", "id": 2, "center": {"lat": 1.001, "lon": 2.0}},
                    ]
                },
            ),
            (500, "Internal Server Error"),
        ]
    )
    app = web.Application()
    app.router.add_get("/api/interpreter", backend.handle)
    server = test_utils.TestServer(app)
    await server.start_server()

    gps = ManualPositionProvider(ProviderProfile(name="gps", kind=ProviderKind.SATELLITE, min_interval_ms=0))
    network = ManualPositionProvider(ProviderProfile(name="network", kind=ProviderKind.NETWORK, min_interval_ms=0))
    config = MosqueConfig(endpoint=str(server.make_url("/api/interpreter")), radius_m=750)
    summaries: list[SearchSummary] = []

    try:
        async with aiohttp.ClientSession() as session:
            client = PoiSearchClient(config, session=session)
            async with client:
                finder = NearbyMosqueFinder(LocationCoordinator([gps, network]), client, on_summary=summaries.append)
                async with finder:
                    gps.report(1.0, 2.0, timestamp=_dt(0), accuracy=5.0)
                    # Coarse fix inside the debounce window: no second search.
                    network.report(1.2, 2.2, timestamp=_dt(200), accuracy=80.0)
                    await finder.wait_idle()

                    assert [marker.key for marker in finder.markers] == ["self", "node/1", "way/2"]
                    assert [poi.title for poi in finder.markers[1:]] == ["A", "unnamed"]

                    network.report(1.3, 2.3, timestamp=_dt(5000), accuracy=80.0)
                    await finder.wait_idle()

                    assert [marker.key for marker in finder.markers] == ["self"]
                    assert finder.markers[0].latitude == 1.3
    finally:
        await server.close()

    assert len(backend.queries) == 2
    assert "(around:750,1.0000000,2.0000000)" in backend.queries[0]
    assert [summary.to_event() for summary in summaries] == [
        {"mosqueCount": 2, "errorMessage": None},
        {"mosqueCount": 0, "errorMessage": "The mosque search service returned an error (HTTP 500)."},
    ]
