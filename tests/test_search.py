from __future__ import annotations

import json
from dataclasses import dataclass, field

import pytest

from pymosque.config import MosqueConfig
from pymosque.exceptions import BackendError, ErrorKind, MosqueError, NetworkUnavailableError
from pymosque.models.fix import PositionFix
from pymosque.models.summary import SearchSummary
from pymosque.search import PoiSearchClient

_CENTER = PositionFix(latitude=0.0, longitude=0.0, source="gps")


@dataclass
class FakeTransport:
    responses: list[str | Exception]
    queries: list[str] = field(default_factory=list)

    async def query(self, query: str) -> str:
        self.queries.append(query)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _elements(*elements: dict[str, object]) -> str:
    return json.dumps({"version": 0.6, "elements": list(elements)})


@pytest.mark.asyncio
async def test_search_returns_records_nearest_first() -> None:
    transport = FakeTransport(
        [
            _elements(
                {"type": "way", "id": 2, "center": {"lat": 0.01, "lon": 0.0}, "tags": {"name": "Far"}},
                {"type": "node", "id": 1, "lat": 0.001, "lon": 0.0, "tags": {"name": "Near"}},
            )
        ]
    )
    client = PoiSearchClient(MosqueConfig(), transport=transport)

    result = await client.search(_CENTER)

    assert result.ok
    assert [poi.name for poi in result.pois] == ["Near", "Far"]
    assert all(poi.distance_m is not None for poi in result.pois)
    assert "(around:1000,0.0000000,0.0000000)" in transport.queries[0]


@pytest.mark.asyncio
async def test_search_radius_override() -> None:
    transport = FakeTransport([_elements()])
    client = PoiSearchClient(MosqueConfig(radius_m=500), transport=transport)

    result = await client.search(_CENTER, 2500)

    assert result.ok
    assert result.pois == []
    assert "(around:2500," in transport.queries[0]
    assert SearchSummary.from_result(result).message == "No mosques found nearby."


@pytest.mark.asyncio
async def test_search_uses_configured_tags() -> None:
    transport = FakeTransport([_elements()])
    client = PoiSearchClient(MosqueConfig(religion="christian", query_timeout=10), transport=transport)

    await client.search(_CENTER)

    assert '[religion="christian"]' in transport.queries[0]
    assert transport.queries[0].startswith("[out:json][timeout:10];")


@pytest.mark.asyncio
async def test_backend_failure_becomes_result() -> None:
    transport = FakeTransport([BackendError("HTTP 500", status_code=500, body="oops")])
    client = PoiSearchClient(MosqueConfig(), transport=transport)

    result = await client.search(_CENTER)

    assert not result.ok
    assert result.error == ErrorKind.BACKEND_ERROR
    assert result.status_code == 500
    assert SearchSummary.from_result(result).error_message == (
        "The mosque search service returned an error (HTTP 500)."
    )


@pytest.mark.asyncio
async def test_malformed_body_becomes_result() -> None:
    client = PoiSearchClient(MosqueConfig(), transport=FakeTransport(["<html>busy</html>"]))

    result = await client.search(_CENTER)

    assert result.error == ErrorKind.MALFORMED_RESPONSE


@pytest.mark.asyncio
async def test_fetch_raises_search_errors() -> None:
    client = PoiSearchClient(MosqueConfig(), transport=FakeTransport([NetworkUnavailableError("offline")]))

    with pytest.raises(NetworkUnavailableError):
        await client.fetch(_CENTER)


@pytest.mark.asyncio
async def test_uninitialized_client_raises() -> None:
    client = PoiSearchClient(MosqueConfig())

    with pytest.raises(MosqueError, match="not initialized"):
        await client.search(_CENTER)


@pytest.mark.asyncio
async def test_context_manager_owns_session() -> None:
    async with PoiSearchClient(MosqueConfig()) as client:
        assert client._transport is not None  # type: ignore[attr-defined]

    assert client._transport is None  # type: ignore[attr-defined]
