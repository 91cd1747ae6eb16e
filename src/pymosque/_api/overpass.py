"""Overpass interpreter query building and response parsing.

Response shape::

    {"elements": [
        {"type": "node", "id": 1, "lat": .., "lon": .., "tags": {...}},
        {"type": "way", "id": 2, "center": {"lat": .., "lon": ..}, "tags": {...}},
        {"type": "relation", "id": 3, "geometry": [{"lat": .., "lon": ..}, ...]},
    ]}
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from pymosque._normalize import coordinate, safe_int, safe_str
from pymosque._transport import Transport
from pymosque.config import MosqueConfig
from pymosque.exceptions import MalformedResponseError
from pymosque.geo import haversine_m
from pymosque.models.fix import PositionFix
from pymosque.models.poi import OsmType, PoiRecord, SourceKind

_logger = logging.getLogger(__name__)


def _ql_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_query(
    latitude: float,
    longitude: float,
    radius_m: int,
    *,
    amenity: str,
    religion: str,
    timeout_s: int = 25,
) -> str:
    """Build the Overpass QL query for places of worship around a point.

    Area-shaped entities get a computed centroid via ``out center``.
    """
    if radius_m <= 0:
        raise ValueError(f"radius_m must be positive, got {radius_m}")
    predicate = f"[amenity={_ql_string(amenity)}][religion={_ql_string(religion)}]"
    around = f"(around:{int(radius_m)},{latitude:.7f},{longitude:.7f})"
    body = "".join(f"  {element}{predicate}{around};\n" for element in ("node", "way", "relation"))
    return f"[out:json][timeout:{int(timeout_s)}];\n(\n{body});\nout center tags;"


def _resolve_position(element: dict[str, Any], osm_type: OsmType) -> tuple[float, float, SourceKind] | None:
    if osm_type == OsmType.NODE:
        point = coordinate(element)
        return (*point, SourceKind.POINT) if point is not None else None

    center = coordinate(element.get("center"))
    if center is not None:
        return (*center, SourceKind.AREA_CENTER)

    geometry = element.get("geometry")
    if isinstance(geometry, list) and geometry:
        vertex = coordinate(geometry[0])
        if vertex is not None:
            _logger.warning(
                "No center for %s/%s, using first boundary vertex (degraded precision)",
                osm_type,
                element.get("id"),
            )
            return (*vertex, SourceKind.AREA_BOUNDARY_APPROX)
    return None


def _resolve_name(tags: dict[str, Any], *, unnamed_label: str, language: str | None) -> str:
    if language:
        localized = safe_str(tags.get(f"name:{language}"))
        if localized:
            return localized
    return safe_str(tags.get("name")) or unnamed_label


def parse_elements(
    payload: Any,
    *,
    center: tuple[float, float] | None = None,
    unnamed_label: str = "unnamed",
    language: str | None = None,
) -> list[PoiRecord]:
    """Normalize a decoded Overpass response into POI records.

    Elements without resolvable coordinates are skipped. Duplicate
    ``type/id`` keys keep the first occurrence. With *center* the records
    carry their distance and are sorted nearest first.
    """
    if not isinstance(payload, dict):
        raise MalformedResponseError("Overpass response is not a JSON object")
    elements = payload.get("elements")
    if not isinstance(elements, list):
        raise MalformedResponseError("Overpass response has no 'elements' array")

    remark = payload.get("remark")
    if remark:
        _logger.warning("Overpass remark: %s", remark)

    records: list[PoiRecord] = []
    seen: set[str] = set()
    for element in elements:
        if not isinstance(element, dict):
            continue
        try:
            osm_type = OsmType(str(element.get("type", "")))
        except ValueError:
            _logger.debug("Skipping element of type %r", element.get("type"))
            continue
        external_id = safe_int(element.get("id"))
        if external_id is None:
            continue
        resolved = _resolve_position(element, osm_type)
        if resolved is None:
            _logger.debug("Skipping %s/%s without coordinates", osm_type, external_id)
            continue
        latitude, longitude, source_kind = resolved

        key = f"{osm_type}/{external_id}"
        if key in seen:
            continue
        seen.add(key)

        raw_tags = element.get("tags")
        tags: dict[str, Any] = raw_tags if isinstance(raw_tags, dict) else {}
        distance = haversine_m(center[0], center[1], latitude, longitude) if center is not None else None
        records.append(
            PoiRecord(
                external_id=external_id,
                osm_type=osm_type,
                name=_resolve_name(tags, unnamed_label=unnamed_label, language=language),
                latitude=latitude,
                longitude=longitude,
                source_kind=source_kind,
                distance_m=distance,
                tags=dict(tags),
            )
        )

    if center is not None:
        records.sort(key=lambda record: record.distance_m or 0.0)
    return records


def parse_response(
    text: str,
    *,
    center: tuple[float, float] | None = None,
    unnamed_label: str = "unnamed",
    language: str | None = None,
) -> list[PoiRecord]:
    """Decode and normalize a raw Overpass response body."""
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"Overpass response is not JSON: {text[:64]!r}") from exc
    return parse_elements(payload, center=center, unnamed_label=unnamed_label, language=language)


async def fetch_pois(
    config: MosqueConfig,
    transport: Transport,
    center: PositionFix,
    radius_m: int,
) -> list[PoiRecord]:
    """Query the backend around *center* and parse the result off the event loop.

    Raises
    ------
    SearchError
        Any transport or parse failure, as a concrete subclass.
    """
    query = build_query(
        center.latitude,
        center.longitude,
        radius_m,
        amenity=config.amenity,
        religion=config.religion,
        timeout_s=config.query_timeout,
    )
    text = await transport.query(query)

    loop = asyncio.get_running_loop()
    records = await loop.run_in_executor(
        None,
        lambda: parse_response(
            text,
            center=(center.latitude, center.longitude),
            unnamed_label=config.unnamed_label,
            language=config.name_language,
        ),
    )
    _logger.debug("Overpass returned %d POIs around %.5f,%.5f", len(records), center.latitude, center.longitude)
    return records
