"""Normalization helpers.

Centralizes defensive parsing of location payloads and backend elements.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def normalize_timestamp_seconds(value: Any) -> float | None:
    """Normalize epoch timestamps to seconds.

    - Empty/missing -> None
    - <= 0 -> None
    - Milliseconds (> 1e11) -> seconds
    """

    ts = safe_float(value)
    if ts is None or ts <= 0:
        return None
    if ts > 1e11:
        ts /= 1000.0
    return ts


def coerce_datetime(value: Any) -> Any:
    """Coerce epoch seconds/milliseconds and naive datetimes to UTC datetimes.

    Values that are neither are returned unchanged so pydantic can report them.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = normalize_timestamp_seconds(value)
        if seconds is None:
            return value
        return datetime.fromtimestamp(seconds, tz=UTC)
    return value


def coordinate(value: Any) -> tuple[float, float] | None:
    """Return ``(lat, lon)`` from a ``{"lat": .., "lon": ..}`` mapping."""
    if not isinstance(value, dict):
        return None
    lat = safe_float(value.get("lat"))
    lon = safe_float(value.get("lon"))
    if lat is None or lon is None:
        return None
    return lat, lon
