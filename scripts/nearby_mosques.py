#!/usr/bin/env python3
"""Find mosques near a position.

One-shot mode searches around ``--lat``/``--lon`` and prints the result.
``--follow`` mode tracks position fixes from the MQTT topics configured via
``MOSQUE_MQTT_HOST`` and ``MOSQUE_GPS_TOPIC``/``MOSQUE_NETWORK_TOPIC`` and
prints a summary after each search.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from datetime import timedelta
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pymosque import (  # noqa: E402
    LocationCoordinator,
    MosqueConfig,
    MosqueError,
    MqttPositionProvider,
    NearbyMosqueFinder,
    PoiSearchClient,
    PositionFix,
    SearchSummary,
    build_providers,
    qibla_bearing,
)

_LOG = logging.getLogger("nearby_mosques")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Search OpenStreetMap for nearby mosques.")
    parser.add_argument("--lat", type=float, help="Latitude of the search center.")
    parser.add_argument("--lon", type=float, help="Longitude of the search center.")
    parser.add_argument("--radius", type=int, default=None, help="Search radius in metres.")
    parser.add_argument(
        "--follow",
        action="store_true",
        help="Track MQTT position topics and search on every accepted fix.",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=0,
        help="Maximum runtime in seconds for --follow (0 = run until Ctrl+C).",
    )
    parser.add_argument("--json", action="store_true", help="Print results as JSON.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logs.")
    args = parser.parse_args()
    if not args.follow and (args.lat is None or args.lon is None):
        parser.error("--lat and --lon are required unless --follow is given")
    return args


def _print_summary(summary: SearchSummary, as_json: bool) -> None:
    if as_json:
        print(json.dumps(summary.to_event(), ensure_ascii=False))
    else:
        print(f"[mosques] {summary.message}")


async def _search_once(config: MosqueConfig, args: argparse.Namespace) -> int:
    center = PositionFix(latitude=args.lat, longitude=args.lon, source="cli")
    async with PoiSearchClient(config) as client:
        result = await client.search(center, args.radius)

    summary = SearchSummary.from_result(result)
    bearing = qibla_bearing(center.latitude, center.longitude)
    if args.json:
        print(
            json.dumps(
                {
                    **summary.to_event(),
                    "qiblaBearing": round(bearing, 1),
                    "mosques": [poi.model_dump(mode="json") for poi in result.pois],
                },
                indent=2,
                ensure_ascii=False,
            )
        )
    else:
        _print_summary(summary, as_json=False)
        for poi in result.pois:
            distance = f"{poi.distance_m:7.0f} m" if poi.distance_m is not None else "      ? m"
            print(f"[mosques]   {distance}  {poi.name}  ({poi.latitude:.5f}, {poi.longitude:.5f})  {poi.key}")
        print(f"[mosques] Qibla bearing: {bearing:.1f} deg")
    return 0 if result.ok else 1


async def _wait_for_provider(providers: list[MqttPositionProvider], timeout: float) -> bool:
    deadline = asyncio.get_running_loop().time() + timeout
    while asyncio.get_running_loop().time() < deadline:
        if any(provider.is_available() for provider in providers):
            return True
        await asyncio.sleep(0.1)
    return False


async def _follow(config: MosqueConfig, args: argparse.Namespace) -> int:
    if not config.mqtt_host:
        print("[mosques] --follow requires MOSQUE_MQTT_HOST", file=sys.stderr)
        return 2

    loop = asyncio.get_running_loop()
    providers = build_providers(config, loop=loop)
    mqtt_providers = [provider for provider in providers if isinstance(provider, MqttPositionProvider)]
    if not mqtt_providers:
        print("[mosques] No provider has an MQTT topic configured", file=sys.stderr)
        return 2

    stop_event = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    for provider in mqtt_providers:
        await provider.connect()
    try:
        if not await _wait_for_provider(mqtt_providers, config.connect_timeout):
            print("[mosques] No MQTT provider came online", file=sys.stderr)
            return 2
        _LOG.debug("Providers online: %s", [p.name for p in mqtt_providers if p.is_available()])

        coordinator = LocationCoordinator(providers, debounce=timedelta(milliseconds=config.debounce_ms))
        async with PoiSearchClient(config) as client:
            finder = NearbyMosqueFinder(
                coordinator,
                client,
                radius_m=args.radius,
                on_summary=lambda summary: _print_summary(summary, args.json),
            )
            async with finder:
                timeout = args.duration if args.duration > 0 else None
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=timeout)
                except TimeoutError:
                    print(f"[mosques] Reached --duration={args.duration}s, stopping.")
    finally:
        for provider in mqtt_providers:
            await provider.disconnect()
    return 0


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = MosqueConfig.from_env()
        if args.follow:
            return asyncio.run(_follow(config, args))
        return asyncio.run(_search_once(config, args))
    except MosqueError as exc:
        print(f"[mosques] {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(_main())
