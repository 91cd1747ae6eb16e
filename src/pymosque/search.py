"""Async client for the nearby place-of-worship search."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from pymosque._api.overpass import fetch_pois
from pymosque._transport import OverpassTransport, Transport
from pymosque.config import MosqueConfig
from pymosque.exceptions import MosqueError, SearchError
from pymosque.models.fix import PositionFix
from pymosque.models.poi import PoiRecord
from pymosque.models.summary import SearchResult

_logger = logging.getLogger(__name__)


class PoiSearchClient:
    """Search client returning result values instead of raising.

    Usage::

        async with PoiSearchClient(config) as client:
            result = await client.search(fix, 1500)
            if result.ok:
                ...
    """

    def __init__(
        self,
        config: MosqueConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._config = config or MosqueConfig()
        self._external_session = session is not None
        self._http_session = session
        self._transport = transport

    @property
    def config(self) -> MosqueConfig:
        return self._config

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> PoiSearchClient:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = OverpassTransport(self._config, self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
            self._transport = None

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise MosqueError("Client not initialized. Use 'async with PoiSearchClient(...) as client:'")
        return self._transport

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def fetch(self, center: PositionFix, radius_m: int | None = None) -> list[PoiRecord]:
        """Search around *center*, raising :class:`SearchError` subclasses on failure."""
        radius = self._config.radius_m if radius_m is None else radius_m
        return await fetch_pois(self._config, self._require_transport(), center, radius)

    async def search(self, center: PositionFix, radius_m: int | None = None) -> SearchResult:
        """Search around *center*; failures are returned, never raised.

        Zero results is a success.
        """
        try:
            pois = await self.fetch(center, radius_m)
        except SearchError as exc:
            _logger.info("Search around %.5f,%.5f failed: %s", center.latitude, center.longitude, exc.kind)
            _logger.debug("Search failure detail", exc_info=True)
            return SearchResult.failure(exc)
        return SearchResult.success(pois)
