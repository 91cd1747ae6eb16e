"""Orchestration loop: position -> search -> overlay -> summary."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Protocol

from pymosque.coordinator import LocationCoordinator
from pymosque.exceptions import ErrorKind, MosqueError
from pymosque.models.fix import PositionFix
from pymosque.models.overlay import MarkerRole, OverlayDiff, OverlayMarker
from pymosque.models.summary import SearchResult, SearchSummary
from pymosque.reconcile import OverlayReconciler, diff

_logger = logging.getLogger(__name__)

SummaryListener = Callable[[SearchSummary], None]


class SearchBackend(Protocol):
    async def search(self, center: PositionFix, radius_m: int | None = None) -> SearchResult: ...


class OverlaySink(Protocol):
    """External map surface receiving the reconciled overlay."""

    def render(self, markers: list[OverlayMarker], changes: OverlayDiff) -> None: ...


class NearbyMosqueFinder:
    """Keep the nearby-mosque overlay in sync with the tracked position.

    Every accepted position moves the self marker and triggers a search.
    A new trigger supersedes the outstanding one: its HTTP call is left to
    finish, but its result is discarded.

    Usage::

        finder = NearbyMosqueFinder(coordinator, client, on_summary=print)
        async with finder:
            ...
    """

    def __init__(
        self,
        coordinator: LocationCoordinator,
        search_client: SearchBackend,
        *,
        radius_m: int | None = None,
        reconciler: OverlayReconciler | None = None,
        overlay_sink: OverlaySink | None = None,
        on_summary: SummaryListener | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if radius_m is not None and radius_m <= 0:
            raise ValueError(f"radius_m must be positive, got {radius_m}")
        self._coordinator = coordinator
        self._search = search_client
        self._radius_m = radius_m
        self._reconciler = reconciler or OverlayReconciler()
        self._sink = overlay_sink
        self._on_summary = on_summary
        self._logger = logger or _logger
        self._markers: list[OverlayMarker] = []
        self._generation = 0
        self._tasks: set[asyncio.Task[None]] = set()
        self._last_summary: SearchSummary | None = None

    @property
    def markers(self) -> list[OverlayMarker]:
        return list(self._markers)

    @property
    def last_summary(self) -> SearchSummary | None:
        return self._last_summary

    @property
    def poi_count(self) -> int:
        return sum(1 for marker in self._markers if marker.role == MarkerRole.POI)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> NearbyMosqueFinder:
        self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.stop()
        await self.wait_idle()

    def start(self) -> None:
        """Bind to the coordinator and start tracking.

        Tracking errors raised by :meth:`LocationCoordinator.start` propagate;
        a search triggered by the seed fix is discarded in that case.
        """
        self._coordinator.bind(on_position=self._handle_position, on_error=self._handle_tracking_error)
        try:
            self._coordinator.start()
        except MosqueError:
            self.stop()
            raise

    def stop(self) -> None:
        self._coordinator.stop()
        # Outstanding searches finish in the background; their results are dropped.
        self._generation += 1

    def refresh(self) -> bool:
        """Search again around the last accepted fix.

        Returns ``False`` when no fix is known yet.
        """
        fix = self._coordinator.last_fix
        if fix is None:
            self._logger.debug("refresh() without a known position")
            return False
        self._trigger(fix)
        return True

    async def wait_idle(self) -> None:
        """Wait until every outstanding search task has completed."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Coordinator callbacks
    # ------------------------------------------------------------------

    def _handle_position(self, fix: PositionFix) -> None:
        self._publish(self._reconciler.update_self(self._markers, OverlayMarker.for_self(fix)))
        self._trigger(fix)

    def _handle_tracking_error(self, kind: ErrorKind) -> None:
        self._emit(SearchSummary.failed(kind, count=self.poi_count))

    # ------------------------------------------------------------------
    # Search coalescing
    # ------------------------------------------------------------------

    def _trigger(self, fix: PositionFix) -> None:
        self._generation += 1
        generation = self._generation
        if self._tasks:
            self._logger.debug("Superseding %d outstanding search(es)", len(self._tasks))
        task = asyncio.get_running_loop().create_task(self._run_search(generation, fix))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_search(self, generation: int, fix: PositionFix) -> None:
        try:
            result = await self._search.search(fix, self._radius_m)
        except Exception as exc:
            self._logger.exception("Search around %.5f,%.5f failed unexpectedly", fix.latitude, fix.longitude)
            result = SearchResult(error=ErrorKind.BACKEND_ERROR, detail=repr(exc))
        if generation != self._generation:
            self._logger.debug("Discarding superseded search result generation=%d", generation)
            return
        self._apply_result(fix, result)

    def _apply_result(self, fix: PositionFix, result: SearchResult) -> None:
        new_self = OverlayMarker.for_self(fix)
        if result.ok:
            markers = self._reconciler.reconcile(self._markers, new_self, result.pois)
        else:
            markers = self._reconciler.clear_pois(self._reconciler.update_self(self._markers, new_self))
        self._publish(markers)
        self._emit(SearchSummary.from_result(result))

    def _publish(self, markers: list[OverlayMarker]) -> None:
        changes = diff(self._markers, markers)
        self._markers = markers
        if self._sink is not None and not changes.is_empty:
            self._sink.render(list(markers), changes)

    def _emit(self, summary: SearchSummary) -> None:
        self._last_summary = summary
        self._logger.info("%s", summary.message)
        if self._on_summary is not None:
            self._on_summary(summary)
