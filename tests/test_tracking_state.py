from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from pymosque.exceptions import ErrorKind
from pymosque.models.fix import PositionFix, ProviderKind
from pymosque.state.events import (
    FixReceived,
    ProviderDisabled,
    ProviderEnabled,
    ProviderFailed,
    StartRequested,
    StopRequested,
    TrackingEstablished,
    TrackingEvent,
)
from pymosque.state.policy import provider_priority, select_seed_fix, should_accept_fix
from pymosque.state.tracking import TrackingPhase, TrackingState, apply_event

_DEBOUNCE = timedelta(milliseconds=1000)


def _dt(offset_ms: int = 0) -> datetime:
    return datetime(2026, 1, 1, tzinfo=UTC) + timedelta(milliseconds=offset_ms)


def _gps(offset_ms: int, accuracy: float | None = 5.0) -> PositionFix:
    return PositionFix(
        latitude=1.0,
        longitude=2.0,
        source="gps",
        source_kind=ProviderKind.SATELLITE,
        timestamp=_dt(offset_ms),
        accuracy=accuracy,
    )


def _network(offset_ms: int, accuracy: float | None = 50.0) -> PositionFix:
    return PositionFix(
        latitude=1.001,
        longitude=2.001,
        source="network",
        source_kind=ProviderKind.NETWORK,
        timestamp=_dt(offset_ms),
        accuracy=accuracy,
    )


def _tracking(*providers: str) -> TrackingState:
    state = apply_event(TrackingState(), StartRequested(enabled_providers=frozenset(providers))).state
    return apply_event(state, TrackingEstablished()).state


def _feed(state: TrackingState, fixes: list[PositionFix]) -> tuple[TrackingState, list[PositionFix]]:
    accepted: list[PositionFix] = []
    for fix in fixes:
        transition = apply_event(state, FixReceived(fix=fix), debounce=_DEBOUNCE)
        state = transition.state
        if transition.accepted_fix is not None:
            accepted.append(transition.accepted_fix)
    return state, accepted


def test_satellite_outranks_network() -> None:
    assert provider_priority(ProviderKind.SATELLITE) > provider_priority(ProviderKind.NETWORK)


def test_start_without_providers_reports_error_and_stays_stopped() -> None:
    transition = apply_event(TrackingState(), StartRequested(enabled_providers=frozenset()))

    assert transition.error == ErrorKind.NO_PROVIDER_AVAILABLE
    assert transition.state.phase == TrackingPhase.STOPPED
    assert not transition.state.enabled


def test_start_then_established_enters_tracking() -> None:
    state = apply_event(TrackingState(), StartRequested(enabled_providers=frozenset({"gps"}))).state
    assert state.phase == TrackingPhase.STARTING

    state = apply_event(state, TrackingEstablished()).state
    assert state.phase == TrackingPhase.TRACKING
    assert state.enabled_providers == frozenset({"gps"})


def test_network_fix_within_debounce_after_gps_is_discarded() -> None:
    state, accepted = _feed(_tracking("gps", "network"), [_gps(0), _network(500)])

    assert accepted == [_gps(0)]
    assert state.last_fix == _gps(0)


def test_network_fix_after_debounce_window_is_accepted() -> None:
    _state, accepted = _feed(_tracking("gps", "network"), [_gps(0), _network(1000), _network(1200)])

    # Same priority as the last accepted fix: never debounced.
    assert accepted == [_gps(0), _network(1000), _network(1200)]


def test_gps_fix_is_never_debounced_after_network() -> None:
    _state, accepted = _feed(_tracking("gps", "network"), [_network(0), _gps(10), _gps(20)])

    assert accepted == [_network(0), _gps(10), _gps(20)]


def test_stale_fix_is_rejected() -> None:
    state, accepted = _feed(_tracking("gps"), [_gps(5000), _gps(1000)])

    assert accepted == [_gps(5000)]
    assert state.last_fix == _gps(5000)


def test_equal_timestamp_requires_better_accuracy() -> None:
    _state, accepted = _feed(
        _tracking("gps"),
        [_gps(0, accuracy=10.0), _gps(0, accuracy=10.0), _gps(0, accuracy=3.0), _gps(0, accuracy=None)],
    )

    assert [fix.accuracy for fix in accepted] == [10.0, 3.0]


def test_accepted_timestamps_never_decrease() -> None:
    offsets = [0, 300, 200, 1500, 1400, 1400, 4000, 100, 4200, 3999]
    fixes = [(_gps if index % 2 else _network)(offset) for index, offset in enumerate(offsets)]

    _state, accepted = _feed(_tracking("gps", "network"), fixes)

    timestamps = [fix.timestamp for fix in accepted]
    assert timestamps == sorted(timestamps)
    assert len(accepted) >= 3


def test_should_accept_first_fix() -> None:
    assert should_accept_fix(last_fix=None, incoming=_network(0), debounce=_DEBOUNCE)


def test_events_are_ignored_while_stopped() -> None:
    transition = apply_event(TrackingState(), FixReceived(fix=_gps(0)))

    assert transition.accepted_fix is None
    assert transition.state == TrackingState()


def test_disabling_last_provider_reports_error_but_keeps_tracking() -> None:
    state = _tracking("gps")

    transition = apply_event(state, ProviderDisabled(provider="gps"))

    assert transition.error == ErrorKind.NO_PROVIDER_AVAILABLE
    assert transition.state.phase == TrackingPhase.TRACKING
    assert transition.state.enabled_providers == frozenset()

    recovered = apply_event(transition.state, ProviderEnabled(provider="gps")).state
    assert recovered.enabled_providers == frozenset({"gps"})
    assert recovered.last_error is None


def test_disabling_one_of_two_providers_is_silent() -> None:
    transition = apply_event(_tracking("gps", "network"), ProviderDisabled(provider="network"))

    assert transition.error is None
    assert transition.state.enabled_providers == frozenset({"gps"})


def test_provider_failure_is_reported() -> None:
    transition = apply_event(
        _tracking("gps", "network"),
        ProviderFailed(provider="gps", error=ErrorKind.PERMISSION_DENIED),
    )

    assert transition.error == ErrorKind.PERMISSION_DENIED
    assert transition.state.enabled_providers == frozenset({"network"})
    assert transition.state.last_error == ErrorKind.PERMISSION_DENIED


def test_stop_resets_state() -> None:
    state, _accepted = _feed(_tracking("gps"), [_gps(0)])

    stopped = apply_event(state, StopRequested()).state

    assert stopped == TrackingState()


def test_unknown_event_is_rejected() -> None:
    class Unexpected(TrackingEvent):
        pass

    with pytest.raises(TypeError):
        apply_event(_tracking("gps"), Unexpected())


def test_seed_prefers_most_recent_then_most_accurate() -> None:
    assert select_seed_fix([None, None]) is None
    assert select_seed_fix([_gps(0), None, _network(10)]) == _network(10)
    assert select_seed_fix([_network(0, accuracy=40.0), _gps(0, accuracy=4.0)]) == _gps(0, accuracy=4.0)
