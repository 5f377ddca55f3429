"""
Unit tests for the refresh-storm circuit breaker.
"""

import pytest

from campus.modules.session.breaker import BreakerConfig, BreakerState, RefreshStormBreaker
from conftest import FakeClock


@pytest.fixture
def breaker_clock():
    return FakeClock(start=0.0)


@pytest.fixture
def breaker(breaker_clock):
    return RefreshStormBreaker(BreakerConfig(window_seconds=5.0, threshold=3), clock=breaker_clock)


def test_fourth_renewal_within_window_trips(breaker, breaker_clock):
    """Four renewals spread over four seconds trip on the fourth."""
    results = []
    for _ in range(4):
        results.append(breaker.record_renewal())
        breaker_clock.advance(1.33)

    assert results == [False, False, False, True]
    assert breaker.state == BreakerState.TRIPPED
    assert breaker.tripped is True


def test_three_renewals_do_not_trip(breaker, breaker_clock):
    for _ in range(3):
        assert breaker.record_renewal() is False
        breaker_clock.advance(1)

    assert breaker.state == BreakerState.NORMAL
    assert breaker.renewal_count == 3


def test_renewals_separated_by_window_do_not_accumulate(breaker, breaker_clock):
    """A gap of at least the window resets the counter."""
    breaker.record_renewal()
    breaker_clock.advance(6)
    breaker.record_renewal()

    assert breaker.renewal_count == 1
    assert breaker.state == BreakerState.NORMAL


def test_gap_equal_to_window_resets(breaker, breaker_clock):
    for _ in range(3):
        breaker.record_renewal()
        breaker_clock.advance(1)

    breaker_clock.advance(4)  # 5s since the last renewal
    assert breaker.record_renewal() is False
    assert breaker.renewal_count == 1


def test_slow_steady_renewals_never_trip(breaker, breaker_clock):
    for _ in range(20):
        assert breaker.record_renewal() is False
        breaker_clock.advance(5)

    assert breaker.state == BreakerState.NORMAL


def test_tripped_is_terminal(breaker, breaker_clock):
    for _ in range(4):
        breaker.record_renewal()

    breaker_clock.advance(3600)

    assert breaker.record_renewal() is True
    assert breaker.state == BreakerState.TRIPPED


def test_last_renewal_time_recorded(breaker, breaker_clock):
    breaker_clock.advance(42)
    breaker.record_renewal()

    assert breaker.last_renewal_at == 42


def test_snapshot(breaker):
    breaker.record_renewal()
    snap = breaker.snapshot()

    assert snap["state"] == "NORMAL"
    assert snap["renewal_count"] == 1
    assert snap["window_seconds"] == 5.0
    assert snap["threshold"] == 3


def test_instances_do_not_share_counters(breaker_clock):
    first = RefreshStormBreaker(BreakerConfig(), clock=breaker_clock)
    second = RefreshStormBreaker(BreakerConfig(), clock=breaker_clock)

    for _ in range(4):
        first.record_renewal()

    assert first.tripped is True
    assert second.tripped is False
    assert second.renewal_count == 0
