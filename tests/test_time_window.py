"""Tests for time window parsing and evaluation."""

from __future__ import annotations

import pytest

from core.clock import FixedClock, SiteClock, has_explicit_zone, parse_timestamp
from core.exceptions import ParseError
from core.time_window import evaluate, resolve_window
from models.content import TimeWindow
from models.events import Verdict

NEW_YEAR_UTC = 1735689600  # 2025-01-01T00:00:00Z


@pytest.fixture
def clock() -> SiteClock:
    return SiteClock("UTC")


def test_start_only_window_opens_at_start(clock: SiteClock) -> None:
    window = TimeWindow(start="2025-01-01T00:00:00Z", end="")

    assert evaluate(window, NEW_YEAR_UTC - 1, clock) is Verdict.HIDDEN
    assert evaluate(window, NEW_YEAR_UTC, clock) is Verdict.VISIBLE
    assert evaluate(window, NEW_YEAR_UTC + 3600, clock) is Verdict.VISIBLE


@pytest.mark.parametrize("offset", [-86400, -1, 0, 1, 86400])
def test_start_only_visible_iff_now_at_or_after_start(clock: SiteClock, offset: int) -> None:
    window = TimeWindow(start="2025-01-01T00:00:00Z")
    expected = Verdict.VISIBLE if offset >= 0 else Verdict.HIDDEN
    assert evaluate(window, NEW_YEAR_UTC + offset, clock) is expected


def test_end_only_window_closes_after_end(clock: SiteClock) -> None:
    window = TimeWindow(end="2025-01-01T00:00:00Z")

    assert evaluate(window, NEW_YEAR_UTC, clock) is Verdict.VISIBLE
    assert evaluate(window, NEW_YEAR_UTC + 1, clock) is Verdict.HIDDEN


def test_bounded_window_is_inclusive(clock: SiteClock) -> None:
    window = TimeWindow(start="2025-01-01T00:00:00Z", end="2025-01-02T00:00:00Z")

    assert evaluate(window, NEW_YEAR_UTC - 1, clock) is Verdict.HIDDEN
    assert evaluate(window, NEW_YEAR_UTC, clock) is Verdict.VISIBLE
    assert evaluate(window, NEW_YEAR_UTC + 86400, clock) is Verdict.VISIBLE
    assert evaluate(window, NEW_YEAR_UTC + 86401, clock) is Verdict.HIDDEN


def test_unconfigured_window_is_visible(clock: SiteClock) -> None:
    assert evaluate(TimeWindow(), NEW_YEAR_UTC, clock) is Verdict.VISIBLE
    assert evaluate(TimeWindow(start="", end=""), NEW_YEAR_UTC, clock) is Verdict.VISIBLE


@pytest.mark.parametrize("now", [NEW_YEAR_UTC - 86400, NEW_YEAR_UTC, NEW_YEAR_UTC + 86400 * 5])
def test_reversed_window_is_always_invalid(clock: SiteClock, now: int) -> None:
    window = TimeWindow(start="2025-01-03T00:00:00Z", end="2025-01-01T00:00:00Z")
    assert evaluate(window, now, clock) is Verdict.INVALID


def test_unparseable_bound_is_invalid_not_dropped(clock: SiteClock) -> None:
    window = TimeWindow(start="next tuesday", end="2030-01-01T00:00:00Z")
    assert evaluate(window, NEW_YEAR_UTC, clock) is Verdict.INVALID

    resolved = resolve_window(window, clock)
    assert resolved.invalid
    assert resolved.start is None


def test_bare_string_uses_site_timezone() -> None:
    london = SiteClock("Europe/London")
    new_york = SiteClock("America/New_York")

    # Midsummer: London is UTC+1, New York UTC-4.
    assert london.parse("2025-07-01T12:00:00") == parse_timestamp(
        "2025-07-01T11:00:00Z", london.tz
    )
    assert new_york.parse("2025-07-01T12:00:00") == london.parse("2025-07-01T17:00:00")


def test_explicit_offset_ignores_site_timezone() -> None:
    tokyo = SiteClock("Asia/Tokyo")
    utc = SiteClock("UTC")

    assert tokyo.parse("2025-01-01T09:00:00+09:00") == NEW_YEAR_UTC
    assert utc.parse("2025-01-01T09:00:00+0900") == NEW_YEAR_UTC
    assert tokyo.parse("2025-01-01T00:00:00z") == NEW_YEAR_UTC


def test_zone_marker_detection() -> None:
    assert has_explicit_zone("2025-01-01T00:00:00Z")
    assert has_explicit_zone("2025-01-01T00:00:00-05:00")
    assert not has_explicit_zone("2025-01-01T00:00:00")


def test_parse_rejects_garbage(clock: SiteClock) -> None:
    with pytest.raises(ParseError):
        clock.parse("not a date")
    with pytest.raises(ParseError):
        clock.parse("   ")
    assert clock.try_parse("not a date") is None
    assert clock.try_parse("") is None


def test_fixed_clock_only_moves_when_told() -> None:
    clock = FixedClock(NEW_YEAR_UTC)
    assert clock.now() == NEW_YEAR_UTC
    clock.advance(60)
    assert clock.now() == NEW_YEAR_UTC + 60
    with pytest.raises(ValueError):
        clock.advance(-1)
