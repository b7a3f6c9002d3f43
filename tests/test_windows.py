"""Tests for hourly draw windows and daily seasons."""

from datetime import datetime, timedelta, timezone

import pytest

from nuke_league.services.windows import (
    Granularity,
    as_utc,
    current_season_id,
    draw_window_id,
    is_in_season,
    season_end,
    season_start,
    time_remaining_in_season,
    window_id,
)


def test_hourly_window_format():
    assert window_id(datetime(2025, 10, 9, 23, 15)) == "2025-10-09-23"


def test_daily_window_format():
    assert window_id(datetime(2025, 1, 2, 3, 4), Granularity.DAILY) == "2025-01-02"


def test_same_hour_gives_same_window():
    start = datetime(2025, 10, 9, 14, 0, 0)
    end = datetime(2025, 10, 9, 14, 59, 59, 999999)
    assert draw_window_id(start) == draw_window_id(end) == "2025-10-09-14"


def test_adjacent_hours_differ():
    a = datetime(2025, 10, 9, 14, 59, 59)
    b = a + timedelta(seconds=1)
    assert draw_window_id(a) != draw_window_id(b)
    assert draw_window_id(b) == "2025-10-09-15"


def test_hour_rollover_into_next_day():
    assert draw_window_id(datetime(2025, 12, 31, 23, 30) + timedelta(hours=1)) == "2026-01-01-00"


def test_aware_datetime_is_converted_to_utc():
    local = datetime(2025, 10, 10, 1, 30, tzinfo=timezone(timedelta(hours=2)))
    assert draw_window_id(local) == "2025-10-09-23"
    assert current_season_id(local) == "2025-10-09"


def test_as_utc_leaves_naive_untouched():
    naive = datetime(2025, 10, 9, 5)
    assert as_utc(naive) is naive


def test_window_ids_sort_in_time_order():
    instants = [datetime(2025, 10, 9, 9) + timedelta(hours=h) for h in range(30)]
    ids = [draw_window_id(i) for i in instants]
    assert ids == sorted(ids)


def test_season_bounds():
    assert season_start("2025-10-09") == datetime(2025, 10, 9)
    assert season_end("2025-10-09") == datetime(2025, 10, 9, 23, 59, 59, 999999)


def test_is_in_season():
    assert is_in_season(datetime(2025, 10, 9, 0, 0), "2025-10-09")
    assert is_in_season(datetime(2025, 10, 9, 23, 59, 59), "2025-10-09")
    assert not is_in_season(datetime(2025, 10, 10, 0, 0), "2025-10-09")


def test_time_remaining_in_season():
    remaining = time_remaining_in_season(datetime(2025, 10, 9, 23, 0))
    assert remaining == timedelta(minutes=59, seconds=59, microseconds=999999)


def test_malformed_season_id_raises():
    with pytest.raises(ValueError):
        season_start("2025/10/09")
