from datetime import date, datetime, timedelta, timezone

import pytest

from engines.streaks import (
    active_days_in_window,
    current_streak,
    longest_streak,
    sessions_in_window,
    to_local,
    unique_days,
    week_buckets,
)


def test_current_streak_stops_at_first_gap(daily_sessions, now):
    sessions = daily_sessions([0, 1, 2, 4, 5])
    assert current_streak(sessions, now) == 3


def test_current_streak_is_zero_without_activity_today(daily_sessions, now):
    sessions = daily_sessions(range(1, 10))
    assert current_streak(sessions, now) == 0
    assert current_streak(sessions, now - timedelta(days=1)) == 9


def test_same_day_sessions_count_once(make_session, now):
    sessions = [make_session(0, hour=6), make_session(0, hour=11), make_session(1, hour=8)]
    assert unique_days(sessions) == [now.date() - timedelta(days=1), now.date()]
    assert current_streak(sessions, now.date()) == 2
    assert active_days_in_window(sessions, 7, now) == 2


def test_empty_history_is_a_zero_state(now):
    assert current_streak([], now) == 0
    assert longest_streak([]) == 0
    assert active_days_in_window([], 30, now) == 0


def test_longest_streak_scans_whole_history(daily_sessions):
    sessions = daily_sessions([0, 1, 5, 6, 7, 8, 20])
    assert longest_streak(sessions) == 4


def test_window_uses_start_time_cutoff(make_session, now):
    inside = make_session(9, hour=13)
    outside = make_session(10, hour=11)
    assert sessions_in_window([inside, outside], 10, now) == [inside]
    assert active_days_in_window([inside, outside], 10, now) == 1


def test_window_must_be_positive(now):
    with pytest.raises(ValueError):
        sessions_in_window([], 0, now)


def test_aware_timestamps_are_bucketed_in_local_time():
    aware = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)
    local = to_local(aware)
    assert local.tzinfo is None
    assert local == aware.astimezone().replace(tzinfo=None)


def test_week_buckets_are_seven_days_apart():
    buckets = week_buckets(date(2024, 1, 1), date(2024, 1, 22))
    assert buckets == [date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15), date(2024, 1, 22)]
    assert week_buckets(date(2024, 1, 2), date(2024, 1, 1)) == []
