"""
Unit tests for minute arithmetic helpers.
"""

from datetime import date, datetime, time

import pytest

from learnplan.timeutil import (
    add_minutes,
    from_minutes,
    iter_dates,
    minutes_between,
    minutes_past,
    parse_time,
    resolve_clock,
    subtract_intervals,
    to_minutes,
)


class TestMinutes:

    def test_round_trip(self):
        assert to_minutes(time(9, 45)) == 585
        assert from_minutes(585) == time(9, 45)

    def test_minutes_between(self):
        assert minutes_between(time(9, 0), time(10, 30)) == 90
        assert minutes_between(time(10, 0), time(9, 0)) == 0

    def test_add_minutes(self):
        assert add_minutes(time(9, 40), 35) == time(10, 15)

    @pytest.mark.parametrize("text,expected", [
        ("09:00", time(9, 0)),
        ("7:05", time(7, 5)),
        ("16:30:00", time(16, 30)),
    ])
    def test_parse_time(self, text, expected):
        assert parse_time(text) == expected

    def test_parse_time_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_time("noon")


class TestIterDates:

    def test_inclusive(self):
        days = list(iter_dates(date(2026, 2, 27), date(2026, 3, 2)))
        assert days == [date(2026, 2, 27), date(2026, 2, 28), date(2026, 3, 1), date(2026, 3, 2)]

    def test_empty_when_reversed(self):
        assert list(iter_dates(date(2026, 3, 2), date(2026, 3, 1))) == []


class TestSubtractIntervals:
    """Tests for carving busy ranges out of a block."""

    def test_no_busy(self):
        assert subtract_intervals((540, 600), []) == [(540, 600)]

    def test_busy_at_start(self):
        assert subtract_intervals((540, 600), [(540, 570)]) == [(570, 600)]

    def test_busy_in_middle(self):
        assert subtract_intervals((540, 660), [(570, 600)]) == [(540, 570), (600, 660)]

    def test_overlapping_and_unsorted_busy(self):
        busy = [(620, 640), (560, 590), (580, 600)]
        assert subtract_intervals((540, 660), busy) == [(540, 560), (600, 620), (640, 660)]

    def test_busy_outside_window_is_ignored(self):
        assert subtract_intervals((540, 600), [(480, 540), (600, 700)]) == [(540, 600)]

    def test_fully_covered(self):
        assert subtract_intervals((540, 600), [(500, 650)]) == []


class TestClock:

    @pytest.mark.parametrize("moment,expected", [
        (datetime(2026, 10, 19, 10, 20), 620),
        (datetime(2026, 10, 19, 10, 20, 1), 621),
        (datetime(2026, 10, 19, 0, 0, 0, 1), 1),
    ])
    def test_minutes_past_rounds_up(self, moment, expected):
        assert minutes_past(moment) == expected

    def test_today_alone_has_no_cut_off(self):
        assert resolve_clock(date(2026, 10, 19), None) == (date(2026, 10, 19), None)

    def test_now_wins_over_today(self):
        now = datetime(2026, 10, 20, 7, 0)
        assert resolve_clock(date(2026, 10, 19), now) == (date(2026, 10, 20), now)

    def test_defaults_to_wall_clock(self):
        today, now = resolve_clock(None, None)
        assert now is not None
        assert today == now.date()
