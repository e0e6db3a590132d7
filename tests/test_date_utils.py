"""
tests/test_date_utils.py
=========================
Weekly period and medical-validity rules. Pure functions, no DB.
"""
from datetime import date, datetime

import pytest

from utils.date_utils import (
    compute_period, is_medical_valid_for_period, lookahead_periods, next_monday,
    period_end, subtract_months, to_date,
)


class TestToDate:

    def test_date_passthrough(self):
        assert to_date(date(2024, 1, 1)) == date(2024, 1, 1)

    def test_datetime_truncated(self):
        assert to_date(datetime(2024, 1, 1, 23, 59)) == date(2024, 1, 1)

    def test_iso_string(self):
        assert to_date(" 2024-01-01T08:00:00 ") == date(2024, 1, 1)

    def test_unsupported(self):
        with pytest.raises(TypeError):
            to_date(20240101)


class TestPeriods:

    @pytest.mark.parametrize("day, monday", [
        (date(2024, 1, 1), date(2024, 1, 1)),    # Monday stays
        (date(2024, 1, 2), date(2024, 1, 8)),
        (date(2024, 1, 7), date(2024, 1, 8)),    # Sunday
        (date(2024, 12, 31), date(2025, 1, 6)),  # across the year
    ])
    def test_next_monday(self, day, monday):
        assert next_monday(day) == monday

    def test_period_is_seven_days(self):
        assert period_end(date(2024, 1, 1)) == date(2024, 1, 8)

    def test_compute_period(self):
        assert compute_period("2023-12-29") == (date(2024, 1, 1), date(2024, 1, 8))

    def test_lookahead(self):
        assert lookahead_periods(date(2024, 1, 1)) == [
            date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15),
        ]


class TestMonths:

    @pytest.mark.parametrize("start, months, expected", [
        (date(2024, 7, 15), 6, date(2024, 1, 15)),
        (date(2024, 8, 31), 6, date(2024, 2, 29)),   # clamped, leap year
        (date(2023, 8, 31), 6, date(2023, 2, 28)),
        (date(2024, 3, 10), 6, date(2023, 9, 10)),   # across the year
    ])
    def test_subtract_months(self, start, months, expected):
        assert subtract_months(start, months) == expected


class TestMedicalValidity:

    START = date(2024, 1, 1)

    def test_same_day(self):
        assert is_medical_valid_for_period(self.START, self.START)

    def test_exactly_six_months(self):
        assert is_medical_valid_for_period(date(2023, 7, 1), self.START)

    def test_older_than_six_months(self):
        assert not is_medical_valid_for_period(date(2023, 6, 30), self.START)

    def test_after_period_start(self):
        assert not is_medical_valid_for_period(date(2024, 1, 2), self.START)

    def test_accepts_strings(self):
        assert is_medical_valid_for_period("2023-12-29", "2024-01-01")
