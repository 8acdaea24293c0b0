"""
Tests for recurrence expansion.

Covers:
- monthly day-of-month clamping (31st in February and April)
- weekly anchors, daily expansion, yearly anchors including Feb 29
- validation of anchors and unknown frequencies
"""

from datetime import date

import pytest

from budget_kernel.domain.recurrence import (
    RecurrenceRule,
    clamp_day,
    expand,
    first_occurrence,
)
from budget_kernel.exceptions import InvalidRecurrenceError


class TestClampDay:

    @pytest.mark.parametrize(
        "year, month, day, expected",
        [
            (2023, 2, 31, date(2023, 2, 28)),
            (2024, 2, 31, date(2024, 2, 29)),
            (2024, 4, 31, date(2024, 4, 30)),
            (2024, 1, 31, date(2024, 1, 31)),
            (2024, 6, 15, date(2024, 6, 15)),
        ],
    )
    def test_clamps_to_last_day(self, year, month, day, expected):
        assert clamp_day(year, month, day) == expected


class TestExpand:

    def test_monthly_31st_in_february(self):
        rule = RecurrenceRule("monthly", day_of_month=31)
        assert expand(rule, date(2023, 2, 1), date(2023, 2, 28)) == [date(2023, 2, 28)]

    def test_monthly_across_quarter(self):
        rule = RecurrenceRule("monthly", day_of_month=31)
        assert expand(rule, date(2024, 1, 1), date(2024, 4, 30)) == [
            date(2024, 1, 31),
            date(2024, 2, 29),
            date(2024, 3, 31),
            date(2024, 4, 30),
        ]

    def test_weekly_mondays_in_month(self):
        rule = RecurrenceRule("weekly", day_of_week=0)
        dates = expand(rule, date(2024, 4, 1), date(2024, 4, 30))

        assert dates == [date(2024, 4, d) for d in (1, 8, 15, 22, 29)]
        assert all(d.weekday() == 0 for d in dates)

    def test_daily_covers_every_day(self):
        rule = RecurrenceRule("daily")
        assert len(expand(rule, date(2024, 2, 1), date(2024, 2, 29))) == 29

    def test_yearly_fires_only_in_its_month(self):
        rule = RecurrenceRule("yearly", day_of_month=29, month_of_year=2)

        assert expand(rule, date(2023, 2, 1), date(2023, 2, 28)) == [date(2023, 2, 28)]
        assert expand(rule, date(2023, 3, 1), date(2023, 3, 31)) == []

    def test_inverted_range_is_empty(self):
        rule = RecurrenceRule("daily")
        assert expand(rule, date(2024, 2, 2), date(2024, 2, 1)) == []

    def test_first_occurrence(self):
        rule = RecurrenceRule("weekly", day_of_week=4)
        assert first_occurrence(rule, date(2024, 3, 1), date(2024, 3, 31)) == date(2024, 3, 1)
        assert first_occurrence(RecurrenceRule("yearly", 0, 1, 1), date(2024, 3, 1), date(2024, 3, 31)) is None


class TestValidation:

    @pytest.mark.parametrize(
        "rule",
        [
            RecurrenceRule("fortnightly"),
            RecurrenceRule("weekly"),
            RecurrenceRule("weekly", day_of_week=7),
            RecurrenceRule("monthly"),
            RecurrenceRule("monthly", day_of_month=0),
            RecurrenceRule("monthly", day_of_month=32),
            RecurrenceRule("yearly", day_of_month=1),
            RecurrenceRule("yearly", day_of_month=1, month_of_year=13),
        ],
    )
    def test_invalid_rules_raise(self, rule):
        with pytest.raises(InvalidRecurrenceError):
            rule.validate()

    def test_valid_rule_returns_itself(self):
        rule = RecurrenceRule("monthly", day_of_month=5)
        assert rule.validate() is rule
