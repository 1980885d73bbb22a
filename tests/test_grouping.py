"""
Tests for src/tripletcast/grouping.py - Date to counter-key chains.
"""

from datetime import date

import pytest

from tripletcast.backtest import run_backtest
from tripletcast.config import EngineConfig
from tripletcast.grouping import (
    GroupingError,
    get_grouping,
    key_chain,
    monthly,
    overall,
    weekday_index,
    weekly,
)
from tripletcast.observations import Observation


class TestWeekday:
    """Sunday = 0 ... Saturday = 6."""

    @pytest.mark.parametrize("d,expected", [
        (date(2024, 1, 7), 0),   # Sunday
        (date(2024, 1, 1), 1),   # Monday
        (date(2024, 1, 3), 3),   # Wednesday
        (date(2024, 1, 6), 6),   # Saturday
    ])
    def test_weekday_index(self, d, expected):
        assert weekday_index(d) == expected

    def test_weekly_key(self):
        assert weekly(date(2024, 1, 7)) == ["weekday:0"]


class TestChains:
    """Tests for the built-in grouping chains."""

    def test_monthly_chain_finest_first(self):
        assert monthly(date(2024, 3, 14)) == ["month_day:3-14", "month:3"]

    def test_leap_day(self):
        assert monthly(date(2024, 2, 29))[0] == "month_day:2-29"

    def test_overall_empty(self):
        assert overall(date(2024, 3, 14)) == []

    def test_get_grouping(self):
        assert get_grouping("weekly") is weekly
        assert get_grouping("monthly") is monthly

    def test_unknown_mode(self):
        with pytest.raises(GroupingError, match="Unknown grouping mode"):
            get_grouping("hourly")


class TestKeyChain:
    """Tests for key_chain normalization."""

    def test_scalar_key(self):
        """A non-sequence key becomes a one-element chain."""
        assert key_chain(lambda d: d.month, date(2024, 3, 1)) == ["3"]

    def test_string_key(self):
        """A string is one key, not a sequence of characters."""
        assert key_chain(lambda d: "all", date(2024, 3, 1)) == ["all"]

    def test_none_key(self):
        assert key_chain(lambda d: None, date(2024, 3, 1)) == []

    def test_tuple_is_one_composite_key(self):
        """(month, day) is a single key, not a chain of month then day."""
        assert key_chain(lambda d: (d.month, d.day), date(2024, 3, 15)) == ["3-15"]

    def test_list_is_chain(self):
        assert key_chain(lambda d: [(d.month, d.day), d.month], date(2024, 3, 15)) == ["3-15", "3"]

    def test_composite_keys_do_not_collide(self):
        """Month 3 and day 3 of January land in different counters."""
        history = [
            Observation(date(2024, 1, 3), "111"),
            Observation(date(2024, 3, 10), "222"),
            Observation(date(2024, 3, 15), "333"),
        ]
        result = run_backtest(history, lambda d: (d.month, d.day), EngineConfig(min_train=2))

        step = result.steps[0]
        assert step.evidence_key == "overall"
        assert step.observations_used == 2
        assert set(result.groups.keys()) == {"1-3", "3-10", "3-15"}
