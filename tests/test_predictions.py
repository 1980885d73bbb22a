"""
Tests for src/tripletcast/predictions.py - Forward prediction calendar.
"""

from datetime import date, timedelta

import pytest

from tripletcast.config import EngineConfig
from tripletcast.counter import Counter
from tripletcast.observations import Observation
from tripletcast.predictions import (
    DatePrediction,
    build_groups,
    group_tables,
    next_n_dates,
    positional_table,
    predict_dates,
    triplet_table,
)


@pytest.fixture
def history():
    """Mondays draw '123', Wednesdays draw '456', March 14 draws '314'."""
    observations = []
    start = date(2023, 1, 2)  # Monday
    for w in range(30):
        observations.append(Observation(start + timedelta(weeks=w), "123"))
        observations.append(Observation(start + timedelta(weeks=w, days=2), "456"))
    observations.append(Observation(date(2023, 3, 14), "314"))
    return observations


class TestBuildGroups:
    """Tests for build_groups."""

    def test_weekly_groups(self, history):
        groups = build_groups(history, "weekly")
        assert groups.overall.total == 61
        assert groups.get("weekday:1").count("123") == 30
        assert groups.get("weekday:3").count("456") == 30

    def test_overall_only(self, history):
        groups = build_groups(history, "overall")
        assert groups.keys() == []
        assert groups.overall.total == 61


class TestNextDates:
    """Tests for next_n_dates."""

    def test_starts_day_after(self):
        dates = next_n_dates(3, date(2024, 12, 30))
        assert dates == [date(2024, 12, 31), date(2025, 1, 1), date(2025, 1, 2)]

    def test_full_year(self):
        dates = next_n_dates(365, date(2024, 1, 1))
        assert len(dates) == 365
        assert dates[-1] == date(2024, 12, 31)

    def test_zero_days(self):
        assert next_n_dates(0, date(2024, 1, 1)) == []


class TestPredictDates:
    """Tests for predict_dates."""

    def test_weekday_evidence(self, history):
        """Each date ranks from its own weekday counter."""
        groups = build_groups(history, "weekly")
        config = EngineConfig(top_n=5)
        monday, wednesday = date(2024, 1, 1), date(2024, 1, 3)

        preds = predict_dates(groups, [monday, wednesday], "weekly", config)

        assert [p.date for p in preds] == [monday, wednesday]
        assert preds[0].source_key == "weekday:1"
        assert preds[0].candidates[0].triplet == "123"
        assert preds[1].source_key == "weekday:3"
        assert preds[1].candidates[0].triplet == "456"
        assert all(len(p.candidates) == 5 for p in preds)

    def test_weekly_fallback_to_overall(self, history):
        """A weekday with no draws uses the overall counter."""
        groups = build_groups(history, "weekly")
        sunday = date(2024, 1, 7)

        pred = predict_dates(groups, [sunday], "weekly", EngineConfig(top_n=3))[0]
        assert pred.source_key == "overall"
        assert pred.observations_used == 61

    def test_monthly_chain(self, history):
        """Month-day evidence is preferred over the month."""
        groups = build_groups(history, "monthly")
        preds = predict_dates(
            groups, [date(2024, 3, 14), date(2024, 3, 16), date(2024, 12, 25)],
            "monthly", EngineConfig(top_n=3),
        )
        assert preds[0].source_key == "month_day:3-14"
        assert preds[0].candidates[0].triplet == "314"
        assert preds[1].source_key == "month:3"
        assert preds[2].source_key == "overall"

    def test_strategy_override(self, history):
        groups = build_groups(history, "overall")
        pred = predict_dates(groups, [date(2024, 1, 1)], "overall", EngineConfig(top_n=3), "exact")[0]
        assert pred.candidates[0].triplet in {"123", "456"}
        assert pred.candidates[0].score < 0.5

    def test_to_record(self, history):
        groups = build_groups(history, "weekly")
        pred = predict_dates(groups, [date(2024, 1, 1)], "weekly", EngineConfig(top_n=2))[0]
        record = pred.to_record()

        assert isinstance(pred, DatePrediction)
        assert record["date"] == "2024-01-01"
        assert record["source_key"] == "weekday:1"
        assert record["observations_used"] == 30
        assert record["candidates"][0] == {"triplet": "123", "score": 1.0, "count": 30}


class TestPositionalTable:
    """Tests for positional_table."""

    def test_rows_and_columns(self):
        counter = Counter()
        counter.fold_in("123", times=3)
        counter.fold_in("100")

        rows = positional_table(counter)
        assert [r["digit"] for r in rows] == [str(d) for d in range(10)]
        assert rows[1]["count_pos0"] == 4
        assert rows[1]["prob_pos0"] == 1.0
        assert rows[2]["count_pos1"] == 3
        assert rows[0]["prob_pos2"] == 0.25

    def test_columns_sum(self):
        counter = Counter()
        counter.fold_all(["000", "123", "999", "555"])
        rows = positional_table(counter)
        for p in range(3):
            assert sum(r[f"count_pos{p}"] for r in rows) == 4
            assert sum(r[f"prob_pos{p}"] for r in rows) == pytest.approx(1.0)


class TestTripletTable:
    """Tests for triplet_table."""

    def test_sorted_by_count_then_triplet(self):
        counter = Counter()
        counter.fold_in("500", times=2)
        counter.fold_in("123", times=5)
        counter.fold_in("042", times=2)

        rows = triplet_table(counter)
        assert [r["triplet"] for r in rows] == ["123", "042", "500"]
        assert rows[0] == {"triplet": "123", "count": 5, "probability": pytest.approx(5 / 9)}
        assert sum(r["probability"] for r in rows) == pytest.approx(1.0)

    def test_empty_counter(self):
        assert triplet_table(Counter()) == []


class TestGroupTables:
    """Tests for group_tables."""

    def test_overall_and_each_group(self, history):
        groups = build_groups(history, "weekly")
        tables = group_tables(groups)

        assert list(tables) == ["overall", "weekday:1", "weekday:2", "weekday:3"]
        assert tables["overall"]["total"] == 61
        assert tables["weekday:1"]["triplets"] == [
            {"triplet": "123", "count": 30, "probability": 1.0}
        ]
        assert tables["weekday:3"]["positional"][4]["count_pos0"] == 30
        assert len(tables["weekday:2"]["positional"]) == 10
