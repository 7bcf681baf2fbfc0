"""Tests for time-bucketed and categorical rollups."""

import pytest

from src.models.analytics import AggregatedPoint, Bucket
from src.models.errors import InvalidBucketError
from src.modules.analytics.rollup import Measures, RollupEngine, period_sort_key

SALES = Measures(
    sums={"revenue": "line_total", "units": "quantity"},
    distinct={"orders": "order_id"},
)


# ===========================================================================
# Key functions
# ===========================================================================
class TestKeyFunctions:

    @pytest.mark.parametrize("value,expected", [
        ("2024-12-30T12:00:00", "2025-W01"),
        ("2025-01-01T12:00:00", "2025-W01"),
        ("2021-01-03T12:00:00", "2020-W53"),
        ("2020-12-31T12:00:00", "2020-W53"),
        ("2025-06-15T12:00:00", "2025-W24"),
        ("2026-01-01T12:00:00", "2026-W01"),
    ])
    def test_iso_week_across_year_boundaries(self, value, expected):
        assert RollupEngine().week_key(value) == expected

    def test_day_key_uses_viewer_timezone(self, paris_winter):
        engine = RollupEngine(paris_winter)
        # 23:30 UTC on Jan 31 is already Feb 1 in Paris.
        assert engine.day_key("2025-01-31T23:30:00Z") == "2025-02-01"
        assert engine.month_key("2025-01-31T23:30:00Z") == "2025-02"

    def test_naive_timestamps_are_local(self, paris_winter):
        engine = RollupEngine(paris_winter)
        assert engine.day_key("2025-01-31T23:30:00") == "2025-01-31"

    @pytest.mark.parametrize("value", [None, "", "not a date", 12345])
    def test_unparseable_values_give_none(self, value):
        engine = RollupEngine()
        assert engine.day_key(value) is None
        assert engine.week_key(value) is None
        assert engine.month_key(value) is None

    def test_invalid_bucket_raises(self):
        with pytest.raises(InvalidBucketError):
            RollupEngine().key_function("quarter")

    def test_bucket_parse_is_case_insensitive(self):
        assert Bucket.parse(" Week ") is Bucket.WEEK

    def test_week_keys_sort_numerically(self):
        keys = ["2025-W10", "2024-W52", "2025-W02"]
        assert sorted(keys, key=period_sort_key) == ["2024-W52", "2025-W02", "2025-W10"]


# ===========================================================================
# Time rollups
# ===========================================================================
class TestRollup:

    def test_daily_rollup(self, sales_rows):
        points = RollupEngine().rollup(sales_rows, "day", SALES)
        assert [p.period for p in points] == ["2025-01-06", "2025-01-07", "2025-01-08"]
        first = points[0]
        assert first.get("revenue") == 13.0
        assert first.get("units") == 3.0
        # Two lines of the same order count as one order.
        assert first.get("orders") == 1

    def test_order_dedup_is_per_bucket(self):
        rows = [
            {"order_id": 7, "created_at": "2025-01-06T10:00:00", "line_total": 1},
            {"order_id": 7, "created_at": "2025-01-07T10:00:00", "line_total": 1},
        ]
        daily = RollupEngine().rollup(rows, Bucket.DAY, SALES)
        assert [p.get("orders") for p in daily] == [1, 1]
        weekly = RollupEngine().rollup(rows, Bucket.WEEK, SALES)
        assert len(weekly) == 1
        assert weekly[0].get("orders") == 1

    def test_rows_spread_over_three_days(self):
        rows = [
            {
                "order_id": i,
                "created_at": f"2025-03-{10 + i % 3:02d}T12:00:00",
                "line_total": 2,
                "quantity": 1,
            }
            for i in range(37)
        ]
        points = RollupEngine().rollup(rows, "day", SALES)
        assert len(points) == 3
        assert [p.get("units") for p in points] == [13, 12, 12]
        assert sum(p.get("revenue") for p in points) == 74.0
        assert sum(p.get("orders") for p in points) == 37

    def test_rows_spread_over_three_local_days(self, paris_winter):
        # 23:30 UTC is already the next day in Paris.
        rows = [
            {
                "order_id": i,
                "created_at": f"2025-03-{9 + i % 3:02d}T23:30:00Z",
                "line_total": 2,
                "quantity": 1,
            }
            for i in range(37)
        ]
        points = RollupEngine(paris_winter).rollup(rows, "day", SALES)
        assert [p.period for p in points] == ["2025-03-10", "2025-03-11", "2025-03-12"]
        assert [p.get("orders") for p in points] == [13, 12, 12]
        assert sum(p.get("revenue") for p in points) == 74.0

        utc_points = RollupEngine().rollup(rows, "day", SALES)
        assert [p.period for p in utc_points] == ["2025-03-09", "2025-03-10", "2025-03-11"]

    def test_rows_without_timestamp_are_skipped(self):
        rows = [
            {"order_id": 1, "created_at": "2025-01-06T10:00:00", "line_total": 5},
            {"order_id": 2, "created_at": None, "line_total": 50},
            {"order_id": 3, "created_at": "garbage", "line_total": 500},
        ]
        points = RollupEngine().rollup(rows, "day", SALES)
        assert len(points) == 1
        assert points[0].get("revenue") == 5.0

    def test_empty_input(self):
        assert RollupEngine().rollup([], "month", SALES) == []
        assert RollupEngine().rollup(None, "month", SALES) == []

    def test_non_numeric_measures_count_as_zero(self):
        rows = [{"created_at": "2025-01-06", "line_total": "n/a", "quantity": None}]
        point = RollupEngine().rollup(rows, "day", SALES)[0]
        assert point.get("revenue") == 0.0
        assert point.get("units") == 0.0

    def test_weeks_sorted_across_year_boundary(self):
        rows = [
            {"order_id": 1, "created_at": "2025-01-08T10:00:00", "line_total": 1},
            {"order_id": 2, "created_at": "2024-12-23T10:00:00", "line_total": 1},
            {"order_id": 3, "created_at": "2024-12-31T10:00:00", "line_total": 1},
        ]
        points = RollupEngine().rollup(rows, "week", SALES)
        assert [p.period for p in points] == ["2024-W52", "2025-W01", "2025-W02"]


# ===========================================================================
# Re-rolling day points
# ===========================================================================
class TestReroll:

    def test_reroll_matches_direct_rollup(self):
        rows = [
            {"order_id": i, "created_at": f"2025-01-{d:02d}T12:00:00",
             "line_total": d, "quantity": 1}
            for i, d in enumerate([1, 2, 5, 6, 12, 13, 20, 27, 28, 31])
        ]
        engine = RollupEngine()
        daily = engine.rollup(rows, "day", SALES)
        for bucket in ("week", "month"):
            direct = engine.rollup(rows, bucket, SALES)
            rerolled = engine.reroll(daily, bucket)
            assert [p.period for p in rerolled] == [p.period for p in direct]
            for a, b in zip(rerolled, direct):
                assert a.get("revenue") == b.get("revenue")
                assert a.get("units") == b.get("units")

    def test_reroll_skips_bad_periods(self):
        points = [
            AggregatedPoint("2025-01-06", {"revenue": 1.0}),
            AggregatedPoint("???", {"revenue": 9.0}),
        ]
        rerolled = RollupEngine().reroll(points, "month")
        assert rerolled == [AggregatedPoint("2025-01", {"revenue": 1.0})]


# ===========================================================================
# Categorical grouping
# ===========================================================================
class TestGroupBy:

    def test_keeps_first_seen_order(self):
        rows = [
            {"method": "card", "amount": 10},
            {"method": "sepa", "amount": 5},
            {"method": "card", "amount": 2},
        ]
        points = RollupEngine().group_by(rows, "method", Measures(sums={"amount": "amount"}))
        assert [p.period for p in points] == ["card", "sepa"]
        assert points[0].get("amount") == 12.0

    def test_drops_empty_keys(self):
        rows = [{"method": ""}, {"method": None}, {"method": "  "}, {"method": "card"}]
        points = RollupEngine().group_by(rows, "method", Measures(sums={"n": lambda r: 1}))
        assert [p.period for p in points] == ["card"]

    def test_custom_sort(self):
        rows = [{"p": "a", "n": 1}, {"p": "b", "n": 3}, {"p": "c", "n": 2}]
        points = RollupEngine().group_by(
            rows, "p", Measures(sums={"n": "n"}), sort_key=lambda p: p.get("n"), reverse=True
        )
        assert [p.period for p in points] == ["b", "c", "a"]
