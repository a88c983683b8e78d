"""
Tests for the insights aggregation engine.

All calendar math happens in Asia/Taipei; the tests feed UTC instants
too, to make sure results do not depend on the machine's zone.
"""

import pytest
from datetime import date, datetime, timezone

from tapmoney.insights import AggregationEngine, civil_day
from tapmoney.models.expense import CIVIL_TIMEZONE
from tapmoney.models.insights import TimeWindow

from conftest import make_record


def taipei(*args):
    return datetime(*args, tzinfo=CIVIL_TIMEZONE)


REFERENCE = taipei(2025, 5, 25, 12, 0)


@pytest.fixture
def engine():
    return AggregationEngine(clock=lambda: REFERENCE)


@pytest.fixture
def may_entries():
    return [
        make_record(title="拉麵", amount=100, category="food", when=taipei(2025, 5, 20, 12, 0)),
        make_record(title="T恤", amount=30, category="shop", when=taipei(2025, 5, 22, 9, 0)),
        make_record(title="珍奶", amount=50, category="food", when=taipei(2025, 5, 22, 15, 0)),
    ]


class TestCategoryTotals:
    """Tests for per-category sums."""

    def test_totals_sorted_descending(self, engine, may_entries):
        totals = engine.category_totals(may_entries[:2] + [
            make_record(amount=50, category="food", when=taipei(2025, 5, 21, 8, 0)),
        ])
        assert [t.as_tuple() for t in totals] == [("food", 150), ("shop", 30)]

    def test_other_months_excluded(self, engine, may_entries):
        entries = may_entries + [
            make_record(amount=1000, category="shop", when=taipei(2025, 4, 30, 23, 59)),
            make_record(amount=1000, category="shop", when=taipei(2025, 6, 1, 0, 0)),
        ]
        totals = engine.category_totals(entries)
        assert [t.as_tuple() for t in totals] == [("food", 150), ("shop", 30)]

    def test_ties_keep_first_appearance(self, engine):
        entries = [
            make_record(amount=40, category="transport", when=taipei(2025, 5, 2)),
            make_record(amount=40, category="health", when=taipei(2025, 5, 3)),
            make_record(amount=40, category="living", when=taipei(2025, 5, 4)),
        ]
        totals = engine.category_totals(entries)
        assert [t.category for t in totals] == ["transport", "health", "living"]

    def test_unknown_category_is_its_own_group(self, engine):
        entries = [make_record(amount=70, category="寵物", when=taipei(2025, 5, 2))]
        assert [t.as_tuple() for t in engine.category_totals(entries)] == [("寵物", 70)]

    def test_empty_input(self, engine):
        assert engine.category_totals([]) == []

    def test_explicit_window(self, engine, may_entries):
        window = TimeWindow.day_of(taipei(2025, 5, 22))
        totals = engine.category_totals(may_entries, window=window)
        assert [t.as_tuple() for t in totals] == [("food", 50), ("shop", 30)]


class TestDailyTotals:
    """Tests for per-day sums."""

    def test_daily_totals_ascending(self, engine):
        entries = [
            make_record(amount=30, when=taipei(2025, 5, 22, 9, 0)),
            make_record(amount=100, when=taipei(2025, 5, 20, 12, 0)),
            make_record(amount=20, when=taipei(2025, 5, 22, 21, 0)),
        ]
        totals = engine.daily_totals(entries)
        assert [t.as_tuple() for t in totals] == [
            (date(2025, 5, 20), 100),
            (date(2025, 5, 22), 50),
        ]

    def test_all_days_without_month_only(self, engine):
        entries = [
            make_record(amount=10, when=taipei(2025, 4, 30, 9, 0)),
            make_record(amount=20, when=taipei(2025, 5, 1, 9, 0)),
        ]
        assert len(engine.daily_totals(entries)) == 2
        assert [t.as_tuple() for t in engine.daily_totals(entries, month_only=True)] == [
            (date(2025, 5, 1), 20),
        ]

    def test_midnight_belongs_to_the_day_it_opens(self, engine):
        """Test that 00:00 counts for the new day and 23:59 for the old one."""
        entries = [
            make_record(amount=1, when=taipei(2025, 5, 20, 23, 59)),
            make_record(amount=2, when=taipei(2025, 5, 21, 0, 0)),
        ]
        assert [t.as_tuple() for t in engine.daily_totals(entries)] == [
            (date(2025, 5, 20), 1),
            (date(2025, 5, 21), 2),
        ]

    def test_utc_instants_use_civil_days(self, engine):
        """Test that 2025-05-20T16:30Z is May 21st in Taipei."""
        entries = [make_record(amount=5, when=datetime(2025, 5, 20, 16, 30, tzinfo=timezone.utc))]
        assert engine.daily_totals(entries)[0].day == date(2025, 5, 21)
        assert civil_day(entries[0]) == date(2025, 5, 21)

    def test_month_boundary_in_civil_time(self, engine):
        """Test that 2025-05-31T17:00Z is already June in Taipei."""
        entries = [make_record(amount=5, when=datetime(2025, 5, 31, 17, 0, tzinfo=timezone.utc))]
        assert engine.daily_totals(entries, month_only=True) == []
        june = engine.daily_totals(entries, reference=taipei(2025, 6, 10), month_only=True)
        assert june[0].day == date(2025, 6, 1)


class TestCategorySeries:
    """Tests for per-category daily series."""

    def test_series_per_category(self, engine, may_entries):
        series = engine.category_daily_series(may_entries)

        assert [s.category for s in series] == ["food", "shop"]
        food = series[0]
        assert [p.as_tuple() for p in food.points] == [
            (date(2025, 5, 20), 100),
            (date(2025, 5, 22), 50),
        ]
        assert food.total == 150

    def test_series_limited_to_month(self, engine):
        entries = [make_record(amount=5, when=taipei(2025, 4, 2))]
        assert engine.category_daily_series(entries) == []


class TestCalendar:
    """Tests for day-of-month helpers."""

    @pytest.mark.parametrize("reference,expected", [
        (taipei(2023, 2, 10), 28),
        (taipei(2024, 2, 10), 29),
        (taipei(2025, 4, 1), 30),
        (taipei(2025, 12, 31, 23, 59), 31),
    ])
    def test_days_in_month(self, engine, reference, expected):
        assert engine.days_in_month(reference) == expected

    def test_days_in_month_uses_civil_month(self, engine):
        """Test that 2024-02-29T20:00Z is March 1st in Taipei."""
        assert engine.days_in_month(datetime(2024, 2, 29, 20, 0, tzinfo=timezone.utc)) == 31

    def test_days_in_month_defaults_to_clock(self, engine):
        assert engine.days_in_month() == 31

    def test_daily_entry_counts(self, engine, may_entries):
        assert engine.daily_entry_counts(may_entries) == {20: 1, 22: 2}


class TestTopItems:
    """Tests for most-used titles and icons."""

    def test_top_titles_by_count(self, engine):
        entries = [
            make_record(title="咖啡", amount=60),
            make_record(title="拉麵", amount=180),
            make_record(title="咖啡", amount=60),
        ]
        top = engine.top_items(entries)
        assert [(t.label, t.count, t.total) for t in top] == [
            ("咖啡", 2, 120),
            ("拉麵", 1, 180),
        ]

    def test_top_titles_by_amount(self, engine):
        entries = [
            make_record(title="咖啡", amount=60),
            make_record(title="拉麵", amount=180),
            make_record(title="咖啡", amount=60),
        ]
        top = engine.top_items(entries, rank_by="amount")
        assert [t.label for t in top] == ["拉麵", "咖啡"]

    def test_top_icons_with_limit(self, engine):
        entries = [make_record(icon=icon) for icon in ["☕", "🍜", "☕", "🚕", "🍜", "☕"]]
        top = engine.top_items(entries, key="icon", limit=2)
        assert [(t.label, t.count) for t in top] == [("☕", 3), ("🍜", 2)]

    def test_invalid_key(self, engine):
        with pytest.raises(ValueError):
            engine.top_items([], key="category")

    def test_invalid_ranking(self, engine):
        with pytest.raises(ValueError):
            engine.top_items([], rank_by="recency")


class TestEntriesByDay:
    """Tests for the grouped list view."""

    def test_newest_day_first(self, engine, may_entries):
        groups = engine.entries_by_day(may_entries)

        assert [g.day for g in groups] == [date(2025, 5, 22), date(2025, 5, 20)]
        assert [e.title for e in groups[0].entries] == ["珍奶", "T恤"]
        assert groups[0].total == 80


class TestBuildReport:
    """Tests for the one-snapshot month report."""

    def test_report_contents(self, engine, may_entries):
        entries = may_entries + [make_record(amount=999, when=taipei(2025, 4, 1))]
        report = engine.build_report(entries)

        assert report.reference == REFERENCE
        assert report.days_in_month == 31
        assert report.entry_count == 3
        assert report.month_total == 180
        assert report.top_category.as_tuple() == ("food", 150)
        assert [t.as_tuple() for t in report.daily_totals] == [
            (date(2025, 5, 20), 100),
            (date(2025, 5, 22), 80),
        ]
        assert report.heatmap()[19] == 1
        assert report.heatmap()[21] == 2
        assert len(report.heatmap()) == 31

    def test_report_is_deterministic(self, engine, may_entries):
        first = engine.build_report(may_entries, reference=REFERENCE)
        second = engine.build_report(list(reversed(may_entries)), reference=REFERENCE)
        assert first.month_total == second.month_total
        assert first.daily_totals == second.daily_totals

    def test_naive_reference_is_civil_time(self, engine, may_entries):
        report = engine.build_report(may_entries, reference=datetime(2025, 5, 1, 0, 0))
        assert report.window.start == taipei(2025, 5, 1)
        assert report.entry_count == 3
