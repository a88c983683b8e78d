"""
Insights Aggregation Engine

DESIGN DECISION: Aggregation is PURE and DETERMINISTIC.
Every function takes a collection of records plus a reference instant and
returns plain values. Nothing here reads the clock (unless no reference is
given) or touches storage, so the same snapshot always renders the same
charts.

CALENDAR RULES:
- Every day and month boundary is computed in the civil timezone
  (Asia/Taipei), whatever the machine's local zone is
- A record belongs to the civil day that contains it: midnight belongs to
  the day it opens, never to the day it closes
- Unknown categories are just another group

Ordering rules:
- Category totals: largest first, ties in order of first appearance
- Daily values: oldest day first
- Category series: categories in order of first appearance
"""

import calendar
from collections import defaultdict
from datetime import date, datetime
from typing import Callable, Iterable, Literal, Optional

from tapmoney.models.expense import CIVIL_TIMEZONE, ExpenseRecord
from tapmoney.models.insights import (
    CategorySeries,
    CategoryTotal,
    DailyTotal,
    DayGroup,
    InsightsReport,
    TimeWindow,
    TopItem,
)


def civil_day(record: ExpenseRecord) -> date:
    """The civil calendar day a record belongs to."""
    return record.timestamp.astimezone(CIVIL_TIMEZONE).date()


def _sum_by_day(records: Iterable[ExpenseRecord]) -> list[DailyTotal]:
    totals: dict[date, int] = defaultdict(int)
    for record in records:
        totals[civil_day(record)] += record.amount
    return [DailyTotal(day=day, total=total) for day, total in sorted(totals.items())]


class AggregationEngine:
    """
    Computes the grouped, time-windowed views behind the insights charts.

    Args:
        clock: Source of "now" when a call omits the reference instant.
               Inject a fixed clock for reproducible results.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or (lambda: datetime.now(CIVIL_TIMEZONE))

    def _reference(self, reference: Optional[datetime]) -> datetime:
        reference = reference or self._clock()
        if reference.tzinfo is None:
            reference = reference.replace(tzinfo=CIVIL_TIMEZONE)
        return reference

    def _window(
        self,
        reference: Optional[datetime],
        window: Optional[TimeWindow],
    ) -> TimeWindow:
        return window or TimeWindow.month_of(self._reference(reference))

    @staticmethod
    def _snapshot(entries: Iterable[ExpenseRecord]) -> tuple[ExpenseRecord, ...]:
        return tuple(entries)

    @staticmethod
    def in_window(
        entries: Iterable[ExpenseRecord],
        window: TimeWindow,
    ) -> list[ExpenseRecord]:
        """Entries whose timestamp falls inside the window, in input order."""
        return [e for e in entries if window.contains(e.timestamp)]

    def category_totals(
        self,
        entries: Iterable[ExpenseRecord],
        reference: Optional[datetime] = None,
        window: Optional[TimeWindow] = None,
    ) -> list[CategoryTotal]:
        """
        Spend per category in the reference month (or the given window).

        Sorted by total descending; equal totals keep the order in which
        their categories first appeared.
        """
        selected = self.in_window(self._snapshot(entries), self._window(reference, window))

        totals: dict[str, int] = {}
        for record in selected:
            totals[record.category] = totals.get(record.category, 0) + record.amount

        ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
        return [CategoryTotal(category=c, total=t) for c, t in ranked]

    def daily_totals(
        self,
        entries: Iterable[ExpenseRecord],
        reference: Optional[datetime] = None,
        month_only: bool = False,
        window: Optional[TimeWindow] = None,
    ) -> list[DailyTotal]:
        """
        Spend per civil day, oldest day first.

        With month_only the result is limited to the reference month;
        an explicit window takes precedence over both.
        """
        selected = self._snapshot(entries)
        if window is not None or month_only:
            selected = self.in_window(selected, self._window(reference, window))
        return _sum_by_day(selected)

    def category_daily_series(
        self,
        entries: Iterable[ExpenseRecord],
        reference: Optional[datetime] = None,
        window: Optional[TimeWindow] = None,
    ) -> list[CategorySeries]:
        """One ascending-by-day series per category of the reference month."""
        selected = self.in_window(self._snapshot(entries), self._window(reference, window))

        by_category: dict[str, list[ExpenseRecord]] = {}
        for record in selected:
            by_category.setdefault(record.category, []).append(record)

        return [
            CategorySeries(category=category, points=_sum_by_day(records))
            for category, records in by_category.items()
        ]

    def daily_entry_counts(
        self,
        entries: Iterable[ExpenseRecord],
        reference: Optional[datetime] = None,
    ) -> dict[int, int]:
        """
        Number of records per day-of-month in the reference month.

        Days without records are absent; the heatmap fills in zero.
        """
        selected = self.in_window(
            self._snapshot(entries), TimeWindow.month_of(self._reference(reference))
        )
        counts: dict[int, int] = defaultdict(int)
        for record in selected:
            counts[civil_day(record).day] += 1
        return dict(sorted(counts.items()))

    def days_in_month(self, reference: Optional[datetime] = None) -> int:
        """Number of civil days (28-31) in the reference month."""
        civil = self._reference(reference).astimezone(CIVIL_TIMEZONE)
        return calendar.monthrange(civil.year, civil.month)[1]

    def top_items(
        self,
        entries: Iterable[ExpenseRecord],
        key: Literal["title", "icon"] = "title",
        rank_by: Literal["count", "amount"] = "count",
        limit: int = 5,
        window: Optional[TimeWindow] = None,
    ) -> list[TopItem]:
        """
        Most used titles or icons, by number of records or by spend.

        Ties keep the order of first appearance.
        """
        if key not in ("title", "icon"):
            raise ValueError(f"Unsupported key: {key}")
        if rank_by not in ("count", "amount"):
            raise ValueError(f"Unsupported ranking: {rank_by}")

        selected = self._snapshot(entries)
        if window is not None:
            selected = self.in_window(selected, window)

        counts: dict[str, int] = {}
        totals: dict[str, int] = {}
        for record in selected:
            label = getattr(record, key)
            counts[label] = counts.get(label, 0) + 1
            totals[label] = totals.get(label, 0) + record.amount

        metric = counts if rank_by == "count" else totals
        ranked = sorted(counts, key=lambda label: metric[label], reverse=True)
        return [
            TopItem(label=label, count=counts[label], total=totals[label])
            for label in ranked[:max(limit, 0)]
        ]

    def entries_by_day(self, entries: Iterable[ExpenseRecord]) -> list[DayGroup]:
        """Records grouped under civil-day headers, newest day and record first."""
        ordered = sorted(
            self._snapshot(entries), key=lambda r: r.timestamp, reverse=True
        )
        groups: dict[date, list[ExpenseRecord]] = {}
        for record in ordered:
            groups.setdefault(civil_day(record), []).append(record)
        return [DayGroup(day=day, entries=records) for day, records in groups.items()]

    def build_report(
        self,
        entries: Iterable[ExpenseRecord],
        reference: Optional[datetime] = None,
        top_limit: int = 5,
    ) -> InsightsReport:
        """Every month view of the insights screen from one snapshot."""
        reference = self._reference(reference)
        window = TimeWindow.month_of(reference)
        snapshot = self._snapshot(entries)
        month_entries = self.in_window(snapshot, window)

        return InsightsReport(
            reference=reference,
            window=window,
            days_in_month=self.days_in_month(reference),
            entry_count=len(month_entries),
            month_total=sum(e.amount for e in month_entries),
            category_totals=self.category_totals(month_entries, window=window),
            daily_totals=self.daily_totals(month_entries, window=window),
            category_series=self.category_daily_series(month_entries, window=window),
            daily_entry_counts=self.daily_entry_counts(month_entries, reference),
            top_titles=self.top_items(month_entries, key="title", limit=top_limit),
            top_icons=self.top_items(month_entries, key="icon", limit=top_limit),
        )
